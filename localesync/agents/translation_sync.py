"""Command line entry point for incremental translation of i18n JSON files."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import pathlib
from typing import Any, Iterable, Sequence

from localesync.core.config import TranslationSettings, get_settings
from localesync.integrations.assistant import OpenAIAssistantBackend
from localesync.schemas.translation import (
    BatchErrorReport,
    TargetReport,
    TranslationRunReport,
)
from localesync.services.assistant_client import RetryingAssistantClient
from localesync.services.translation_sync import RunResult, TranslationSyncService


logger = logging.getLogger("localesync.translation_sync")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="localesync-translate",
        description=(
            "Translate changed and missing keys of a source i18n JSON file into every "
            "configured output file using an OpenAI Assistant."
        ),
    )
    parser.add_argument(
        "--config",
        default=None,
        help="JSON file with settings (extra_context_by_filename, output_files, ...).",
    )
    parser.add_argument("--source-file", default=None, help="Source file name, e.g. en.json.")
    parser.add_argument("--source-directory", default=None, help="Directory holding the source file.")
    parser.add_argument(
        "--output-file",
        dest="output_files",
        action="append",
        default=[],
        help="Output file name. May be provided multiple times.",
    )
    parser.add_argument("--output-directory", default=None, help="Directory holding output files.")
    parser.add_argument(
        "--recreate",
        action="store_true",
        help="Ignore existing output files and git history and translate every key.",
    )
    parser.add_argument("--parallel-limit", type=int, default=None, help="Files translated at once.")
    parser.add_argument(
        "--batch-parallel-limit",
        type=int,
        default=None,
        help="Batches in flight per file (defaults to --parallel-limit).",
    )
    parser.add_argument("--chunk-size", type=int, default=None, help="Maximum keys per batch.")
    parser.add_argument("--max-retries", type=int, default=None, help="Rate limit retry budget.")
    parser.add_argument("--diff-base", default=None, help="Git ref to diff the source file against.")
    parser.add_argument(
        "--format",
        choices=("table", "json"),
        default="table",
        help="Output format for the final report (default: table).",
    )
    parser.add_argument(
        "--allow-errors",
        action="store_true",
        help="Return exit code 0 even when some batches failed.",
    )
    return parser


def load_settings(args: argparse.Namespace) -> TranslationSettings:
    """Combine environment settings, an optional config file and CLI overrides."""
    overrides: dict[str, Any] = {}
    if args.config:
        config_path = pathlib.Path(args.config).expanduser()
        payload = json.loads(config_path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Config file {config_path} must contain a JSON object.")
        overrides.update(payload)

    cli_values = {
        "source_file": args.source_file,
        "source_directory": args.source_directory,
        "output_directory": args.output_directory,
        "parallel_limit": args.parallel_limit,
        "batch_parallel_limit": args.batch_parallel_limit,
        "chunk_size": args.chunk_size,
        "max_retries": args.max_retries,
        "diff_base": args.diff_base,
    }
    overrides.update({key: value for key, value in cli_values.items() if value is not None})
    if args.output_files:
        overrides["output_files"] = args.output_files
    if args.recreate:
        overrides["recreate"] = True

    if not overrides:
        return get_settings()
    return TranslationSettings(**overrides)


def build_report(result: RunResult) -> TranslationRunReport:
    return TranslationRunReport(
        success=result.success,
        source_keys=result.source_keys,
        changed_keys=result.changed_keys,
        diff_available=result.diff_available,
        targets=[
            TargetReport(
                filename=target.filename,
                status=target.status,
                requested_keys=target.requested_keys,
                translated_keys=target.translated_keys,
                batch_count=target.batch_count,
                failed_batches=target.failed_batches,
                written=target.written,
            )
            for target in result.targets
        ],
        errors=[BatchErrorReport(**error.to_dict()) for error in result.errors],
    )


def render_table(report: TranslationRunReport) -> str:
    """Render per-target counts followed by the error list."""
    headers = ("File", "Status", "Requested", "Translated", "Batches", "Failed")
    rows = [
        (
            target.filename,
            target.status,
            str(target.requested_keys),
            str(target.translated_keys),
            str(target.batch_count),
            str(target.failed_batches),
        )
        for target in report.targets
    ]

    widths = [
        max([len(header), *(len(row[index]) for row in rows)])
        for index, header in enumerate(headers)
    ]

    def format_row(values: Iterable[str]) -> str:
        return "  ".join(value.ljust(width) for value, width in zip(values, widths)).rstrip()

    lines = [format_row(headers), "  ".join("-" * width for width in widths)]
    lines.extend(format_row(row) for row in rows)
    lines.append("")
    lines.append(f"Original number of keys: {report.source_keys}")
    if not report.diff_available:
        lines.append("Git diff unavailable; only missing keys were translated.")

    if report.success:
        lines.append("Translation run fully successful.")
    else:
        lines.append(f"Translation run completed with {len(report.errors)} errors:")
        for error in report.errors:
            lines.append(
                f"  - {error.target_file} batch {error.batch_number} of {error.batch_count} "
                f"[{error.kind}]: {error.message}"
            )
    return "\n".join(lines)


async def _run(settings: TranslationSettings) -> RunResult:
    backend = OpenAIAssistantBackend(settings)
    client = RetryingAssistantClient(
        backend,
        max_retries=settings.max_retries,
        initial_delay=settings.retry_initial_delay,
        buffer_seconds=settings.retry_buffer_seconds,
    )
    service = TranslationSyncService(settings, client=client)

    logger.info("Assistant ID: %s", settings.assistant_id)
    logger.info("Source: %s/%s", settings.source_directory, settings.source_file)
    logger.info("Output: %s -> %s", settings.output_directory, ", ".join(settings.output_files))
    logger.info(
        "Recreate=%s parallel=%s batch_parallel=%s chunk_size=%s",
        settings.recreate,
        settings.parallel_limit,
        settings.batch_parallel_limit,
        settings.chunk_size,
    )
    return await service.run()


def main(argv: Sequence[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")

    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = load_settings(args)
        result = asyncio.run(_run(settings))
    except Exception as exc:
        logger.exception("Translation run failed: %s", exc)
        raise SystemExit(2) from exc

    report = build_report(result)
    if args.format == "json":
        print(report.model_dump_json(indent=2))
    else:
        print(render_table(report))

    exit_code = 0 if report.success or args.allow_errors else 1
    raise SystemExit(exit_code)


if __name__ == "__main__":  # pragma: no cover - script entry point
    main()
