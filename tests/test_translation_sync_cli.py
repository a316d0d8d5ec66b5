from __future__ import annotations

import json
import pathlib

import pytest

from localesync.agents import translation_sync as cli
from localesync.services.merge import ErrorRecord
from localesync.services.translation_sync import (
    STATUS_COMPLETE,
    STATUS_PARTIAL,
    RunResult,
    TargetResult,
)


def _sample_result(*, with_error: bool) -> RunResult:
    errors: list[ErrorRecord] = []
    targets = [
        TargetResult(
            filename="de.json",
            status=STATUS_COMPLETE,
            requested_keys=4,
            translated_keys=4,
            batch_count=1,
            written=True,
        )
    ]
    if with_error:
        errors.append(
            ErrorRecord(
                target_file="fr.json",
                batch_number=2,
                batch_count=3,
                kind="parse_error",
                prompt="prompt",
                batch={"b": "B"},
                response="not json",
                cause=ValueError("Response is not valid JSON"),
            )
        )
        targets.append(
            TargetResult(
                filename="fr.json",
                status=STATUS_PARTIAL,
                requested_keys=3,
                translated_keys=2,
                batch_count=3,
                failed_batches=1,
                written=True,
            )
        )
    return RunResult(source_keys=10, changed_keys=2, targets=targets, errors=errors)


def test_render_table_lists_counts_and_errors() -> None:
    report = cli.build_report(_sample_result(with_error=True))

    output = cli.render_table(report)

    assert "de.json" in output
    assert "partial" in output
    assert "Original number of keys: 10" in output
    assert "completed with 1 errors" in output
    assert "fr.json batch 2 of 3 [parse_error]: Response is not valid JSON" in output


def test_render_table_reports_full_success() -> None:
    output = cli.render_table(cli.build_report(_sample_result(with_error=False)))

    assert "fully successful" in output


def test_load_settings_merges_config_file_and_flags(tmp_path: pathlib.Path) -> None:
    config = tmp_path / "localesync.json"
    config.write_text(
        json.dumps(
            {
                "output_files": ["de.json"],
                "extra_context_by_filename": {"de.json": "German"},
                "chunk_size": 100,
            }
        ),
        encoding="utf-8",
    )
    args = cli.build_parser().parse_args(
        ["--config", str(config), "--chunk-size", "25", "--recreate"]
    )

    settings = cli.load_settings(args)

    assert settings.output_files == ["de.json"]
    assert settings.extra_context_by_filename == {"de.json": "German"}
    assert settings.chunk_size == 25
    assert settings.recreate is True


def test_main_exit_code_reflects_errors(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    async def fake_run(_settings: object) -> RunResult:
        return _sample_result(with_error=True)

    monkeypatch.setattr(cli, "_run", fake_run)
    monkeypatch.setattr(cli, "load_settings", lambda _args: object())

    with pytest.raises(SystemExit) as exc:
        cli.main(["--format", "json"])

    assert exc.value.code == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["success"] is False
    assert payload["errors"][0]["batch_number"] == 2

    with pytest.raises(SystemExit) as exc:
        cli.main(["--allow-errors"])

    assert exc.value.code == 0


def test_main_fatal_error_exits_with_status_two(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_run(_settings: object) -> RunResult:
        raise RuntimeError("source file unreadable")

    monkeypatch.setattr(cli, "_run", fake_run)
    monkeypatch.setattr(cli, "load_settings", lambda _args: object())

    with pytest.raises(SystemExit) as exc:
        cli.main([])

    assert exc.value.code == 2
