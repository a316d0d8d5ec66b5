from __future__ import annotations

import logging
import pathlib
from dataclasses import dataclass, field
from typing import Any

from localesync.core.config import TranslationSettings
from localesync.integrations.git import GitDiffReader
from localesync.services.assistant_client import AssistantError, RetryingAssistantClient
from localesync.services.change_set import (
    ChangeSet,
    ChangeSetResolver,
    DiffSource,
    resolve_translation_keys,
)
from localesync.services.chunking import chunk_mapping
from localesync.services.dispatcher import run_bounded
from localesync.services.merge import (
    BatchResponseError,
    ErrorCollector,
    ErrorRecord,
    merge_translations,
    parse_batch_response,
)
from localesync.services.prompts import PromptBuilder
from localesync.services.translation_files import (
    load_source_mapping,
    load_target_mapping,
    write_mapping,
)


logger = logging.getLogger(__name__)

STATUS_UP_TO_DATE = "up_to_date"
STATUS_COMPLETE = "complete"
STATUS_PARTIAL = "partial"
STATUS_FAILED = "failed"


class BatchFailedError(RuntimeError):
    """Carries the error record of a batch through the dispatcher."""

    def __init__(self, record: ErrorRecord) -> None:
        self.record = record
        super().__init__(record.message)


@dataclass(slots=True)
class TargetPlan:
    filename: str
    path: pathlib.Path
    existing: dict[str, str]
    keys: list[str]


@dataclass(slots=True)
class TargetResult:
    filename: str
    status: str
    requested_keys: int = 0
    translated_keys: int = 0
    batch_count: int = 0
    failed_batches: int = 0
    written: bool = False
    mapping: dict[str, Any] = field(default_factory=dict)
    errors: ErrorCollector = field(default_factory=ErrorCollector)


@dataclass(slots=True)
class RunResult:
    source_keys: int = 0
    changed_keys: int = 0
    diff_available: bool = True
    targets: list[TargetResult] = field(default_factory=list)
    errors: list[ErrorRecord] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def translated_counts(self) -> dict[str, int]:
        return {target.filename: target.translated_keys for target in self.targets}


class TranslationSyncService:
    """Translate changed and missing keys of a source file into every output file."""

    def __init__(
        self,
        settings: TranslationSettings,
        *,
        client: RetryingAssistantClient,
        diff_source: DiffSource | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._resolver = ChangeSetResolver(
            diff_source or GitDiffReader(base=settings.diff_base)
        )
        self._prompts = PromptBuilder(
            settings.product_context,
            settings.extra_context_by_filename,
        )

    async def run(self) -> RunResult:
        settings = self._settings
        settings.require_target_contexts()

        source_directory = pathlib.Path(settings.source_directory).expanduser()
        output_directory = pathlib.Path(settings.output_directory).expanduser()
        source = load_source_mapping(source_directory / settings.source_file)

        if settings.recreate:
            logger.info("Recreate mode: translating all %s source keys", len(source))
            change_set = ChangeSet(keys=frozenset(source))
        else:
            change_set = await self._resolver.resolve(
                settings.source_file,
                source_directory=source_directory,
                source=source,
            )

        # All targets load before dispatch; fatal file errors precede any write.
        plans = [
            self._plan_target(filename, output_directory / filename, source, change_set)
            for filename in settings.output_files
        ]

        outcomes = await run_bounded(
            [self._target_unit(plan, source) for plan in plans],
            limit=settings.parallel_limit,
        )

        result = RunResult(
            source_keys=len(source),
            changed_keys=len(change_set.keys),
            diff_available=change_set.diff_available,
        )
        run_errors = ErrorCollector()
        for plan, outcome in zip(plans, outcomes):
            if outcome.ok:
                target = outcome.value
            else:
                target = TargetResult(filename=plan.filename, status=STATUS_FAILED)
                target.errors.record(
                    ErrorRecord(
                        target_file=plan.filename,
                        batch_number=0,
                        batch_count=0,
                        kind="target_error",
                        prompt="",
                        batch={},
                        cause=outcome.error,
                    )
                )
            run_errors.extend(target.errors)
            result.targets.append(target)

        result.errors = list(run_errors.records)
        self._log_summary(result)
        return result

    def _plan_target(
        self,
        filename: str,
        path: pathlib.Path,
        source: dict[str, str],
        change_set: ChangeSet,
    ) -> TargetPlan:
        if self._settings.recreate:
            existing: dict[str, str] = {}
        else:
            existing = load_target_mapping(
                path,
                create_missing=self._settings.create_missing_targets,
            )
        keys = resolve_translation_keys(
            source,
            existing,
            change_set.keys,
            recreate=self._settings.recreate,
        )
        return TargetPlan(filename=filename, path=path, existing=existing, keys=keys)

    def _target_unit(self, plan: TargetPlan, source: dict[str, str]):
        async def unit() -> TargetResult:
            return await self._translate_target(plan, source)

        return unit

    async def _translate_target(self, plan: TargetPlan, source: dict[str, str]) -> TargetResult:
        if not plan.keys:
            logger.info("%s is up to date", plan.filename)
            return TargetResult(
                filename=plan.filename,
                status=STATUS_UP_TO_DATE,
                mapping=dict(plan.existing),
            )

        pending = {key: source[key] for key in plan.keys}
        batches = chunk_mapping(pending, self._settings.chunk_size)
        logger.info(
            "%s: translating %s keys in %s batches",
            plan.filename,
            len(pending),
            len(batches),
        )

        outcomes = await run_bounded(
            [
                self._batch_unit(plan.filename, number, len(batches), batch)
                for number, batch in enumerate(batches, start=1)
            ],
            limit=self._settings.batch_parallel_limit or self._settings.parallel_limit,
        )

        target = TargetResult(
            filename=plan.filename,
            status=STATUS_COMPLETE,
            requested_keys=len(pending),
            batch_count=len(batches),
        )
        successes: list[dict[str, Any]] = []
        for outcome in outcomes:
            if outcome.ok:
                successes.append(outcome.value)
                continue
            target.failed_batches += 1
            target.errors.record(outcome.error.record)

        target.translated_keys = sum(len(result) for result in successes)
        target.mapping = merge_translations(plan.existing, successes)
        if target.failed_batches:
            target.status = STATUS_PARTIAL if successes else STATUS_FAILED

        if successes:
            write_mapping(plan.path, target.mapping)
            target.written = True
        else:
            logger.warning("%s: no batch succeeded; leaving file untouched", plan.filename)
        return target

    def _batch_unit(self, filename: str, number: int, count: int, batch: dict[str, str]):
        async def unit() -> dict[str, Any]:
            return await self._translate_batch(filename, number, count, batch)

        return unit

    async def _translate_batch(
        self,
        filename: str,
        number: int,
        count: int,
        batch: dict[str, str],
    ) -> dict[str, Any]:
        prompt = ""
        response: str | None = None
        logger.info("%s: calling assistant for batch %s of %s", filename, number, count)
        try:
            prompt = self._prompts.build(filename, batch)
            response = await self._client.call(prompt)
            translated = parse_batch_response(
                response,
                expected_keys=batch if self._settings.validate_key_parity else None,
            )
        except Exception as exc:
            if isinstance(exc, (AssistantError, BatchResponseError)):
                kind = exc.kind
            else:
                kind = "unexpected"
            raise BatchFailedError(
                ErrorRecord(
                    target_file=filename,
                    batch_number=number,
                    batch_count=count,
                    kind=kind,
                    prompt=prompt,
                    batch=batch,
                    response=response,
                    cause=exc,
                )
            ) from exc

        logger.info("%s: received translations for batch %s of %s", filename, number, count)
        return translated

    def _log_summary(self, result: RunResult) -> None:
        logger.info("Number of keys per file:")
        for target in result.targets:
            logger.info("  %s: %s (%s)", target.filename, target.translated_keys, target.status)
        logger.info("Original number of keys: %s", result.source_keys)
        if result.success:
            logger.info("All translations generated successfully")
        else:
            logger.warning("Translation run completed with %s errors", len(result.errors))
