from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any


logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```[\w-]*\s*\n(.*?)\n?```$", re.DOTALL)


class BatchResponseError(ValueError):
    """Raised when a batch response cannot be used as a translation mapping."""

    def __init__(self, kind: str, message: str) -> None:
        self.kind = kind
        super().__init__(message)


@dataclass(slots=True)
class ErrorRecord:
    target_file: str
    batch_number: int
    batch_count: int
    kind: str
    prompt: str
    batch: dict[str, str]
    response: str | None = None
    cause: BaseException | None = None

    @property
    def message(self) -> str:
        if self.cause is None:
            return self.kind
        return str(self.cause) or type(self.cause).__name__

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_file": self.target_file,
            "batch_number": self.batch_number,
            "batch_count": self.batch_count,
            "kind": self.kind,
            "message": self.message,
            "cause_type": type(self.cause).__name__ if self.cause else None,
            "prompt": self.prompt,
            "batch": dict(self.batch),
            "response": self.response,
        }


@dataclass(slots=True)
class ErrorCollector:
    """Append-only list of batch failures."""

    _records: list[ErrorRecord] = field(default_factory=list)

    def record(self, error: ErrorRecord) -> None:
        logger.warning(
            "%s: batch %s of %s failed (%s): %s",
            error.target_file,
            error.batch_number,
            error.batch_count,
            error.kind,
            error.message,
        )
        self._records.append(error)

    def extend(self, other: "ErrorCollector") -> None:
        self._records.extend(other.records)

    @property
    def records(self) -> tuple[ErrorRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    match = _CODE_FENCE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def parse_batch_response(
    text: str,
    *,
    expected_keys: Iterable[str] | None = None,
) -> dict[str, Any]:
    """Parse assistant output into a mapping; the whole batch is rejected on any failure."""
    try:
        payload = json.loads(_strip_code_fence(text))
    except json.JSONDecodeError as exc:
        raise BatchResponseError("parse_error", f"Response is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise BatchResponseError(
            "parse_error",
            f"Response must be a JSON object, got {type(payload).__name__}",
        )

    non_strings = [key for key, value in payload.items() if not isinstance(value, str)]
    if non_strings:
        raise BatchResponseError(
            "parse_error",
            f"Response values must be strings; non-string values at {non_strings[:5]}",
        )

    if expected_keys is not None:
        expected = set(expected_keys)
        returned = set(payload)
        if expected != returned:
            missing = sorted(expected - returned)
            unexpected = sorted(returned - expected)
            raise BatchResponseError(
                "key_mismatch",
                f"Response keys differ from request (missing={missing}, unexpected={unexpected})",
            )
    return payload


def merge_translations(
    existing: Mapping[str, Any],
    batch_results: Iterable[Mapping[str, Any]],
) -> dict[str, Any]:
    """Merge batch results left to right over ``existing`` without removing keys."""
    merged = dict(existing)
    for result in batch_results:
        merged.update(result)
    return merged
