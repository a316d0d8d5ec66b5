from __future__ import annotations

import json
import logging
import pathlib
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol

from localesync.integrations.git import DiffUnavailableError


logger = logging.getLogger(__name__)

_HUNK_HEADER_PREFIX = "@@"
_KEY_VALUE_PATTERN = re.compile(r'"((?:[^"\\]|\\.)+)"\s*:\s*"')


class DiffSource(Protocol):
    async def read_diff(self, filename: str, *, cwd: pathlib.Path) -> str:
        """Return unified diff text for ``filename``."""


@dataclass(slots=True, frozen=True)
class ChangeSet:
    keys: frozenset[str]
    diff_available: bool = True


def parse_changed_keys(diff_output: str) -> set[str]:
    """Extract keys from ``"key": "value"`` lines added after the first hunk header."""
    changed: set[str] = set()
    content_started = False

    for line in diff_output.splitlines():
        if line.startswith(_HUNK_HEADER_PREFIX):
            content_started = True
            continue
        if not content_started or not line.startswith("+"):
            continue

        cleaned = line[1:].strip()
        if not cleaned or '":' not in cleaned:
            continue
        if cleaned.endswith(","):
            cleaned = cleaned[:-1]

        match = _KEY_VALUE_PATTERN.search(cleaned)
        if not match:
            continue
        try:
            key = json.loads(f'"{match.group(1)}"')
        except json.JSONDecodeError:
            logger.debug("Failed to decode key from diff line: %s", cleaned)
            continue
        changed.add(key)

    return changed


def resolve_translation_keys(
    source: Mapping[str, str],
    target: Mapping[str, str],
    changed: Iterable[str],
    *,
    recreate: bool = False,
) -> list[str]:
    """Return keys a target needs translated, in source order.

    Changed keys that no longer exist in the source are ignored so a deletion
    or rename never reintroduces a stale key.
    """
    if recreate:
        return list(source)
    changed_keys = set(changed)
    return [key for key in source if key in changed_keys or key not in target]


class ChangeSetResolver:
    """Discover keys modified in the source file since the diff baseline."""

    def __init__(self, diff_source: DiffSource) -> None:
        self._diff_source = diff_source

    async def resolve(
        self,
        source_file: str,
        *,
        source_directory: pathlib.Path,
        source: Mapping[str, str],
    ) -> ChangeSet:
        try:
            diff_output = await self._diff_source.read_diff(source_file, cwd=source_directory)
        except DiffUnavailableError as exc:
            logger.warning(
                "Git diff failed for %s in %s; falling back to missing-key detection: %s",
                source_file,
                source_directory,
                exc,
            )
            return ChangeSet(keys=frozenset(), diff_available=False)

        parsed = parse_changed_keys(diff_output)
        stale = parsed.difference(source)
        if stale:
            logger.debug("Ignoring %s changed keys absent from the source", len(stale))
        keys = frozenset(parsed.intersection(source))
        logger.info("Detected %s changed keys in %s", len(keys), source_file)
        return ChangeSet(keys=keys, diff_available=True)
