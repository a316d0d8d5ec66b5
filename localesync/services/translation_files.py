from __future__ import annotations

import json
import logging
import pathlib
from collections.abc import Mapping
from typing import Any


logger = logging.getLogger(__name__)


class SourceFileError(RuntimeError):
    """Raised when the source mapping cannot be loaded."""


class TargetFileError(RuntimeError):
    """Raised when an existing target mapping cannot be used."""


def _ensure_flat_mapping(payload: Any, path: pathlib.Path) -> dict[str, str]:
    if not isinstance(payload, dict):
        raise ValueError(f"{path} must contain a JSON object, got {type(payload).__name__}")
    nested = [key for key, value in payload.items() if not isinstance(value, str)]
    if nested:
        raise ValueError(f"{path} must map keys to strings; non-string values at {nested[:5]}")
    return payload


def load_source_mapping(path: pathlib.Path) -> dict[str, str]:
    logger.info("Reading source file %s", path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return _ensure_flat_mapping(payload, path)
    except (OSError, ValueError) as exc:
        raise SourceFileError(f"Unable to load source file {path}: {exc}") from exc


def load_target_mapping(path: pathlib.Path, *, create_missing: bool = True) -> dict[str, str]:
    """Load an existing target; a missing file is an empty mapping when ``create_missing``."""
    if not path.exists():
        if not create_missing:
            raise TargetFileError(f"Target file {path} does not exist.")
        logger.info("Creating new file %s", path.name)
        return {}

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return _ensure_flat_mapping(payload, path)
    except (OSError, ValueError) as exc:
        raise TargetFileError(f"Unable to load target file {path}: {exc}") from exc


def serialize_mapping(mapping: Mapping[str, Any]) -> str:
    return json.dumps(mapping, ensure_ascii=False, indent=2)


def write_mapping(path: pathlib.Path, mapping: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(serialize_mapping(mapping), encoding="utf-8")
    logger.info("Updated %s (%s keys)", path.name, len(mapping))
