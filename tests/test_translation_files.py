from __future__ import annotations

import json
import pathlib

import pytest

from localesync.services.translation_files import (
    SourceFileError,
    TargetFileError,
    load_source_mapping,
    load_target_mapping,
    write_mapping,
)


def test_load_source_mapping_preserves_order(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "en.json"
    path.write_text('{"z": "Zed", "a": "Ay"}', encoding="utf-8")

    assert list(load_source_mapping(path)) == ["z", "a"]


@pytest.mark.parametrize("content", ["{not json", '["a"]', '{"nested": {"a": "b"}}'])
def test_invalid_source_is_fatal(tmp_path: pathlib.Path, content: str) -> None:
    path = tmp_path / "en.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(SourceFileError):
        load_source_mapping(path)


def test_missing_source_is_fatal(tmp_path: pathlib.Path) -> None:
    with pytest.raises(SourceFileError):
        load_source_mapping(tmp_path / "missing.json")


def test_missing_target_is_empty_when_creation_allowed(tmp_path: pathlib.Path) -> None:
    assert load_target_mapping(tmp_path / "de.json") == {}


def test_missing_target_is_fatal_when_creation_disabled(tmp_path: pathlib.Path) -> None:
    with pytest.raises(TargetFileError):
        load_target_mapping(tmp_path / "de.json", create_missing=False)


def test_corrupt_target_is_fatal(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "de.json"
    path.write_text("{", encoding="utf-8")

    with pytest.raises(TargetFileError):
        load_target_mapping(path)


def test_write_mapping_uses_two_space_indent_and_utf8(tmp_path: pathlib.Path) -> None:
    path = tmp_path / "nested" / "ru.json"

    write_mapping(path, {"hello": "Привет"})

    content = path.read_text(encoding="utf-8")
    assert content == '{\n  "hello": "Привет"\n}'
    assert json.loads(content) == {"hello": "Привет"}
