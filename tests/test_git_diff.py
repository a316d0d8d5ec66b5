from __future__ import annotations

import pathlib

import pytest

from localesync.integrations import git as git_module
from localesync.integrations.git import DiffUnavailableError, GitDiffReader


def test_build_command_compares_working_tree_by_default() -> None:
    assert GitDiffReader().build_command("en.json") == ["git", "diff", "--", "en.json"]


def test_build_command_includes_base_ref() -> None:
    reader = GitDiffReader(base="HEAD~1")

    assert reader.build_command("en.json") == ["git", "diff", "HEAD~1", "--", "en.json"]


@pytest.mark.asyncio
async def test_missing_binary_is_reported_as_unavailable(tmp_path: pathlib.Path) -> None:
    reader = GitDiffReader(git_binary="localesync-missing-git-binary")

    with pytest.raises(DiffUnavailableError):
        await reader.read_diff("en.json", cwd=tmp_path)


@pytest.mark.asyncio
async def test_missing_directory_is_reported_as_unavailable(tmp_path: pathlib.Path) -> None:
    reader = GitDiffReader()

    with pytest.raises(DiffUnavailableError):
        await reader.read_diff("en.json", cwd=tmp_path / "does-not-exist")


@pytest.mark.asyncio
async def test_any_os_error_on_launch_is_reported_as_unavailable(
    tmp_path: pathlib.Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    async def failing_exec(*args: object, **kwargs: object) -> None:
        raise OSError(7, "Argument list too long")

    monkeypatch.setattr(git_module.asyncio, "create_subprocess_exec", failing_exec)

    with pytest.raises(DiffUnavailableError):
        await GitDiffReader().read_diff("en.json", cwd=tmp_path)
