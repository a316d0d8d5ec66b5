from __future__ import annotations

import asyncio
import logging
import pathlib


logger = logging.getLogger(__name__)


class DiffUnavailableError(RuntimeError):
    """Raised when git cannot produce a diff for the requested file."""


class GitDiffReader:
    """Run ``git diff`` for a single file and return the unified diff text."""

    def __init__(self, *, git_binary: str = "git", base: str | None = None) -> None:
        self._git_binary = git_binary
        self._base = base

    def build_command(self, filename: str) -> list[str]:
        command = [self._git_binary, "diff"]
        if self._base:
            command.append(self._base)
        command.extend(["--", filename])
        return command

    async def read_diff(self, filename: str, *, cwd: pathlib.Path) -> str:
        command = self.build_command(filename)
        logger.info("Executing %s in %s", " ".join(command), cwd)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise DiffUnavailableError(f"Unable to run {self._git_binary}: {exc}") from exc

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise DiffUnavailableError(
                detail or f"git diff exited with status {process.returncode}"
            )
        return stdout.decode("utf-8", errors="replace")
