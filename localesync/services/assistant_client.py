from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable

from openai import RateLimitError

from localesync.integrations.assistant import AssistantBackend, AssistantRunOutcome


logger = logging.getLogger(__name__)

RATE_LIMIT_ERROR_CODE = "rate_limit_exceeded"
_RATE_LIMIT_MARKER = re.compile(r"rate[ _-]?limit", re.IGNORECASE)
_WAIT_PATTERN = re.compile(r"try again in (\d+(?:\.\d+)?)\s*(ms|s)\b", re.IGNORECASE)


class AssistantError(RuntimeError):
    """Base class for terminal assistant failures."""

    kind = "api_error"


class AssistantRunFailedError(AssistantError):
    """Raised when a run ends in a non-success state that is not a rate limit."""

    def __init__(self, status: str, message: str | None = None) -> None:
        self.status = status
        detail = f": {message}" if message else ""
        super().__init__(f"Assistant run ended with status {status!r}{detail}")


class AssistantRetriesExhaustedError(AssistantError):
    """Raised when the backend keeps rate limiting past the retry budget."""

    kind = "retries_exhausted"

    def __init__(self, retries: int, last_message: str | None = None) -> None:
        self.retries = retries
        self.last_message = last_message
        super().__init__(
            f"Rate limit retries exhausted after {retries} retries"
            + (f" (last error: {last_message})" if last_message else "")
        )


class AssistantNoResponseError(AssistantError):
    """Raised when a completed run contains no assistant-authored text."""

    kind = "no_response"

    def __init__(self) -> None:
        super().__init__("Assistant run completed but no response was produced")


class _RateLimited(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def is_rate_limit_message(message: str | None) -> bool:
    return bool(message) and _RATE_LIMIT_MARKER.search(message) is not None


def parse_retry_after(message: str | None) -> float | None:
    """Return the wait encoded as ``try again in <float>s`` (or ``ms``), in seconds."""
    if not message:
        return None
    match = _WAIT_PATTERN.search(message)
    if not match:
        return None
    value = float(match.group(1))
    if match.group(2).lower() == "ms":
        return value / 1000.0
    return value


def extract_response_text(outcome: AssistantRunOutcome) -> str:
    for message in outcome.transcript:
        if message.role != "assistant":
            continue
        for text in message.texts:
            return text
    raise AssistantNoResponseError()


class RetryingAssistantClient:
    """Call an assistant backend, retrying only when the backend rate limits."""

    def __init__(
        self,
        backend: AssistantBackend,
        *,
        max_retries: int = 5,
        initial_delay: float = 1.0,
        buffer_seconds: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must not be negative.")
        self._backend = backend
        self._max_retries = max_retries
        self._initial_delay = initial_delay
        self._buffer_seconds = buffer_seconds
        self._sleep = sleep or asyncio.sleep

    async def call(self, prompt: str) -> str:
        retries = 0
        while True:
            try:
                return await self._attempt(prompt)
            except _RateLimited as limited:
                if retries >= self._max_retries:
                    raise AssistantRetriesExhaustedError(
                        retries, limited.message
                    ) from limited.__cause__
                wait_seconds = self.compute_wait(limited.message, retries)
                retries += 1
                logger.warning(
                    "Rate limited by assistant, waiting %.2fs (retry %s/%s)",
                    wait_seconds,
                    retries,
                    self._max_retries,
                )
                await self._sleep(wait_seconds)

    def compute_wait(self, message: str | None, retries: int) -> float:
        explicit = parse_retry_after(message)
        if explicit is not None:
            base = explicit
        else:
            base = self._initial_delay * (2**retries)
        return base + self._buffer_seconds

    async def _attempt(self, prompt: str) -> str:
        try:
            outcome = await self._backend.submit(prompt)
        except RateLimitError as exc:
            raise _RateLimited(str(exc)) from exc
        except AssistantError:
            raise
        except Exception as exc:
            if is_rate_limit_message(str(exc)):
                raise _RateLimited(str(exc)) from exc
            raise

        if outcome.succeeded:
            return extract_response_text(outcome)

        error = outcome.error
        if error is not None and error.code == RATE_LIMIT_ERROR_CODE:
            raise _RateLimited(error.message)
        raise AssistantRunFailedError(outcome.status, error.message if error else None)
