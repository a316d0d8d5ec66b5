from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from openai import AsyncOpenAI

from localesync.core.config import TranslationSettings


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunError:
    """Machine-readable failure attached to a terminal assistant run."""

    code: str | None
    message: str


@dataclass(slots=True)
class TranscriptMessage:
    role: str
    texts: list[str] = field(default_factory=list)


@dataclass(slots=True)
class AssistantRunOutcome:
    """Terminal state of one assistant run; transcript is ordered newest first."""

    status: str
    error: RunError | None = None
    transcript: list[TranscriptMessage] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"


class AssistantBackend(Protocol):
    """Interface describing a backend able to run a single prompt."""

    async def submit(self, prompt: str) -> AssistantRunOutcome:
        """Run the prompt to a terminal state and return the outcome."""


class OpenAIAssistantBackend:
    """Run prompts against an OpenAI Assistant using a fresh thread per prompt."""

    def __init__(
        self,
        settings: TranslationSettings,
        *,
        client: AsyncOpenAI | None = None,
    ) -> None:
        if client is None:
            settings.require_credentials()
            client = AsyncOpenAI(api_key=settings.openai_api_key.get_secret_value())
        self._client = client
        self._assistant_id = settings.assistant_id

    async def submit(self, prompt: str) -> AssistantRunOutcome:
        run = await self._client.beta.threads.create_and_run_poll(
            assistant_id=self._assistant_id,
            thread={"messages": [{"role": "user", "content": prompt}]},
        )

        error: RunError | None = None
        last_error = getattr(run, "last_error", None)
        if last_error is not None:
            error = RunError(
                code=getattr(last_error, "code", None),
                message=getattr(last_error, "message", "") or "",
            )

        if run.status != "completed":
            logger.debug("Assistant run %s ended with status %s", run.id, run.status)
            return AssistantRunOutcome(status=run.status, error=error)

        page = await self._client.beta.threads.messages.list(
            thread_id=run.thread_id,
            order="desc",
        )
        transcript = [_to_transcript_message(message) for message in page.data]
        return AssistantRunOutcome(status=run.status, error=error, transcript=transcript)


def _to_transcript_message(message: Any) -> TranscriptMessage:
    texts: list[str] = []
    for block in getattr(message, "content", None) or []:
        if getattr(block, "type", None) != "text":
            continue
        text = getattr(block, "text", None)
        value = getattr(text, "value", None)
        if value is not None:
            texts.append(value)
    return TranscriptMessage(role=getattr(message, "role", ""), texts=texts)
