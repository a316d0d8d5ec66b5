from __future__ import annotations

import json
from collections.abc import Mapping

from localesync.core.config import ConfigurationError


_BASE_INSTRUCTIONS = (
    "You are a professional translator that translates texts from english.\n"
    "\n"
    "Give me one json with the translations.\n"
    "Do not miss any keys (the number of keys must be the same as in the input json)."
)


class PromptBuilder:
    """Assemble the per-target instructions and the batch payload sent to the assistant."""

    def __init__(
        self,
        product_context: str,
        extra_context_by_filename: Mapping[str, str],
    ) -> None:
        self._base_context = f"{_BASE_INSTRUCTIONS}\n\n{product_context}".strip()
        self._extra_context_by_filename = dict(extra_context_by_filename)

    def instructions_for(self, filename: str) -> str:
        extra_context = self._extra_context_by_filename.get(filename)
        if not extra_context:
            raise ConfigurationError(f"No extra context found for filename: {filename}")
        return f"{self._base_context}\n\n{extra_context}"

    def build(self, filename: str, batch: Mapping[str, str]) -> str:
        payload = json.dumps(dict(batch), ensure_ascii=False)
        return f"{self.instructions_for(filename)}\n\n{payload}"
