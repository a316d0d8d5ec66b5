from __future__ import annotations

from collections.abc import Mapping
from itertools import islice

from localesync.core.config import ConfigurationError


def chunk_mapping(mapping: Mapping[str, str], chunk_size: int) -> list[dict[str, str]]:
    """Split ``mapping`` into consecutive chunks of at most ``chunk_size`` entries."""
    if chunk_size <= 0:
        raise ConfigurationError(f"Chunk size must be positive, got {chunk_size}.")

    items = iter(mapping.items())
    chunks: list[dict[str, str]] = []
    while True:
        chunk = dict(islice(items, chunk_size))
        if not chunk:
            return chunks
        chunks.append(chunk)
