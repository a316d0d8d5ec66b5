from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from localesync.core.config import ConfigurationError


T = TypeVar("T")


@dataclass(slots=True)
class UnitOutcome(Generic[T]):
    """Settled result of one dispatched unit: a value or the captured exception."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_bounded(
    units: Sequence[Callable[[], Awaitable[T]]],
    *,
    limit: int,
) -> list[UnitOutcome[T]]:
    """Run ``units`` with at most ``limit`` in flight and return outcomes in input order.

    Units start in FIFO order as slots free up. A failing unit never cancels
    its siblings; its exception is captured in the matching outcome.
    """
    if limit <= 0:
        raise ConfigurationError(f"Concurrency limit must be positive, got {limit}.")

    outcomes: list[UnitOutcome[T]] = [UnitOutcome() for _ in units]
    queue = iter(enumerate(units))

    async def worker() -> None:
        for index, unit in queue:
            try:
                outcomes[index].value = await unit()
            except Exception as exc:
                outcomes[index].error = exc

    await asyncio.gather(*(worker() for _ in range(min(limit, len(units)))))
    return outcomes
