"""Pacing for requests against third-party routing services."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

if TYPE_CHECKING:
    from collections.abc import Sequence

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class PacingPolicy:
    """How many requests may be in flight together and the pause between groups."""

    batch_size: int = 1
    delay_seconds: float = 0.0

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            msg = f"batch_size must be >= 1, got {self.batch_size}"
            raise ValueError(msg)
        if self.delay_seconds < 0:
            msg = f"delay_seconds must be >= 0, got {self.delay_seconds}"
            raise ValueError(msg)


GRAPH_EDGE_POLICY = PacingPolicy(batch_size=5, delay_seconds=0.05)
GEOMETRY_POLICY = PacingPolicy(batch_size=1, delay_seconds=0.15)


class Pacer:
    """Spaces out groups of requests according to a `PacingPolicy`.

    A slot is released when a group finishes; the next group waits until
    `delay_seconds` have passed since that release. The first group never
    waits.
    """

    def __init__(
        self,
        policy: PacingPolicy = GEOMETRY_POLICY,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.policy = policy
        self._clock = clock
        self._sleep = sleep
        self._last_release: float | None = None

    async def wait(self) -> None:
        """Sleep just enough so consecutive slots stay `delay_seconds` apart."""
        if self._last_release is None or self.policy.delay_seconds <= 0:
            return
        elapsed = self._clock() - self._last_release
        remaining = self.policy.delay_seconds - elapsed
        if remaining > 0:
            await self._sleep(remaining)

    def release(self) -> None:
        self._last_release = self._clock()

    async def run(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Run a single request in its own slot."""
        await self.wait()
        try:
            return await factory()
        finally:
            self.release()

    async def gather(
        self,
        factories: Sequence[Callable[[], Awaitable[T]]],
    ) -> list[T]:
        """Run request factories in paced groups, returning results in input order."""
        results: list[T] = []
        size = self.policy.batch_size
        for offset in range(0, len(factories), size):
            group = factories[offset : offset + size]
            await self.wait()
            try:
                results.extend(await asyncio.gather(*(make() for make in group)))
            finally:
                self.release()
        return results
