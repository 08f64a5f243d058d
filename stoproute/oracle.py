"""Distance oracles: strategies producing the traversal cost between two stops."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Protocol

from .errors import RemoteUnavailable
from .geo import great_circle_meters
from .ratelimit import GRAPH_EDGE_POLICY, Pacer

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import LatLon, RouteLeg, Stop

LOGGER = logging.getLogger(__name__)

PairKey = tuple[str, str]


class DistanceOracle(Protocol):
    """Anything able to price the edges from one stop to a batch of stops."""

    name: str

    async def resolve(
        self,
        source: Stop,
        targets: Sequence[Stop],
    ) -> dict[str, float]:
        """Return `target id -> meters`; `inf` marks an unreachable target."""
        ...


class DistanceProvider(Protocol):
    async def fetch_distance(self, a: LatLon, b: LatLon) -> RouteLeg | None: ...


def pair_key(a: str, b: str) -> PairKey:
    """Return the order-independent cache key for a stop pair."""
    return (a, b) if a <= b else (b, a)


class PairDistanceCache:
    """In-memory street distances keyed by unordered stop pair."""

    def __init__(self) -> None:
        self._distances: dict[PairKey, float] = {}

    def get(self, a: str, b: str) -> float | None:
        return self._distances.get(pair_key(a, b))

    def put(self, a: str, b: str, distance: float) -> None:
        self._distances[pair_key(a, b)] = distance

    def clear(self) -> None:
        self._distances.clear()

    def __contains__(self, pair: object) -> bool:
        if not isinstance(pair, tuple) or len(pair) != 2:  # noqa: PLR2004
            return False
        return pair_key(*pair) in self._distances

    def __len__(self) -> int:
        return len(self._distances)


class DirectDistanceOracle:
    """Great-circle distance; deterministic and free of I/O."""

    name = "direct"

    def distance(self, a: Stop, b: Stop) -> float:
        return great_circle_meters(a.lat, a.lon, b.lat, b.lon)

    async def resolve(
        self,
        source: Stop,
        targets: Sequence[Stop],
    ) -> dict[str, float]:
        return {target.id: self.distance(source, target) for target in targets}


class RemoteDistanceOracle:
    """Street distance looked up from a routing service, cached per stop pair.

    Lookups that fail or find no route yield `inf` and are not cached, so a
    later build can retry them.
    """

    def __init__(
        self,
        provider: DistanceProvider,
        cache: PairDistanceCache | None = None,
        pacer: Pacer | None = None,
        name: str | None = None,
    ) -> None:
        self.provider = provider
        self.cache = cache if cache is not None else PairDistanceCache()
        self.pacer = pacer if pacer is not None else Pacer(GRAPH_EDGE_POLICY)
        self.name = name or getattr(provider, "name", "remote")

    async def distance(self, a: Stop, b: Stop) -> float:
        cached = self.cache.get(a.id, b.id)
        if cached is not None:
            return cached

        try:
            leg = await self.provider.fetch_distance(a.position, b.position)
        except RemoteUnavailable as exc:
            LOGGER.debug("Distance lookup %s -> %s failed: %s", a.id, b.id, exc)
            return math.inf

        if leg is None:
            return math.inf

        self.cache.put(a.id, b.id, leg.distance_m)
        return leg.distance_m

    async def resolve(
        self,
        source: Stop,
        targets: Sequence[Stop],
    ) -> dict[str, float]:
        # Cached pairs skip the pacer entirely; only live lookups are paced.
        resolved: dict[str, float] = {}
        pending: list[Stop] = []
        for target in targets:
            cached = self.cache.get(source.id, target.id)
            if cached is None:
                pending.append(target)
            else:
                resolved[target.id] = cached

        factories = [
            (lambda target=target: self.distance(source, target)) for target in pending
        ]
        distances = await self.pacer.gather(factories)
        resolved.update(
            {target.id: distance for target, distance in zip(pending, distances)}
        )
        return resolved
