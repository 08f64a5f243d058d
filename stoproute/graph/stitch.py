"""Helpers for expanding stop paths into street-following coordinates."""

from __future__ import annotations

import logging
from itertools import pairwise
from typing import TYPE_CHECKING, Hashable, Mapping, Protocol, Sequence

from stoproute.errors import RemoteUnavailable
from stoproute.models import LatLon, RouteLeg, RouteResult, RouteStatus
from stoproute.ratelimit import GEOMETRY_POLICY, Pacer

if TYPE_CHECKING:
    from stoproute.models import Stop

LOGGER = logging.getLogger(__name__)
# Five decimals is roughly one meter, close enough to share a cached segment.
KEY_PRECISION = 5


class GeometryProvider(Protocol):
    async def fetch_geometry(self, a: LatLon, b: LatLon) -> RouteLeg | None: ...


def geometry_key(a: LatLon, b: LatLon) -> str:
    """Return the rounded-coordinate cache key for a directed segment."""
    p = KEY_PRECISION
    return f"{a.lon:.{p}f},{a.lat:.{p}f};{b.lon:.{p}f},{b.lat:.{p}f}"


class GeometryCache:
    """In-memory segment geometries keyed by rounded endpoint coordinates."""

    def __init__(self) -> None:
        self._legs: dict[str, RouteLeg] = {}

    def get(self, a: LatLon, b: LatLon) -> RouteLeg | None:
        return self._legs.get(geometry_key(a, b))

    def put(self, a: LatLon, b: LatLon, leg: RouteLeg) -> None:
        self._legs[geometry_key(a, b)] = leg

    def clear(self) -> None:
        self._legs.clear()

    def __len__(self) -> int:
        return len(self._legs)


def stitch_segments(segments: Sequence[Sequence[LatLon]]) -> list[LatLon]:
    """Join per-edge coordinate runs into one path.

    Every segment after the first starts where the previous one ended, so
    its first coordinate is dropped.
    """
    stitched: list[LatLon] = []
    for index, segment in enumerate(segments):
        stitched.extend(segment if index == 0 else segment[1:])
    return stitched


class RouteGeometryAssembler:
    """Turns a stop path into a continuous street geometry.

    Segments are requested strictly in path order, one at a time, with the
    pacer spacing live requests. A segment whose lookup fails is drawn as a
    straight line between its stops and adds nothing to distance or
    duration; `RouteResult.fallback_edges` reports how many did.
    """

    def __init__(
        self,
        provider: GeometryProvider,
        cache: GeometryCache | None = None,
        pacer: Pacer | None = None,
    ) -> None:
        self.provider = provider
        self.cache = cache if cache is not None else GeometryCache()
        self.pacer = pacer if pacer is not None else Pacer(GEOMETRY_POLICY)

    async def assemble(
        self,
        path: Sequence[Hashable],
        stops_by_id: Mapping[Hashable, Stop],
    ) -> RouteResult:
        """Fetch and stitch the geometry of every consecutive stop pair."""
        if not path:
            return RouteResult.empty(RouteStatus.NO_ROUTE_FOUND)

        stops = [stops_by_id[stop_id] for stop_id in path]
        if len(stops) == 1:
            return RouteResult(
                coordinates=[stops[0].position],
                stop_count=1,
                path=list(path),
            )

        segments: list[list[LatLon]] = []
        distance = 0.0
        duration = 0.0
        fallbacks = 0

        for index, (stop_a, stop_b) in enumerate(pairwise(stops)):
            leg = await self._segment(stop_a.position, stop_b.position)
            if leg is None or not leg.coordinates:
                LOGGER.warning(
                    "Segment %d (%s -> %s) unavailable, using a straight line",
                    index + 1,
                    stop_a.id,
                    stop_b.id,
                )
                segments.append([stop_a.position, stop_b.position])
                fallbacks += 1
                continue
            segments.append(list(leg.coordinates))
            distance += leg.distance_m
            duration += leg.duration_s

        return RouteResult(
            coordinates=stitch_segments(segments),
            distance_m=distance,
            duration_s=duration,
            stop_count=len(path),
            path=list(path),
            fallback_edges=fallbacks,
        )

    async def _segment(self, a: LatLon, b: LatLon) -> RouteLeg | None:
        cached = self.cache.get(a, b)
        if cached is not None:
            return cached

        try:
            leg = await self.pacer.run(lambda: self.provider.fetch_geometry(a, b))
        except RemoteUnavailable as exc:
            LOGGER.debug("Geometry lookup %s -> %s failed: %s", a, b, exc)
            return None

        if leg is not None and leg.coordinates:
            self.cache.put(a, b, leg)
        return leg
