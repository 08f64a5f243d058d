from __future__ import annotations

import asyncio
import math

import pytest

from stoproute.errors import RemoteUnavailable
from stoproute.geo import great_circle_meters
from stoproute.models import LatLon, RouteLeg, Stop
from stoproute.ratelimit import Pacer, PacingPolicy


# ---- fake street service ----
class FakeDistanceService:
    """Street distance = straight line * detour; listed pairs fail or have no route."""

    def __init__(self, detour=1.3, fail=(), no_route=()):
        self.detour = detour
        self.fail = {frozenset(pair) for pair in fail}
        self.no_route = {frozenset(pair) for pair in no_route}
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.name = "fake-street"

    async def fetch_distance(self, a: LatLon, b: LatLon):
        self.calls.append((a, b))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            pair = frozenset((a, b))
            if pair in self.fail:
                raise RemoteUnavailable("service down")
            if pair in self.no_route:
                return None
            meters = great_circle_meters(a.lat, a.lon, b.lat, b.lon) * self.detour
            return RouteLeg(distance_m=meters, duration_s=meters / 10.0)
        finally:
            self.in_flight -= 1


class FakeGeometryService:
    """Serves segment geometries from a table keyed by (from, to) positions."""

    def __init__(self, legs=None, fail=()):
        self.legs = dict(legs or {})
        self.fail = set(fail)
        self.calls = []

    async def fetch_geometry(self, a: LatLon, b: LatLon):
        self.calls.append((a, b))
        if (a, b) in self.fail:
            raise RemoteUnavailable("geometry service down")
        return self.legs.get((a, b))


class CountingOracle:
    """Wraps another oracle and counts batches it resolves."""

    def __init__(self, inner):
        self.inner = inner
        self.name = inner.name
        self.batches = 0

    async def resolve(self, source, targets):
        self.batches += 1
        return await self.inner.resolve(source, targets)


# ---- fixtures ----
@pytest.fixture
def brasilia_stops():
    return [
        Stop("1", -15.800, -47.900, "Eixo Norte"),
        Stop("2", -15.801, -47.901, "Eixo Sul"),
        Stop("3", -15.810, -47.950, "Asa Oeste"),
    ]


@pytest.fixture
def line_stops():
    # Five stops ~111 m apart along a meridian.
    return [Stop(str(i), -15.800 - i * 0.001, -47.900, f"Stop {i}") for i in range(5)]


@pytest.fixture
def instant_pacer():
    def make(batch_size=1):
        return Pacer(PacingPolicy(batch_size=batch_size, delay_seconds=0.0))

    return make


def straight_leg(a: Stop, b: Stop, *middle: LatLon) -> RouteLeg:
    coords = [a.position, *middle, b.position]
    meters = great_circle_meters(a.lat, a.lon, b.lat, b.lon)
    return RouteLeg(distance_m=meters, duration_s=meters / 8.0, coordinates=coords)


def is_finite_nonnegative(value: float) -> bool:
    return math.isfinite(value) and value >= 0
