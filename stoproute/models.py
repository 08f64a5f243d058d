"""Value types passed between the routing components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, NamedTuple

from shapely.geometry import LineString

if TYPE_CHECKING:
    from .geo import Coordinate


class LatLon(NamedTuple):
    """A WGS84 point in `(lat, lon)` order."""

    lat: float
    lon: float

    def to_lon_lat(self) -> Coordinate:
        return (self.lon, self.lat)


@dataclass(frozen=True, slots=True)
class Stop:
    """A boarding/alighting location supplied by the stop source."""

    id: str
    lat: float
    lon: float
    name: str = ""

    @property
    def position(self) -> LatLon:
        return LatLon(self.lat, self.lon)


@dataclass(slots=True)
class RouteLeg:
    """One answer from the street-routing service for a pair of points."""

    distance_m: float
    duration_s: float
    coordinates: list[LatLon] = field(default_factory=list)


class RouteStatus(str, Enum):
    """Terminal outcome of a route computation."""

    DONE = "done"
    NO_ROUTE_FOUND = "no_route_found"
    EMPTY_INPUT = "empty_input"


@dataclass(slots=True)
class RouteResult:
    """Final route handed to the map renderer."""

    coordinates: list[LatLon] = field(default_factory=list)
    distance_m: float = 0.0
    duration_s: float = 0.0
    stop_count: int = 0
    status: RouteStatus = RouteStatus.DONE
    path: list[str] = field(default_factory=list)
    # Edges drawn as straight lines because their geometry lookup failed.
    # They contribute nothing to distance_m/duration_s.
    fallback_edges: int = 0

    @classmethod
    def empty(cls, status: RouteStatus) -> RouteResult:
        return cls(status=status)

    @property
    def found(self) -> bool:
        return self.status is RouteStatus.DONE

    def as_linestring(self) -> LineString | None:
        """Return the stitched path as a lon/lat `LineString`."""
        if len(self.coordinates) < 2:  # noqa: PLR2004
            return None
        return LineString([point.to_lon_lat() for point in self.coordinates])

    def to_dict(self) -> dict[str, Any]:
        return {
            "coordinates": [
                {"lat": point.lat, "lon": point.lon} for point in self.coordinates
            ],
            "distanceMeters": self.distance_m,
            "durationSeconds": self.duration_s,
            "stopCount": self.stop_count,
            "status": self.status.value,
            "path": list(self.path),
            "fallbackEdges": self.fallback_edges,
        }
