"""
OSRM client for street distances and edge geometries.

Talks to the OSRM `/route` service over HTTP and normalizes its answers
into `RouteLeg` values. Coordinates are `(lat, lon)` internally and
`lon,lat` on the wire.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .errors import RemoteUnavailable
from .models import LatLon, RouteLeg

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://router.project-osrm.org"

# OSRM codes that mean "no street connection", not a service fault.
NO_ROUTE_CODES = frozenset({"NoRoute", "NoSegment"})


class OSRMClient:
    """Async client for the OSRM route service."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        profile: str = "driving",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not base_url:
            raise ValueError("OSRM base URL must not be empty.")
        self.base_url = base_url.rstrip("/")
        self.profile = profile
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return f"osrm-{self.profile}"

    def format_coordinates(self, coords: list[LatLon]) -> str:
        """Convert (lat, lon) points to OSRM format 'lon,lat;lon,lat'."""
        return ";".join(f"{point.lon},{point.lat}" for point in coords)

    async def fetch_distance(self, a: LatLon, b: LatLon) -> RouteLeg | None:
        """
        Street distance and duration from `a` to `b`, without geometry.

        Returns None when OSRM reports that no route exists.
        Raises RemoteUnavailable on transport or service errors.
        """
        return await self._route(a, b, {"overview": "false"})

    async def fetch_geometry(self, a: LatLon, b: LatLon) -> RouteLeg | None:
        """
        Street path from `a` to `b` with its full coordinate sequence.

        Returns None when OSRM reports that no route exists.
        Raises RemoteUnavailable on transport or service errors.
        """
        return await self._route(a, b, {"overview": "full", "geometries": "geojson"})

    async def _route(
        self,
        a: LatLon,
        b: LatLon,
        params: dict[str, str],
    ) -> RouteLeg | None:
        url = f"{self.base_url}/route/v1/{self.profile}/{self.format_coordinates([a, b])}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(url, params=params)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            LOGGER.warning("OSRM request failed for %s: %r", url, e)
            raise RemoteUnavailable(f"OSRM request failed: {e!r}") from e

        try:
            data = response.json()
        except ValueError as e:
            LOGGER.warning("OSRM returned a non-JSON body (%s)", response.status_code)
            raise RemoteUnavailable("OSRM returned a non-JSON body") from e

        code = data.get("code") if isinstance(data, dict) else None
        if code in NO_ROUTE_CODES:
            LOGGER.debug("OSRM found no route between %s and %s", a, b)
            return None
        if code != "Ok":
            message = data.get("message", "Unknown error") if isinstance(data, dict) else data
            LOGGER.warning("OSRM error %s: %s %s", response.status_code, code, message)
            raise RemoteUnavailable(f"OSRM error: {code} {message}")

        routes = data.get("routes") or []
        if not routes:
            return None

        return _parse_route(routes[0])


def _parse_route(route: dict[str, Any]) -> RouteLeg:
    try:
        geometry = route.get("geometry")
        # Only GeoJSON geometries are requested; overview=false omits it.
        raw_coords = geometry.get("coordinates", []) if isinstance(geometry, dict) else []
        coordinates = [LatLon(float(lat), float(lon)) for lon, lat, *_ in raw_coords]
        return RouteLeg(
            distance_m=float(route["distance"]),
            duration_s=float(route["duration"]),
            coordinates=coordinates,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise RemoteUnavailable(f"Malformed OSRM route: {e!r}") from e
