"""CLI entrypoint that plans one stop-to-stop route and prints it as GeoJSON."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Sequence, TextIO

from stoproute.config import settings
from stoproute.logger import LoggingMode
from stoproute.models import RouteResult, Stop
from stoproute.plan import StopRouter
from stoproute.stops import load_stops


def echo(message: str = "", *, stream: TextIO = sys.stdout) -> None:
    """Write a line to the chosen stream and flush immediately."""
    stream.write(f"{message}\n")
    stream.flush()


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description=(
            "Plan a street route between two stops of a GeoJSON stop file and "
            "print it as a GeoJSON FeatureCollection."
        ),
    )
    parser.add_argument(
        "--stops",
        type=Path,
        default=settings.STOPS_FILE,
        required=settings.STOPS_FILE is None,
        help="GeoJSON file of Point features, one per stop.",
    )
    parser.add_argument("start", help="Id of the starting stop.")
    parser.add_argument("end", help="Id of the destination stop.")
    parser.add_argument(
        "--straight-line",
        action="store_true",
        help="Weight graph edges by great-circle distance instead of OSRM.",
    )
    parser.add_argument(
        "--logging",
        default=settings.LOGGING_MODE,
        choices=[mode.value for mode in LoggingMode],
        help="Verbosity of the pipeline phase log.",
    )
    return parser.parse_args(argv)


def build_geojson(stops: dict[str, Stop], result: RouteResult) -> dict:
    """Create a GeoJSON feature collection describing the route."""
    features = []
    for role, stop_id in (("start", result.path[0]), ("end", result.path[-1])):
        stop = stops[stop_id]
        features.append(
            {
                "type": "Feature",
                "properties": {"role": role, "id": stop.id, "name": stop.name},
                "geometry": {"type": "Point", "coordinates": [stop.lon, stop.lat]},
            },
        )

    features.append(
        {
            "type": "Feature",
            "properties": {
                "role": "path",
                "distance_m": result.distance_m,
                "duration_s": result.duration_s,
                "stop_count": result.stop_count,
                "fallback_edges": result.fallback_edges,
            },
            "geometry": {
                "type": "LineString",
                "coordinates": [point.to_lon_lat() for point in result.coordinates],
            },
        },
    )

    return {"type": "FeatureCollection", "features": features}


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for the route planning CLI."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    args = parse_args(argv)

    try:
        stops = load_stops(args.stops)
    except (FileNotFoundError, ValueError) as exc:
        echo(f"Invalid stop file: {exc}", stream=sys.stderr)
        sys.exit(1)

    config = settings.model_copy(
        update={
            "USE_REAL_DISTANCES": settings.USE_REAL_DISTANCES and not args.straight_line,
            "LOGGING_MODE": args.logging,
        },
    )
    router = StopRouter.from_settings(stops, config)
    result = asyncio.run(router.route(args.start, args.end))

    if not result.found:
        echo(f"No route: {result.status.value}", stream=sys.stderr)
        sys.exit(1)

    echo(json.dumps(build_geojson(router.stops_by_id, result)))


if __name__ == "__main__":
    main()
