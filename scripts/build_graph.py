"""CLI entrypoint for building and caching a stop proximity graph."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Sequence

import orjson

from stoproute.config import settings
from stoproute.graph.build_graph import serialize_graph
from stoproute.plan import StopRouter
from stoproute.stops import load_stops

# region Configuration

LOGGER = logging.getLogger(__name__)

# endregion Configuration


# region I/O Helpers


def _write_json(data: dict, output_path: Path) -> None:
    """Persist the node-link graph representation to disk."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2))
    LOGGER.info(
        "Serialized graph to %s (%d bytes)",
        output_path,
        output_path.stat().st_size,
    )


# endregion I/O Helpers


# region CLI


def run_cli(args: argparse.Namespace) -> None:
    """Build (or load) the proximity graph for a stop file and cache it."""
    stops = load_stops(args.stops)
    config = settings.model_copy(
        update={
            "USE_REAL_DISTANCES": not args.straight_line,
            "MAX_NEIGHBORS": args.max_neighbors,
            "NEIGHBOR_CUTOFF_M": args.cutoff,
            "CACHE_DIR": args.cache_dir,
        },
    )
    router = StopRouter.from_settings(stops, config)
    if args.rebuild and router.graph_cache is not None:
        router.graph_cache.clear()

    graph = asyncio.run(router.graph())
    if args.output is not None:
        _write_json(serialize_graph(graph), args.output)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Return parsed CLI arguments for graph building."""
    parser = argparse.ArgumentParser(
        description="Build the stop proximity graph and store it in the graph cache.",
    )
    parser.add_argument(
        "--stops",
        type=Path,
        default=settings.STOPS_FILE,
        required=settings.STOPS_FILE is None,
        help="Path to the stops GeoJSON file.",
    )
    parser.add_argument(
        "--cache-dir",
        type=Path,
        default=settings.CACHE_DIR,
        help="Directory holding the persisted graph cache.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Optional extra copy of the graph as node-link JSON.",
    )
    parser.add_argument(
        "--max-neighbors",
        type=int,
        default=settings.MAX_NEIGHBORS,
        help="Nearest stops considered per stop (default: %(default)s).",
    )
    parser.add_argument(
        "--cutoff",
        type=float,
        default=settings.NEIGHBOR_CUTOFF_M,
        help="Straight-line neighbor cutoff in meters (default: %(default)s).",
    )
    parser.add_argument(
        "--straight-line",
        action="store_true",
        help="Weight edges by great-circle distance instead of OSRM street distance.",
    )
    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Ignore any cached graph and rebuild it.",
    )
    parser.set_defaults(func=run_cli)
    return parser.parse_args(argv)


def _configure_logging() -> None:
    """Configure a simple logging formatter for CLI runs."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    _configure_logging()
    args = parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()

# endregion CLI
