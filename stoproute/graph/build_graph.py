"""Proximity graph builder for transit stops."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

import networkx as nx
import numpy as np
from networkx.readwrite import json_graph

from stoproute.errors import EmptyInput, RoutingError
from stoproute.geo import great_circle_many

if TYPE_CHECKING:
    from collections.abc import Sequence

    from stoproute.models import Stop
    from stoproute.oracle import DistanceOracle

# region Types & Configuration

Candidates = dict[str, list["Stop"]]

LOGGER = logging.getLogger(__name__)
DEFAULT_MAX_NEIGHBORS = 12
DEFAULT_CUTOFF_M = 1500.0
PROGRESS_EVERY = 10

# endregion Types & Configuration


# region API


async def build_proximity_graph(
    stops: Sequence[Stop],
    oracle: DistanceOracle,
    max_neighbors: int = DEFAULT_MAX_NEIGHBORS,
    cutoff_m: float = DEFAULT_CUTOFF_M,
) -> nx.DiGraph:
    """Return a weighted graph linking each stop to its nearest neighbors.

    Parameters
    ----------
    stops:
        Stops to connect. Every stop becomes a node, even without neighbors.
    oracle:
        Strategy pricing each candidate edge in meters.
    max_neighbors:
        Upper bound on candidate edges per stop (the `k` nearest).
    cutoff_m:
        Straight-line distance beyond which a stop is never a candidate.

    Notes
    -----
    Candidates are chosen by straight-line distance whatever the oracle, so
    the number of priced pairs stays bounded by `len(stops) * max_neighbors`.
    A pair the oracle cannot price is left out; the build itself never fails
    on a lookup error.

    """
    if not stops:
        raise EmptyInput("At least one stop is required to build a graph.")

    graph = nx.DiGraph()
    for stop in stops:
        graph.add_node(stop.id, lat=stop.lat, lon=stop.lon, name=stop.name)

    candidates = nearest_candidates(stops, max_neighbors, cutoff_m)
    by_id = {stop.id: stop for stop in stops}

    for processed, (source_id, neighbors) in enumerate(candidates.items(), start=1):
        if neighbors:
            source = by_id[source_id]
            try:
                weights = await oracle.resolve(source, neighbors)
            except RoutingError as exc:
                LOGGER.warning(
                    "Oracle %s failed for stop %s; skipping its %d candidates (%s)",
                    oracle.name,
                    source_id,
                    len(neighbors),
                    exc,
                )
                weights = {}
            for target_id, weight in weights.items():
                _add_edge(graph, source_id, target_id, weight)

        if processed % PROGRESS_EVERY == 0:
            LOGGER.debug("Processed %d/%d stops", processed, len(candidates))

    LOGGER.info(
        "Graph built with %s stops / %s edges using %s distances",
        graph.number_of_nodes(),
        graph.number_of_edges(),
        oracle.name,
    )
    return graph


def nearest_candidates(
    stops: Sequence[Stop],
    max_neighbors: int = DEFAULT_MAX_NEIGHBORS,
    cutoff_m: float = DEFAULT_CUTOFF_M,
) -> Candidates:
    """Return, for each stop id, its `max_neighbors` closest stops within the cutoff."""
    lats = np.fromiter((stop.lat for stop in stops), dtype=float, count=len(stops))
    lons = np.fromiter((stop.lon for stop in stops), dtype=float, count=len(stops))
    candidates: Candidates = {}

    for idx, stop in enumerate(stops):
        distances = great_circle_many(stop.lat, stop.lon, lats, lons)
        distances[idx] = np.inf
        within = np.flatnonzero(distances <= cutoff_m)
        # Stable sort keeps input order among equidistant stops.
        order = within[np.argsort(distances[within], kind="stable")]
        candidates[stop.id] = [stops[j] for j in order[:max_neighbors]]

    return candidates


def serialize_graph(graph: nx.DiGraph) -> dict:
    """Convert a graph into a node-link mapping in JSON."""
    return json_graph.node_link_data(graph, edges="edges")


def deserialize_graph(data: dict) -> nx.DiGraph:
    """Rebuild a graph from its node-link mapping, validating edge weights."""
    graph = json_graph.node_link_graph(
        data,
        directed=True,
        multigraph=False,
        edges="edges",
    )
    for u, v, weight in graph.edges(data="weight"):
        if not _usable_weight(weight):
            msg = f"Edge {u!r} -> {v!r} has an invalid weight: {weight!r}"
            raise ValueError(msg)
    return graph


# endregion API


# region Edge helpers


def _add_edge(graph: nx.DiGraph, u: str, v: str, weight: float) -> None:
    """Insert `u -> v` and, unless already resolved, its reverse.

    The first weight resolved for a direction is kept, so both directions of
    a pair never carry differing weights.
    """
    if not _usable_weight(weight) or graph.has_edge(u, v):
        return
    graph.add_edge(u, v, weight=float(weight))
    if not graph.has_edge(v, u):
        graph.add_edge(v, u, weight=float(weight))


def _usable_weight(weight: object) -> bool:
    return (
        isinstance(weight, (int, float))
        and not isinstance(weight, bool)
        and math.isfinite(weight)
        and weight >= 0
    )


# endregion Edge helpers
