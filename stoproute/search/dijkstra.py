"""Dijkstra shortest path over a stop proximity graph."""

from __future__ import annotations

import math
from itertools import pairwise
from typing import TYPE_CHECKING, Hashable, Sequence

if TYPE_CHECKING:
    import networkx as nx


def shortest_path(
    graph: nx.DiGraph,
    source: Hashable,
    destination: Hashable,
) -> list[Hashable]:
    """Return the cheapest stop sequence from `source` to `destination`.

    Parameters
    ----------
    graph:
        Proximity graph with a `weight` (meters) on every edge.
    source:
        Stop id where the path starts.
    destination:
        Stop id where the path ends.

    Returns
    -------
    list[Hashable]
        Stop ids from source to destination inclusive; `[source]` when both
        are the same node; empty when either endpoint is unknown or the
        destination is unreachable.

    Notes
    -----
    Each step scans the unvisited set for its minimum, which is linear in
    the node count; proximity graphs are small enough for that. Among equal
    tentative distances the node that comes first in graph order wins. The
    graph is only read, never modified.

    """
    if source not in graph or destination not in graph:
        return []

    distances = {node: math.inf for node in graph}
    previous: dict[Hashable, Hashable] = {}
    distances[source] = 0.0
    unvisited = dict.fromkeys(graph)  # ordered set, keeps graph order

    while unvisited:
        current = None
        best = math.inf
        for node in unvisited:
            if distances[node] < best:
                best = distances[node]
                current = node

        # Nothing reachable is left.
        if current is None:
            break
        if current == destination:
            break

        del unvisited[current]

        for neighbor, attrs in graph.adj[current].items():
            if neighbor not in unvisited:
                continue
            candidate = best + attrs.get("weight", math.inf)
            if candidate < distances[neighbor]:
                distances[neighbor] = candidate
                previous[neighbor] = current

    if math.isinf(distances[destination]):
        return []

    path = [destination]
    while path[-1] != source:
        path.append(previous[path[-1]])
    path.reverse()
    return path


def path_weight(graph: nx.DiGraph, path: Sequence[Hashable]) -> float:
    """Sum the edge weights along a path; `inf` if any hop is not an edge."""
    total = 0.0
    for u, v in pairwise(path):
        attrs = graph.adj.get(u, {}).get(v)
        if attrs is None:
            return math.inf
        total += attrs.get("weight", math.inf)
    return total
