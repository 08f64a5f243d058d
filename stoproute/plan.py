"""High-level entrypoint wiring graph setup, Dijkstra and geometry stitching."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

from .graph.build_graph import (
    DEFAULT_CUTOFF_M,
    DEFAULT_MAX_NEIGHBORS,
    build_proximity_graph,
)
from .graph.cache import GRAPH_CACHE_KEY, FileStore, GraphCache, fingerprint
from .graph.stitch import GeometryCache, RouteGeometryAssembler
from .logger import Logger, LoggingMode
from .models import RouteResult, RouteStatus
from .oracle import DirectDistanceOracle, PairDistanceCache, RemoteDistanceOracle
from .osrm_client import OSRMClient
from .ratelimit import Pacer, PacingPolicy
from .search.dijkstra import path_weight, shortest_path

if TYPE_CHECKING:
    import networkx as nx

    from .config import Settings
    from .graph.stitch import GeometryProvider
    from .models import Stop
    from .oracle import DistanceOracle

LOGGER = logging.getLogger(__name__)


class StopRouter:
    """Computes routes between stops of one stop set.

    A route goes through `graph.setup` (cache lookup or rebuild), `path.solve`
    and `geometry.assemble`, ending either with a stitched route or with a
    `NO_ROUTE_FOUND` result. Remote failures inside a phase only degrade the
    result. The distance and geometry caches live as long as the router.
    """

    def __init__(
        self,
        stops: Sequence[Stop],
        oracle: DistanceOracle,
        geometry_provider: GeometryProvider,
        graph_cache: GraphCache | None = None,
        geometry_cache: GeometryCache | None = None,
        max_neighbors: int = DEFAULT_MAX_NEIGHBORS,
        cutoff_m: float = DEFAULT_CUTOFF_M,
        geometry_pacer: Pacer | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.stops = list(stops)
        self.stops_by_id = {stop.id: stop for stop in self.stops}
        self.oracle = oracle
        self.graph_cache = graph_cache
        self.max_neighbors = max_neighbors
        self.cutoff_m = cutoff_m
        self.assembler = RouteGeometryAssembler(
            geometry_provider,
            cache=geometry_cache,
            pacer=geometry_pacer,
        )
        self.logger = logger or Logger()

    @classmethod
    def from_settings(cls, stops: Sequence[Stop], settings: Settings) -> StopRouter:
        """Wire OSRM, pacing and the file-backed graph cache from configuration."""
        client = OSRMClient(
            base_url=settings.OSRM_BASE_URL,
            profile=settings.OSRM_PROFILE,
            timeout=settings.REQUEST_TIMEOUT,
        )
        if settings.USE_REAL_DISTANCES:
            oracle: DistanceOracle = RemoteDistanceOracle(
                client,
                cache=PairDistanceCache(),
                pacer=Pacer(
                    PacingPolicy(settings.EDGE_BATCH_SIZE, settings.EDGE_BATCH_DELAY_S),
                ),
            )
        else:
            oracle = DirectDistanceOracle()

        graph_cache = GraphCache(
            FileStore(settings.CACHE_DIR),
            # One slot per distance strategy so weights never get mixed.
            key=f"{GRAPH_CACHE_KEY}:{oracle.name}",
            max_age_seconds=settings.GRAPH_CACHE_MAX_AGE_S,
        )
        return cls(
            stops,
            oracle=oracle,
            geometry_provider=client,
            graph_cache=graph_cache,
            geometry_cache=GeometryCache(),
            max_neighbors=settings.MAX_NEIGHBORS,
            cutoff_m=settings.NEIGHBOR_CUTOFF_M,
            geometry_pacer=Pacer(PacingPolicy(1, settings.GEOMETRY_DELAY_S)),
            logger=Logger(LoggingMode.from_value(settings.LOGGING_MODE)),
        )

    @property
    def build_params(self) -> dict[str, float]:
        """Builder settings a persisted graph must match to be reused."""
        return {"maxNeighbors": self.max_neighbors, "cutoffMeters": float(self.cutoff_m)}

    async def graph(self) -> nx.DiGraph:
        """Return the proximity graph, from the persisted cache when still valid."""
        stops_fingerprint = fingerprint(self.stops)

        if self.graph_cache is not None:
            cached = self.graph_cache.get(stops_fingerprint, self.build_params)
            if cached is not None and set(cached) == set(self.stops_by_id):
                self.logger.graph_stats(cached, source="cache")
                return cached
            if cached is not None:
                LOGGER.warning("Cached graph nodes do not match the stop set; rebuilding")

        graph = await build_proximity_graph(
            self.stops,
            self.oracle,
            max_neighbors=self.max_neighbors,
            cutoff_m=self.cutoff_m,
        )
        self.logger.graph_stats(graph, source=self.oracle.name)

        if self.graph_cache is not None:
            self.graph_cache.put(stops_fingerprint, graph, self.build_params)
        return graph

    async def route(self, start_id: str, end_id: str) -> RouteResult:
        """Compute the route from `start_id` to `end_id`.

        Returns
        -------
        RouteResult
            `EMPTY_INPUT` when the router has no stops, `NO_ROUTE_FOUND`
            when the stops are not connected (or unknown), otherwise the
            stitched route with summed distance and duration.

        """
        if not self.stops:
            LOGGER.warning("No stops available; nothing to route")
            return RouteResult.empty(RouteStatus.EMPTY_INPUT)

        self.logger.info("route.request", start=start_id, end=end_id)

        with self.logger.phase("graph.setup", stops=len(self.stops)):
            graph = await self.graph()

        with self.logger.phase("path.solve", start=start_id, end=end_id):
            path = shortest_path(graph, start_id, end_id)

        if not path:
            LOGGER.warning("No route found between %s and %s", start_id, end_id)
            self.logger.info("route.failed", reason=RouteStatus.NO_ROUTE_FOUND.value)
            return RouteResult.empty(RouteStatus.NO_ROUTE_FOUND)

        self.logger.info(
            "path.found",
            stops=len(path),
            graph_meters=f"{path_weight(graph, path):.1f}",
        )

        with self.logger.phase("geometry.assemble", edges=len(path) - 1):
            result = await self.assembler.assemble(path, self.stops_by_id)

        self.logger.route_summary(result)
        return result

    def clear_caches(self) -> None:
        """Forget cached distances, geometries and the persisted graph."""
        distance_cache = getattr(self.oracle, "cache", None)
        if isinstance(distance_cache, PairDistanceCache):
            distance_cache.clear()
        self.assembler.cache.clear()
        if self.graph_cache is not None:
            self.graph_cache.clear()
        LOGGER.info("All routing caches cleared")
