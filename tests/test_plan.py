import asyncio

import networkx as nx
import pytest
from conftest import CountingOracle, FakeDistanceService, FakeGeometryService, straight_leg

from stoproute.config import Settings
from stoproute.graph.cache import GraphCache, MemoryStore, fingerprint
from stoproute.graph.stitch import GeometryCache
from stoproute.logger import Logger, LoggingMode
from stoproute.models import RouteStatus, Stop
from stoproute.oracle import DirectDistanceOracle, RemoteDistanceOracle
from stoproute.osrm_client import OSRMClient
from stoproute.plan import StopRouter


class BrokenWriteStore(MemoryStore):
    def set(self, key, value):
        raise OSError("read-only filesystem")


@pytest.fixture
def geometry(brasilia_stops):
    a, b, c = brasilia_stops
    return FakeGeometryService(
        legs={
            (a.position, b.position): straight_leg(a, b),
            (b.position, a.position): straight_leg(b, a),
        },
    )


def make_router(stops, geometry, instant_pacer, **kw):
    kw.setdefault("oracle", DirectDistanceOracle())
    kw.setdefault("max_neighbors", 2)
    kw.setdefault("cutoff_m", 1500)
    return StopRouter(stops, geometry_provider=geometry, geometry_pacer=instant_pacer(), **kw)


def test_routes_between_linked_stops(brasilia_stops, geometry, instant_pacer):
    router = make_router(brasilia_stops, geometry, instant_pacer)

    result = asyncio.run(router.route("1", "2"))

    a, b, _ = brasilia_stops
    assert result.status is RouteStatus.DONE
    assert result.path == ["1", "2"]
    assert result.coordinates == [a.position, b.position]
    assert result.stop_count == 2
    assert result.distance_m > 0


def test_disconnected_stop_is_no_route(brasilia_stops, geometry, instant_pacer):
    router = make_router(brasilia_stops, geometry, instant_pacer)

    result = asyncio.run(router.route("1", "3"))

    assert result.status is RouteStatus.NO_ROUTE_FOUND
    assert not result.found
    assert result.coordinates == []
    assert result.stop_count == 0
    assert geometry.calls == []


def test_unknown_stop_is_no_route(brasilia_stops, geometry, instant_pacer):
    router = make_router(brasilia_stops, geometry, instant_pacer)
    assert asyncio.run(router.route("1", "404")).status is RouteStatus.NO_ROUTE_FOUND


def test_same_stop_route(brasilia_stops, geometry, instant_pacer):
    router = make_router(brasilia_stops, geometry, instant_pacer)
    result = asyncio.run(router.route("3", "3"))
    assert result.status is RouteStatus.DONE
    assert result.path == ["3"]
    assert result.stop_count == 1


def test_empty_stop_set_short_circuits(geometry, instant_pacer):
    oracle = CountingOracle(DirectDistanceOracle())
    router = make_router([], geometry, instant_pacer, oracle=oracle)

    result = asyncio.run(router.route("1", "2"))

    assert result.status is RouteStatus.EMPTY_INPUT
    assert oracle.batches == 0
    assert geometry.calls == []


def test_persisted_graph_skips_rebuild(brasilia_stops, geometry, instant_pacer):
    store = MemoryStore()
    first_oracle = CountingOracle(DirectDistanceOracle())
    first = make_router(
        brasilia_stops, geometry, instant_pacer,
        oracle=first_oracle, graph_cache=GraphCache(store),
    )
    asyncio.run(first.route("1", "2"))
    assert first_oracle.batches > 0

    second_oracle = CountingOracle(DirectDistanceOracle())
    second = make_router(
        list(reversed(brasilia_stops)), geometry, instant_pacer,
        oracle=second_oracle, graph_cache=GraphCache(store),
    )
    result = asyncio.run(second.route("1", "2"))

    assert second_oracle.batches == 0
    assert result.path == ["1", "2"]


def test_changed_stop_set_rebuilds(brasilia_stops, geometry, instant_pacer):
    store = MemoryStore()
    cache = GraphCache(store)
    asyncio.run(make_router(brasilia_stops[:2], geometry, instant_pacer, graph_cache=cache).graph())

    oracle = CountingOracle(DirectDistanceOracle())
    router = make_router(brasilia_stops, geometry, instant_pacer, oracle=oracle, graph_cache=cache)
    graph = asyncio.run(router.graph())

    assert oracle.batches > 0
    assert set(graph.nodes) == {"1", "2", "3"}
    assert cache.get(fingerprint(brasilia_stops), router.build_params) is not None


def test_comma_in_stop_id_does_not_reuse_other_graph(geometry, instant_pacer):
    cache = GraphCache(MemoryStore())
    joined = [Stop("a,b", -15.800, -47.900)]
    asyncio.run(make_router(joined, geometry, instant_pacer, graph_cache=cache).graph())

    split = [Stop("a", -15.800, -47.900), Stop("b", -15.801, -47.901)]
    graph = asyncio.run(make_router(split, geometry, instant_pacer, graph_cache=cache).graph())

    assert set(graph.nodes) == {"a", "b"}


def test_cached_graph_with_other_nodes_is_rebuilt(brasilia_stops, geometry, instant_pacer):
    cache = GraphCache(MemoryStore())
    stale = nx.DiGraph()
    stale.add_edge("x", "y", weight=1.0)
    oracle = CountingOracle(DirectDistanceOracle())
    router = make_router(brasilia_stops, geometry, instant_pacer, oracle=oracle, graph_cache=cache)
    cache.put(fingerprint(brasilia_stops), stale, router.build_params)

    graph = asyncio.run(router.graph())

    assert oracle.batches > 0
    assert set(graph.nodes) == {"1", "2", "3"}


def test_wider_cutoff_rebuilds(brasilia_stops, geometry, instant_pacer):
    cache = GraphCache(MemoryStore())
    narrow = asyncio.run(
        make_router(brasilia_stops, geometry, instant_pacer, graph_cache=cache).graph(),
    )
    assert not narrow.has_edge("1", "3")

    wide = make_router(
        brasilia_stops, geometry, instant_pacer, graph_cache=cache, cutoff_m=10000,
    )
    graph = asyncio.run(wide.graph())

    assert graph.has_edge("1", "3")
    assert cache.get(fingerprint(brasilia_stops), wide.build_params) is not None


def test_more_neighbors_rebuilds(line_stops, geometry, instant_pacer):
    cache = GraphCache(MemoryStore())
    sparse = asyncio.run(
        make_router(line_stops, geometry, instant_pacer, graph_cache=cache, max_neighbors=1).graph(),
    )

    oracle = CountingOracle(DirectDistanceOracle())
    dense = asyncio.run(
        make_router(
            line_stops, geometry, instant_pacer,
            graph_cache=cache, oracle=oracle, max_neighbors=3,
        ).graph(),
    )

    assert oracle.batches > 0
    assert dense.number_of_edges() > sparse.number_of_edges()


def test_cache_write_failure_is_not_fatal(brasilia_stops, geometry, instant_pacer):
    router = make_router(
        brasilia_stops, geometry, instant_pacer,
        graph_cache=GraphCache(BrokenWriteStore()),
    )
    assert asyncio.run(router.route("1", "2")).status is RouteStatus.DONE


def test_remote_distances_feed_the_graph(brasilia_stops, geometry, instant_pacer):
    service = FakeDistanceService(detour=1.5)
    oracle = RemoteDistanceOracle(service, pacer=instant_pacer(5))
    router = make_router(brasilia_stops, geometry, instant_pacer, oracle=oracle)

    graph = asyncio.run(router.graph())

    a, b, _ = brasilia_stops
    expected = DirectDistanceOracle().distance(a, b) * 1.5
    assert graph["1"]["2"]["weight"] == pytest.approx(expected)
    # 1->2 and 2->1 share one cached lookup.
    assert len(service.calls) == 1


def test_clear_caches(brasilia_stops, geometry, instant_pacer):
    store = MemoryStore()
    oracle = RemoteDistanceOracle(FakeDistanceService(), pacer=instant_pacer(5))
    geometry_cache = GeometryCache()
    router = make_router(
        brasilia_stops, geometry, instant_pacer,
        oracle=oracle, graph_cache=GraphCache(store), geometry_cache=geometry_cache,
    )
    asyncio.run(router.route("1", "2"))
    assert len(oracle.cache) == 1 and len(geometry_cache) == 1

    router.clear_caches()

    assert len(oracle.cache) == 0
    assert len(geometry_cache) == 0
    assert router.graph_cache.get(fingerprint(brasilia_stops)) is None


def test_phase_logging(brasilia_stops, geometry, instant_pacer, capsys):
    router = make_router(
        brasilia_stops, geometry, instant_pacer, logger=Logger(LoggingMode.INFO),
    )
    asyncio.run(router.route("1", "2"))

    out = capsys.readouterr().out
    for line in ("graph.setup.start", "path.solve.complete", "geometry.assemble.complete", "route.ready"):
        assert line in out


def test_from_settings_wires_strategy(brasilia_stops, tmp_path):
    remote = StopRouter.from_settings(
        brasilia_stops, Settings(CACHE_DIR=tmp_path, OSRM_PROFILE="foot"),
    )
    assert isinstance(remote.oracle, RemoteDistanceOracle)
    assert isinstance(remote.assembler.provider, OSRMClient)
    assert remote.graph_cache.key == "graph_cache_v1:osrm-foot"
    assert remote.oracle.pacer.policy.batch_size == 5

    direct = StopRouter.from_settings(
        brasilia_stops, Settings(CACHE_DIR=tmp_path, USE_REAL_DISTANCES=False),
    )
    assert isinstance(direct.oracle, DirectDistanceOracle)
    assert direct.graph_cache.key == "graph_cache_v1:direct"
    assert direct.assembler.pacer.policy.delay_seconds == 0.15
