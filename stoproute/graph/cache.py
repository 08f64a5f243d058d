"""Persistent cache for built proximity graphs, validated by stop-set fingerprint."""

from __future__ import annotations

import hashlib
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterable, Protocol

import networkx as nx
import orjson

from stoproute.errors import CacheCorrupt

from .build_graph import deserialize_graph, serialize_graph

if TYPE_CHECKING:
    from stoproute.models import Stop

# region Types & Configuration

LOGGER = logging.getLogger(__name__)
GRAPH_CACHE_KEY = "graph_cache_v1"
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")

# endregion Types & Configuration


# region Fingerprint


def fingerprint(stops: Iterable[Stop | str]) -> str:
    """Return an order-independent digest of a stop id set.

    The sorted ids are hashed as a JSON array, so an id containing a comma
    cannot collide with a set of shorter ids.
    """
    ids = sorted({stop if isinstance(stop, str) else stop.id for stop in stops})
    return hashlib.sha1(orjson.dumps(ids)).hexdigest()


# endregion Fingerprint


# region Key-value stores


class KeyValueStore(Protocol):
    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store, mostly useful for tests and one-shot runs."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileStore:
    """One file per key inside a directory; writes replace the file atomically."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).expanduser()

    def path_for(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> bytes | None:
        try:
            return self.path_for(key).read_bytes()
        except FileNotFoundError:
            return None

    def set(self, key: str, value: bytes) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


# endregion Key-value stores


# region Graph cache


class GraphCache:
    """Single-slot graph cache.

    The stored entry is `{graph, stopsFingerprint, timestamp, buildParams}`.
    It is served only to a request whose stop set has the same fingerprint
    and whose build parameters are equal, and, when `max_age_seconds` is
    set, only while younger than that age.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str = GRAPH_CACHE_KEY,
        max_age_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.key = key
        self.max_age_seconds = max_age_seconds
        self._clock = clock

    def get(
        self,
        stops_fingerprint: str,
        build_params: dict[str, Any] | None = None,
    ) -> nx.DiGraph | None:
        """Return the cached graph for this fingerprint, or None on any miss."""
        try:
            raw = self.store.get(self.key)
        except OSError as exc:
            LOGGER.warning("Graph cache read failed (%s); rebuilding", exc)
            return None
        if raw is None:
            LOGGER.info("Graph cache miss: no entry under %s", self.key)
            return None

        try:
            entry_fingerprint, timestamp_ms, entry_params, payload = _decode_entry(raw)
        except CacheCorrupt as exc:
            LOGGER.warning("Graph cache entry %s is corrupt (%s); rebuilding", self.key, exc)
            return None

        if entry_fingerprint != stops_fingerprint:
            LOGGER.info("Graph cache miss: stop set changed")
            return None
        if entry_params != (build_params or {}):
            LOGGER.info("Graph cache miss: built with %s, wanted %s", entry_params, build_params)
            return None
        if self._expired(timestamp_ms):
            LOGGER.info("Graph cache miss: entry older than %ss", self.max_age_seconds)
            return None

        try:
            graph = deserialize_graph(payload)
        except (KeyError, TypeError, ValueError, nx.NetworkXError) as exc:
            LOGGER.warning("Graph cache entry %s is corrupt (%s); rebuilding", self.key, exc)
            return None

        LOGGER.info("Graph cache hit (%d stops)", graph.number_of_nodes())
        return graph

    def put(
        self,
        stops_fingerprint: str,
        graph: nx.DiGraph,
        build_params: dict[str, Any] | None = None,
    ) -> bool:
        """Persist a graph; a failed write is logged and reported as False."""
        entry = {
            "graph": serialize_graph(graph),
            "stopsFingerprint": stops_fingerprint,
            "timestamp": int(self._clock() * 1000),
            "buildParams": build_params or {},
        }
        try:
            self.store.set(self.key, orjson.dumps(entry))
        except (OSError, TypeError) as exc:
            LOGGER.warning("Graph cache write failed: %s", exc)
            return False
        LOGGER.info("Graph cached under %s", self.key)
        return True

    def clear(self) -> None:
        try:
            self.store.delete(self.key)
        except OSError as exc:
            LOGGER.warning("Graph cache clear failed: %s", exc)

    def _expired(self, timestamp_ms: int) -> bool:
        if self.max_age_seconds is None:
            return False
        age = self._clock() - timestamp_ms / 1000
        return age > self.max_age_seconds


def _decode_entry(raw: bytes) -> tuple[str, int, dict, dict]:
    """Split a stored entry into fingerprint, timestamp, build params and graph payload."""
    try:
        entry = orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        raise CacheCorrupt(f"invalid JSON: {exc}") from exc
    if not isinstance(entry, dict):
        raise CacheCorrupt("entry is not an object")

    stops_fingerprint = entry.get("stopsFingerprint")
    timestamp = entry.get("timestamp")
    build_params = entry.get("buildParams", {})
    payload = entry.get("graph")
    if not isinstance(stops_fingerprint, str):
        raise CacheCorrupt("missing stopsFingerprint")
    if not isinstance(timestamp, int):
        raise CacheCorrupt("missing timestamp")
    if not isinstance(build_params, dict):
        raise CacheCorrupt("buildParams is not an object")
    if not isinstance(payload, dict):
        raise CacheCorrupt("missing graph")
    return stops_fingerprint, timestamp, build_params, payload


# endregion Graph cache
