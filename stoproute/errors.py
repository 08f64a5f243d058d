"""Error kinds raised inside the routing core."""

from __future__ import annotations


class RoutingError(Exception):
    """Base class for routing failures."""


class RemoteUnavailable(RoutingError):
    """The distance/geometry service could not be reached or answered badly."""


class CacheCorrupt(RoutingError):
    """A persisted graph entry could not be decoded."""


class EmptyInput(RoutingError):
    """No stops were supplied."""
