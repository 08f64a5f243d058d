"""Phase logger for the routing pipeline, printed as tab-separated lines."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from time import perf_counter
from typing import TYPE_CHECKING, Any, Iterator, TextIO

if TYPE_CHECKING:
    import networkx as nx

    from .models import RouteResult


class LoggingMode(str, Enum):
    """How chatty a `StopRouter` is about its phases."""

    NONE = "none"
    INFO = "info"
    DEBUG = "debug"

    @classmethod
    def from_value(cls, value: LoggingMode | str | None) -> LoggingMode:
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.NONE
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            valid = ", ".join(mode.value for mode in cls)
            msg = f"Invalid logging mode: {value!r}. Expected one of {{{valid}}}."
            raise ValueError(msg) from exc


@dataclass(slots=True)
class Logger:
    """Prints `graph.setup`, `path.solve` and `geometry.assemble` progress.

    Each line is `[LEVEL]<TAB>event<TAB>key=value...`; keys whose value is
    None are left out.
    """

    mode: LoggingMode = LoggingMode.NONE
    stream: TextIO | None = field(default=None, repr=False)

    @property
    def verbose(self) -> bool:
        return self.mode is not LoggingMode.NONE

    def info(self, event: str, **context: Any) -> None:
        if self.verbose:
            self._emit("INFO", event, context)

    def debug(self, event: str, **context: Any) -> None:
        if self.mode is LoggingMode.DEBUG:
            self._emit("DEBUG", event, context)

    def graph_stats(self, graph: nx.DiGraph, *, source: str) -> None:
        """Stop and edge counts of a proximity graph; isolated stops listed in debug."""
        if not self.verbose:
            return
        isolated = [node for node in graph if graph.degree(node) == 0]
        self.info(
            "graph.stats",
            source=source,
            stops=graph.number_of_nodes(),
            edges=graph.number_of_edges(),
            isolated=len(isolated),
        )
        if isolated:
            self.debug("graph.isolated", stops=",".join(map(str, isolated[:20])))

    def route_summary(self, result: RouteResult) -> None:
        self.info(
            "route.ready",
            status=result.status.value,
            stops=result.stop_count,
            coordinates=len(result.coordinates),
            km=f"{result.distance_m / 1000:.2f}",
            minutes=f"{result.duration_s / 60:.1f}",
            fallback_edges=result.fallback_edges or None,
        )

    @contextmanager
    def phase(self, name: str, **details: Any) -> Iterator[None]:
        """Wrap one routing phase with start and complete/failed lines."""
        if not self.verbose:
            yield
            return

        self.info(f"{name}.start", **details)
        start = perf_counter()
        try:
            yield
        except Exception as exc:
            self.info(f"{name}.failed", error=type(exc).__name__, detail=str(exc) or None)
            raise
        self.info(f"{name}.complete", ms=f"{(perf_counter() - start) * 1000:.1f}")

    def _emit(self, level: str, event: str, context: dict[str, Any]) -> None:
        fields = [f"{key}={value}" for key, value in context.items() if value is not None]
        print("\t".join([f"[{level}]", event, *fields]), file=self.stream or sys.stdout)
