"""In-process counters, timers and time series for analysis runs.

The algorithm classes produce their own per-run snapshots (``SCCMetrics``,
``TopologicalMetrics``, ``PathMetrics``); a :class:`MetricsCollector`
aggregates those snapshots and any ad-hoc measurements across a session.

Example:
    >>> collector = MetricsCollector()
    >>> with collector.timer("scc"):
    ...     finder.find_components()
    >>> collector.record_scc(finder.metrics())
    >>> collector.counter(MetricsCollector.SCC_COMPONENTS)
    3
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator

from taskgraph.utils.logger import get_logger

if TYPE_CHECKING:
    from taskgraph.core.dag_paths import PathMetrics
    from taskgraph.core.scc_finder import SCCMetrics
    from taskgraph.core.topological_sort import TopologicalMetrics

logger = get_logger("taskgraph.core.metrics")


class MetricsCollector:
    """Named counters, timers and value series.

    Timers are measured with :func:`time.perf_counter_ns`. Every stopped
    timer also appends its elapsed value to the series of the same name.
    """

    DFS_VISITS = "dfs_visits"
    EDGES_TRAVERSED = "edges_traversed"
    SCC_COMPONENTS = "scc_components"
    TOPOLOGICAL_OPERATIONS = "topological_operations"
    KAHN_POPS = "kahn_pops"
    KAHN_PUSHES = "kahn_pushes"
    CYCLE_DETECTIONS = "cycle_detections"
    RELAXATIONS = "relaxations"
    PATH_RECONSTRUCTIONS = "path_reconstructions"

    COMMON_COUNTERS = (
        DFS_VISITS,
        EDGES_TRAVERSED,
        SCC_COMPONENTS,
        TOPOLOGICAL_OPERATIONS,
        KAHN_POPS,
        KAHN_PUSHES,
        CYCLE_DETECTIONS,
        RELAXATIONS,
        PATH_RECONSTRUCTIONS,
    )

    def __init__(self) -> None:
        self._counters: dict[str, int] = {}
        self._timer_starts: dict[str, int] = {}
        self._timers: dict[str, int] = {}
        self._series: dict[str, list[int | float]] = {}
        self._created_ns = time.perf_counter_ns()
        self._init_common_counters()

    def _init_common_counters(self) -> None:
        for name in self.COMMON_COUNTERS:
            self._counters[name] = 0

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    def increment(self, name: str, amount: int = 1) -> int:
        self._counters[name] = self._counters.get(name, 0) + amount
        return self._counters[name]

    def set_counter(self, name: str, value: int) -> None:
        self._counters[name] = value

    def counter(self, name: str) -> int:
        """Current value of a counter (0 if it was never touched)."""
        return self._counters.get(name, 0)

    def reset_counter(self, name: str) -> None:
        self._counters[name] = 0

    @property
    def counters(self) -> dict[str, int]:
        return dict(self._counters)

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def start_timer(self, name: str) -> None:
        self._timer_starts[name] = time.perf_counter_ns()

    def stop_timer(self, name: str) -> int:
        """Stop a timer and return the elapsed nanoseconds.

        Stopping a timer that was never started returns 0 and records
        nothing.
        """
        end = time.perf_counter_ns()
        start = self._timer_starts.pop(name, None)
        if start is None:
            logger.warning(f"Timer '{name}' stopped without being started")
            return 0

        elapsed = end - start
        self._timers[name] = elapsed
        self.add_series_value(name, elapsed)
        return elapsed

    def elapsed_ns(self, name: str) -> int:
        return self._timers.get(name, 0)

    def elapsed_ms(self, name: str) -> float:
        return self.elapsed_ns(name) / 1_000_000

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        """Time the body of a ``with`` block under ``name``."""
        self.start_timer(name)
        try:
            yield
        finally:
            self.stop_timer(name)

    @property
    def timers_ms(self) -> dict[str, float]:
        return {name: elapsed / 1_000_000 for name, elapsed in self._timers.items()}

    # ------------------------------------------------------------------
    # Series
    # ------------------------------------------------------------------

    def add_series_value(self, name: str, value: int | float) -> None:
        self._series.setdefault(name, []).append(value)

    def series(self, name: str) -> list[int | float]:
        return list(self._series.get(name, ()))

    def series_stats(self, name: str) -> dict[str, Any]:
        """Count, min, max, average and total of a series; empty dict if unknown."""
        data = self._series.get(name)
        if not data:
            return {}
        return {
            "count": len(data),
            "min": min(data),
            "max": max(data),
            "average": sum(data) / len(data),
            "total": sum(data),
        }

    # ------------------------------------------------------------------
    # Algorithm snapshots
    # ------------------------------------------------------------------

    def record_scc(self, metrics: SCCMetrics) -> None:
        self.set_counter(self.DFS_VISITS, metrics.dfs_visits)
        self.set_counter(self.EDGES_TRAVERSED, metrics.edges_traversed)
        self.set_counter(self.SCC_COMPONENTS, metrics.component_count)
        self._timers["scc_execution"] = metrics.elapsed_ns
        self.add_series_value("scc_execution", metrics.elapsed_ns)

    def record_topological(self, metrics: TopologicalMetrics) -> None:
        self.set_counter(self.TOPOLOGICAL_OPERATIONS, metrics.operations)
        self.set_counter(self.KAHN_POPS, metrics.pops)
        self.set_counter(self.KAHN_PUSHES, metrics.pushes)
        if metrics.has_cycle:
            self.increment(self.CYCLE_DETECTIONS)
        self._timers["topo_execution"] = metrics.elapsed_ns
        self.add_series_value("topo_execution", metrics.elapsed_ns)

    def record_paths(self, metrics: PathMetrics) -> None:
        self.set_counter(self.RELAXATIONS, metrics.relaxations)
        self.set_counter(self.PATH_RECONSTRUCTIONS, metrics.path_reconstructions)
        self._timers["dag_paths_execution"] = metrics.elapsed_ns
        self.add_series_value("dag_paths_execution", metrics.elapsed_ns)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def ops_per_second(self, counter_name: str, timer_name: str) -> float:
        seconds = self.elapsed_ns(timer_name) / 1_000_000_000
        return self.counter(counter_name) / seconds if seconds > 0 else 0.0

    def snapshot(self) -> dict[str, Any]:
        """Counters, timers (ms), series statistics and uptime as a plain dict."""
        return {
            "counters": self.counters,
            "timers_ms": self.timers_ms,
            "series": {name: self.series_stats(name) for name in self._series},
            "uptime_ms": (time.perf_counter_ns() - self._created_ns) / 1_000_000,
        }

    def reset(self) -> None:
        self._counters.clear()
        self._timer_starts.clear()
        self._timers.clear()
        self._series.clear()
        self._init_common_counters()
