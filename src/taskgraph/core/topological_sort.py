"""Topological ordering of task graphs.

Two orderings are offered: Kahn's in-degree elimination and a DFS
postorder. Both refuse cyclic input with :class:`CyclicGraphError` instead of
returning a partial order. For graphs with cycles, the sorter orders the SCC
condensation produced by :class:`SCCFinder` and expands every component back
into its member tasks.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Iterable

from taskgraph.core.graph_model import (
    CondensationNotBuiltError,
    CyclicGraphError,
    Graph,
    Vertex,
)
from taskgraph.core.scc_finder import SCCFinder
from taskgraph.utils.logger import get_logger

logger = get_logger("taskgraph.core.topological_sort")

TOPO_ALGORITHMS = ("kahn", "dfs")


# ============================================================================
# Result Types
# ============================================================================


@dataclass(frozen=True)
class TopologicalMetrics:
    """Counters collected during the most recent ordering run."""

    algorithm: str
    operations: int
    pops: int
    pushes: int
    has_cycle: bool
    vertex_count: int
    edge_count: int
    elapsed_ns: int

    @property
    def is_dag(self) -> bool:
        return not self.has_cycle

    def to_dict(self) -> dict[str, Any]:
        return {
            "algorithm": self.algorithm,
            "operations": self.operations,
            "pops": self.pops,
            "pushes": self.pushes,
            "has_cycle": self.has_cycle,
            "is_dag": self.is_dag,
            "vertex_count": self.vertex_count,
            "edge_count": self.edge_count,
            "elapsed_ns": self.elapsed_ns,
        }


@dataclass(frozen=True)
class TopologicalResult:
    """Order of components and of original tasks for a (possibly cyclic) graph.

    Attributes:
        component_order: Condensation vertex ids in topological order
        vertex_order: Original vertices, grouped by component in that order
        elapsed_ns: Wall time of the whole computation
        operations: Elementary steps counted along the way
    """

    component_order: tuple[int, ...]
    vertex_order: tuple[Vertex, ...]
    elapsed_ns: int
    operations: int

    @property
    def component_count(self) -> int:
        return len(self.component_order)

    @property
    def vertex_count(self) -> int:
        return len(self.vertex_order)

    def vertex_ids(self) -> list[int]:
        return [v.id for v in self.vertex_order]

    def __str__(self) -> str:
        return (
            f"TopologicalResult(components={self.component_count}, "
            f"vertices={self.vertex_count}, time={self.elapsed_ns / 1_000_000:.3f}ms)"
        )


# ============================================================================
# Topological Sorter
# ============================================================================


class TopologicalSorter:
    """Computes topological orders, levels, sources and sinks of a graph.

    Example:
        >>> sorter = TopologicalSorter(graph)
        >>> order = sorter.sort("kahn")
        >>> levels = sorter.levels(order)
    """

    def __init__(self, graph: Graph) -> None:
        if graph is None:
            raise ValueError("Graph cannot be null")

        self.graph = graph
        self._reset("")

    # ------------------------------------------------------------------
    # Sorting
    # ------------------------------------------------------------------

    def sort(self, algorithm: str = "kahn") -> list[Vertex]:
        """Order the graph with the named algorithm ("kahn" or "dfs").

        Raises:
            ValueError: If the algorithm name is unknown
            CyclicGraphError: If the graph has a cycle
        """
        name = algorithm.lower()
        if name == "kahn":
            return self.sort_kahn()
        if name == "dfs":
            return self.sort_dfs()
        raise ValueError(
            f"Unknown topological algorithm: {algorithm}. Must be one of {TOPO_ALGORITHMS}"
        )

    def sort_kahn(self) -> list[Vertex]:
        """Order the graph by repeatedly removing in-degree-zero vertices.

        The frontier is FIFO and is seeded in vertex insertion order, so the
        result is deterministic for a given graph.

        Returns:
            Vertices in topological order

        Raises:
            CyclicGraphError: If not every vertex could be emitted
        """
        self._reset("kahn")
        start_time = time.perf_counter_ns()

        in_degree = self.graph.in_degrees()
        queue: deque[int] = deque()

        for vertex_id, degree in in_degree.items():
            self._operations += 1
            if degree == 0:
                queue.append(vertex_id)
                self._pushes += 1

        result: list[Vertex] = []
        while queue:
            self._operations += 1
            current = queue.popleft()
            self._pops += 1
            result.append(self.graph.get_vertex(current))

            for edge in self.graph.outgoing_edges(current):
                self._operations += 1
                neighbor = edge.target.id
                in_degree[neighbor] -= 1
                if in_degree[neighbor] == 0:
                    queue.append(neighbor)
                    self._pushes += 1

        self._elapsed_ns = time.perf_counter_ns() - start_time

        if len(result) != self.graph.vertex_count:
            self._has_cycle = True
            cycle = self.graph.find_cycle()
            logger.warning(
                f"Kahn ordering stopped after {len(result)} of "
                f"{self.graph.vertex_count} vertices: graph has a cycle"
            )
            raise CyclicGraphError(cycle)

        logger.debug(f"Kahn ordering: {len(result)} vertices, {self._operations} operations")
        return result

    def sort_dfs(self) -> list[Vertex]:
        """Order the graph by reversed DFS finishing order.

        Uses an explicit ``(vertex, edge position)`` stack and an on-path set.
        Meeting a vertex that is still on the current path means a cycle.

        Returns:
            Vertices in topological order

        Raises:
            CyclicGraphError: If a back edge is found
        """
        self._reset("dfs")
        start_time = time.perf_counter_ns()

        visited: set[int] = set()
        on_path: dict[int, int] = {}
        finished: list[int] = []

        for root in self.graph.vertex_ids:
            self._operations += 1
            if root in visited:
                continue

            visited.add(root)
            on_path[root] = 0
            work: list[tuple[int, list]] = [(root, self.graph.outgoing_edges(root))]
            positions = [0]

            while work:
                vertex_id, bucket = work[-1]
                position = positions[-1]

                if position < len(bucket):
                    positions[-1] = position + 1
                    self._operations += 1
                    neighbor = bucket[position].target.id

                    if neighbor in on_path:
                        self._has_cycle = True
                        self._elapsed_ns = time.perf_counter_ns() - start_time
                        cycle = [frame[0] for frame in work[on_path[neighbor]:]]
                        cycle.append(neighbor)
                        logger.warning(f"DFS ordering found a back edge {vertex_id} -> {neighbor}")
                        raise CyclicGraphError(cycle)

                    if neighbor not in visited:
                        visited.add(neighbor)
                        on_path[neighbor] = len(work)
                        work.append((neighbor, self.graph.outgoing_edges(neighbor)))
                        positions.append(0)
                    continue

                work.pop()
                positions.pop()
                del on_path[vertex_id]
                finished.append(vertex_id)

        self._operations += len(finished)
        result = [self.graph.get_vertex(vertex_id) for vertex_id in reversed(finished)]

        self._elapsed_ns = time.perf_counter_ns() - start_time
        logger.debug(f"DFS ordering: {len(result)} vertices, {self._operations} operations")
        return result

    # ------------------------------------------------------------------
    # Structure queries
    # ------------------------------------------------------------------

    def is_dag(self) -> bool:
        try:
            self.sort_kahn()
        except CyclicGraphError:
            return False
        return True

    def source_vertices(self) -> list[Vertex]:
        """Vertices with in-degree 0, in insertion order."""
        in_degree = self.graph.in_degrees()
        return [v for v in self.graph.vertices if in_degree[v.id] == 0]

    def sink_vertices(self) -> list[Vertex]:
        """Vertices with out-degree 0, in insertion order."""
        return [v for v in self.graph.vertices if self.graph.out_degree(v.id) == 0]

    def levels(self, order: Iterable[Vertex | int]) -> dict[int, int]:
        """Assign each vertex its longest-chain depth from a source.

        Sources get level 0; every other vertex gets one more than the
        highest level among its predecessors. ``order`` must be topological
        so that predecessors are seen first.

        Args:
            order: Vertices (or ids) in topological order

        Returns:
            Mapping of vertex id to level
        """
        predecessors: dict[int, list[int]] = {vertex_id: [] for vertex_id in self.graph.vertex_ids}
        for edge in self.graph.edges:
            predecessors[edge.target.id].append(edge.source.id)

        levels: dict[int, int] = {}
        for item in order:
            vertex_id = item.id if isinstance(item, Vertex) else item
            highest = max(
                (levels.get(p, -1) for p in predecessors.get(vertex_id, ())),
                default=-1,
            )
            levels[vertex_id] = highest + 1
        return levels

    # ------------------------------------------------------------------
    # Condensation ordering
    # ------------------------------------------------------------------

    def condensation_order(self, scc_finder: SCCFinder) -> list[int]:
        """Topological order of component ids of ``scc_finder``'s condensation.

        Raises:
            CondensationNotBuiltError: If the finder has no condensation yet
        """
        self._reset("kahn")
        start_time = time.perf_counter_ns()
        order = self._condensation_order(scc_finder)
        self._elapsed_ns = time.perf_counter_ns() - start_time
        return order

    def expand_component_order(
        self,
        scc_finder: SCCFinder,
        component_order: Iterable[int]
    ) -> list[Vertex]:
        """Replace every component id with its member vertices.

        Ids outside the finder's component range are skipped.
        """
        self._reset("kahn")
        start_time = time.perf_counter_ns()
        order = self._expand(scc_finder, component_order)
        self._elapsed_ns = time.perf_counter_ns() - start_time
        return order

    def complete_order(self, scc_finder: SCCFinder) -> TopologicalResult:
        """Order a possibly cyclic graph through its condensation.

        Builds the condensation first if the finder has none, then orders the
        components and expands them into original tasks.

        Args:
            scc_finder: Finder over this sorter's graph

        Returns:
            TopologicalResult with component and task orders
        """
        self._reset("kahn")
        start_time = time.perf_counter_ns()

        if scc_finder.condensation is None:
            scc_finder.build_condensation()

        component_order = self._condensation_order(scc_finder)
        vertex_order = self._expand(scc_finder, component_order)

        self._elapsed_ns = time.perf_counter_ns() - start_time
        result = TopologicalResult(
            component_order=tuple(component_order),
            vertex_order=tuple(vertex_order),
            elapsed_ns=self._elapsed_ns,
            operations=self._operations,
        )
        logger.debug(f"Complete ordering: {result}")
        return result

    def _condensation_order(self, scc_finder: SCCFinder) -> list[int]:
        condensation = scc_finder.condensation
        if condensation is None:
            raise CondensationNotBuiltError()

        inner = TopologicalSorter(condensation)
        component_vertices = inner.sort_kahn()
        inner_metrics = inner.metrics()

        self._operations += inner_metrics.operations + len(component_vertices)
        self._pops += inner_metrics.pops
        self._pushes += inner_metrics.pushes
        return [v.id for v in component_vertices]

    def _expand(self, scc_finder: SCCFinder, component_order: Iterable[int]) -> list[Vertex]:
        components = scc_finder.components
        expanded: list[Vertex] = []
        for component_id in component_order:
            self._operations += 1
            if 0 <= component_id < len(components):
                expanded.extend(components[component_id])
        return expanded

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def metrics(self) -> TopologicalMetrics:
        return TopologicalMetrics(
            algorithm=self._algorithm,
            operations=self._operations,
            pops=self._pops,
            pushes=self._pushes,
            has_cycle=self._has_cycle,
            vertex_count=self.graph.vertex_count,
            edge_count=self.graph.edge_count,
            elapsed_ns=self._elapsed_ns,
        )

    def _reset(self, algorithm: str) -> None:
        self._algorithm = algorithm
        self._operations = 0
        self._pops = 0
        self._pushes = 0
        self._has_cycle = False
        self._elapsed_ns = 0
