"""Single-source shortest and longest paths on task DAGs.

Distances are relaxed once per vertex in topological order, which is exact
on acyclic graphs and linear in their size. The solver refuses cyclic graphs
up front; condense them with :class:`SCCFinder` first.

Which quantity an edge contributes depends on the graph's weight mode and on
the direction of the search. All four combinations are declared in
:data:`RELAXATION_RULES`.

Example:
    >>> solver = DAGPathSolver(graph)
    >>> result = solver.distances_with_paths(0)
    >>> solver.reconstruct_path(result, 4)
    >>> critical = solver.critical_path()
    >>> [v.id for v in critical.path], critical.length
    ([0, 1, 3, 4], 11)
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping

from taskgraph.core.graph_model import (
    CyclicGraphError,
    Edge,
    Graph,
    MissingPredecessorsError,
    Vertex,
)
from taskgraph.core.topological_sort import TopologicalSorter
from taskgraph.utils.logger import get_logger

logger = get_logger("taskgraph.core.dag_paths")

Distance = int | float


class WeightMode(Enum):
    """What a graph's path lengths are measured in."""

    DURATION = "duration"
    EDGE = "edge"

    @classmethod
    def of(cls, graph: Graph) -> WeightMode:
        return cls.DURATION if graph.use_node_durations else cls.EDGE


class PathDirection(Enum):
    SHORTEST = "shortest"
    LONGEST = "longest"

    @property
    def unreachable(self) -> float:
        """Distance reported for vertices the source cannot reach."""
        return math.inf if self is PathDirection.SHORTEST else -math.inf


# ============================================================================
# Relaxation Rules
# ============================================================================


@dataclass(frozen=True)
class RelaxationRule:
    """How one (weight mode, direction) pair relaxes edges.

    Attributes:
        step_cost: Cost contributed by traversing an edge
        maximize: Keep the larger candidate instead of the smaller
        negate_result: Negate final distances (used when longest paths are
            found as shortest paths over negated weights)
    """

    step_cost: Callable[[Edge], int]
    maximize: bool = False
    negate_result: bool = False

    @property
    def initial(self) -> float:
        return -math.inf if self.maximize else math.inf


# Duration mode is asymmetric: shortest paths still sum edge weights while
# longest paths sum the duration of each edge's source task.
RELAXATION_RULES: dict[tuple[WeightMode, PathDirection], RelaxationRule] = {
    (WeightMode.DURATION, PathDirection.SHORTEST): RelaxationRule(
        step_cost=lambda edge: edge.weight,
    ),
    (WeightMode.DURATION, PathDirection.LONGEST): RelaxationRule(
        step_cost=lambda edge: edge.source.duration,
        maximize=True,
    ),
    (WeightMode.EDGE, PathDirection.SHORTEST): RelaxationRule(
        step_cost=lambda edge: edge.weight,
    ),
    (WeightMode.EDGE, PathDirection.LONGEST): RelaxationRule(
        step_cost=lambda edge: -edge.weight,
        negate_result=True,
    ),
}


# ============================================================================
# Result Types
# ============================================================================


@dataclass(frozen=True)
class ShortestPathResult:
    """Distances (and optionally predecessors) from one source.

    Attributes:
        source_id: Source vertex id
        direction: Shortest or longest
        mode: Weight mode the distances were computed in
        distances: Vertex id to distance; ``inf`` (shortest) or ``-inf``
            (longest) marks unreachable vertices
        predecessors: Vertex id to predecessor id on the best path, or None
            when paths were not tracked
        relaxations: Number of successful relaxations
        elapsed_ns: Wall time of the computation
    """

    source_id: int
    direction: PathDirection
    mode: WeightMode
    distances: Mapping[int, Distance]
    predecessors: Mapping[int, int] | None = None
    relaxations: int = 0
    elapsed_ns: int = 0

    @property
    def is_longest(self) -> bool:
        return self.direction is PathDirection.LONGEST

    def distance_to(self, target_id: int) -> Distance:
        return self.distances.get(target_id, self.direction.unreachable)

    def is_reachable(self, target_id: int) -> bool:
        return math.isfinite(self.distance_to(target_id))


@dataclass(frozen=True)
class CriticalPathResult:
    """The longest path of a DAG.

    ``distance`` is the sum of the effective step costs along ``path``.
    ``length`` is what the path takes end to end: in duration mode the sink
    task's own duration is added to ``distance``, so ``length`` is the total
    duration of every task on the path; in edge mode ``length`` equals
    ``distance``.
    """

    path: tuple[Vertex, ...] = ()
    length: int = 0
    distance: int = 0
    source_id: int | None = None
    sink_id: int | None = None
    relaxations: int = 0
    topological_operations: int = 0
    elapsed_ns: int = 0

    @property
    def path_ids(self) -> list[int]:
        return [v.id for v in self.path]

    @property
    def path_size(self) -> int:
        return len(self.path)

    def is_empty(self) -> bool:
        return not self.path

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path_ids,
            "pathNames": [v.name for v in self.path],
            "length": self.length,
            "distance": self.distance,
            "sourceId": self.source_id,
            "sinkId": self.sink_id,
            "relaxations": self.relaxations,
            "topologicalOperations": self.topological_operations,
            "elapsedNs": self.elapsed_ns,
        }

    def __str__(self) -> str:
        return (
            f"CriticalPathResult(length={self.length}, path={self.path_ids}, "
            f"time={self.elapsed_ns / 1_000_000:.3f}ms)"
        )


@dataclass(frozen=True)
class PathMetrics:
    mode: str
    relaxations: int
    topological_operations: int
    path_reconstructions: int
    vertex_count: int
    edge_count: int
    elapsed_ns: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "relaxations": self.relaxations,
            "topological_operations": self.topological_operations,
            "path_reconstructions": self.path_reconstructions,
            "vertex_count": self.vertex_count,
            "edge_count": self.edge_count,
            "elapsed_ns": self.elapsed_ns,
        }


# ============================================================================
# DAG Path Solver
# ============================================================================


class DAGPathSolver:
    """Shortest, longest and critical paths over an acyclic graph.

    The solver reads the graph on every call and keeps only counters of its
    latest run, so it reflects edits made to the graph between calls as long
    as the graph stays acyclic.
    """

    def __init__(self, graph: Graph) -> None:
        """Initialize the solver.

        Args:
            graph: Acyclic graph to analyze

        Raises:
            ValueError: If graph is None
            CyclicGraphError: If graph contains a cycle
        """
        if graph is None:
            raise ValueError("Graph cannot be null")

        cycle = graph.find_cycle()
        if cycle:
            logger.error(f"Path solver rejected a cyclic graph: {' -> '.join(map(str, cycle))}")
            raise CyclicGraphError(
                cycle,
                "Graph contains cycles - use SCC condensation before DAG path analysis",
            )

        self.graph = graph
        self._reset()

    @property
    def mode(self) -> WeightMode:
        return WeightMode.of(self.graph)

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def topological_order(self) -> list[Vertex]:
        """Kahn order of the graph; its operation count feeds :meth:`metrics`."""
        sorter = TopologicalSorter(self.graph)
        order = sorter.sort_kahn()
        self._topological_operations += sorter.metrics().operations
        return order

    # ------------------------------------------------------------------
    # Single-source distances
    # ------------------------------------------------------------------

    def distances_from(
        self,
        source_id: int,
        direction: PathDirection = PathDirection.SHORTEST
    ) -> dict[int, Distance]:
        """Distances from ``source_id`` to every vertex.

        An unknown source yields the unreachable sentinel for every vertex.
        """
        self._reset()
        start_time = time.perf_counter_ns()
        result = self._relax(source_id, direction, self.topological_order(), track_paths=False)
        self._elapsed_ns = time.perf_counter_ns() - start_time
        return dict(result.distances)

    def distances_with_paths(
        self,
        source_id: int,
        direction: PathDirection = PathDirection.SHORTEST
    ) -> ShortestPathResult:
        """Distances plus the predecessor map needed by :meth:`reconstruct_path`."""
        self._reset()
        start_time = time.perf_counter_ns()
        result = self._relax(source_id, direction, self.topological_order(), track_paths=True)
        self._elapsed_ns = time.perf_counter_ns() - start_time
        return result

    def longest_distances_from(self, source_id: int) -> dict[int, Distance]:
        return self.distances_from(source_id, PathDirection.LONGEST)

    def longest_paths_from(self, source_id: int) -> ShortestPathResult:
        return self.distances_with_paths(source_id, PathDirection.LONGEST)

    def _relax(
        self,
        source_id: int,
        direction: PathDirection,
        order: list[Vertex],
        track_paths: bool
    ) -> ShortestPathResult:
        """Relax every edge once in topological order.

        Vertices still at the initial sentinel when their turn comes are
        unreachable and are skipped, so sentinel arithmetic never happens.
        """
        start_time = time.perf_counter_ns()
        mode = self.mode
        rule = RELAXATION_RULES[(mode, direction)]

        distances: dict[int, Distance] = {v.id: rule.initial for v in order}
        predecessors: dict[int, int] = {}
        relaxations = 0

        if source_id in distances:
            distances[source_id] = 0

        for vertex in order:
            current = distances[vertex.id]
            if math.isinf(current):
                continue

            for edge in self.graph.outgoing_edges(vertex.id):
                target = edge.target.id
                candidate = current + rule.step_cost(edge)
                better = (
                    candidate > distances[target] if rule.maximize
                    else candidate < distances[target]
                )
                if better:
                    distances[target] = candidate
                    predecessors[target] = vertex.id
                    relaxations += 1

        if rule.negate_result:
            distances = {vertex_id: -d for vertex_id, d in distances.items()}

        self._relaxations += relaxations
        return ShortestPathResult(
            source_id=source_id,
            direction=direction,
            mode=mode,
            distances=MappingProxyType(distances),
            predecessors=MappingProxyType(predecessors) if track_paths else None,
            relaxations=relaxations,
            elapsed_ns=time.perf_counter_ns() - start_time,
        )

    # ------------------------------------------------------------------
    # Critical path
    # ------------------------------------------------------------------

    def critical_path(self) -> CriticalPathResult:
        """Find the longest path of the graph over all sources.

        Every in-degree-zero vertex is tried as a source and every vertex it
        reaches as a sink. Candidates are compared by ``length`` with a
        strict ``>``, so among equal candidates the first source (in vertex
        insertion order) and then the first sink wins.

        Returns:
            CriticalPathResult; empty path with length 0 for an empty graph
        """
        self._reset()
        start_time = time.perf_counter_ns()

        order = self.topological_order()
        in_degree = self.graph.in_degrees()
        sources = [vertex_id for vertex_id, degree in in_degree.items() if degree == 0]
        use_durations = self.mode is WeightMode.DURATION

        best_length: Distance = -math.inf
        best: tuple[ShortestPathResult, int, Distance] | None = None

        for source_id in sources:
            result = self._relax(source_id, PathDirection.LONGEST, order, track_paths=True)
            for vertex_id in self.graph.vertex_ids:
                distance = result.distances[vertex_id]
                if math.isinf(distance):
                    continue
                length = distance + self.graph.node_duration(vertex_id) if use_durations else distance
                if length > best_length:
                    best_length = length
                    best = (result, vertex_id, distance)

        self._elapsed_ns = time.perf_counter_ns() - start_time

        if best is None:
            logger.debug("Critical path of an empty graph is empty")
            return CriticalPathResult(
                relaxations=self._relaxations,
                topological_operations=self._topological_operations,
                elapsed_ns=self._elapsed_ns,
            )

        result, sink_id, distance = best
        path = self.reconstruct_path(result, sink_id)

        critical = CriticalPathResult(
            path=tuple(path),
            length=int(best_length),
            distance=int(distance),
            source_id=result.source_id,
            sink_id=sink_id,
            relaxations=self._relaxations,
            topological_operations=self._topological_operations,
            elapsed_ns=self._elapsed_ns,
        )
        logger.debug(f"Critical path: {critical}")
        return critical

    # ------------------------------------------------------------------
    # Path reconstruction
    # ------------------------------------------------------------------

    def reconstruct_path(self, result: ShortestPathResult, target_id: int) -> list[Vertex]:
        """Walk predecessors from ``target_id`` back to the result's source.

        Args:
            result: Result produced with predecessor tracking
            target_id: Last vertex of the wanted path

        Returns:
            Vertices from source to target; empty when the chain of
            predecessors ends before reaching the source

        Raises:
            MissingPredecessorsError: If the result carries no predecessors
        """
        if result.predecessors is None:
            raise MissingPredecessorsError()

        self._path_reconstructions += 1
        reversed_path: list[Vertex] = []
        current: int | None = target_id

        while current is not None and current != result.source_id:
            reversed_path.append(self.graph.get_vertex(current))
            current = result.predecessors.get(current)

        if current is None:
            return []

        reversed_path.append(self.graph.get_vertex(result.source_id))
        reversed_path.reverse()
        return reversed_path

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def metrics(self) -> PathMetrics:
        return PathMetrics(
            mode=self.mode.value,
            relaxations=self._relaxations,
            topological_operations=self._topological_operations,
            path_reconstructions=self._path_reconstructions,
            vertex_count=self.graph.vertex_count,
            edge_count=self.graph.edge_count,
            elapsed_ns=self._elapsed_ns,
        )

    def _reset(self) -> None:
        self._relaxations = 0
        self._topological_operations = 0
        self._path_reconstructions = 0
        self._elapsed_ns = 0
