"""Strongly connected component detection and graph condensation.

Provides Tarjan's and Kosaraju's algorithms over :class:`Graph` plus the
condensation (component DAG) that lets cyclic task graphs be ordered and
scheduled. Both algorithms run iteratively on an explicit stack of
``(vertex id, next edge position)`` frames and visit vertices in exactly the
order a recursive implementation would, so deep dependency chains do not
touch the interpreter's recursion limit.

Example:
    >>> finder = SCCFinder(graph)
    >>> components = finder.find_components("tarjan")
    >>> condensation = finder.build_condensation()
    >>> finder.component_of(0)
    2
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from taskgraph.core.graph_model import Graph, Vertex
from taskgraph.utils.logger import get_logger

logger = get_logger("taskgraph.core.scc_finder")

SCC_ALGORITHMS = ("tarjan", "kosaraju")


# ============================================================================
# Result Types
# ============================================================================


@dataclass(frozen=True)
class SCCMetrics:
    """Counters collected during the most recent component search."""

    algorithm: str
    dfs_visits: int
    edges_traversed: int
    component_count: int
    largest_component: int
    smallest_component: int
    average_component_size: float
    trivial_components: int
    non_trivial_components: int
    is_strongly_connected: bool
    elapsed_ns: int

    @property
    def elapsed_ms(self) -> float:
        return self.elapsed_ns / 1_000_000

    def to_dict(self) -> dict[str, Any]:
        return {
            "algorithm": self.algorithm,
            "dfs_visits": self.dfs_visits,
            "edges_traversed": self.edges_traversed,
            "component_count": self.component_count,
            "largest_component": self.largest_component,
            "smallest_component": self.smallest_component,
            "average_component_size": self.average_component_size,
            "trivial_components": self.trivial_components,
            "non_trivial_components": self.non_trivial_components,
            "is_strongly_connected": self.is_strongly_connected,
            "elapsed_ns": self.elapsed_ns,
        }


@dataclass(frozen=True)
class SCCResult:
    """Immutable outcome of :meth:`SCCFinder.analyze`.

    Attributes:
        algorithm: Algorithm that produced the partition
        components: Components in discovery order
        component_index: Vertex id to component index
        condensation: Component DAG
        metrics: Counters of the search
    """

    algorithm: str
    components: tuple[tuple[Vertex, ...], ...]
    component_index: Mapping[int, int] = field(default_factory=lambda: MappingProxyType({}))
    condensation: Graph | None = None
    metrics: SCCMetrics | None = None

    @property
    def component_count(self) -> int:
        return len(self.components)

    def component_ids(self) -> list[list[int]]:
        return [[v.id for v in component] for component in self.components]


# ============================================================================
# SCC Finder
# ============================================================================


class SCCFinder:
    """Finds strongly connected components of a graph and condenses them.

    The finder keeps the partition from its latest run. Component indices
    are assigned in the order components are completed: for Tarjan that is
    reverse topological order of the condensation, for Kosaraju it is
    topological order.

    Attributes:
        graph: The analyzed graph
    """

    def __init__(self, graph: Graph) -> None:
        """Initialize the finder.

        Args:
            graph: Graph to analyze

        Raises:
            ValueError: If graph is None
        """
        if graph is None:
            raise ValueError("Graph cannot be null")

        self.graph = graph
        self._components: list[list[Vertex]] = []
        self._component_index: dict[int, int] = {}
        self._condensation: Graph | None = None

        self._algorithm = ""
        self._dfs_visits = 0
        self._edges_traversed = 0
        self._elapsed_ns = 0

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def find_components(self, algorithm: str = "tarjan") -> list[list[Vertex]]:
        """Partition the graph into strongly connected components.

        Args:
            algorithm: "tarjan" or "kosaraju"

        Returns:
            List of components, each a list of vertices

        Raises:
            ValueError: If the algorithm name is unknown
        """
        name = algorithm.lower()
        if name == "tarjan":
            return self.find_components_tarjan()
        if name == "kosaraju":
            return self.find_components_kosaraju()
        raise ValueError(f"Unknown SCC algorithm: {algorithm}. Must be one of {SCC_ALGORITHMS}")

    def analyze(self, algorithm: str = "tarjan") -> SCCResult:
        """Run the chosen algorithm, build the condensation and snapshot everything."""
        self.find_components(algorithm)
        condensation = self.build_condensation()
        return SCCResult(
            algorithm=self._algorithm,
            components=tuple(tuple(c) for c in self._components),
            component_index=MappingProxyType(dict(self._component_index)),
            condensation=condensation,
            metrics=self.metrics(),
        )

    # ------------------------------------------------------------------
    # Tarjan
    # ------------------------------------------------------------------

    def find_components_tarjan(self) -> list[list[Vertex]]:
        """Find components with Tarjan's low-link algorithm."""
        self._begin("tarjan")
        start_time = time.perf_counter_ns()

        index: dict[int, int] = {}
        low_link: dict[int, int] = {}
        component_stack: list[int] = []
        on_stack: set[int] = set()
        counter = 0
        work: list[tuple[int, list]] = []
        positions: list[int] = []

        def enter(vertex_id: int) -> None:
            nonlocal counter
            self._dfs_visits += 1
            index[vertex_id] = counter
            low_link[vertex_id] = counter
            counter += 1
            component_stack.append(vertex_id)
            on_stack.add(vertex_id)
            work.append((vertex_id, self.graph.outgoing_edges(vertex_id)))
            positions.append(0)

        for root in self.graph.vertex_ids:
            if root in index:
                continue

            enter(root)

            while work:
                vertex_id, bucket = work[-1]
                position = positions[-1]

                if position < len(bucket):
                    positions[-1] = position + 1
                    self._edges_traversed += 1
                    neighbor = bucket[position].target.id

                    if neighbor not in index:
                        enter(neighbor)
                    elif neighbor in on_stack:
                        low_link[vertex_id] = min(low_link[vertex_id], index[neighbor])
                    continue

                work.pop()
                positions.pop()

                if low_link[vertex_id] == index[vertex_id]:
                    self._pop_component(vertex_id, component_stack, on_stack)

                if work:
                    parent = work[-1][0]
                    low_link[parent] = min(low_link[parent], low_link[vertex_id])

        self._elapsed_ns = time.perf_counter_ns() - start_time
        self._log_run()
        return [list(c) for c in self._components]

    def _pop_component(
        self,
        root_id: int,
        component_stack: list[int],
        on_stack: set[int]
    ) -> None:
        component_id = len(self._components)
        component: list[Vertex] = []

        while True:
            member = component_stack.pop()
            on_stack.discard(member)
            component.append(self.graph.get_vertex(member))
            self._component_index[member] = component_id
            if member == root_id:
                break

        self._components.append(component)

    # ------------------------------------------------------------------
    # Kosaraju
    # ------------------------------------------------------------------

    def find_components_kosaraju(self) -> list[list[Vertex]]:
        """Find components with Kosaraju's two-pass algorithm."""
        self._begin("kosaraju")
        start_time = time.perf_counter_ns()

        # Pass 1: finishing order on the original graph
        finish_order: list[int] = []
        visited: set[int] = set()
        for root in self.graph.vertex_ids:
            if root not in visited:
                self._dfs(self.graph, root, visited, postorder=finish_order)

        # Pass 2: trees of the transpose in reverse finishing order
        transpose = self.graph.transpose()
        visited.clear()
        for root in reversed(finish_order):
            if root in visited:
                continue

            preorder: list[int] = []
            self._dfs(transpose, root, visited, preorder=preorder)

            component_id = len(self._components)
            for member in preorder:
                self._component_index[member] = component_id
            self._components.append([self.graph.get_vertex(m) for m in preorder])

        self._elapsed_ns = time.perf_counter_ns() - start_time
        self._log_run()
        return [list(c) for c in self._components]

    def _dfs(
        self,
        graph: Graph,
        root: int,
        visited: set[int],
        preorder: list[int] | None = None,
        postorder: list[int] | None = None
    ) -> None:
        """Iterative DFS from ``root`` recording pre- and/or postorder ids."""
        visited.add(root)
        self._dfs_visits += 1
        if preorder is not None:
            preorder.append(root)
        work: list[tuple[int, list]] = [(root, graph.outgoing_edges(root))]
        positions = [0]

        while work:
            vertex_id, bucket = work[-1]
            position = positions[-1]

            if position < len(bucket):
                positions[-1] = position + 1
                self._edges_traversed += 1
                neighbor = bucket[position].target.id
                if neighbor not in visited:
                    visited.add(neighbor)
                    self._dfs_visits += 1
                    if preorder is not None:
                        preorder.append(neighbor)
                    work.append((neighbor, graph.outgoing_edges(neighbor)))
                    positions.append(0)
                continue

            work.pop()
            positions.pop()
            if postorder is not None:
                postorder.append(vertex_id)

    # ------------------------------------------------------------------
    # Condensation
    # ------------------------------------------------------------------

    def build_condensation(self) -> Graph:
        """Build the component DAG.

        Component ``i`` becomes vertex ``i`` named ``"SCC-i (size: n)"`` whose
        duration is the sum of its members' durations. For every original
        edge crossing two components one condensation edge is added per
        ordered component pair; the weight of the first such edge wins.
        Tarjan runs first when no components are known yet.

        Returns:
            The condensation graph (also kept on the finder)
        """
        if not self._components:
            self.find_components_tarjan()

        condensation = Graph(self.graph.use_node_durations)

        for component_id, component in enumerate(self._components):
            condensation.add_vertex(
                component_id,
                f"SCC-{component_id} (size: {len(component)})",
                sum(v.duration for v in component),
            )

        added: set[tuple[int, int]] = set()
        for component_id, component in enumerate(self._components):
            for vertex in component:
                for edge in self.graph.outgoing_edges(vertex.id):
                    target_component = self._component_index[edge.target.id]
                    pair = (component_id, target_component)
                    if component_id != target_component and pair not in added:
                        condensation.add_edge(component_id, target_component, edge.weight)
                        added.add(pair)

        self._condensation = condensation
        logger.debug(
            f"Condensation built: {condensation.vertex_count} components, "
            f"{condensation.edge_count} edges"
        )
        return condensation

    # ------------------------------------------------------------------
    # Component queries
    # ------------------------------------------------------------------

    @property
    def components(self) -> list[list[Vertex]]:
        return [list(c) for c in self._components]

    @property
    def condensation(self) -> Graph | None:
        """Condensation graph, or None until built."""
        return self._condensation

    def component_of(self, vertex: Vertex | int) -> int:
        """Return the component index of a vertex (or id), -1 if unknown."""
        vertex_id = vertex.id if isinstance(vertex, Vertex) else vertex
        return self._component_index.get(vertex_id, -1)

    def component(self, vertex: Vertex | int) -> list[Vertex]:
        """Return the component containing a vertex, or an empty list."""
        component_id = self.component_of(vertex)
        return list(self._components[component_id]) if component_id != -1 else []

    def component_details(self) -> list[dict[str, Any]]:
        return [
            {
                "id": component_id,
                "size": len(component),
                "vertices": [v.id for v in component],
                "vertex_names": [v.name for v in component],
                "total_duration": sum(v.duration for v in component),
                "is_trivial": len(component) == 1,
            }
            for component_id, component in enumerate(self._components)
        ]

    def metrics(self) -> SCCMetrics:
        """Snapshot counters and size statistics of the latest run."""
        sizes = [len(c) for c in self._components]
        trivial = sum(1 for size in sizes if size == 1)
        return SCCMetrics(
            algorithm=self._algorithm,
            dfs_visits=self._dfs_visits,
            edges_traversed=self._edges_traversed,
            component_count=len(sizes),
            largest_component=max(sizes, default=0),
            smallest_component=min(sizes, default=0),
            average_component_size=sum(sizes) / len(sizes) if sizes else 0.0,
            trivial_components=trivial,
            non_trivial_components=len(sizes) - trivial,
            is_strongly_connected=(
                len(sizes) == 1 and sizes[0] == self.graph.vertex_count
            ),
            elapsed_ns=self._elapsed_ns,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _begin(self, algorithm: str) -> None:
        self._algorithm = algorithm
        self._components = []
        self._component_index = {}
        self._condensation = None
        self._dfs_visits = 0
        self._edges_traversed = 0
        self._elapsed_ns = 0

    def _log_run(self) -> None:
        logger.debug(
            f"{self._algorithm}: {len(self._components)} components from "
            f"{self.graph.vertex_count} vertices ({self._dfs_visits} visits, "
            f"{self._edges_traversed} edges traversed)"
        )
