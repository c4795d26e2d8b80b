"""Directed task graph data model.

This module provides the vertex, edge and graph types that every analysis
component in :mod:`taskgraph.core` operates on, plus the error taxonomy those
components raise. Vertices are city service tasks with a duration; edges are
dependencies that may carry an integer weight. A graph-level flag selects
whether path algorithms weigh by vertex duration or by edge weight.

Traversals never store scratch state on the vertices themselves: every
algorithm keeps its own visited set, so one graph can be analyzed by several
callers at once as long as nobody mutates it meanwhile.

Example:
    >>> from taskgraph.core.graph_model import Graph
    >>>
    >>> graph = Graph(use_node_durations=True)
    >>> graph.add_vertex(0, "Survey", 2)
    >>> graph.add_vertex(1, "Repair", 5)
    >>> graph.add_edge(0, 1)
    >>> graph.has_cycle()
    False
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from taskgraph.utils.logger import get_logger

logger = get_logger("taskgraph.core.graph_model")


# ============================================================================
# Custom Exceptions
# ============================================================================


class GraphError(Exception):
    """Base class for every graph analysis error."""


class DuplicateVertexError(GraphError):
    """Raised when a vertex id is already present in the graph.

    Attributes:
        vertex_id: The colliding id
    """

    def __init__(self, vertex_id: int):
        self.vertex_id = vertex_id
        super().__init__(f"Vertex with ID {vertex_id} already exists")


class VertexNotFoundError(GraphError):
    """Raised when an operation references a vertex the graph does not hold.

    Attributes:
        vertex_id: The missing id
    """

    def __init__(self, vertex_id: int, details: str = ""):
        self.vertex_id = vertex_id
        detail_suffix = f": {details}" if details else ""
        super().__init__(f"Vertex {vertex_id} not found in graph{detail_suffix}")


class CyclicGraphError(GraphError):
    """Raised when an algorithm that requires a DAG meets a cycle.

    Attributes:
        cycle: Vertex ids forming the cycle, closing on the first id, when known
        message: Human readable description

    Example:
        >>> raise CyclicGraphError([0, 1, 2, 0])
        Traceback (most recent call last):
        CyclicGraphError: Graph contains a cycle: 0 -> 1 -> 2 -> 0
    """

    def __init__(self, cycle: list[int] | None = None, message: str | None = None):
        self.cycle = list(cycle or [])
        if message is None:
            if self.cycle:
                message = "Graph contains a cycle: " + " -> ".join(str(v) for v in self.cycle)
            else:
                message = "Graph contains cycles - topological order not possible"
        self.message = message
        super().__init__(message)


class CondensationNotBuiltError(GraphError):
    """Raised when condensation-based ordering runs before a condensation exists."""

    def __init__(self) -> None:
        super().__init__(
            "Condensation graph not built. Call build_condensation() first."
        )


class MissingPredecessorsError(GraphError):
    """Raised when path reconstruction is asked of a result without predecessors."""

    def __init__(self) -> None:
        super().__init__("Path reconstruction requires predecessor information")


# ============================================================================
# Enumerations
# ============================================================================


class VertexType(Enum):
    """City service task categories."""

    STREET_CLEANING = ("Street Cleaning", "SC")
    REPAIRS = ("Repairs", "REP")
    MAINTENANCE = ("Maintenance", "MAINT")
    SENSOR_MONITORING = ("Sensor Monitoring", "SENSOR")
    DATA_ANALYTICS = ("Data Analytics", "DATA")
    TRANSPORT = ("Transport", "TRANS")
    SAFETY = ("Safety", "SAFE")
    UTILITIES = ("Utilities", "UTIL")
    OTHER = ("Other", "OTH")

    def __init__(self, display_name: str, code: str) -> None:
        self.display_name = display_name
        self.code = code

    @classmethod
    def parse(cls, value: VertexType | str | None) -> VertexType:
        """Coerce a member, member name or None into a member (OTHER if unknown)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper(), cls.OTHER)
        return cls.OTHER


class EdgeType(Enum):
    """Kinds of dependency between two tasks."""

    TASK_DEPENDENCY = ("Task Dependency", "Tasks must be executed in sequence")
    RESOURCE_SHARING = ("Resource Sharing", "Tasks share common resources")
    TEMPORAL_CONSTRAINT = ("Temporal Constraint", "Time-based dependency")
    DATA_FLOW = ("Data Flow", "Data transfer between tasks")
    PHYSICAL_CONSTRAINT = ("Physical Constraint", "Physical location dependency")
    OTHER = ("Other", "General dependency")

    def __init__(self, display_name: str, summary: str) -> None:
        self.display_name = display_name
        self.summary = summary

    @classmethod
    def parse(cls, value: EdgeType | str | None) -> EdgeType:
        """Coerce a member, member name or None into a member (OTHER if unknown)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper(), cls.OTHER)
        return cls.OTHER


# ============================================================================
# Data Structures
# ============================================================================


def _clean_name(name: Any) -> str:
    if name is None or not str(name).strip():
        raise ValueError("Vertex name cannot be null or empty")
    return str(name).strip()


def _clean_description(description: Any) -> str:
    return str(description).strip() if description is not None else ""


_VERTEX_NORMALIZERS = {
    "name": _clean_name,
    "duration": lambda duration: max(0, int(duration)),
    "type": VertexType.parse,
    "description": _clean_description,
}


@dataclass(eq=False)
class Vertex:
    """A task in the graph.

    Mutable attributes are normalized on every assignment: ``name`` is
    stripped and must stay non-empty, ``duration`` is clamped to zero,
    ``type`` falls back to :attr:`VertexType.OTHER` and ``description`` is
    stripped. The ``id`` cannot change once set.

    Vertices hash and compare by ``id`` only, so they can be used in sets and
    as dict keys.

    Attributes:
        id: Unique non-negative identifier
        name: Display name
        duration: Time needed to complete the task
        type: Task category
        description: Free-form text

    Example:
        >>> v = Vertex(3, "  Repair: Bridge ", duration=-4)
        >>> v.name, v.duration, v.type
        ('Repair: Bridge', 0, <VertexType.OTHER: ('Other', 'OTH')>)
    """

    id: int
    name: str
    duration: int = 0
    type: VertexType = VertexType.OTHER
    description: str = ""

    def __post_init__(self) -> None:
        """Validate the identifier."""
        if isinstance(self.id, bool) or not isinstance(self.id, int):
            raise ValueError(f"Vertex ID must be an integer, got {self.id!r}")
        if self.id < 0:
            raise ValueError(f"Vertex ID cannot be negative: {self.id}")

    def __setattr__(self, key: str, value: Any) -> None:
        if key == "id" and "id" in self.__dict__:
            raise AttributeError("Vertex id is immutable")
        normalizer = _VERTEX_NORMALIZERS.get(key)
        if normalizer is not None:
            value = normalizer(value)
        super().__setattr__(key, value)

    def __hash__(self) -> int:
        """Return hash based on id for set/dict usage."""
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        """Check equality based on id."""
        if not isinstance(other, Vertex):
            return NotImplemented
        return self.id == other.id

    def is_critical_task(self) -> bool:
        """A task is critical when it is long or belongs to a safety category."""
        return self.duration > 10 or self.type in (VertexType.SAFETY, VertexType.UTILITIES)

    def copy(self) -> Vertex:
        """Return a value copy of this vertex."""
        return Vertex(self.id, self.name, self.duration, self.type, self.description)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "duration": self.duration,
            "type": self.type.name,
            "description": self.description,
        }


@dataclass(eq=False)
class Edge:
    """A directed dependency between two vertices.

    Self-loops can be constructed (see :meth:`is_self_loop`); they count as
    cycles for every acyclicity check.

    Attributes:
        source: Vertex the edge leaves
        target: Vertex the edge enters
        weight: Integer cost of the dependency
        type: Dependency kind
        description: Free-form text

    Example:
        >>> edge = Edge(Vertex(0, "A"), Vertex(1, "B"), weight=3)
        >>> edge.connects(0, 1)
        True
    """

    source: Vertex
    target: Vertex
    weight: int = 0
    type: EdgeType = EdgeType.OTHER
    description: str = ""

    def __post_init__(self) -> None:
        """Validate endpoints and normalize optional fields."""
        if self.source is None:
            raise ValueError("Source vertex cannot be null")
        if self.target is None:
            raise ValueError("Target vertex cannot be null")
        self.weight = int(self.weight)
        self.type = EdgeType.parse(self.type)
        self.description = _clean_description(self.description)

    def __hash__(self) -> int:
        return hash((self.source.id, self.target.id, self.weight))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Edge):
            return NotImplemented
        return (
            self.source.id == other.source.id
            and self.target.id == other.target.id
            and self.weight == other.weight
        )

    @property
    def inverse_weight(self) -> int:
        return -self.weight

    def connects(self, source_id: int, target_id: int) -> bool:
        return self.source.id == source_id and self.target.id == target_id

    def is_self_loop(self) -> bool:
        return self.source.id == self.target.id

    def is_critical(self) -> bool:
        """Heavy edges and hard constraints are critical."""
        return self.weight > 5 or self.type in (
            EdgeType.TEMPORAL_CONSTRAINT,
            EdgeType.PHYSICAL_CONSTRAINT,
        )

    def reversed(self) -> Edge:
        """Return a copy pointing the other way, keeping weight and type."""
        return Edge(self.target, self.source, self.weight, self.type, self.description)

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.source.id,
            "to": self.target.id,
            "weight": self.weight,
            "type": self.type.name,
            "description": self.description,
        }


@dataclass(frozen=True)
class GraphStatistics:
    """Snapshot of structural graph properties."""

    vertex_count: int
    edge_count: int
    density: float
    has_cycle: bool
    is_connected: bool
    use_node_durations: bool
    max_in_degree: int
    max_out_degree: int
    type_distribution: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "vertexCount": self.vertex_count,
            "edgeCount": self.edge_count,
            "density": self.density,
            "hasCycle": self.has_cycle,
            "isConnected": self.is_connected,
            "useNodeDurations": self.use_node_durations,
            "maxInDegree": self.max_in_degree,
            "maxOutDegree": self.max_out_degree,
            "typeDistribution": dict(self.type_distribution),
        }


class Graph:
    """Directed graph of tasks with an ordered adjacency index.

    Maintains a mapping of id to vertex, the ordered list of edges, and for
    every vertex the list of its outgoing edges in insertion order. The
    adjacency index always mirrors the edge list: each edge sits in its
    source's bucket exactly once. Removing a vertex removes every edge that
    touches it.

    Attributes:
        use_node_durations: When True, path algorithms weigh by vertex
            duration; otherwise by edge weight

    Example:
        >>> graph = Graph()
        >>> graph.add_vertex(0, "A", 2)
        >>> graph.add_vertex(1, "B", 3)
        >>> graph.add_edge(0, 1, 4)
        >>> graph.out_degree(0), graph.in_degree(1)
        (1, 1)
    """

    def __init__(self, use_node_durations: bool = True) -> None:
        self.use_node_durations = bool(use_node_durations)
        self._vertices: dict[int, Vertex] = {}
        self._edges: list[Edge] = []
        self._adjacency: dict[int, list[Edge]] = {}

    # ------------------------------------------------------------------
    # Vertex operations
    # ------------------------------------------------------------------

    def add_vertex(
        self,
        vertex: Vertex | int,
        name: str | None = None,
        duration: int = 0,
        vertex_type: VertexType | str | None = None,
        description: str = ""
    ) -> Vertex:
        """Add a vertex, given either as a :class:`Vertex` or as its fields.

        Args:
            vertex: A Vertex instance, or the id of a vertex to create
            name: Name of the new vertex (required when ``vertex`` is an id)
            duration: Duration of the new vertex
            vertex_type: Category of the new vertex
            description: Description of the new vertex

        Returns:
            The vertex stored in the graph

        Raises:
            DuplicateVertexError: If the id is already present
            ValueError: If vertex fields are invalid
        """
        if vertex is None:
            raise ValueError("Vertex cannot be null")
        if not isinstance(vertex, Vertex):
            vertex = Vertex(vertex, name, duration, vertex_type, description)

        if vertex.id in self._vertices:
            raise DuplicateVertexError(vertex.id)

        self._vertices[vertex.id] = vertex
        self._adjacency[vertex.id] = []
        return vertex

    def get_vertex(self, vertex_id: int) -> Vertex | None:
        """Return the vertex with ``vertex_id``, or None."""
        return self._vertices.get(vertex_id)

    def contains_vertex(self, vertex_id: int) -> bool:
        return vertex_id in self._vertices

    def remove_vertex(self, vertex_id: int) -> bool:
        """Remove a vertex together with every edge that references it.

        Returns:
            True if the vertex existed, False otherwise
        """
        if vertex_id not in self._vertices:
            return False

        del self._vertices[vertex_id]
        del self._adjacency[vertex_id]

        self._edges = [
            e for e in self._edges
            if e.source.id != vertex_id and e.target.id != vertex_id
        ]
        for source_id, bucket in self._adjacency.items():
            self._adjacency[source_id] = [e for e in bucket if e.target.id != vertex_id]

        return True

    # ------------------------------------------------------------------
    # Edge operations
    # ------------------------------------------------------------------

    def add_edge(
        self,
        edge: Edge | int,
        target_id: int | None = None,
        weight: int = 0,
        edge_type: EdgeType | str | None = None,
        description: str = ""
    ) -> Edge:
        """Add an edge, given either as an :class:`Edge` or as endpoint ids.

        Args:
            edge: An Edge instance, or the source vertex id
            target_id: Target vertex id (required when ``edge`` is an id)
            weight: Edge weight
            edge_type: Dependency kind
            description: Description text

        Returns:
            The stored edge

        Raises:
            VertexNotFoundError: If either endpoint is not in the graph
        """
        if edge is None:
            raise ValueError("Edge cannot be null")

        if isinstance(edge, Edge):
            for endpoint in (edge.source, edge.target):
                if endpoint.id not in self._vertices:
                    raise VertexNotFoundError(
                        endpoint.id, "both vertices must exist before adding an edge"
                    )
            # Endpoints are always the graph's own vertices
            edge = Edge(
                self._vertices[edge.source.id],
                self._vertices[edge.target.id],
                edge.weight,
                edge.type,
                edge.description,
            )
        else:
            source = self._vertices.get(edge)
            target = self._vertices.get(target_id)
            if source is None:
                raise VertexNotFoundError(edge)
            if target is None:
                raise VertexNotFoundError(target_id)
            edge = Edge(source, target, weight, edge_type, description)

        self._edges.append(edge)
        self._adjacency[edge.source.id].append(edge)
        return edge

    def remove_edge(self, source_id: int, target_id: int) -> bool:
        """Remove every edge from ``source_id`` to ``target_id``.

        Returns:
            True if at least one edge was removed
        """
        bucket = self._adjacency.get(source_id)
        if not bucket:
            return False

        kept = [e for e in bucket if e.target.id != target_id]
        if len(kept) == len(bucket):
            return False

        self._adjacency[source_id] = kept
        self._edges = [e for e in self._edges if not e.connects(source_id, target_id)]
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def vertex_count(self) -> int:
        return len(self._vertices)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    @property
    def vertices(self) -> list[Vertex]:
        """Vertices in insertion order."""
        return list(self._vertices.values())

    @property
    def vertex_ids(self) -> list[int]:
        return list(self._vertices.keys())

    @property
    def edges(self) -> list[Edge]:
        """Edges in insertion order."""
        return list(self._edges)

    def __len__(self) -> int:
        return len(self._vertices)

    def __contains__(self, vertex_id: object) -> bool:
        return vertex_id in self._vertices

    def __iter__(self) -> Iterator[Vertex]:
        return iter(list(self._vertices.values()))

    def outgoing_edges(self, vertex_id: int) -> list[Edge]:
        return list(self._adjacency.get(vertex_id, ()))

    def incoming_edges(self, vertex_id: int) -> list[Edge]:
        """Edges entering ``vertex_id``, found by scanning the edge list."""
        return [e for e in self._edges if e.target.id == vertex_id]

    def successors(self, vertex_id: int) -> list[int]:
        return [e.target.id for e in self._adjacency.get(vertex_id, ())]

    def out_degree(self, vertex_id: int) -> int:
        return len(self._adjacency.get(vertex_id, ()))

    def in_degree(self, vertex_id: int) -> int:
        return sum(1 for e in self._edges if e.target.id == vertex_id)

    def in_degrees(self) -> dict[int, int]:
        """In-degree of every vertex, computed in a single pass over the edges."""
        degrees = {vertex_id: 0 for vertex_id in self._vertices}
        for edge in self._edges:
            degrees[edge.target.id] += 1
        return degrees

    def node_duration(self, vertex_id: int) -> int:
        vertex = self._vertices.get(vertex_id)
        return vertex.duration if vertex is not None else 0

    def edge_weight(self, source_id: int, target_id: int) -> int:
        """Weight of the first edge between the pair, or 0 if there is none."""
        for edge in self._adjacency.get(source_id, ()):
            if edge.target.id == target_id:
                return edge.weight
        return 0

    def has_edge(self, source_id: int, target_id: int) -> bool:
        return any(e.target.id == target_id for e in self._adjacency.get(source_id, ()))

    # ------------------------------------------------------------------
    # Derived graphs
    # ------------------------------------------------------------------

    def transpose(self) -> Graph:
        """Return a new graph with value-copied vertices and every edge reversed."""
        transposed = Graph(self.use_node_durations)
        for vertex in self._vertices.values():
            transposed.add_vertex(vertex.copy())
        for edge in self._edges:
            transposed.add_edge(
                edge.target.id, edge.source.id, edge.weight, edge.type, edge.description
            )
        return transposed

    def copy(self) -> Graph:
        """Return a structural deep copy (vertices copied, edge order kept)."""
        duplicate = Graph(self.use_node_durations)
        for vertex in self._vertices.values():
            duplicate.add_vertex(vertex.copy())
        for edge in self._edges:
            duplicate.add_edge(
                edge.source.id, edge.target.id, edge.weight, edge.type, edge.description
            )
        return duplicate

    # ------------------------------------------------------------------
    # Cycle detection and connectivity
    # ------------------------------------------------------------------

    def has_cycle(self) -> bool:
        """Return True if any directed cycle (self-loops included) exists."""
        return bool(self.find_cycle())

    def find_cycle(self) -> list[int]:
        """Find one directed cycle using DFS with an explicit path stack.

        A cycle is reported as soon as an edge points at a vertex that is on
        the current DFS path. The traversal is iterative: each stack frame is
        ``(vertex id, index of the next outgoing edge)``.

        Returns:
            Vertex ids of the cycle closing on its first id, or an empty list
        """
        visited: set[int] = set()
        on_path: dict[int, int] = {}

        for start in self._vertices:
            if start in visited:
                continue

            visited.add(start)
            stack: list[list[int]] = [[start, 0]]
            on_path[start] = 0

            while stack:
                frame = stack[-1]
                vertex_id, position = frame
                bucket = self._adjacency[vertex_id]

                if position == len(bucket):
                    stack.pop()
                    del on_path[vertex_id]
                    continue

                frame[1] = position + 1
                neighbor = bucket[position].target.id

                if neighbor in on_path:
                    cycle = [f[0] for f in stack[on_path[neighbor]:]]
                    cycle.append(neighbor)
                    return cycle
                if neighbor not in visited:
                    visited.add(neighbor)
                    on_path[neighbor] = len(stack)
                    stack.append([neighbor, 0])

        return []

    def is_connected(self) -> bool:
        """Check weak connectivity (edges treated as undirected)."""
        if not self._vertices:
            return True

        neighbors: dict[int, set[int]] = {vertex_id: set() for vertex_id in self._vertices}
        for edge in self._edges:
            neighbors[edge.source.id].add(edge.target.id)
            neighbors[edge.target.id].add(edge.source.id)

        start = next(iter(self._vertices))
        seen = {start}
        pending = [start]
        while pending:
            current = pending.pop()
            for neighbor in neighbors[current]:
                if neighbor not in seen:
                    seen.add(neighbor)
                    pending.append(neighbor)

        return len(seen) == len(self._vertices)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def density(self) -> float:
        n = len(self._vertices)
        if n <= 1:
            return 0.0
        return len(self._edges) / (n * (n - 1))

    def statistics(self) -> GraphStatistics:
        """Return a snapshot of counts, density, acyclicity and degree figures."""
        in_degrees = self.in_degrees()
        types = Counter(vertex.type.name for vertex in self._vertices.values())
        return GraphStatistics(
            vertex_count=self.vertex_count,
            edge_count=self.edge_count,
            density=self.density(),
            has_cycle=self.has_cycle(),
            is_connected=self.is_connected(),
            use_node_durations=self.use_node_durations,
            max_in_degree=max(in_degrees.values(), default=0),
            max_out_degree=max((len(b) for b in self._adjacency.values()), default=0),
            type_distribution=dict(types),
        )

    # ------------------------------------------------------------------
    # Object protocol
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Graph):
            return NotImplemented
        return (
            self.use_node_durations == other.use_node_durations
            and self._vertices == other._vertices
            and self._edges == other._edges
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"Graph(vertices={self.vertex_count}, edges={self.edge_count}, "
            f"use_node_durations={self.use_node_durations})"
        )

    def describe(self) -> str:
        """Multi-line listing of every vertex and its outgoing edges."""
        lines = [
            "Graph {",
            f"  vertices: {self.vertex_count}",
            f"  edges: {self.edge_count}",
            f"  useNodeDurations: {self.use_node_durations}",
            f"  density: {self.density():.3f}",
            "}",
        ]
        for vertex in self._vertices.values():
            targets = ", ".join(
                f"{e.target.id}(w:{e.weight})" for e in self._adjacency[vertex.id]
            )
            lines.append(f"  {vertex.id} {vertex.name!r} -> [{targets}]")
        return "\n".join(lines)
