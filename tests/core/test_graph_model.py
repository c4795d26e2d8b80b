"""Tests for the task graph data model.

This test suite covers:
- Vertex creation, normalization and identity
- Edge creation, equality and helpers
- Graph construction, removal cascades and queries
- Transpose and copy
- Cycle detection and connectivity
- Statistics
"""

from __future__ import annotations

import pytest

from taskgraph.core.graph_model import (
    CyclicGraphError,
    DuplicateVertexError,
    Edge,
    EdgeType,
    Graph,
    Vertex,
    VertexNotFoundError,
    VertexType,
)
from tests.core.conftest import build_graph


# ============================================================================
# Test Class: TestVertex
# ============================================================================


class TestVertex:
    """Test Vertex creation and validation."""

    def test_vertex_creation(self) -> None:
        """Verify vertex initialization with all fields."""
        vertex = Vertex(3, "Repairs: Bridge", 7, VertexType.REPAIRS, "Fix the railing")

        assert vertex.id == 3
        assert vertex.name == "Repairs: Bridge"
        assert vertex.duration == 7
        assert vertex.type is VertexType.REPAIRS
        assert vertex.description == "Fix the railing"

    def test_name_is_stripped(self) -> None:
        assert Vertex(0, "  Survey  ").name == "Survey"

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_blank_name_rejected(self, name) -> None:
        """Test that blank names raise ValueError."""
        with pytest.raises(ValueError, match="name"):
            Vertex(0, name)

    def test_rename_to_blank_rejected(self) -> None:
        vertex = Vertex(0, "Survey")
        with pytest.raises(ValueError):
            vertex.name = "  "
        assert vertex.name == "Survey"

    def test_negative_id_rejected(self) -> None:
        with pytest.raises(ValueError, match="negative"):
            Vertex(-1, "Bad")

    def test_id_is_immutable(self) -> None:
        vertex = Vertex(1, "Task")
        with pytest.raises(AttributeError):
            vertex.id = 2

    def test_negative_duration_clamped(self) -> None:
        """Negative durations become zero on creation and on assignment."""
        vertex = Vertex(0, "Task", -5)
        assert vertex.duration == 0

        vertex.duration = -1
        assert vertex.duration == 0

    def test_type_defaults_to_other(self) -> None:
        assert Vertex(0, "Task").type is VertexType.OTHER
        assert Vertex(0, "Task", 1, None).type is VertexType.OTHER

    def test_type_parsed_from_name(self) -> None:
        assert Vertex(0, "Task", 1, "safety").type is VertexType.SAFETY
        assert Vertex(0, "Task", 1, "NOT_A_TYPE").type is VertexType.OTHER

    def test_description_none_becomes_empty(self) -> None:
        assert Vertex(0, "Task", description=None).description == ""

    def test_vertex_equality(self) -> None:
        """Test __eq__() and __hash__() use the id only."""
        first = Vertex(1, "A", 1)
        second = Vertex(1, "B", 9)
        third = Vertex(2, "A", 1)

        assert first == second
        assert hash(first) == hash(second)
        assert first != third
        assert len({first, second, third}) == 2

    def test_copy_is_independent(self) -> None:
        original = Vertex(1, "A", 4, VertexType.TRANSPORT)
        duplicate = original.copy()

        duplicate.name = "B"
        assert original.name == "A"
        assert duplicate.type is VertexType.TRANSPORT

    @pytest.mark.parametrize(
        "duration,vertex_type,expected",
        [
            (11, VertexType.OTHER, True),
            (10, VertexType.OTHER, False),
            (1, VertexType.SAFETY, True),
            (1, VertexType.UTILITIES, True),
            (1, VertexType.REPAIRS, False),
        ],
    )
    def test_is_critical_task(self, duration, vertex_type, expected) -> None:
        assert Vertex(0, "Task", duration, vertex_type).is_critical_task() is expected

    def test_vertex_type_metadata(self) -> None:
        assert VertexType.SENSOR_MONITORING.display_name == "Sensor Monitoring"
        assert VertexType.SENSOR_MONITORING.code == "SENSOR"


# ============================================================================
# Test Class: TestEdge
# ============================================================================


class TestEdge:
    """Test Edge creation and helpers."""

    def test_edge_creation(self) -> None:
        a, b = Vertex(0, "A"), Vertex(1, "B")
        edge = Edge(a, b, 4, EdgeType.DATA_FLOW, " sensor feed ")

        assert edge.source is a
        assert edge.target is b
        assert edge.weight == 4
        assert edge.type is EdgeType.DATA_FLOW
        assert edge.description == "sensor feed"

    def test_edge_default_values(self) -> None:
        edge = Edge(Vertex(0, "A"), Vertex(1, "B"))
        assert edge.weight == 0
        assert edge.type is EdgeType.OTHER
        assert edge.description == ""

    def test_missing_endpoint_rejected(self) -> None:
        with pytest.raises(ValueError, match="Source"):
            Edge(None, Vertex(1, "B"))
        with pytest.raises(ValueError, match="Target"):
            Edge(Vertex(0, "A"), None)

    def test_edge_equality(self) -> None:
        """Edges compare by endpoints and weight, not by type."""
        a, b = Vertex(0, "A"), Vertex(1, "B")
        assert Edge(a, b, 2, EdgeType.DATA_FLOW) == Edge(a, b, 2, EdgeType.OTHER)
        assert Edge(a, b, 2) != Edge(a, b, 3)
        assert Edge(a, b, 2) != Edge(b, a, 2)
        assert len({Edge(a, b, 2), Edge(a, b, 2)}) == 1

    def test_self_loop_detection(self) -> None:
        a = Vertex(0, "A")
        assert Edge(a, a).is_self_loop()
        assert not Edge(a, Vertex(1, "B")).is_self_loop()

    def test_connects_and_reversed(self) -> None:
        edge = Edge(Vertex(0, "A"), Vertex(1, "B"), 3, EdgeType.TEMPORAL_CONSTRAINT)
        back = edge.reversed()

        assert edge.connects(0, 1)
        assert not edge.connects(1, 0)
        assert back.connects(1, 0)
        assert back.weight == 3
        assert back.type is EdgeType.TEMPORAL_CONSTRAINT

    def test_inverse_weight(self) -> None:
        assert Edge(Vertex(0, "A"), Vertex(1, "B"), 6).inverse_weight == -6

    @pytest.mark.parametrize(
        "weight,edge_type,expected",
        [
            (6, EdgeType.OTHER, True),
            (5, EdgeType.OTHER, False),
            (0, EdgeType.TEMPORAL_CONSTRAINT, True),
            (0, EdgeType.PHYSICAL_CONSTRAINT, True),
            (0, EdgeType.DATA_FLOW, False),
        ],
    )
    def test_is_critical(self, weight, edge_type, expected) -> None:
        edge = Edge(Vertex(0, "A"), Vertex(1, "B"), weight, edge_type)
        assert edge.is_critical() is expected


# ============================================================================
# Test Class: TestGraphConstruction
# ============================================================================


class TestGraphConstruction:
    """Test adding and removing vertices and edges."""

    def test_add_vertex_by_fields(self) -> None:
        graph = Graph()
        vertex = graph.add_vertex(0, "Survey", 2, VertexType.MAINTENANCE)

        assert graph.get_vertex(0) is vertex
        assert graph.contains_vertex(0)
        assert 0 in graph
        assert len(graph) == 1

    def test_add_vertex_instance(self) -> None:
        graph = Graph()
        vertex = Vertex(5, "Inspect")
        assert graph.add_vertex(vertex) is vertex
        assert graph.vertex_ids == [5]

    def test_duplicate_vertex_rejected(self) -> None:
        graph = Graph()
        graph.add_vertex(0, "A")

        with pytest.raises(DuplicateVertexError) as exc_info:
            graph.add_vertex(0, "B")
        assert exc_info.value.vertex_id == 0
        assert graph.get_vertex(0).name == "A"

    def test_add_edge_requires_endpoints(self) -> None:
        graph = Graph()
        graph.add_vertex(0, "A")

        with pytest.raises(VertexNotFoundError) as exc_info:
            graph.add_edge(0, 9)
        assert exc_info.value.vertex_id == 9
        assert graph.edge_count == 0

    def test_add_edge_instance_requires_endpoints(self) -> None:
        graph = Graph()
        a = graph.add_vertex(0, "A")
        with pytest.raises(VertexNotFoundError):
            graph.add_edge(Edge(a, Vertex(1, "B")))

    def test_add_edge_instance_uses_graph_vertices(self) -> None:
        """A prebuilt Edge is stored against the graph's own vertices."""
        graph = Graph()
        a = graph.add_vertex(0, "A", 2)
        b = graph.add_vertex(1, "B", 3)

        stored = graph.add_edge(Edge(Vertex(0, "Other A", 50), Vertex(1, "Other B"), 4))

        assert stored.source is a
        assert stored.target is b
        assert stored.weight == 4
        assert graph.edges[0] is stored
        assert graph.get_vertex(0).duration == 2

    def test_edges_keep_insertion_order(self) -> None:
        graph = build_graph([1, 1, 1], [(0, 2), (0, 1), (1, 2)])
        assert [(e.source.id, e.target.id) for e in graph.edges] == [(0, 2), (0, 1), (1, 2)]
        assert graph.successors(0) == [2, 1]

    def test_remove_vertex_cascades(self) -> None:
        """Removing a vertex removes every edge touching it."""
        graph = build_graph([1, 1, 1], [(0, 1), (1, 2), (2, 0), (0, 2)])

        assert graph.remove_vertex(1) is True
        assert not graph.contains_vertex(1)
        assert graph.edge_count == 2
        assert all(1 not in (e.source.id, e.target.id) for e in graph.edges)
        assert graph.successors(0) == [2]
        assert graph.remove_vertex(1) is False

    def test_remove_edge_removes_parallel_edges(self) -> None:
        graph = build_graph([1, 1], [(0, 1, 2), (0, 1, 5)])

        assert graph.remove_edge(0, 1) is True
        assert graph.edge_count == 0
        assert graph.outgoing_edges(0) == []
        assert graph.remove_edge(0, 1) is False

    def test_adjacency_matches_edge_list(self, two_cycles_with_tail: Graph) -> None:
        graph = two_cycles_with_tail
        from_buckets = [e for v in graph.vertex_ids for e in graph.outgoing_edges(v)]
        assert sorted(from_buckets, key=id) == sorted(graph.edges, key=id)


# ============================================================================
# Test Class: TestGraphQueries
# ============================================================================


class TestGraphQueries:
    """Test degree, weight and derived-graph queries."""

    def test_degrees(self, worked_dag: Graph) -> None:
        assert worked_dag.out_degree(0) == 2
        assert worked_dag.in_degree(3) == 2
        assert worked_dag.in_degrees() == {0: 0, 1: 1, 2: 1, 3: 2, 4: 1}
        assert [e.source.id for e in worked_dag.incoming_edges(3)] == [1, 2]

    def test_unknown_vertex_queries(self, worked_dag: Graph) -> None:
        assert worked_dag.get_vertex(99) is None
        assert worked_dag.outgoing_edges(99) == []
        assert worked_dag.node_duration(99) == 0
        assert worked_dag.edge_weight(4, 0) == 0

    def test_edge_weight_first_edge_wins(self) -> None:
        graph = build_graph([1, 1], [(0, 1, 3), (0, 1, 8)])
        assert graph.edge_weight(0, 1) == 3

    def test_transpose(self, weighted_dag: Graph) -> None:
        transposed = weighted_dag.transpose()

        assert transposed.vertex_count == weighted_dag.vertex_count
        assert transposed.edge_count == weighted_dag.edge_count
        assert transposed.use_node_durations is False
        assert transposed.edge_weight(2, 0) == 7
        assert transposed.get_vertex(0) is not weighted_dag.get_vertex(0)

    def test_copy_is_deep(self, worked_dag: Graph) -> None:
        duplicate = worked_dag.copy()
        assert duplicate == worked_dag

        duplicate.remove_vertex(4)
        duplicate.get_vertex(0).name = "Renamed"
        assert worked_dag.vertex_count == 5
        assert worked_dag.get_vertex(0).name == "Task 0"

    def test_density(self) -> None:
        assert Graph().density() == 0.0
        assert build_graph([1], []).density() == 0.0
        assert build_graph([1, 1], [(0, 1), (1, 0)]).density() == 1.0
        assert build_graph([1, 1, 1], [(0, 1)]).density() == pytest.approx(1 / 6)

    def test_iteration_order(self, worked_dag: Graph) -> None:
        assert [v.id for v in worked_dag] == [0, 1, 2, 3, 4]


# ============================================================================
# Test Class: TestCycleDetection
# ============================================================================


class TestCycleDetection:
    """Test has_cycle(), find_cycle() and connectivity."""

    def test_dag_has_no_cycle(self, worked_dag: Graph) -> None:
        assert worked_dag.has_cycle() is False
        assert worked_dag.find_cycle() == []

    def test_three_cycle(self, three_cycle: Graph) -> None:
        cycle = three_cycle.find_cycle()
        assert three_cycle.has_cycle() is True
        assert cycle[0] == cycle[-1]
        assert sorted(set(cycle)) == [0, 1, 2]

    def test_self_loop_is_cycle(self) -> None:
        graph = build_graph([1, 1], [(0, 1), (1, 1)])
        assert graph.has_cycle() is True
        assert graph.find_cycle() == [1, 1]

    def test_cycle_found_from_later_root(self) -> None:
        graph = build_graph([1, 1, 1, 1], [(0, 1), (2, 3), (3, 2)])
        assert graph.find_cycle() == [2, 3, 2]

    def test_long_chain_does_not_recurse(self) -> None:
        """Deep chains are handled without hitting the recursion limit."""
        size = 5000
        graph = build_graph([1] * size, [(i, i + 1) for i in range(size - 1)])
        assert graph.has_cycle() is False

        graph.add_edge(size - 1, 0)
        assert graph.has_cycle() is True

    def test_is_connected(self) -> None:
        assert Graph().is_connected() is True
        assert build_graph([1, 1, 1], [(0, 1), (2, 1)]).is_connected() is True
        assert build_graph([1, 1, 1], [(0, 1)]).is_connected() is False

    def test_cyclic_graph_error_message(self) -> None:
        error = CyclicGraphError([0, 1, 2, 0])
        assert error.cycle == [0, 1, 2, 0]
        assert "0 -> 1 -> 2 -> 0" in str(error)


# ============================================================================
# Test Class: TestStatistics
# ============================================================================


class TestStatistics:
    """Test GraphStatistics snapshots."""

    def test_statistics(self, worked_dag: Graph) -> None:
        worked_dag.get_vertex(0).type = VertexType.SAFETY
        stats = worked_dag.statistics()

        assert stats.vertex_count == 5
        assert stats.edge_count == 5
        assert stats.has_cycle is False
        assert stats.is_connected is True
        assert stats.max_in_degree == 2
        assert stats.max_out_degree == 2
        assert stats.type_distribution == {"SAFETY": 1, "OTHER": 4}

    def test_statistics_to_dict(self, three_cycle: Graph) -> None:
        data = three_cycle.statistics().to_dict()

        assert data["vertexCount"] == 3
        assert data["edgeCount"] == 3
        assert data["hasCycle"] is True
        assert data["useNodeDurations"] is True
        assert data["density"] == pytest.approx(0.5)

    def test_empty_graph_statistics(self, empty_graph: Graph) -> None:
        stats = empty_graph.statistics()
        assert stats.vertex_count == 0
        assert stats.max_in_degree == 0
        assert stats.type_distribution == {}
