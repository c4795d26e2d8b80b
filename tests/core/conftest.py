"""Shared fixtures and helpers for graph analysis tests."""

from __future__ import annotations

from collections import deque

import pytest

from taskgraph.core.graph_model import Graph, Vertex


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------

def build_graph(
    durations: list[int],
    edges: list[tuple[int, int] | tuple[int, int, int]],
    use_node_durations: bool = True
) -> Graph:
    """Build a graph with vertices 0..n-1 and the given (source, target[, weight]) edges."""
    graph = Graph(use_node_durations)
    for vertex_id, duration in enumerate(durations):
        graph.add_vertex(vertex_id, f"Task {vertex_id}", duration)
    for edge in edges:
        graph.add_edge(*edge)
    return graph


def assert_topological_order(order: list[Vertex], graph: Graph) -> None:
    """Verify that every edge goes forward in ``order`` and all vertices appear once."""
    ids = [v.id for v in order]
    assert sorted(ids) == sorted(graph.vertex_ids)
    position = {vertex_id: i for i, vertex_id in enumerate(ids)}
    for edge in graph.edges:
        assert position[edge.source.id] < position[edge.target.id], (
            f"Edge {edge.source.id} -> {edge.target.id} violates the order"
        )


def reachable_from(graph: Graph, source_id: int) -> set[int]:
    """Independent BFS reachability."""
    seen = {source_id}
    queue = deque([source_id])
    while queue:
        current = queue.popleft()
        for target in graph.successors(current):
            if target not in seen:
                seen.add(target)
                queue.append(target)
    return seen


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def worked_dag() -> Graph:
    """Five tasks with durations [2, 3, 1, 4, 2] and a diamond into a tail."""
    return build_graph(
        [2, 3, 1, 4, 2],
        [(0, 1), (0, 2), (1, 3), (2, 3), (3, 4)],
    )


@pytest.fixture
def weighted_dag() -> Graph:
    """Edge-weighted DAG where the heaviest and lightest routes differ."""
    return build_graph(
        [1, 1, 1, 1, 1],
        [(0, 1, 2), (0, 2, 7), (1, 3, 1), (2, 3, 3), (3, 4, 4), (1, 4, 20)],
        use_node_durations=False,
    )


@pytest.fixture
def three_cycle() -> Graph:
    """Three tasks depending on each other in a ring."""
    return build_graph([1, 2, 3], [(0, 1), (1, 2), (2, 0)])


@pytest.fixture
def two_cycles_with_tail() -> Graph:
    """Two rings {0,1,2} and {3,4} joined by 2 -> 3, plus a tail 4 -> 5."""
    return build_graph(
        [1, 2, 3, 4, 5, 6],
        [(0, 1, 1), (1, 2, 1), (2, 0, 1), (2, 3, 5), (3, 4, 1), (4, 3, 1), (4, 5, 2)],
    )


@pytest.fixture
def empty_graph() -> Graph:
    return Graph()
