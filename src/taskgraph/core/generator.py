"""Seeded random task graph generation.

Produces city-service task graphs for experiments and for the bundled
small/medium/large datasets. Every generator owns a private
:class:`random.Random`, so two generators built with the same seed and
configuration produce identical graphs.

Example:
    >>> generator = GraphGenerator(GenerationConfig(vertex_count=12, density=0.25), seed=7)
    >>> dag = generator.dag()
    >>> dag.has_cycle()
    False
    >>> datasets = generator.assignment_datasets()
    >>> sorted(datasets)
    ['large', 'medium', 'small']
"""

from __future__ import annotations

import random
from dataclasses import asdict, dataclass, replace
from typing import Any

from taskgraph.core.graph_model import Graph, VertexType
from taskgraph.utils.logger import get_logger

logger = get_logger("taskgraph.core.generator")

TASK_TYPES = [
    VertexType.STREET_CLEANING,
    VertexType.REPAIRS,
    VertexType.MAINTENANCE,
    VertexType.SENSOR_MONITORING,
    VertexType.DATA_ANALYTICS,
    VertexType.TRANSPORT,
    VertexType.SAFETY,
    VertexType.UTILITIES,
]

LOCATIONS = [
    "Downtown",
    "Suburbs",
    "Industrial Zone",
    "Residential Area",
    "City Center",
    "Park",
    "Highway",
    "Bridge",
]


@dataclass
class GenerationConfig:
    """Shape of generated graphs.

    Attributes:
        vertex_count: Number of vertices
        density: Fraction of the ``V * (V - 1)`` possible edges to create
        allow_cycles: When False, edges against a random ranking are dropped
        use_node_durations: Weight mode of generated graphs
        min_duration: Smallest vertex duration
        max_duration: Largest vertex duration
        min_edge_weight: Smallest edge weight
        max_edge_weight: Largest edge weight
    """

    vertex_count: int = 10
    density: float = 0.3
    allow_cycles: bool = True
    use_node_durations: bool = True
    min_duration: int = 1
    max_duration: int = 10
    min_edge_weight: int = 1
    max_edge_weight: int = 5

    def validate(self) -> None:
        """Raise ValueError for impossible settings."""
        if self.vertex_count < 0:
            raise ValueError(f"vertex_count cannot be negative: {self.vertex_count}")
        if not 0.0 <= self.density <= 1.0:
            raise ValueError(f"density must be between 0 and 1, got {self.density}")
        if self.min_duration < 0 or self.min_duration > self.max_duration:
            raise ValueError(
                f"Invalid duration range: {self.min_duration}..{self.max_duration}"
            )
        if self.min_edge_weight > self.max_edge_weight:
            raise ValueError(
                f"Invalid edge weight range: {self.min_edge_weight}..{self.max_edge_weight}"
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class GraphGenerator:
    """Builds random task graphs from a :class:`GenerationConfig`."""

    def __init__(self, config: GenerationConfig | None = None, seed: int | None = None) -> None:
        self.config = config if config is not None else GenerationConfig()
        self.config.validate()
        self.seed = seed
        self._random = random.Random(seed)

    # ------------------------------------------------------------------
    # Single graphs
    # ------------------------------------------------------------------

    def random_graph(self) -> Graph:
        """Random graph with density-driven edges and no self-loops or duplicates.

        With ``allow_cycles=False`` the vertices get a shuffled ranking and
        every edge that does not go from a lower to a higher rank is removed.
        """
        graph = Graph(self.config.use_node_durations)
        self._create_vertices(graph)
        self._create_edges(graph)

        if not self.config.allow_cycles:
            self._ensure_acyclic(graph)

        logger.debug(
            f"Generated random graph: {graph.vertex_count} vertices, {graph.edge_count} edges"
        )
        return graph

    def dag(self) -> Graph:
        return self._derived(allow_cycles=False).random_graph()

    def complete_graph(self) -> Graph:
        return self._derived(density=1.0).random_graph()

    def sparse_graph(self) -> Graph:
        return self._derived(density=0.1).random_graph()

    def graph_with_sccs(self, component_count: int) -> Graph:
        """Graph made of ``component_count`` strongly connected blocks.

        Vertices are split into consecutive blocks of near-equal size. Each
        block of two or more vertices is closed into a ring and gets a few
        random chords; edges between blocks only go from a lower to a higher
        block index, so the blocks are exactly the graph's components.

        Raises:
            ValueError: If component_count is not between 1 and vertex_count
        """
        if component_count < 1:
            raise ValueError("Component count must be positive")
        if component_count > self.config.vertex_count:
            raise ValueError("Component count cannot exceed vertex count")

        graph = Graph(self.config.use_node_durations)
        self._create_vertices(graph)

        blocks: list[list[int]] = []
        next_id = 0
        for size in self._distribute(self.config.vertex_count, component_count):
            block = list(range(next_id, next_id + size))
            next_id += size
            blocks.append(block)
            self._connect_strongly(graph, block)

        attempts = int(self.config.vertex_count * self.config.density)
        for _ in range(attempts):
            from_block = self._random.randrange(component_count)
            to_block = self._random.randrange(component_count)
            if from_block >= to_block:
                continue

            source = self._random.choice(blocks[from_block])
            target = self._random.choice(blocks[to_block])
            if not graph.has_edge(source, target):
                graph.add_edge(source, target, self._edge_weight())

        logger.debug(
            f"Generated graph with {component_count} components: "
            f"{graph.vertex_count} vertices, {graph.edge_count} edges"
        )
        return graph

    # ------------------------------------------------------------------
    # Fixed datasets
    # ------------------------------------------------------------------

    def small_datasets(self) -> list[Graph]:
        """Three graphs with 6-10 vertices: a DAG, a cyclic graph, three SCC blocks."""
        return [
            self._dataset(1, GenerationConfig(
                vertex_count=8, density=0.4, allow_cycles=False,
                min_duration=1, max_duration=8, min_edge_weight=1, max_edge_weight=3,
            )).random_graph(),
            self._dataset(2, GenerationConfig(
                vertex_count=7, density=0.5, allow_cycles=True,
                min_duration=2, max_duration=10, min_edge_weight=1, max_edge_weight=5,
            )).random_graph(),
            self._dataset(3, GenerationConfig(
                vertex_count=9, density=0.3, allow_cycles=True,
            )).graph_with_sccs(3),
        ]

    def medium_datasets(self) -> list[Graph]:
        """Three graphs with 10-20 vertices: several SCCs, dense, sparse cyclic."""
        return [
            self._dataset(4, GenerationConfig(
                vertex_count=15, density=0.3, allow_cycles=True,
                min_duration=1, max_duration=12, min_edge_weight=1, max_edge_weight=4,
            )).graph_with_sccs(4),
            self._dataset(5, GenerationConfig(
                vertex_count=12, density=0.7, allow_cycles=True, use_node_durations=False,
                min_edge_weight=1, max_edge_weight=8,
            )).random_graph(),
            self._dataset(6, GenerationConfig(
                vertex_count=18, density=0.2, allow_cycles=True,
                min_duration=3, max_duration=15, min_edge_weight=2, max_edge_weight=6,
            )).random_graph(),
        ]

    def large_datasets(self) -> list[Graph]:
        """Three graphs with 20-50 vertices: dense, sparse DAG, six SCC blocks."""
        return [
            self._dataset(7, GenerationConfig(
                vertex_count=35, density=0.6, allow_cycles=True,
                min_duration=5, max_duration=20, min_edge_weight=1, max_edge_weight=10,
            )).random_graph(),
            self._dataset(8, GenerationConfig(
                vertex_count=40, density=0.15, allow_cycles=False, use_node_durations=False,
                min_edge_weight=1, max_edge_weight=12,
            )).random_graph(),
            self._dataset(9, GenerationConfig(
                vertex_count=30, density=0.4, allow_cycles=True,
                min_duration=2, max_duration=25, min_edge_weight=1, max_edge_weight=7,
            )).graph_with_sccs(6),
        ]

    def assignment_datasets(self) -> dict[str, list[Graph]]:
        return {
            "small": self.small_datasets(),
            "medium": self.medium_datasets(),
            "large": self.large_datasets(),
        }

    @staticmethod
    def dataset_statistics(datasets: dict[str, list[Graph]]) -> dict[str, list[dict[str, Any]]]:
        """Per-category list of graph statistics tagged with a dataset name."""
        statistics: dict[str, list[dict[str, Any]]] = {}
        for category, graphs in datasets.items():
            entries = []
            for number, graph in enumerate(graphs, start=1):
                stats = graph.statistics().to_dict()
                stats["datasetName"] = f"{category}_graph_{number}"
                entries.append(stats)
            statistics[category] = entries
        return statistics

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _derived(self, **changes: Any) -> GraphGenerator:
        return GraphGenerator(replace(self.config, **changes), self._random.getrandbits(63))

    def _dataset(self, number: int, config: GenerationConfig) -> GraphGenerator:
        # Fixed datasets depend only on the generator seed, not on prior calls
        base = self.seed if self.seed is not None else 0
        return GraphGenerator(config, base * 100 + number)

    def _duration(self) -> int:
        return self._random.randint(self.config.min_duration, self.config.max_duration)

    def _edge_weight(self) -> int:
        return self._random.randint(self.config.min_edge_weight, self.config.max_edge_weight)

    def _create_vertices(self, graph: Graph) -> None:
        for vertex_id in range(self.config.vertex_count):
            task_type = self._random.choice(TASK_TYPES)
            location = self._random.choice(LOCATIONS)
            graph.add_vertex(
                vertex_id,
                f"{task_type.display_name}: {location}",
                self._duration(),
                task_type,
            )

    def _create_edges(self, graph: Graph) -> None:
        n = self.config.vertex_count
        max_edges = n * (n - 1)
        target = int(max_edges * self.config.density)

        created = 0
        attempts = 0
        while created < target and attempts < max_edges * 2:
            attempts += 1
            source = self._random.randrange(n)
            target_id = self._random.randrange(n)
            if source == target_id or graph.has_edge(source, target_id):
                continue
            graph.add_edge(source, target_id, self._edge_weight())
            created += 1

    def _ensure_acyclic(self, graph: Graph) -> None:
        ranks = list(range(self.config.vertex_count))
        self._random.shuffle(ranks)

        for edge in graph.edges:
            if ranks[edge.source.id] >= ranks[edge.target.id]:
                graph.remove_edge(edge.source.id, edge.target.id)

    def _connect_strongly(self, graph: Graph, block: list[int]) -> None:
        if len(block) < 2:
            return

        for position, source in enumerate(block):
            target = block[(position + 1) % len(block)]
            graph.add_edge(source, target, self._edge_weight())

        chords = len(block) * (len(block) - 1) // 4
        for _ in range(chords):
            source = self._random.choice(block)
            target = self._random.choice(block)
            if source != target and not graph.has_edge(source, target):
                graph.add_edge(source, target, self._edge_weight())

    @staticmethod
    def _distribute(total: int, parts: int) -> list[int]:
        base, remainder = divmod(total, parts)
        return [base + (1 if i < remainder else 0) for i in range(parts)]
