"""Core graph analysis engine.

This package provides the task graph data model, the three analysis
algorithm families (strongly connected components, topological ordering and
DAG shortest/longest paths) and the supporting configuration, persistence,
generation and metrics layers.

Classes:
    Graph: Directed task graph with ordered adjacency
    Vertex: Task with duration and category
    Edge: Weighted dependency between two tasks
    SCCFinder: Tarjan/Kosaraju components and condensation
    TopologicalSorter: Kahn/DFS ordering, levels, condensation order
    DAGPathSolver: Shortest, longest and critical paths on DAGs
    MetricsCollector: Counters, timers and series across runs
    AnalysisConfig: Settings for an analysis run
    GraphGenerator: Seeded random graph and dataset generation
"""

from taskgraph.core.config import AnalysisConfig, load_config, save_config
from taskgraph.core.dag_paths import (
    RELAXATION_RULES,
    CriticalPathResult,
    DAGPathSolver,
    PathDirection,
    PathMetrics,
    ShortestPathResult,
    WeightMode,
)
from taskgraph.core.generator import GenerationConfig, GraphGenerator
from taskgraph.core.graph_io import (
    GraphFormatError,
    graph_from_dict,
    graph_from_json,
    graph_to_dict,
    graph_to_json,
    is_valid_graph_file,
    is_valid_graph_json,
    json_template,
    load_datasets,
    load_graph,
    load_graphs_from_directory,
    save_graph,
    write_datasets,
)
from taskgraph.core.graph_model import (
    CondensationNotBuiltError,
    CyclicGraphError,
    DuplicateVertexError,
    Edge,
    EdgeType,
    Graph,
    GraphError,
    GraphStatistics,
    MissingPredecessorsError,
    Vertex,
    VertexNotFoundError,
    VertexType,
)
from taskgraph.core.metrics import MetricsCollector
from taskgraph.core.scc_finder import SCCFinder, SCCMetrics, SCCResult
from taskgraph.core.topological_sort import (
    TopologicalMetrics,
    TopologicalResult,
    TopologicalSorter,
)

__all__ = [
    # Model
    "Graph",
    "Vertex",
    "Edge",
    "VertexType",
    "EdgeType",
    "GraphStatistics",
    # Errors
    "GraphError",
    "DuplicateVertexError",
    "VertexNotFoundError",
    "CyclicGraphError",
    "CondensationNotBuiltError",
    "MissingPredecessorsError",
    "GraphFormatError",
    # Algorithms
    "SCCFinder",
    "SCCResult",
    "SCCMetrics",
    "TopologicalSorter",
    "TopologicalResult",
    "TopologicalMetrics",
    "DAGPathSolver",
    "ShortestPathResult",
    "CriticalPathResult",
    "PathMetrics",
    "WeightMode",
    "PathDirection",
    "RELAXATION_RULES",
    # Support
    "MetricsCollector",
    "AnalysisConfig",
    "load_config",
    "save_config",
    "GenerationConfig",
    "GraphGenerator",
    "graph_to_dict",
    "graph_from_dict",
    "graph_to_json",
    "graph_from_json",
    "is_valid_graph_json",
    "is_valid_graph_file",
    "json_template",
    "save_graph",
    "load_graph",
    "load_graphs_from_directory",
    "load_datasets",
    "write_datasets",
]
