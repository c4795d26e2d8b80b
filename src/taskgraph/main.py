"""
Command line entry point for the task graph analyzer.

Subcommands:
    analyze   Run SCC detection, ordering and critical path on a graph file
    generate  Write the bundled small/medium/large datasets as JSON files

Example:
    $ taskgraph generate data --seed 42
    $ taskgraph analyze data/small/small_graph_2.json --scc kosaraju --output report.json
    $ python -m taskgraph.main analyze graph.json --log-level DEBUG
"""

from __future__ import annotations

import argparse
import json
import math
import sys
from pathlib import Path
from typing import Any

from taskgraph import __version__
from taskgraph.core.config import AnalysisConfig, load_config
from taskgraph.core.dag_paths import DAGPathSolver, PathDirection, ShortestPathResult
from taskgraph.core.generator import GraphGenerator
from taskgraph.core.graph_io import load_graph, write_datasets
from taskgraph.core.graph_model import Graph, GraphError
from taskgraph.core.metrics import MetricsCollector
from taskgraph.core.scc_finder import SCC_ALGORITHMS, SCCFinder
from taskgraph.core.topological_sort import TOPO_ALGORITHMS, TopologicalSorter
from taskgraph.utils.logger import VALID_LOG_LEVELS, get_logger, setup_logger

APP_NAME = "taskgraph"

logger = get_logger("taskgraph.main")


# ============================================================================
# Analysis Pipeline
# ============================================================================


def _json_distance(value: int | float) -> int | None:
    """Unreachable sentinels have no JSON form; report them as null."""
    return None if math.isinf(value) else int(value)


def _distance_report(solver: DAGPathSolver, result: ShortestPathResult) -> dict[str, Any]:
    reachable = [vertex_id for vertex_id in result.distances if result.is_reachable(vertex_id)]
    return {
        "source": result.source_id,
        "distances": {
            str(vertex_id): _json_distance(distance)
            for vertex_id, distance in result.distances.items()
        },
        "paths": {
            str(vertex_id): [v.id for v in solver.reconstruct_path(result, vertex_id)]
            for vertex_id in reachable
        },
    }


def analyze_graph(
    graph: Graph,
    config: AnalysisConfig,
    collector: MetricsCollector | None = None
) -> dict[str, Any]:
    """Run the full analysis pipeline and return a JSON-ready report.

    Components are found first and condensed. Acyclic graphs are ordered and
    measured directly; cyclic graphs are ordered through their condensation
    and paths are measured on the condensation, where vertex ids are
    component indices.

    Args:
        graph: Graph to analyze
        config: Validated analysis settings
        collector: Optional collector that receives every run's metrics

    Returns:
        Report dictionary
    """
    collector = collector if collector is not None else MetricsCollector()

    if config.use_node_durations is not None:
        graph = graph.copy()
        graph.use_node_durations = config.use_node_durations

    report: dict[str, Any] = {
        "config": config.to_dict(),
        "graph": graph.statistics().to_dict(),
    }

    # Strongly connected components
    finder = SCCFinder(graph)
    with collector.timer("scc"):
        components = finder.find_components(config.scc_algorithm)
        condensation = finder.build_condensation()
    collector.record_scc(finder.metrics())
    logger.info(
        f"Found {len(components)} strongly connected components "
        f"({config.scc_algorithm})"
    )

    report["scc"] = {
        "components": [[v.id for v in component] for component in components],
        "metrics": finder.metrics().to_dict(),
    }
    if config.options.get("report_components", True):
        report["scc"]["details"] = finder.component_details()

    # Topological order
    sorter = TopologicalSorter(graph)
    acyclic = not graph.has_cycle()
    with collector.timer("topo"):
        if acyclic:
            order = sorter.sort(config.topo_algorithm)
            component_order = None
        else:
            result = sorter.complete_order(finder)
            order = list(result.vertex_order)
            component_order = list(result.component_order)
    collector.record_topological(sorter.metrics())

    report["topological"] = {
        "acyclic": acyclic,
        "order": [v.id for v in order],
        "component_order": component_order,
        "sources": [v.id for v in sorter.source_vertices()],
        "sinks": [v.id for v in sorter.sink_vertices()],
        "metrics": sorter.metrics().to_dict(),
    }
    if config.options.get("report_levels", False) and acyclic:
        report["topological"]["levels"] = {
            str(vertex_id): level for vertex_id, level in sorter.levels(order).items()
        }

    # Paths
    path_graph = graph if acyclic else condensation
    solver = DAGPathSolver(path_graph)
    report["paths"] = {"graph": "original" if acyclic else "condensation"}

    if config.compute_critical_path:
        with collector.timer("critical_path"):
            critical = solver.critical_path()
        collector.record_paths(solver.metrics())
        report["paths"]["critical"] = critical.to_dict()
        logger.info(f"Critical path {critical.path_ids} with length {critical.length}")

    source = config.source_vertex
    if source is not None:
        if not graph.contains_vertex(source):
            raise ValueError(f"Source vertex {source} is not in the graph")
        path_source = source if acyclic else finder.component_of(source)
        shortest = solver.distances_with_paths(path_source, PathDirection.SHORTEST)
        longest = solver.distances_with_paths(path_source, PathDirection.LONGEST)
        report["paths"]["shortest"] = _distance_report(solver, shortest)
        report["paths"]["longest"] = _distance_report(solver, longest)

    report["metrics"] = collector.snapshot()
    return report


def print_summary(report: dict[str, Any]) -> None:
    graph = report["graph"]
    scc = report["scc"]
    topo = report["topological"]

    print(f"Graph: {graph['vertexCount']} vertices, {graph['edgeCount']} edges, "
          f"density={graph['density']:.3f}, cyclic={graph['hasCycle']}")
    print(f"Strongly connected components: {len(scc['components'])}")
    for index, members in enumerate(scc["components"]):
        print(f"  Component {index}: {members}")
    print(f"Topological order: {topo['order']}")
    if topo["component_order"] is not None:
        print(f"Component order: {topo['component_order']}")

    critical = report["paths"].get("critical")
    if critical is not None:
        print(f"Critical path ({report['paths']['graph']}): {critical['path']} "
              f"length={critical['length']}")


# ============================================================================
# Argument Parsing
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Analyze task dependency graphs: SCCs, topological order, critical paths.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Analyze a graph JSON file.")
    analyze.add_argument("graph", type=Path, help="Path to the graph JSON file.")
    analyze.add_argument("--config", type=Path, help="Analysis configuration JSON file.")
    analyze.add_argument("--scc", choices=SCC_ALGORITHMS, help="SCC algorithm.")
    analyze.add_argument("--topo", choices=TOPO_ALGORITHMS, help="Topological sort algorithm.")
    analyze.add_argument("--source", type=int, help="Source vertex for distance reports.")
    analyze.add_argument("--output", type=Path, help="Where to write the JSON report.")
    analyze.add_argument(
        "--log-level",
        type=str.upper,
        choices=VALID_LOG_LEVELS,
        help="Console log level (overrides the configuration).",
    )
    analyze.add_argument("--log-file", type=Path, help="Optional rotating log file.")

    generate = subparsers.add_parser("generate", help="Write the bundled datasets.")
    generate.add_argument("output_dir", type=Path, help="Directory for the dataset tree.")
    generate.add_argument("--seed", type=int, default=None, help="Generator seed.")
    generate.add_argument(
        "--log-level",
        type=str.upper,
        choices=VALID_LOG_LEVELS,
        default="INFO",
        help="Console log level.",
    )
    generate.add_argument("--log-file", type=Path, help="Optional rotating log file.")

    return parser


def _build_config(args: argparse.Namespace) -> AnalysisConfig:
    config = load_config(args.config) if args.config else AnalysisConfig(name="cli")
    if args.scc:
        config.scc_algorithm = args.scc
    if args.topo:
        config.topo_algorithm = args.topo
    if args.source is not None:
        config.options["source_vertex"] = args.source
    if args.log_level:
        config.log_level = args.log_level
    config.validate()
    return config


# ============================================================================
# Commands
# ============================================================================


def cmd_analyze(args: argparse.Namespace) -> int:
    config = _build_config(args)
    setup_logger(APP_NAME, level=config.log_level, log_file=args.log_file)

    graph = load_graph(args.graph)
    logger.info(f"Loaded {args.graph} ({graph.vertex_count} vertices, {graph.edge_count} edges)")

    report = analyze_graph(graph, config)
    print_summary(report)

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(json.dumps(report, indent=2), encoding="utf-8")
        logger.info(f"Report written to {args.output}")

    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    setup_logger(APP_NAME, level=args.log_level, log_file=args.log_file)

    generator = GraphGenerator(seed=args.seed)
    datasets = generator.assignment_datasets()
    written = write_datasets(datasets, args.output_dir)

    for category, entries in GraphGenerator.dataset_statistics(datasets).items():
        print(f"{category.upper()} DATASETS:")
        for stats in entries:
            print(f"  {stats['datasetName']}: {stats['vertexCount']} vertices, "
                  f"{stats['edgeCount']} edges, density={stats['density']:.3f}, "
                  f"hasCycle={stats['hasCycle']}")
    logger.info(f"Generated {len(written)} graphs in {args.output_dir}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """
    Parse arguments and run the selected subcommand.

    Returns:
        Exit code (0 for success, 1 for analysis, input or I/O errors).
    """
    args = build_parser().parse_args(argv)
    commands = {"analyze": cmd_analyze, "generate": cmd_generate}

    try:
        return commands[args.command](args)
    except (GraphError, ValueError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
