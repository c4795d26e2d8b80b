"""JSON persistence for task graphs and generated datasets.

A graph document carries the weight mode flag, the vertex and edge arrays
and, on output, a statistics block:

    {
      "useNodeDurations": true,
      "vertexCount": 2,
      "edgeCount": 1,
      "vertices": [{"id": 0, "name": "Survey", "duration": 2,
                    "type": "REPAIRS", "description": ""}, ...],
      "edges": [{"from": 0, "to": 1, "weight": 1,
                 "type": "TASK_DEPENDENCY", "description": ""}, ...],
      "statistics": {...}
    }

Unknown ``type`` names load as OTHER. Missing ``duration``, ``weight`` and
``description`` fields take their defaults; missing ids, names or endpoints
make the document invalid.

Example:
    >>> save_graph(graph, Path("data/small/small_graph_1.json"))
    >>> same = load_graph(Path("data/small/small_graph_1.json"))
    >>> same == graph
    True
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from taskgraph.core.graph_model import DuplicateVertexError, Graph, VertexNotFoundError
from taskgraph.utils.logger import get_logger

logger = get_logger("taskgraph.core.graph_io")

MANIFEST_FILE_NAME = "manifest.json"


class GraphFormatError(ValueError):
    """Raised when a JSON document does not describe a valid graph.

    Attributes:
        source: File or label the document came from, if known
        message: Description of the problem
    """

    def __init__(self, message: str, source: str | Path | None = None):
        self.source = source
        self.message = message
        prefix = f"{source}: " if source is not None else ""
        super().__init__(f"{prefix}{message}")


# ============================================================================
# Dictionary Conversion
# ============================================================================


def graph_to_dict(graph: Graph) -> dict[str, Any]:
    """Convert a graph to its JSON document structure."""
    return {
        "useNodeDurations": graph.use_node_durations,
        "vertexCount": graph.vertex_count,
        "edgeCount": graph.edge_count,
        "vertices": [vertex.to_dict() for vertex in graph.vertices],
        "edges": [edge.to_dict() for edge in graph.edges],
        "statistics": graph.statistics().to_dict(),
    }


def graph_from_dict(data: dict[str, Any], source: str | Path | None = None) -> Graph:
    """Build a graph from a parsed JSON document.

    Args:
        data: Parsed document
        source: Label used in error messages

    Returns:
        The reconstructed graph

    Raises:
        GraphFormatError: If arrays or required fields are missing, or the
            document references unknown or duplicate vertices
    """
    if not isinstance(data, dict):
        raise GraphFormatError("Graph document must be a JSON object", source)

    vertices = data.get("vertices")
    if not isinstance(vertices, list):
        raise GraphFormatError("Invalid JSON: 'vertices' array not found", source)

    edges = data.get("edges")
    if not isinstance(edges, list):
        raise GraphFormatError("Invalid JSON: 'edges' array not found", source)

    graph = Graph(bool(data.get("useNodeDurations", True)))

    try:
        for entry in vertices:
            graph.add_vertex(
                int(entry["id"]),
                entry["name"],
                int(entry.get("duration", 0)),
                entry.get("type"),
                entry.get("description", ""),
            )

        for entry in edges:
            graph.add_edge(
                int(entry["from"]),
                int(entry["to"]),
                int(entry.get("weight", 0)),
                entry.get("type"),
                entry.get("description", ""),
            )
    except KeyError as e:
        raise GraphFormatError(f"Missing required field: {e}", source)
    except (TypeError, AttributeError) as e:
        raise GraphFormatError(f"Malformed vertex or edge entry: {e}", source)
    except (DuplicateVertexError, VertexNotFoundError) as e:
        raise GraphFormatError(str(e), source)
    except ValueError as e:
        raise GraphFormatError(f"Invalid value: {e}", source)

    return graph


# ============================================================================
# String Conversion
# ============================================================================


def graph_to_json(graph: Graph, indent: int | None = 2) -> str:
    return json.dumps(graph_to_dict(graph), indent=indent)


def graph_from_json(text: str, source: str | Path | None = None) -> Graph:
    """Parse a JSON string into a graph.

    Raises:
        GraphFormatError: If the text is not JSON or not a valid graph
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GraphFormatError(f"Invalid JSON format: {e}", source)
    return graph_from_dict(data, source)


def is_valid_graph_json(text: str) -> bool:
    """Return True if ``text`` is a JSON object with vertex and edge arrays."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return False
    return isinstance(data, dict) and "vertices" in data and "edges" in data


def json_template() -> dict[str, Any]:
    """A small example document to start a hand-written graph from."""
    return {
        "useNodeDurations": True,
        "vertices": [
            {
                "id": 0,
                "name": "Street Cleaning: Downtown",
                "duration": 5,
                "type": "STREET_CLEANING",
                "description": "Sample task description",
            },
            {
                "id": 1,
                "name": "Repairs: City Center",
                "duration": 3,
                "type": "REPAIRS",
                "description": "Sample task description",
            },
        ],
        "edges": [
            {
                "from": 0,
                "to": 1,
                "weight": 2,
                "type": "TASK_DEPENDENCY",
                "description": "Sample dependency",
            },
        ],
    }


# ============================================================================
# File I/O
# ============================================================================


def save_graph(graph: Graph, file_path: Path) -> None:
    """Write a graph document to ``file_path``, creating parent directories.

    Raises:
        OSError: If the file cannot be written
    """
    file_path = Path(file_path)
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(graph_to_dict(graph), f, indent=2)
        logger.debug(
            f"Graph with {graph.vertex_count} vertices and {graph.edge_count} edges "
            f"saved to {file_path}"
        )
    except OSError as e:
        logger.error(f"Failed to write graph to {file_path}: {e}")
        raise OSError(f"Failed to write graph file: {e}")


def load_graph(file_path: Path) -> Graph:
    """Read a graph document from ``file_path``.

    Raises:
        FileNotFoundError: If the file does not exist
        GraphFormatError: If the file is not a valid graph document
    """
    file_path = Path(file_path)
    if not file_path.exists():
        logger.error(f"Graph file not found: {file_path}")
        raise FileNotFoundError(f"Graph file not found: {file_path}")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            text = f.read()
        graph = graph_from_json(text, file_path)
    except UnicodeDecodeError as e:
        logger.error(f"Graph file {file_path} is not UTF-8 text: {e}")
        raise GraphFormatError(f"File is not valid UTF-8 text: {e}", file_path)
    except GraphFormatError as e:
        logger.error(f"Invalid graph file {file_path}: {e.message}")
        raise

    logger.debug(f"Loaded graph with {graph.vertex_count} vertices from {file_path}")
    return graph


def is_valid_graph_file(file_path: Path) -> bool:
    """Return True if ``file_path`` loads as a graph."""
    try:
        load_graph(Path(file_path))
        return True
    except (OSError, GraphFormatError) as e:
        logger.warning(f"Graph validation failed for {file_path}: {e}")
        return False


def load_graphs_from_directory(directory: Path) -> list[Graph]:
    """Load every ``*.json`` graph in ``directory``, sorted by file name.

    The dataset manifest, if present, is skipped.

    Raises:
        FileNotFoundError: If the directory does not exist
        GraphFormatError: If any graph file is invalid
    """
    directory = Path(directory)
    if not directory.is_dir():
        logger.error(f"Directory does not exist: {directory}")
        raise FileNotFoundError(f"Directory does not exist: {directory}")

    files = sorted(
        path for path in directory.glob("*.json")
        if path.name != MANIFEST_FILE_NAME
    )
    return [load_graph(path) for path in files]


def load_datasets(base_directory: Path) -> dict[str, list[Graph]]:
    """Load a dataset tree written by :func:`write_datasets`.

    Each sub-directory is one category.
    """
    base_directory = Path(base_directory)
    if not base_directory.is_dir():
        logger.error(f"Base directory does not exist: {base_directory}")
        raise FileNotFoundError(f"Base directory does not exist: {base_directory}")

    datasets: dict[str, list[Graph]] = {}
    for category_dir in sorted(p for p in base_directory.iterdir() if p.is_dir()):
        graphs = load_graphs_from_directory(category_dir)
        if graphs:
            datasets[category_dir.name] = graphs
    return datasets


def write_datasets(datasets: dict[str, list[Graph]], base_directory: Path) -> list[Path]:
    """Write each category to ``<base>/<category>/<category>_graph_<n>.json``.

    A manifest describing every written file is stored alongside the
    category directories.

    Returns:
        Paths of the written graph files, in write order
    """
    base_directory = Path(base_directory)
    written: list[Path] = []

    for category, graphs in datasets.items():
        for number, graph in enumerate(graphs, start=1):
            path = base_directory / category / f"{category}_graph_{number}.json"
            save_graph(graph, path)
            written.append(path)

    write_manifest(datasets, base_directory / MANIFEST_FILE_NAME)
    logger.info(f"Wrote {len(written)} graphs in {len(datasets)} categories to {base_directory}")
    return written


def write_manifest(datasets: dict[str, list[Graph]], file_path: Path) -> None:
    """Write an index of dataset files with their basic statistics."""
    manifest = {
        "generatedAt": datetime.now().isoformat(timespec="seconds"),
        "totalCategories": len(datasets),
        "categories": {
            category: {
                "graphCount": len(graphs),
                "graphs": [
                    {
                        "fileName": f"{category}_graph_{number}.json",
                        "vertexCount": graph.vertex_count,
                        "edgeCount": graph.edge_count,
                        "hasCycle": graph.has_cycle(),
                        "useNodeDurations": graph.use_node_durations,
                    }
                    for number, graph in enumerate(graphs, start=1)
                ],
            }
            for category, graphs in datasets.items()
        },
    }

    file_path = Path(file_path)
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2)
    except OSError as e:
        logger.error(f"Failed to write dataset manifest to {file_path}: {e}")
        raise OSError(f"Failed to write dataset manifest: {e}")
