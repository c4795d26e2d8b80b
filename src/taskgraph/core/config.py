"""Analysis run configuration.

This module defines the AnalysisConfig dataclass that selects which
algorithms an analysis run uses and how results are weighed, plus helpers to
read and write configurations as JSON files.

Example:
    Creating and validating a configuration:

    >>> config = AnalysisConfig(name="Nightly", scc_algorithm="kosaraju")
    >>> config.validate()

    Round-tripping through a file:

    >>> save_config(config, Path("nightly.json"))
    >>> load_config(Path("nightly.json")).scc_algorithm
    'kosaraju'
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from taskgraph.core.scc_finder import SCC_ALGORITHMS
from taskgraph.core.topological_sort import TOPO_ALGORITHMS
from taskgraph.utils.logger import VALID_LOG_LEVELS, get_logger

logger = get_logger("taskgraph.core.config")

SUPPORTED_VERSIONS = {"1.0"}

# Options understood by the analysis driver
KNOWN_OPTIONS = {
    "source_vertex",
    "report_components",
    "report_levels",
}


@dataclass
class AnalysisConfig:
    """Settings for one analysis run.

    Attributes:
        name: Configuration name
        version: Schema version (currently "1.0")
        scc_algorithm: "tarjan" or "kosaraju"
        topo_algorithm: "kahn" or "dfs"
        use_node_durations: Overrides the graph's weight mode when not None
        compute_critical_path: Whether to run critical path analysis
        log_level: Console log level for the run
        options: Additional settings

    Options:
        source_vertex: Vertex id for single-source distances (int or None)
        report_components: Include per-component details in reports
        report_levels: Include topological levels in reports
    """

    name: str
    version: str = "1.0"
    scc_algorithm: str = "tarjan"
    topo_algorithm: str = "kahn"
    use_node_durations: Optional[bool] = None
    compute_critical_path: bool = True
    log_level: str = "INFO"
    options: Dict[str, Any] = field(default_factory=lambda: {
        "source_vertex": None,
        "report_components": True,
        "report_levels": False,
    })

    def validate(self) -> None:
        """Validate the configuration.

        Raises:
            ValueError: If any validation check fails
        """
        if self.version not in SUPPORTED_VERSIONS:
            raise ValueError(f"Invalid version: {self.version}. Expected '1.0'")

        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("Configuration name must be a non-empty string")

        if self.scc_algorithm not in SCC_ALGORITHMS:
            raise ValueError(
                f"Invalid scc_algorithm: {self.scc_algorithm}. "
                f"Expected one of {SCC_ALGORITHMS}"
            )

        if self.topo_algorithm not in TOPO_ALGORITHMS:
            raise ValueError(
                f"Invalid topo_algorithm: {self.topo_algorithm}. "
                f"Expected one of {TOPO_ALGORITHMS}"
            )

        if self.use_node_durations is not None and not isinstance(self.use_node_durations, bool):
            raise ValueError("use_node_durations must be a boolean or None")

        if not isinstance(self.compute_critical_path, bool):
            raise ValueError("compute_critical_path must be a boolean")

        if str(self.log_level).upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level: {self.log_level}. Expected one of {VALID_LOG_LEVELS}"
            )

        if not isinstance(self.options, dict):
            raise ValueError("options must be a dictionary")

        for option in self.options:
            if option not in KNOWN_OPTIONS:
                logger.warning(f"Unknown option '{option}' in configuration '{self.name}'")

        source = self.options.get("source_vertex")
        if source is not None and (isinstance(source, bool) or not isinstance(source, int)):
            raise ValueError("Option 'source_vertex' must be an integer or None")
        if source is not None and source < 0:
            raise ValueError(f"Option 'source_vertex' cannot be negative: {source}")

        logger.debug(f"Configuration '{self.name}' validated successfully")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for JSON serialization."""
        return {
            "version": self.version,
            "name": self.name,
            "scc_algorithm": self.scc_algorithm,
            "topo_algorithm": self.topo_algorithm,
            "use_node_durations": self.use_node_durations,
            "compute_critical_path": self.compute_critical_path,
            "log_level": self.log_level,
            "options": self.options.copy(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AnalysisConfig:
        """Create configuration from dictionary.

        Args:
            data: Dictionary containing configuration data

        Returns:
            AnalysisConfig instance

        Raises:
            KeyError: If required fields are missing
            ValueError: If data or its options are not dictionaries
        """
        if not isinstance(data, dict):
            raise ValueError("Configuration must be a JSON object")
        if data.get("options") is not None and not isinstance(data["options"], dict):
            raise ValueError("options must be a dictionary")

        try:
            defaults = cls(name="defaults")
            options = defaults.options
            options.update(data.get("options") or {})
            config = cls(
                version=data["version"],
                name=data["name"],
                scc_algorithm=data.get("scc_algorithm", "tarjan"),
                topo_algorithm=data.get("topo_algorithm", "kahn"),
                use_node_durations=data.get("use_node_durations"),
                compute_critical_path=data.get("compute_critical_path", True),
                log_level=data.get("log_level", "INFO"),
                options=options,
            )
            logger.debug(f"Created configuration from dictionary: {config.name}")
            return config
        except KeyError as e:
            raise KeyError(f"Missing required field in configuration: {e}")

    @property
    def source_vertex(self) -> Optional[int]:
        return self.options.get("source_vertex")


def save_config(config: AnalysisConfig, file_path: Path) -> None:
    """Validate a configuration and write it to a JSON file.

    Raises:
        ValueError: If configuration validation fails
        OSError: If the file cannot be written
    """
    file_path = Path(file_path)
    try:
        config.validate()
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(config.to_dict(), f, indent=2)
        logger.debug(f"Configuration '{config.name}' saved to {file_path}")
    except ValueError as e:
        logger.error(f"Validation failed for configuration '{config.name}': {e}")
        raise ValueError(f"Configuration validation failed: {e}")
    except OSError as e:
        logger.error(f"Failed to write configuration to {file_path}: {e}")
        raise OSError(f"Failed to write configuration file: {e}")


def load_config(file_path: Path) -> AnalysisConfig:
    """Read and validate a configuration from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If JSON is invalid, a required field is missing or
            validation fails
    """
    file_path = Path(file_path)
    if not file_path.exists():
        logger.error(f"Configuration file not found: {file_path}")
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        config = AnalysisConfig.from_dict(data)
        config.validate()

        logger.debug(f"Configuration '{config.name}' loaded from {file_path}")
        return config

    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in configuration file {file_path}: {e}")
        raise ValueError(f"Invalid JSON format in configuration file: {e}")
    except KeyError as e:
        logger.error(f"Missing required field in configuration {file_path}: {e}")
        raise ValueError(f"Missing required field in configuration: {e}")
    except ValueError as e:
        logger.error(f"Validation failed for configuration from {file_path}: {e}")
        raise ValueError(f"Configuration validation failed: {e}")
