"""
Utility modules shared by the analysis engine and the CLI.

This package provides the logging infrastructure (console and rotating
file output with hierarchical logger lookup).

Examples:
    >>> from taskgraph.utils import setup_logger, get_logger
    >>> logger = setup_logger("taskgraph")
"""

from .logger import (
    # Logger setup
    setup_logger,
    get_logger,
    set_log_level,
    # Handler management
    add_file_handler,
    add_console_handler,
    # Utilities
    get_log_directory,
    # Constants
    VALID_LOG_LEVELS,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "set_log_level",
    "add_file_handler",
    "add_console_handler",
    "get_log_directory",
    "VALID_LOG_LEVELS",
]
