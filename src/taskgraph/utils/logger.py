"""
Logging setup for the task graph analyzer.

Every analysis module asks for a child of the ``taskgraph`` logger via
:func:`get_logger`. The CLI calls :func:`setup_logger` once at startup to
attach a console handler and, optionally, a rotating log file; child loggers
then propagate to it.

Examples:
    >>> from taskgraph.utils.logger import setup_logger, get_logger
    >>> root = setup_logger("taskgraph", level="DEBUG", log_file=Path("logs/taskgraph.log"))
    >>> log = get_logger("taskgraph.core.scc_finder")
    >>> log.debug("Tarjan pass finished")
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

# Valid log levels
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Default log format strings
DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
SIMPLE_FORMAT = "%(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Rotation policy for file logs
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUP_COUNT = 5


def _level_value(level: str) -> int:
    """Translate a level name into its numeric value, rejecting unknown names."""
    if level.upper() not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of {VALID_LOG_LEVELS}")
    return getattr(logging, level.upper())


def setup_logger(
    name: str,
    level: str = "INFO",
    log_file: Path | None = None
) -> logging.Logger:
    """
    Configure and return a logger instance.

    Attaches a console handler and, when ``log_file`` is given, a rotating
    file handler. Calling it again for the same name does not stack
    duplicate handlers.

    Args:
        name: Logger name (usually "taskgraph").
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.

    Returns:
        Configured logger instance.

    Raises:
        ValueError: If level is not a valid log level.

    Examples:
        >>> logger = setup_logger("taskgraph", level="DEBUG")
        >>> logger = setup_logger("taskgraph", log_file=Path("logs/run.log"))

    Note:
        File logs use the detailed format and always record DEBUG;
        console logs use the simple format at the requested level.
    """
    numeric_level = _level_value(level)

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    file_handlers = [
        h for h in logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)
    ]
    console_handlers = [
        h for h in logger.handlers
        if isinstance(h, logging.StreamHandler) and h not in file_handlers
    ]

    if not console_handlers:
        add_console_handler(logger, level)
    else:
        for handler in console_handlers:
            handler.setLevel(numeric_level)

    if log_file is not None and not file_handlers:
        add_file_handler(logger, log_file, level="DEBUG")

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Retrieve an existing logger or create a default one.

    Args:
        name: Logger name, e.g. "taskgraph.core.dag_paths".

    Returns:
        Logger instance.

    Note:
        When neither this logger nor any ancestor (root included) has
        handlers, a default console logger is set up for the top-level
        package (e.g. "taskgraph") and records propagate to it.
    """
    logger = logging.getLogger(name)

    # hasHandlers() also looks at every ancestor, root included
    if logger.hasHandlers():
        return logger

    setup_logger(name.split(".", 1)[0])
    return logger


def set_log_level(logger: logging.Logger, level: str) -> None:
    """
    Change the level of a logger at runtime.

    Raises:
        ValueError: If level is not valid.
    """
    logger.setLevel(_level_value(level))


def add_file_handler(
    logger: logging.Logger,
    log_file: Path,
    level: str = "DEBUG"
) -> None:
    """
    Add a rotating file handler to ``logger``.

    The parent directory is created if needed.

    Args:
        logger: Logger instance to modify.
        log_file: Path to the log file.
        level: Logging level for the handler.

    Raises:
        ValueError: If level is not valid.
        OSError: If the log directory cannot be created.
    """
    numeric_level = _level_value(level)

    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUP_COUNT,
        encoding="utf-8"
    )
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(logging.Formatter(DETAILED_FORMAT, datefmt=DATE_FORMAT))

    logger.addHandler(file_handler)


def add_console_handler(logger: logging.Logger, level: str = "INFO") -> None:
    """
    Add a console (stderr) handler to ``logger``.

    Raises:
        ValueError: If level is not valid.
    """
    numeric_level = _level_value(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter(SIMPLE_FORMAT))

    logger.addHandler(console_handler)


def get_log_directory() -> Path:
    """
    Return the default logs directory (relative to the working directory).

    The directory is not created here.
    """
    return Path("logs")
