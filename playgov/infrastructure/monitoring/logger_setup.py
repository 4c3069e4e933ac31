"""Centralized logging configuration for the playgov application.

Sets up standard Python logging with appropriate levels, formatters,
and handlers (console, optional rotating file), plus per-logger levels
so the governor's pacing can be traced without turning on DEBUG for
everything else.
"""

import logging
import logging.handlers
import sys
from typing import Dict, Optional, Union

DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_MAX_BYTES = 1_000_000
DEFAULT_LOG_BACKUP_COUNT = 3

GOVERNOR_LOGGER = 'playgov.infrastructure.resilience'
HTTP_LOGGERS = ('httpx', 'httpcore')

Level = Union[int, str]


def resolve_level(level: Optional[Level], default: int = DEFAULT_LOG_LEVEL) -> int:
    """Turns a level name ('debug', 'WARNING') or number into a logging level."""
    if level is None or level == '':
        return default
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else default


def setup_logging(
    log_level: int = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = None,
    logger_levels: Optional[Dict[str, Level]] = None,
    max_bytes: int = DEFAULT_LOG_MAX_BYTES,
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
) -> None:
    """Configures the root logger for the application.

    Args:
        log_level: The minimum logging level for the root logger.
        log_format: The format string for log messages.
        log_file: Optional path to a file for logging output. The file is
            rotated once it reaches ``max_bytes``.
        logger_levels: Levels for individual loggers, e.g.
            ``{'playgov.infrastructure.resilience': 'DEBUG'}``.
        max_bytes: Size at which the log file rotates.
        backup_count: Number of rotated files kept.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers attached to the root logger
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(log_format)

    # Handlers pass everything; loggers decide what is emitted.
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            logging.info(f"Logging to file: {log_file}")
        except OSError as e:
            logging.error(f"Failed to set up file logging to {log_file}: {e}", exc_info=True)

    for name, level in (logger_levels or {}).items():
        logging.getLogger(name).setLevel(resolve_level(level, default=log_level))

    logging.debug(
        f"Logging configured. Level={logging.getLevelName(log_level)}, "
        f"overrides={sorted((logger_levels or {}).keys())}"
    )
