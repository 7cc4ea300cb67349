# retrace/utils/logging.py
"""
Logging configuration for retrace.
"""
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from retrace.constants import LOG_DIR, LOG_FORMAT, LOG_ROTATION, LOG_RETENTION
from retrace.utils.enhanced_logging import EnhancedLogger

# Dictionary to store enhanced logger instances
_enhanced_loggers = {}


def setup_logging(debug: bool = False, log_dir: Optional[Path] = None) -> None:
    """
    Configure the application logging.

    Args:
        debug: Whether to enable debug logging.
        log_dir: Directory for the log files (defaults to LOG_DIR).
    """
    log_dir = Path(log_dir) if log_dir else LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    # Remove default handlers; records from outside EnhancedLogger get a name too
    logger.remove()
    logger.configure(extra={"name": "retrace", "context": {}})

    log_level = "DEBUG" if debug else "INFO"
    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level=log_level,
        diagnose=debug,  # Include variable values in traceback if debug is True
    )

    log_file = log_dir / "retrace.log"
    logger.add(
        log_file,
        format=LOG_FORMAT,
        level="INFO",
        rotation=LOG_ROTATION,
        retention=LOG_RETENTION,
        compression="zip",
    )

    # Structured JSON log, one record per line
    json_log_file = log_dir / "retrace_structured.log"
    logger.add(
        json_log_file,
        serialize=True,
        level="INFO",
        rotation=LOG_ROTATION,
        retention=LOG_RETENTION,
        compression="zip",
    )

    logger.bind(name=__name__).debug(f"Logging initialized. Log files: {log_file}, {json_log_file}")


def get_logger(name: str = "retrace") -> EnhancedLogger:
    """
    Get a logger instance with the given name.

    Args:
        name: The name for the logger.

    Returns:
        An enhanced logger instance.
    """
    if name in _enhanced_loggers:
        return _enhanced_loggers[name]

    enhanced_logger = EnhancedLogger(name)
    _enhanced_loggers[name] = enhanced_logger

    return enhanced_logger
