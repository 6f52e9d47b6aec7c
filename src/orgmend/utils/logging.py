"""Structured logging setup for orgmend."""

import structlog
from pathlib import Path
from typing import Any, Mapping, Optional
import os


VALID_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def log_directory(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Directory holding orgmend.log: $XDG_CACHE_HOME/orgmend/logs, else ~/.cache/orgmend/logs."""
    env = os.environ if environ is None else environ
    cache_home = env.get("XDG_CACHE_HOME")
    base = Path(cache_home) if cache_home else Path.home() / ".cache"
    return base / "orgmend" / "logs"


def resolve_log_level(environ: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if environ is None else environ
    level = env.get("ORGMEND_LOG_LEVEL", "INFO").upper()
    if level not in VALID_LEVELS:
        level = "INFO"
    return level


def configure_logging(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Configure structlog for JSON logging to ~/.cache/orgmend/logs/orgmend.log.

    Log level can be controlled via ORGMEND_LOG_LEVEL environment variable:
    - Set to "DEBUG" to see every resolved identifier and file write
    - Defaults to "INFO" if not set

    Log levels:
    - DEBUG: Identifier resolution, atomic write details, per-command batch results
    - INFO: Config loading, mutations applied, files written
    - WARNING: Dry runs, skipped batch commands
    - ERROR: Failed writes, invalid configuration

    Returns:
        Path of the log file

    Example:
        # Enable debug logging
        export ORGMEND_LOG_LEVEL=DEBUG
        orgmend todo notes.org "Write report" DONE

        # View logs with jq for readability:
        tail -f ~/.cache/orgmend/logs/orgmend.log | jq .
    """
    # Ensure log directory exists
    log_dir = log_directory(environ)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "orgmend.log"

    log_level = resolve_log_level(environ)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=open(log_file, "a")),
        cache_logger_on_first_use=True,
    )
    return log_file


def get_logger(name: str) -> Any:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of calling module)

    Returns:
        Structured logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("todo_state_changed", file="notes.org", state="DONE")
    """
    return structlog.get_logger(name)
