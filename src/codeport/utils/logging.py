"""Logging configuration for Codeport."""

import logging
import sys
from typing import Optional

import structlog
from structlog.typing import Processor

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _processors(json: bool) -> list[Processor]:
    """Build the processor chain ending in a console or JSON renderer."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors += [
            structlog.dev.set_exc_info,
            structlog.dev.ConsoleRenderer(),
        ]
    return processors


def configure_logging(level: str = "INFO", json: bool = False) -> None:
    """Configure structured logging for the application.

    Logs go to stderr so they never mix with reports printed to stdout.

    Args:
        level: The logging level to use. Defaults to "INFO".
        json: Whether to output logs in JSON format. Defaults to False.

    Raises:
        ValueError: If the level is not a known level name
    """
    name = level.upper()
    if name not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {level}. Choose from {', '.join(LOG_LEVELS)}")

    structlog.configure(
        processors=_processors(json),
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, name)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def bind_run_context(**values: object) -> None:
    """Attach values (e.g. source and destination roots) to every log event of a run."""
    structlog.contextvars.bind_contextvars(**values)


def clear_run_context() -> None:
    """Drop the values bound by `bind_run_context`."""
    structlog.contextvars.clear_contextvars()


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """Get a logger instance.

    Args:
        name: Optional name for the logger. Defaults to None.

    Returns:
        A structured logger instance.
    """
    return structlog.get_logger(name)
