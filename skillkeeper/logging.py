"""Structured logging for skillkeeper."""

import logging
import sys
from typing import Any

import structlog
from structlog._config import BoundLoggerLazyProxy

from skillkeeper.config import LoggingConfig, get_config


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Route structlog output to stderr so command output on stdout stays clean."""
    settings = config or get_config().logging
    log_level = logging.getLevelNamesMapping().get(settings.level.upper(), logging.INFO)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def bind_command(command: str | None, **context: Any) -> None:
    """Tag every following log line with the running CLI command."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(command=command or "-", **context)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Lazy logger; ``name`` (usually ``__name__``) is rendered as ``logger``."""
    if name:
        # ``structlog.get_logger(logger=...)`` collides with wrap_logger's own
        # ``logger`` parameter, so build the same lazy proxy directly.
        return BoundLoggerLazyProxy(None, initial_values={"logger": name}, logger_factory_args=())
    return structlog.get_logger()


log = get_logger(__name__)
