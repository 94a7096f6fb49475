"""Structured logging for raceway.

Selectors and operations log dotted events such as ``selector.settled`` or
``operation.start_failed`` through structlog. ``configure_logging`` renders
them on a handler of its own attached to the ``raceway`` stdlib logger, so the
host application's root handlers and levels are left untouched.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

__all__ = [
    'LOGGER_NAME',
    'add_component',
    'configure_logging',
    'get_logger',
]

LOGGER_NAME = 'raceway'

# Handler installed by the last configure_logging() call
_handler: logging.Handler | None = None


def add_component(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Bind ``component`` from the prefix of a dotted event name.

    ``selector.settled`` gets ``component='selector'``. Events without a dot,
    or with a component already bound, are left alone.
    """
    event = event_dict.get('event')
    if isinstance(event, str) and '.' in event:
        event_dict.setdefault('component', event.split('.', 1)[0])
    return event_dict


def _get_shared_processors() -> list[Any]:
    """Processors shared between structlog events and foreign stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt='iso'),
        add_component,
    ]


def _get_renderer(json_output: bool) -> Any:
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(level: str = 'INFO', *, json_output: bool = True) -> logging.Handler:
    """Route raceway's structlog events to stderr at ``level``.

    Calling it again replaces the handler installed by the previous call.

    Args:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL").
        json_output: If True, emit JSON lines. If False, use console output.

    Returns:
        The handler attached to the ``raceway`` logger.
    """
    global _handler  # noqa: PLW0603

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_get_shared_processors(),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_get_shared_processors(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _get_renderer(json_output),
            ],
        )
    )

    logger = logging.getLogger(LOGGER_NAME)
    if _handler is not None:
        logger.removeHandler(_handler)
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False
    _handler = handler
    return handler


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger, normally named after a ``raceway.*`` module."""
    return structlog.get_logger(name)
