"""Structured logging for the swipe inbox core.

structlog renders JSON to stdout in production and a colored console view
for the CLI. Two kinds of context ride along with every entry:

- ``session_id``: correlation ID of the current swipe session, set once with
  ``set_correlation_id()``
- ``action_id``: bound for the duration of one orchestrator call with
  ``action_context()``

Usage:
    from swipe.core.logging import action_context, get_logger

    logger = get_logger(__name__)

    with action_context(action="delete"):
        logger.info("action_executed", item_id="abc123")
"""

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

import structlog

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def set_correlation_id(correlation_id: str | None) -> None:
    """Set (or clear with None) the session correlation ID for this context."""
    _correlation_id.set(correlation_id)


def get_correlation_id() -> str | None:
    """Get the current session correlation ID, if set."""
    return _correlation_id.get()


def add_correlation_id(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor that stamps the session correlation ID."""
    correlation_id = _correlation_id.get()
    if correlation_id is not None:
        event_dict["session_id"] = correlation_id
    return event_dict


@contextmanager
def action_context(**values: Any) -> Iterator[str]:
    """Bind a fresh ``action_id`` (plus any extra values) to log entries.

    Yields:
        The generated action ID
    """
    action_id = str(uuid.uuid4())
    with structlog.contextvars.bound_contextvars(action_id=action_id, **values):
        yield action_id


def _build_processors(json_output: bool) -> list[structlog.types.Processor]:
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        add_correlation_id,
    ]
    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    return processors


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure stdlib logging and structlog.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: JSON lines when True, human-readable console output otherwise
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    structlog.configure(
        processors=_build_processors(json_output),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger (pass the calling module's ``__name__``)."""
    return structlog.get_logger(name)
