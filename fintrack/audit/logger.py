"""
Structured Logging

DESIGN DECISION: Every request, extraction decision and state transition
is logged as a structured event rather than free text.
This provides:
1. Traceability of which response shape a backend actually returned
2. Debugging of stale or discarded responses
3. Correlation of all events belonging to one view load

Loggers are obtained with structlog.get_logger(__name__).
Logging failures never interrupt a flow.
"""

import logging
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

import structlog

if TYPE_CHECKING:
    from fintrack.config import Settings


def _processors(json_output: bool) -> list:
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ]


def configure_logging(
    debug_mode: bool = False,
    json_output: bool = True,
) -> None:
    """
    Configure structlog on top of the standard library logger.

    Args:
        debug_mode: Emit debug events (request traces, strategy matches).
        json_output: Render JSON lines; otherwise a human readable console format.
    """
    logging.basicConfig(format="%(message)s")
    logging.getLogger("fintrack").setLevel(
        logging.DEBUG if debug_mode else logging.INFO
    )

    structlog.configure(
        processors=_processors(json_output),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_settings(settings: Optional["Settings"] = None) -> None:
    """Configure logging from AppSettings (read from the environment if omitted)."""
    from fintrack.config import get_settings

    app = (settings or get_settings()).app
    configure_logging(debug_mode=app.debug_mode, json_output=app.log_json)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a view load or a user action.
    Bind it to the logger for all subsequent operations.
    """
    return uuid4()


def bind_correlation(
    logger: structlog.stdlib.BoundLogger,
    correlation_id: Optional[UUID] = None,
) -> tuple[structlog.stdlib.BoundLogger, UUID]:
    """Return a logger bound to a (new or given) correlation ID."""
    correlation_id = correlation_id or create_correlation_id()
    return logger.bind(correlation_id=str(correlation_id)), correlation_id


configure_logging()
