"""Structured logging package."""

from fintrack.audit.logger import (
    bind_correlation,
    configure_from_settings,
    configure_logging,
    create_correlation_id,
)

__all__ = [
    "bind_correlation",
    "configure_from_settings",
    "configure_logging",
    "create_correlation_id",
]
