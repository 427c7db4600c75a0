"""Observability infrastructure for structured logging."""

from museick.infrastructure.observability.logger_template import log_operation
from museick.infrastructure.observability.logging import (
    configure_logging,
    configure_logging_from_settings,
    correlation_scope,
    get_correlation_id,
    set_correlation_id,
)

__all__ = [
    "configure_logging",
    "configure_logging_from_settings",
    "correlation_scope",
    "get_correlation_id",
    "log_operation",
    "set_correlation_id",
]
