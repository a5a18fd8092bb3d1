"""
Logging infrastructure.

Exports the structured logging setup and log context helpers.
"""

from alchemy_datasource.core.logging.logger import (
    ContextFilter,
    JSONFormatter,
    LogContext,
    clear_log_context,
    get_log_context,
    get_logger,
    is_logging_configured,
    set_log_context,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "is_logging_configured",
    "get_logger",
    "LogContext",
    "set_log_context",
    "clear_log_context",
    "get_log_context",
    "ContextFilter",
    "JSONFormatter",
]
