"""Shared helpers for platformctl."""

from platformctl.utils.logging_setup import (
    LogContext,
    LoggerAdapter,
    configure_logging,
    format_duration,
    get_contextual_logger
)

__all__ = [
    'LogContext',
    'LoggerAdapter',
    'configure_logging',
    'format_duration',
    'get_contextual_logger'
]
