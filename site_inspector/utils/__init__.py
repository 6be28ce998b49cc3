"""Utils module for Site Inspector."""

from site_inspector.utils.logger import LogContext, get_logger, setup_logging
from site_inspector.utils.retry import (
    BLOCKED_STATUS_CODES,
    AppError,
    ErrorHandler,
    InvalidUrlError,
    linear_backoff,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "LogContext",
    "AppError",
    "InvalidUrlError",
    "ErrorHandler",
    "BLOCKED_STATUS_CODES",
    "linear_backoff",
]
