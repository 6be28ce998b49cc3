"""
Resilient error handling utilities.

Provides the package exception root, the linear relay backoff policy, and
classification of transport-level failures into retrieval error kinds.
"""

import asyncio
from typing import Optional

import httpx
from tenacity import wait_incrementing
from tenacity.wait import wait_base

from site_inspector.models.schemas import RetrievalErrorKind

# =============================================================================
# Custom Exceptions
# =============================================================================

class AppError(Exception):
    """Base application exception."""
    pass


class InvalidUrlError(AppError, ValueError):
    """The caller-supplied URL failed normalization."""
    pass


# =============================================================================
# Backoff
# =============================================================================

def linear_backoff(step_seconds: float, max_seconds: Optional[float] = None) -> wait_base:
    """Linear backoff between relay attempts: step, 2*step, 3*step... up to max."""
    if max_seconds is None:
        max_seconds = step_seconds * 10
    return wait_incrementing(start=step_seconds, increment=step_seconds, max=max_seconds)


# =============================================================================
# Error Classification
# =============================================================================

# The target answered, but refused this client
BLOCKED_STATUS_CODES = frozenset({401, 403, 407, 429, 451})


class ErrorHandler:
    """Centralized classification of retrieval failures."""

    @staticmethod
    def classify_exception(error: BaseException) -> RetrievalErrorKind:
        """Map a transport exception to a retrieval error kind."""
        if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
            return RetrievalErrorKind.TIMEOUT
        if isinstance(error, httpx.HTTPStatusError):
            return ErrorHandler.classify_status(error.response.status_code)
        if isinstance(error, (httpx.TransportError, ConnectionError, OSError)):
            return RetrievalErrorKind.UNREACHABLE

        err_str = str(error).lower()
        if "timeout" in err_str or "timed out" in err_str:
            return RetrievalErrorKind.TIMEOUT
        if "cors" in err_str or "forbidden" in err_str:
            return RetrievalErrorKind.BLOCKED
        return RetrievalErrorKind.UNREACHABLE

    @staticmethod
    def classify_status(status_code: int) -> RetrievalErrorKind:
        """Map an error HTTP status to a retrieval error kind."""
        if status_code in BLOCKED_STATUS_CODES:
            return RetrievalErrorKind.BLOCKED
        return RetrievalErrorKind.HTTP_ERROR

    @staticmethod
    def is_fallback_worthy(kind: RetrievalErrorKind) -> bool:
        """Whether a direct-request failure of this kind should try relays."""
        return kind != RetrievalErrorKind.HTTP_ERROR
