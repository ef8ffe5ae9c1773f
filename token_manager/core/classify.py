"""
Error classification for the Token Manager.

Maps any failure value (an already-classified TokenManagerError, a library
exception, or an arbitrary raised value) onto the ErrorCode taxonomy.

Rules are evaluated in order, first match wins:
1. TokenManagerError passes through (a correlation id is attached to a copy
   when the original lacks one).
2. Timeout and cancellation signals -> TIMEOUT_ERROR.
3. Transport-layer failures -> NETWORK_ERROR.
4-7. Message hints ("timeout", "network", "rate limit", "cloudflare api").
8. Anything else -> UNKNOWN_ERROR with the message preserved.

httpx.TimeoutException subclasses httpx.TransportError, so rule 2 is
checked before rule 3.
"""

import asyncio
from typing import Any, Optional

import httpx

from token_manager.core.exceptions import (
    ErrorCode,
    TokenManagerError,
    cloudflare_api_error,
    network_error,
    rate_limit_error,
    timeout_error,
)


_TIMEOUT_TYPES = (TimeoutError, asyncio.TimeoutError, asyncio.CancelledError, httpx.TimeoutException)
_TRANSPORT_TYPES = (httpx.TransportError, ConnectionError, TypeError)


def classify_error(error: Any, correlation_id: Optional[str] = None) -> TokenManagerError:
    """
    Classify a failure into a TokenManagerError.

    Idempotent: classifying an already-classified error returns it
    unchanged unless a correlation id must be attached.

    Args:
        error: Any raised value.
        correlation_id: Optional id to attach to the result.

    Returns:
        TokenManagerError describing the failure.
    """
    if isinstance(error, TokenManagerError):
        if correlation_id and not error.correlation_id:
            return error.with_correlation_id(correlation_id)
        return error

    if isinstance(error, _TIMEOUT_TYPES):
        classified = timeout_error("Request timed out", correlation_id)
    elif isinstance(error, _TRANSPORT_TYPES):
        classified = network_error(_message_of(error), correlation_id)
    elif isinstance(error, BaseException):
        classified = _classify_by_message(error, correlation_id)
    else:
        message = error if isinstance(error, str) else "An unknown error occurred"
        return TokenManagerError(
            ErrorCode.UNKNOWN_ERROR,
            message,
            correlation_id=correlation_id,
            retryable=False,
        )

    classified.__cause__ = error
    return classified


def _classify_by_message(
    error: BaseException, correlation_id: Optional[str]
) -> TokenManagerError:
    message = _message_of(error)
    lowered = message.lower()

    if "timeout" in lowered or "timed out" in lowered:
        return timeout_error(message, correlation_id)
    if "network" in lowered or "fetch" in lowered or "connection" in lowered:
        return network_error(message, correlation_id)
    if "rate limit" in lowered:
        return rate_limit_error(message, correlation_id=correlation_id)
    if "cloudflare api" in lowered:
        status_code = getattr(error, "status_code", None)
        if not isinstance(status_code, int):
            status_code = None
        return cloudflare_api_error(message, status_code, correlation_id=correlation_id)

    return TokenManagerError(
        ErrorCode.UNKNOWN_ERROR,
        message,
        correlation_id=correlation_id,
        retryable=False,
    )


def _message_of(error: BaseException) -> str:
    message = str(error)
    return message if message else type(error).__name__
