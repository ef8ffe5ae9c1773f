"""
Request Logging Middleware.

Creates the per-request tracing context, binds its correlation id for the
duration of the request, logs method, path, status and duration, and echoes
the correlation id on every response.

Pattern: BaseHTTPMiddleware for request/response interception
"""

import logging
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from token_manager.api.middleware.rate_limit import get_client_id
from token_manager.observability.logging import correlation_id_context
from token_manager.observability.tracing import (
    CORRELATION_ID_HEADER,
    create_request_context,
    elapsed_ms,
)


# Configure logger
logger = logging.getLogger(__name__)


# =============================================================================
# Sensitive Header Redaction
# Pattern: Security - never log credentials
# =============================================================================

# Headers that should be redacted (case-insensitive substring matching)
SENSITIVE_HEADER_PATTERNS = [
    "authorization",
    "api-key",
    "apikey",
    "api_key",
    "x-auth-token",
    "cookie",
]


def redact_sensitive_headers(headers: dict[str, str]) -> dict[str, str]:
    """
    Redact sensitive headers from a headers dictionary.

    Args:
        headers: Dictionary of HTTP headers

    Returns:
        Dictionary with sensitive values replaced with [REDACTED]
    """
    redacted = {}
    for key, value in headers.items():
        key_lower = key.lower()
        is_sensitive = any(pattern in key_lower for pattern in SENSITIVE_HEADER_PATTERNS)
        redacted[key] = "[REDACTED]" if is_sensitive else value
    return redacted


# =============================================================================
# Request Logging Middleware
# =============================================================================


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request tracing and logging.

    Features:
    - Creates a RequestContext (stored on `request.state.request_context`)
    - Binds the correlation id to every log line of the request
    - Logs method, path, status code and duration
    - Adds X-Correlation-ID to every response
    - Redacts sensitive headers from debug logs
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        context = create_request_context(
            request.headers,
            request.method,
            request.url.path,
            client_id=get_client_id(request),
        )
        request.state.request_context = context

        with correlation_id_context(context.correlation_id):
            logger.debug(
                f"Request: {context.method} {context.path} from {context.client_id} "
                f"headers={redact_sensitive_headers(dict(request.headers))}"
            )

            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(
                    f"Request failed: {context.method} {context.path} "
                    f"correlation_id={context.correlation_id} "
                    f"error={type(e).__name__}: {e} duration={elapsed_ms(context)}ms"
                )
                raise

            log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
            logger.log(
                log_level,
                f"{context.method} {context.path} {response.status_code} "
                f"correlation_id={context.correlation_id} duration={elapsed_ms(context)}ms",
            )

        response.headers[CORRELATION_ID_HEADER] = context.correlation_id
        return response
