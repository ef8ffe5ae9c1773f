"""
API Dependencies.

FastAPI dependency functions for the API layer. Long-lived services are
built once in the application lifespan and stored on `app.state`; these
functions hand them to route handlers and can be replaced in tests through
`app.dependency_overrides`.
"""

import logging
from typing import Optional

from fastapi import HTTPException, Request, status

from token_manager.api.middleware.rate_limit import get_client_id
from token_manager.clients.cloudflare import CloudflareClient
from token_manager.core.config import Settings
from token_manager.models.domain import RequestContext
from token_manager.observability.tracing import create_request_context
from token_manager.services.mcp import MCPDispatcher


# Configure logger
logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_dispatcher(request: Request) -> MCPDispatcher:
    """
    JSON-RPC dispatcher built at startup.

    Raises:
        HTTPException: 503 if the application has not finished starting.
    """
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        logger.error("MCP dispatcher requested before startup completed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return dispatcher


def get_cloudflare_client(request: Request) -> Optional[CloudflareClient]:
    """Cloudflare client built at startup (None before startup)."""
    return getattr(request.app.state, "cloudflare_client", None)


def get_request_context(request: Request) -> RequestContext:
    """
    Tracing context created by RequestLoggingMiddleware.

    Falls back to a fresh context when the middleware is not installed.
    """
    context = getattr(request.state, "request_context", None)
    if context is None:
        context = create_request_context(
            request.headers,
            request.method,
            request.url.path,
            client_id=get_client_id(request),
        )
        request.state.request_context = context
    return context


__all__ = [
    "get_cloudflare_client",
    "get_dispatcher",
    "get_request_context",
    "get_settings",
]
