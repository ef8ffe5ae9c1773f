"""
Cloudflare Token Manager - Main Application Entry Point

FastAPI application exposing the token management tools over JSON-RPC
(POST /mcp), plus health, template and metrics endpoints.

The lifespan builds the long-lived services once and stores them on
`app.state`: the Cloudflare client, the rate limiter (Redis-backed when
TOKEN_MANAGER_REDIS_URL is set), the tool registry, executor and
dispatcher.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from token_manager import __version__
from token_manager.api.middleware.logging import RequestLoggingMiddleware
from token_manager.api.middleware.rate_limit import RateLimiter, create_rate_limiter
from token_manager.api.routes.health import router as health_router
from token_manager.api.routes.mcp import router as mcp_router
from token_manager.clients.cloudflare import CloudflareClient
from token_manager.core.config import Settings, get_settings
from token_manager.observability.audit import AuditLogger
from token_manager.observability.logging import configure_logging, get_logger
from token_manager.observability.metrics import get_metrics_app
from token_manager.observability.tracing import setup_tracing, shutdown_tracing
from token_manager.services.cache import PermissionCatalogCache
from token_manager.services.mcp import MCPDispatcher
from token_manager.tools.catalog import build_tool_registry
from token_manager.tools.executor import ToolExecutor

# Application metadata
APP_NAME = "Cloudflare Token Manager"
APP_DESCRIPTION = "JSON-RPC tools for scoped Cloudflare API token management"

logger = get_logger(__name__)


def create_cloudflare_client(settings: Settings) -> CloudflareClient:
    """Cloudflare client authenticated with the bootstrap token."""
    return CloudflareClient(
        token=settings.cloudflare_bootstrap_token.get_secret_value(),
        base_url=settings.cloudflare_api_base,
        timeout_seconds=settings.cloudflare_timeout_seconds,
        permission_cache=PermissionCatalogCache(settings.permission_cache_ttl_seconds),
    )


def create_redis_client(settings: Settings) -> Optional[aioredis.Redis]:
    """Redis client for the rate-limit store, or None when not configured."""
    if not settings.redis_url:
        return None
    return aioredis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)


# =============================================================================
# Lifespan Context Manager
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan: build services on startup, release them on shutdown.

    Services already present on `app.state` (injected by create_app) are
    used as-is.
    """
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)
    if settings.tracing_enabled:
        setup_tracing(settings.service_name)

    client: CloudflareClient = app.state.cloudflare_client or create_cloudflare_client(settings)
    rate_limiter: RateLimiter = app.state.rate_limiter or create_rate_limiter(
        settings, create_redis_client(settings)
    )

    registry = build_tool_registry(
        client, settings, AuditLogger(enabled=settings.enable_audit_log)
    )
    executor = ToolExecutor(registry, rate_limiter, timeout=settings.tool_timeout_seconds)

    app.state.cloudflare_client = client
    app.state.rate_limiter = rate_limiter
    app.state.registry = registry
    app.state.dispatcher = MCPDispatcher(registry, executor)

    logger.info(
        "service starting",
        service=settings.service_name,
        environment=settings.environment,
        version=__version__,
        tools=len(registry),
        rate_limiter=type(rate_limiter).__name__,
        bootstrap_token_configured=bool(settings.cloudflare_bootstrap_token.get_secret_value()),
    )

    yield

    logger.info("service shutting down", service=settings.service_name)
    app.state.dispatcher = None
    await rate_limiter.close()
    await client.close()
    if settings.tracing_enabled:
        shutdown_tracing()


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    settings: Optional[Settings] = None,
    cloudflare_client: Optional[CloudflareClient] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings (defaults to the environment-derived singleton)
        cloudflare_client: Pre-built client (for testing)
        rate_limiter: Pre-built limiter (for testing)
    """
    settings = settings or get_settings()
    docs_enabled = settings.environment != "production"

    app = FastAPI(
        title=APP_NAME,
        description=APP_DESCRIPTION,
        version=__version__,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.cloudflare_client = cloudflare_client
    app.state.rate_limiter = rate_limiter
    app.state.dispatcher = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health_router)
    app.include_router(mcp_router)
    app.mount("/metrics", get_metrics_app())

    return app


app = create_app()
