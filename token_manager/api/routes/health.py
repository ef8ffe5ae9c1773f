"""
Health Router - liveness, public template list and service info.

GET /health verifies that the bootstrap token works by listing accounts;
a missing or rejected token reports `degraded` with HTTP 503.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from token_manager import __version__
from token_manager.api.deps import get_cloudflare_client, get_settings
from token_manager.clients.cloudflare import CloudflareClient
from token_manager.core.config import Settings
from token_manager.tools.templates import list_templates

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


# =============================================================================
# Health Service
# =============================================================================


class HealthService:
    """
    Bootstrap token check behind GET /health.

    Pattern: Service class so the check can be exercised with a test double
    """

    def __init__(self, service_name: str, client: Optional[CloudflareClient], token: str) -> None:
        self.service_name = service_name
        self._client = client
        self._token = token

    async def check(self) -> tuple[int, dict[str, Any]]:
        """
        Returns:
            (HTTP status, body) for the health response.
        """
        if not self._token or self._client is None:
            return self._degraded("Bootstrap token not configured")

        try:
            await self._client.list_accounts()
        except Exception as e:
            logger.warning(f"Bootstrap token verification failed: {e}")
            return self._degraded("Bootstrap token verification failed")

        return status.HTTP_200_OK, {"status": "ok", "service": self.service_name}

    def _degraded(self, error: str) -> tuple[int, dict[str, Any]]:
        return status.HTTP_503_SERVICE_UNAVAILABLE, {
            "status": "degraded",
            "service": self.service_name,
            "error": error,
        }


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/health")
async def health(
    settings: Settings = Depends(get_settings),
    client: Optional[CloudflareClient] = Depends(get_cloudflare_client),
) -> JSONResponse:
    """Liveness check including a live bootstrap token verification."""
    service = HealthService(
        settings.service_name,
        client,
        settings.cloudflare_bootstrap_token.get_secret_value(),
    )
    status_code, body = await service.check()
    return JSONResponse(content=body, status_code=status_code)


@router.get("/templates")
async def templates() -> dict[str, Any]:
    """Public list of token templates (no authentication)."""
    return {
        "templates": [
            {"id": t.id, "name": t.name, "description": t.description} for t in list_templates()
        ]
    }


@router.get("/", tags=["Info"])
async def root(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    """Root endpoint returning basic service information."""
    return {
        "service": settings.service_name,
        "version": __version__,
        "endpoints": {"mcp": "POST /mcp", "health": "GET /health", "templates": "GET /templates"},
    }
