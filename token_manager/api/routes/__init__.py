"""Routes Package - API endpoint definitions.

- health: liveness with bootstrap token check, public template list, service info
- mcp: JSON-RPC endpoint

Note: Import routers directly from individual modules to avoid circular imports.
Example: from token_manager.api.routes.mcp import router as mcp_router
"""

__all__ = ["health", "mcp"]
