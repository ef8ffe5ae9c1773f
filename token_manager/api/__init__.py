"""API Package - FastAPI routes, middleware, security and dependencies.

Components:
- routes: API endpoint routers (health, mcp)
- middleware: Request logging and rate limiting
- security: Constant-time API key check
- deps: FastAPI dependency injection functions

Note: Import routers directly from token_manager.api.routes to avoid circular imports.
"""

__all__ = ["routes", "middleware", "security", "deps"]
