"""Cloudflare Token Manager - Source Package.

JSON-RPC tool server that creates, lists, rotates and revokes scoped
Cloudflare API tokens using a single bootstrap credential.

Note: Import `app` directly from `token_manager.main` to avoid circular imports.
"""

__version__ = "1.0.0"

__all__ = ["main", "api", "core", "models", "validation"]
