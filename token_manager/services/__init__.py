"""
Services Package.

- cache: TTL cache for the permission group catalog
- mcp: JSON-RPC method dispatcher
"""

from token_manager.services.cache import PermissionCatalogCache, TTLCache

__all__ = ["PermissionCatalogCache", "TTLCache"]
