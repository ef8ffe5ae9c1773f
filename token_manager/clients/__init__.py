"""
Clients Package.

HTTP client factory and the Cloudflare API client.
"""

from token_manager.clients.cloudflare import CF_API_BASE, CloudflareClient
from token_manager.clients.http import create_http_client

__all__ = ["CF_API_BASE", "CloudflareClient", "create_http_client"]
