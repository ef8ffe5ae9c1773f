"""
API Middleware Package.

Middleware Components:
- logging: Request tracing and logging with header redaction
- rate_limit: Per-operation-class rate limiting (Redis sliding window / in-memory)
"""

from token_manager.api.middleware.logging import (
    RequestLoggingMiddleware,
    redact_sensitive_headers,
)
from token_manager.api.middleware.rate_limit import (
    DEFAULT_RATE_LIMITS,
    InMemoryRateLimiter,
    RateLimitConfig,
    RateLimiter,
    RateLimitResult,
    RedisRateLimiter,
    create_rate_limiter,
    get_client_id,
    rate_limit_headers,
)

__all__ = [
    # Logging
    "RequestLoggingMiddleware",
    "redact_sensitive_headers",
    # Rate Limiting
    "DEFAULT_RATE_LIMITS",
    "InMemoryRateLimiter",
    "RateLimitConfig",
    "RateLimiter",
    "RateLimitResult",
    "RedisRateLimiter",
    "create_rate_limiter",
    "get_client_id",
    "rate_limit_headers",
]
