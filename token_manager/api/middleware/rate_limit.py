"""
Rate Limiting - per-operation-class admission control for mutating tools.

Two strategies share the RateLimiter interface:
- RedisRateLimiter: sliding window over a shared Redis store
- InMemoryRateLimiter: fixed window counter for single-instance deployments

Keys are `ratelimit:{operation}:{client_id}` in Redis and
`{operation}:{client_id}` in memory, so operation classes never share a
counter.

Known race: the Redis limiter does an awaited read-modify-write without a
transaction. Two concurrent checks on the same key may read the same prior
state and both be admitted. The limiter is advisory; it bounds
over-admission in practice but is not a strict quota.

Store failures fail open: an unreadable or corrupt window is treated as
empty history, and a failed write is logged while the request is still
admitted.

Pattern: Strategy pattern for algorithm selection
"""

import asyncio
import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError
from redis.exceptions import RedisError
from starlette.requests import Request

from token_manager.core.config import Settings


# Configure logger
logger = logging.getLogger(__name__)


TOKEN_OPS = "token-ops"
DEFAULT_OPERATION = "default"


# =============================================================================
# Configuration & Result Types
# =============================================================================


@dataclass(frozen=True)
class RateLimitConfig:
    """Maximum admitted requests per window for one operation class."""

    requests: int
    window_seconds: int


DEFAULT_RATE_LIMITS: dict[str, RateLimitConfig] = {
    TOKEN_OPS: RateLimitConfig(requests=10, window_seconds=60),
    DEFAULT_OPERATION: RateLimitConfig(requests=100, window_seconds=60),
}


@dataclass
class RateLimitResult:
    """
    Result of a rate limit check.

    Attributes:
        allowed: Whether the request is admitted
        limit: Maximum requests per window
        remaining: Remaining requests in the current window
        reset_at: Unix timestamp (seconds) when the window resets
        retry_after: Seconds to wait before retrying (if blocked)
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: Optional[int] = None


class RateWindowState(BaseModel):
    """Sliding window state persisted as JSON in Redis."""

    count: int = Field(ge=0)
    timestamps: list[float] = Field(default_factory=list)
    version: int = Field(default=0, ge=0)


def limits_from_settings(settings: Settings) -> dict[str, RateLimitConfig]:
    """Build the per-class configuration from settings."""
    window = settings.rate_limit_window_seconds
    return {
        TOKEN_OPS: RateLimitConfig(settings.rate_limit_per_minute, window),
        DEFAULT_OPERATION: RateLimitConfig(settings.rate_limit_default_per_minute, window),
    }


# =============================================================================
# Rate Limiter Interface
# =============================================================================


class RateLimiter(ABC):
    """
    Abstract interface for rate limiting algorithms.

    Implementations:
    - InMemoryRateLimiter: For single-instance deployments
    - RedisRateLimiter: For distributed deployments
    """

    def __init__(
        self,
        limits: Optional[Mapping[str, RateLimitConfig]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.limits = dict(limits or DEFAULT_RATE_LIMITS)
        self._clock = clock

    def config_for(self, operation: str) -> RateLimitConfig:
        """Configuration for an operation class; unknown classes use the default."""
        return self.limits.get(operation) or self.limits.get(
            DEFAULT_OPERATION, DEFAULT_RATE_LIMITS[DEFAULT_OPERATION]
        )

    @abstractmethod
    async def admit(self, operation: str, client_id: str) -> RateLimitResult:
        """
        Check (and record) one request for an operation class and client.

        Args:
            operation: Operation class, e.g. "token-ops"
            client_id: Client identity from get_client_id()

        Returns:
            RateLimitResult with admission status and quota info
        """

    async def close(self) -> None:
        """Release resources held by the limiter."""


def _retry_after(reset_at: float, now: float) -> int:
    return max(1, math.ceil(reset_at - now))


# =============================================================================
# Redis Rate Limiter - Sliding Window
# =============================================================================


class RedisRateLimiter(RateLimiter):
    """
    Sliding window rate limiter over Redis.

    Each key holds the admitted request timestamps inside the window. On
    every call, timestamps older than `now - window` are dropped; the call is
    rejected when the survivors already reach the limit, otherwise `now` is
    appended and the state written back with a TTL of twice the window.
    """

    def __init__(
        self,
        redis_client: Any,
        limits: Optional[Mapping[str, RateLimitConfig]] = None,
        store_timeout: float = 2.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the limiter.

        Args:
            redis_client: redis.asyncio client (or a compatible fake)
            limits: Per-operation-class configuration
            store_timeout: Timeout in seconds for each Redis read or write
            clock: Time source returning epoch seconds
        """
        super().__init__(limits, clock)
        self._redis = redis_client
        self._store_timeout = store_timeout

    @staticmethod
    def key_for(operation: str, client_id: str) -> str:
        return f"ratelimit:{operation}:{client_id}"

    async def _read(self, key: str) -> Optional[RateWindowState]:
        try:
            raw = await asyncio.wait_for(self._redis.get(key), self._store_timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"Rate limit store read failed for {key}: {e!r}")
            return None

        if raw is None:
            return None
        try:
            return RateWindowState.model_validate_json(raw)
        except ValidationError:
            logger.warning(f"Discarding corrupt rate limit state for {key}")
            return None

    async def _write(self, key: str, state: RateWindowState, ttl: int) -> None:
        try:
            await asyncio.wait_for(
                self._redis.set(key, state.model_dump_json(), ex=ttl),
                self._store_timeout,
            )
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Rate limit store write failed for {key}: {e!r}")

    async def admit(self, operation: str, client_id: str) -> RateLimitResult:
        config = self.config_for(operation)
        key = self.key_for(operation, client_id)
        now = self._clock()
        window_start = now - config.window_seconds

        stored = await self._read(key)
        timestamps = [ts for ts in stored.timestamps if ts > window_start] if stored else []
        version = (stored.version if stored else 0) + 1

        if timestamps:
            reset_at = min(timestamps) + config.window_seconds
        else:
            reset_at = now + config.window_seconds

        if len(timestamps) >= config.requests:
            return RateLimitResult(
                allowed=False,
                limit=config.requests,
                remaining=0,
                reset_at=reset_at,
                retry_after=_retry_after(reset_at, now),
            )

        timestamps.append(now)
        await self._write(
            key,
            RateWindowState(count=len(timestamps), timestamps=timestamps, version=version),
            ttl=config.window_seconds * 2,
        )

        return RateLimitResult(
            allowed=True,
            limit=config.requests,
            remaining=config.requests - len(timestamps),
            reset_at=reset_at,
        )

    async def close(self) -> None:
        await self._redis.aclose()


# =============================================================================
# In-Memory Rate Limiter - Fixed Window
# =============================================================================


class InMemoryRateLimiter(RateLimiter):
    """
    In-memory fixed window counter.

    The whole window resets once `now > reset_at`. State is per process and
    lost on restart. Expired windows are dropped at most once per
    `prune_interval` seconds, so idle client identities do not accumulate.

    Pattern: per-key asyncio.Lock around the read-modify-write
    """

    def __init__(
        self,
        limits: Optional[Mapping[str, RateLimitConfig]] = None,
        clock: Callable[[], float] = time.time,
        prune_interval: float = 60.0,
    ) -> None:
        super().__init__(limits, clock)
        self.prune_interval = prune_interval
        self._windows: dict[str, tuple[int, float]] = {}  # key -> (count, reset_at)
        self._locks: dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()
        self._next_prune = clock() + prune_interval

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def _prune(self, now: float) -> None:
        """Drop expired windows whose lock is idle."""
        expired = [
            key
            for key, (_, reset_at) in self._windows.items()
            if now > reset_at and not self._locks[key].locked()
        ]
        for key in expired:
            del self._windows[key]
            del self._locks[key]
        if expired:
            logger.debug(f"Pruned {len(expired)} expired rate limit windows")

    async def admit(self, operation: str, client_id: str) -> RateLimitResult:
        config = self.config_for(operation)
        key = f"{operation}:{client_id}"

        async with self._global_lock:
            now = self._clock()
            if now >= self._next_prune:
                self._prune(now)
                self._next_prune = now + self.prune_interval
            lock = self._get_lock(key)

        async with lock:
            now = self._clock()
            entry = self._windows.get(key)

            if entry is None or now > entry[1]:
                reset_at = now + config.window_seconds
                self._windows[key] = (1, reset_at)
                return RateLimitResult(
                    allowed=True,
                    limit=config.requests,
                    remaining=config.requests - 1,
                    reset_at=reset_at,
                )

            count, reset_at = entry
            if count >= config.requests:
                return RateLimitResult(
                    allowed=False,
                    limit=config.requests,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after=_retry_after(reset_at, now),
                )

            count += 1
            self._windows[key] = (count, reset_at)
            return RateLimitResult(
                allowed=True,
                limit=config.requests,
                remaining=config.requests - count,
                reset_at=reset_at,
            )


# =============================================================================
# Request Helpers
# =============================================================================


def get_client_id(request: Request) -> str:
    """
    Derive the rate-limit identity of the caller.

    Order: X-Client-ID header, then CF-Connecting-IP, the first
    X-Forwarded-For entry, and the socket peer. Never refuses to identify
    a caller; the last resort is `ip:unknown`.

    Args:
        request: HTTP request

    Returns:
        `client:<id>` or `ip:<address>`
    """
    custom_id = request.headers.get("X-Client-ID")
    if custom_id:
        return f"client:{custom_id}"

    ip = request.headers.get("CF-Connecting-IP")
    if not ip:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
    if not ip and request.client:
        ip = request.client.host

    return f"ip:{ip or 'unknown'}"


def rate_limit_headers(remaining: int, reset_at: float) -> dict[str, str]:
    """X-RateLimit-* response headers; the reset is rounded up to whole epoch seconds."""
    return {
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": str(math.ceil(reset_at)),
    }


def create_rate_limiter(settings: Settings, redis_client: Any = None) -> RateLimiter:
    """
    Pick the limiter strategy for the current deployment.

    Args:
        settings: Application settings
        redis_client: Connected redis.asyncio client, when a store is configured

    Returns:
        RedisRateLimiter if a client is given, otherwise InMemoryRateLimiter
    """
    limits = limits_from_settings(settings)
    if redis_client is not None:
        return RedisRateLimiter(
            redis_client,
            limits=limits,
            store_timeout=settings.rate_limit_store_timeout_seconds,
        )
    logger.info("No rate limit store configured, using in-memory limiter")
    return InMemoryRateLimiter(limits=limits)
