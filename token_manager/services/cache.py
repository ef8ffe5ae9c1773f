"""
Permission Catalog Cache.

Read-through, TTL-bounded cache for the provider's permission group catalog.
The cached entry is a single immutable (data, expires_at) pair that is
replaced wholesale on refresh, so concurrent readers never see a partially
updated catalog and no lock is needed.

Concurrent misses may each load the catalog; the last one to finish wins.
"""

import time
from typing import Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class TTLCache(Generic[T]):
    """
    Single-entry cache with a fixed time-to-live.

    Args:
        ttl_seconds: Lifetime of a loaded entry.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[tuple[T, float]] = None

    def get(self) -> Optional[T]:
        """Cached value, or None when empty or expired."""
        entry = self._entry
        if entry is None or self._clock() >= entry[1]:
            return None
        return entry[0]

    def set(self, value: T) -> None:
        self._entry = (value, self._clock() + self.ttl_seconds)

    def invalidate(self) -> None:
        self._entry = None

    async def get_or_load(self, loader: Callable[[], Awaitable[T]]) -> T:
        """
        Return the cached value, loading and storing it on a miss.

        Loader failures propagate and leave the cache untouched.
        """
        cached = self.get()
        if cached is not None:
            return cached
        value = await loader()
        self.set(value)
        return value


class PermissionCatalogCache(TTLCache[tuple]):
    """TTL cache holding the permission group catalog as a tuple."""
