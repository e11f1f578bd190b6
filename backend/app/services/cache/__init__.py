"""Cache service module.

Provides the in-process TTL cache with stale-while-revalidate fetching used
by the catalog and recommendation services.
"""

from .service import (
    DEFAULT_CLEANUP_INTERVAL_SECONDS,
    DEFAULT_TTL_SECONDS,
    CacheEntry,
    CacheService,
    CacheStats,
    InMemoryCacheService,
)

__all__ = [
    "DEFAULT_CLEANUP_INTERVAL_SECONDS",
    "DEFAULT_TTL_SECONDS",
    "CacheEntry",
    "CacheService",
    "CacheStats",
    "InMemoryCacheService",
]
