"""Cache service implementation.

This module provides an abstract cache service interface and a concrete
in-process implementation used to avoid redundant reads of the JSON-backed
catalog and recommendation data.

Freshness model for an entry of age ``now - timestamp``:
- fresh while ``age <= ttl``
- stale but usable while ``age <= stale_time`` (``get_or_fetch`` only,
  defaults to ``2 * ttl``)
- expired otherwise; ``get``/``has`` never return expired data

Expired entries are removed lazily on read and by a periodic ``cleanup``
sweep. There are no per-key timers, so re-setting a key can never be undone
by a timer left over from an earlier ``set``.
"""

import asyncio
import inspect
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Any, Generic, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")

FetchFn = Callable[[], Union[T, Awaitable[T]]]

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_CLEANUP_INTERVAL_SECONDS = 10 * 60


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with the time it was stored and its freshness window."""

    data: T
    timestamp: float
    ttl: float

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_expired(self, now: float) -> bool:
        return self.age(now) > self.ttl


@dataclass
class CacheStats:
    """Point-in-time entry counts. Taking a snapshot never evicts."""

    total_entries: int
    expired_entries: int
    active_entries: int


async def _resolve(fetch_fn: FetchFn[T]) -> T:
    """Call ``fetch_fn`` and await its result if it returned an awaitable."""
    result = fetch_fn()
    if inspect.isawaitable(result):
        result = await result
    return result


class CacheService(ABC):
    """Abstract base class for cache services.

    Defines the interface for caching operations including get, set,
    invalidation and stale-while-revalidate fetching. Also provides a
    static method for building consistent cache keys.
    """

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Retrieve a fresh cached value by key.

        Args:
            key: The cache key to look up.

        Returns:
            The cached value if present and not expired, None otherwise.
        """

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store value in cache, replacing any previous entry.

        Args:
            key: The cache key to store under.
            value: The value to cache. Stored as-is, never copied.
            ttl_seconds: Freshness window. Uses the default TTL if not specified.
        """

    @abstractmethod
    def has(self, key: str) -> bool:
        """Check if a fresh entry exists for key."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete a specific key from the cache.

        Returns:
            True if the key was deleted, False if it didn't exist.
        """

    @abstractmethod
    def invalidate(self, pattern: str) -> int:
        """Delete every entry whose key matches a glob-style pattern.

        Args:
            pattern: Glob-style pattern (e.g., ``"games-category-*"``).

        Returns:
            Number of keys invalidated.
        """

    @abstractmethod
    def clear(self) -> None:
        """Remove all entries."""

    @abstractmethod
    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: FetchFn[T],
        ttl_seconds: float | None = None,
        stale_seconds: float | None = None,
    ) -> T:
        """Return cached data, fetching it when missing or too stale."""

    @staticmethod
    def build_key(name: str, *params: Any) -> str:
        """Generate a cache key from a semantic name and its parameters.

        ``None`` parameters are rendered as ``all``.

        Example:
            >>> CacheService.build_key("games-category", "puzzle", None)
            'games-category-puzzle-all'
        """
        parts = [name, *("all" if p is None else str(p) for p in params)]
        return "-".join(parts)


class InMemoryCacheService(CacheService):
    """Process-local TTL cache with stale-while-revalidate fetching.

    One instance is created per application and handed to the services
    that read through it. All map operations are synchronous; only
    ``get_or_fetch`` and ``preload`` suspend, and only while awaiting the
    caller's fetch function.

    Attributes:
        _store: Key to entry mapping.
        _default_ttl: Default TTL in seconds for cached values.
        _clock: Monotonic time source in seconds.
        _refresh_tasks: Background refreshes that have not finished yet.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store: dict[str, CacheEntry[Any]] = {}
        self._default_ttl = default_ttl
        self._clock = clock
        self._refresh_tasks: set[asyncio.Task] = set()
        self._cleanup_task: asyncio.Task | None = None

    @property
    def default_ttl(self) -> float:
        """Get the default TTL in seconds."""
        return self._default_ttl

    def __len__(self) -> int:
        return len(self._store)

    def _ttl(self, ttl_seconds: float | None) -> float:
        return self._default_ttl if ttl_seconds is None else ttl_seconds

    def _fresh_entry(self, key: str) -> CacheEntry[Any] | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._store[key]
            return None
        return entry

    def get(self, key: str) -> Any | None:
        entry = self._fresh_entry(key)
        return entry.data if entry is not None else None

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        self._store[key] = CacheEntry(
            data=value, timestamp=self._clock(), ttl=self._ttl(ttl_seconds)
        )

    def has(self, key: str) -> bool:
        return self._fresh_entry(key) is not None

    def delete(self, key: str) -> bool:
        return self._store.pop(key, None) is not None

    def invalidate(self, pattern: str) -> int:
        matched = [k for k in self._store if fnmatchcase(k, pattern)]
        for k in matched:
            del self._store[k]
        return len(matched)

    def clear(self) -> None:
        self._store.clear()

    def get_stats(self) -> CacheStats:
        now = self._clock()
        total = len(self._store)
        expired = sum(1 for entry in self._store.values() if entry.is_expired(now))
        return CacheStats(
            total_entries=total,
            expired_entries=expired,
            active_entries=total - expired,
        )

    def cleanup(self) -> int:
        """Delete every expired entry.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [k for k, entry in self._store.items() if entry.is_expired(now)]
        for k in expired:
            del self._store[k]
        return len(expired)

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: FetchFn[T],
        ttl_seconds: float | None = None,
        stale_seconds: float | None = None,
    ) -> T:
        """Return cached data using stale-while-revalidate.

        1. Fresh entry (age <= ttl): returned without calling ``fetch_fn``.
        2. Stale entry (ttl < age <= stale time): returned immediately while
           ``fetch_fn`` runs in a background task; its result is stored on
           success and its failure is only logged.
        3. Otherwise ``fetch_fn`` is awaited and its result stored. If it
           fails and any entry is still held, however old, that entry's data
           is returned instead of raising.

        Args:
            key: The cache key.
            fetch_fn: Zero-argument callable returning the value or an awaitable.
            ttl_seconds: Freshness window. Uses the default TTL if not specified.
            stale_seconds: Maximum age served without waiting. Defaults to ``2 * ttl``.

        Raises:
            Exception: Whatever ``fetch_fn`` raised, when no entry exists to fall back to.
        """
        ttl = self._ttl(ttl_seconds)
        stale_time = ttl * 2 if stale_seconds is None else stale_seconds
        entry = self._store.get(key)

        if entry is not None:
            age = entry.age(self._clock())
            if age <= ttl:
                return entry.data
            if age <= stale_time:
                self._schedule_refresh(key, fetch_fn, ttl)
                return entry.data

        try:
            data = await _resolve(fetch_fn)
        except Exception as e:
            if entry is None:
                raise
            logger.warning(f"[CACHE] Fetch failed for {key}, serving stale data: {e}")
            return entry.data

        self.set(key, data, ttl)
        return data

    async def preload(
        self, key: str, fetch_fn: FetchFn[Any], ttl_seconds: float | None = None
    ) -> None:
        """Warm ``key`` unless a fresh entry exists. Fetch errors are logged, never raised."""
        if self.has(key):
            return
        try:
            data = await _resolve(fetch_fn)
        except Exception as e:
            logger.warning(f"[CACHE] Preload failed for {key}: {e}")
            return
        self.set(key, data, ttl_seconds)

    def _schedule_refresh(self, key: str, fetch_fn: FetchFn[Any], ttl: float) -> None:
        task = asyncio.get_running_loop().create_task(self._refresh(key, fetch_fn, ttl))
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)

    async def _refresh(self, key: str, fetch_fn: FetchFn[Any], ttl: float) -> None:
        try:
            data = await _resolve(fetch_fn)
        except Exception as e:
            logger.warning(f"[CACHE] Background refresh failed for {key}: {e}")
            return
        self.set(key, data, ttl)

    async def wait_for_refreshes(self) -> None:
        """Wait until every pending background refresh has finished."""
        while self._refresh_tasks:
            await asyncio.gather(*list(self._refresh_tasks), return_exceptions=True)

    def start_cleanup_task(
        self, interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS
    ) -> asyncio.Task:
        """Start the periodic expired-entry sweep on the running event loop.

        Calling it again while a sweep task is running returns that task.
        """
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.get_running_loop().create_task(
                self._cleanup_loop(interval_seconds)
            )
        return self._cleanup_task

    async def stop_cleanup_task(self) -> None:
        task, self._cleanup_task = self._cleanup_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _cleanup_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            removed = self.cleanup()
            if removed:
                logger.info(f"[CACHE] Cleanup removed {removed} expired entries")

    async def close(self) -> None:
        """Stop the sweep and let in-flight refreshes finish.

        Should be called when shutting down the application.
        """
        await self.stop_cleanup_task()
        await self.wait_for_refreshes()
