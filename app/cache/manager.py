"""
Read-through response cache with per-category TTL.
"""
import threading
import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Callable, Any, Tuple

from .core import CacheEntry, CacheMeta, CacheSource, DataCategory
from .coalescer import RequestCoalescer
from .ttl_policies import get_ttl_for_category

logger = logging.getLogger("cache.manager")


class CacheManager:
    """
    In-process cache for upstream payloads.

    - TTL chosen by data category
    - concurrent misses for one key coalesced into one upstream call
    - concurrent refreshes of one key are last-write-wins

    Entries live only for the process lifetime. Failed fetches are never
    stored.
    """

    def __init__(self, enabled: bool = True, coalesce_timeout: float = 30.0):
        self.enabled = enabled
        self._cache: Dict[str, CacheEntry] = {}
        self._cache_lock = threading.RLock()
        self._coalescer = RequestCoalescer(timeout=coalesce_timeout)
        self._stats = {
            "hits": 0,
            "misses": 0,
        }

    def get(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Any],
        category: DataCategory,
        force_refresh: bool = False,
        wait_timeout: Optional[float] = None,
    ) -> Tuple[Any, CacheMeta]:
        """
        Return cached data for cache_key, fetching upstream when missing or stale.

        wait_timeout bounds how long a miss waits on an identical in-flight
        fetch; see RequestCoalescer.get_or_fetch.

        Returns:
            (data, cache_meta) tuple
        """
        ttl = get_ttl_for_category(category)

        if self.enabled and not force_refresh:
            with self._cache_lock:
                entry = self._cache.get(cache_key)
            if entry is not None and entry.is_fresh:
                logger.debug(f"CACHE HIT: {cache_key} [age={entry.age_seconds:.1f}s]")
                self._stats["hits"] += 1
                return entry.data, self._make_meta(
                    CacheSource.FRESH, category, ttl, entry.age_seconds
                )

        logger.debug(f"CACHE MISS: {cache_key}")
        data = self._coalescer.get_or_fetch(cache_key, fetch_fn, wait_timeout=wait_timeout)
        self._stats["misses"] += 1
        if self.enabled:
            self._store(cache_key, data, ttl, category)
        return data, self._make_meta(CacheSource.UPSTREAM, category, ttl, 0)

    def _store(self, cache_key: str, data: Any, ttl: int, category: DataCategory) -> None:
        entry = CacheEntry(
            data=data,
            fetched_at=datetime.now(timezone.utc),
            ttl_seconds=ttl,
            category=category,
        )
        with self._cache_lock:
            self._cache[cache_key] = entry

    def _make_meta(
        self,
        source: CacheSource,
        category: DataCategory,
        ttl: int,
        age: float,
    ) -> CacheMeta:
        return CacheMeta(
            last_updated=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            cache_source=source.value,
            category=category.value,
            ttl_seconds=ttl,
            age_seconds=age,
        )

    def invalidate(self, cache_key: str) -> bool:
        """Drop one entry. Returns True if it existed."""
        with self._cache_lock:
            if cache_key in self._cache:
                del self._cache[cache_key]
                logger.info(f"Invalidated cache: {cache_key}")
                return True
            return False

    def invalidate_pattern(self, pattern: str) -> int:
        """Drop every entry whose key contains pattern."""
        with self._cache_lock:
            to_delete = [k for k in self._cache if pattern in k]
            for key in to_delete:
                del self._cache[key]
            if to_delete:
                logger.info(f"Invalidated {len(to_delete)} entries matching '{pattern}'")
            return len(to_delete)

    def clear(self) -> int:
        """Drop every entry. Returns the number cleared."""
        with self._cache_lock:
            count = len(self._cache)
            self._cache.clear()
            logger.info(f"Cleared {count} cache entries")
            return count

    def get_stats(self) -> Dict[str, Any]:
        with self._cache_lock:
            total = self._stats["hits"] + self._stats["misses"]
            hit_rate = (self._stats["hits"] / total * 100) if total > 0 else 0
            return {
                "enabled": self.enabled,
                "entries": len(self._cache),
                "hits": self._stats["hits"],
                "misses": self._stats["misses"],
                "hit_rate_percent": round(hit_rate, 1),
                "coalescer": self._coalescer.get_stats(),
            }


_cache_manager: Optional[CacheManager] = None


def get_cache_manager() -> CacheManager:
    """Get or create the process-wide cache manager."""
    global _cache_manager
    if _cache_manager is None:
        from config.settings import settings
        _cache_manager = CacheManager(enabled=settings.cache_enabled)
    return _cache_manager
