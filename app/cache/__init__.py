"""
Response cache with per-category TTL and request coalescing.
"""
from .core import CacheEntry, CacheMeta, CacheSource, DataCategory
from .ttl_policies import (
    TTL_CONFIG,
    get_ttl_for_category,
    get_category_for_url,
)
from .coalescer import CoalescedWaitTimeout, RequestCoalescer
from .manager import CacheManager, get_cache_manager

__all__ = [
    # Core types
    "CacheEntry",
    "CacheMeta",
    "CacheSource",
    "DataCategory",
    # TTL policies
    "TTL_CONFIG",
    "get_ttl_for_category",
    "get_category_for_url",
    # Coalescing
    "CoalescedWaitTimeout",
    "RequestCoalescer",
    # Manager
    "CacheManager",
    "get_cache_manager",
]
