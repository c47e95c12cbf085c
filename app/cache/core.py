"""
Core cache data structures.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from enum import Enum


class DataCategory(Enum):
    """Categories of upstream data with different freshness needs."""
    LIVE_SCORES = "live_scores"       # scoreboards, game summaries
    STANDINGS = "standings"
    LEADERS = "leaders"               # league-wide leader listings
    PLAYER_STATS = "player_stats"     # athlete detail, stats, game logs
    TEAM_STATS = "team_stats"         # team statistics and schedules
    ROSTERS = "rosters"


class CacheSource(Enum):
    """Where the returned data came from."""
    FRESH = "fresh"
    UPSTREAM = "upstream"


@dataclass
class CacheEntry:
    """A cached upstream payload with its TTL."""
    data: Any
    fetched_at: datetime
    ttl_seconds: int
    category: DataCategory = DataCategory.LIVE_SCORES

    @property
    def age_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.fetched_at).total_seconds()

    @property
    def is_fresh(self) -> bool:
        return self.age_seconds < self.ttl_seconds


@dataclass
class CacheMeta:
    """
    Metadata about a single cache access.
    """
    last_updated: str  # ISO timestamp
    cache_source: str  # "fresh" or "upstream"
    category: Optional[str] = None
    ttl_seconds: Optional[int] = None
    age_seconds: Optional[float] = None
