"""
TTL configuration and URL-to-category mapping.
"""
from typing import Dict
from urllib.parse import urlparse

from .core import DataCategory


# Fresh TTL by category (in seconds)
TTL_CONFIG: Dict[DataCategory, int] = {
    DataCategory.LIVE_SCORES: 30,
    DataCategory.STANDINGS: 600,
    DataCategory.LEADERS: 1800,
    DataCategory.PLAYER_STATS: 900,
    DataCategory.TEAM_STATS: 1800,
    DataCategory.ROSTERS: 3600,
}


def get_ttl_for_category(category: DataCategory) -> int:
    """Fresh TTL in seconds for a data category."""
    return TTL_CONFIG.get(category, TTL_CONFIG[DataCategory.LIVE_SCORES])


def get_category_for_url(url: str) -> DataCategory:
    """
    Classify an upstream URL into a data category.

    Examples:
        .../nba/scoreboard?dates=20240315       -> LIVE_SCORES
        .../nba/standings                       -> STANDINGS
        .../seasons/2025/types/2/leaders        -> LEADERS
        .../nba/teams/13/roster                 -> ROSTERS
        .../nba/teams/13/statistics             -> TEAM_STATS
        .../nba/athletes/3945274                -> PLAYER_STATS
    """
    path = urlparse(url).path.lower()

    if path.endswith("/scoreboard") or path.endswith("/summary") or "scoreboardv2" in path:
        return DataCategory.LIVE_SCORES

    if path.endswith("/standings"):
        return DataCategory.STANDINGS

    if path.endswith("/leaders"):
        return DataCategory.LEADERS

    if "/teams/" in path:
        if path.endswith("/roster"):
            return DataCategory.ROSTERS
        return DataCategory.TEAM_STATS

    if "/athletes/" in path:
        return DataCategory.PLAYER_STATS

    return DataCategory.LIVE_SCORES
