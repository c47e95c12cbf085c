"""
Player search across every NBA roster.

Scoring is strictly tiered: a name scores the value of the best tier it
reaches, never a sum, so a long name with many partial word hits cannot
outrank a prefix match.
"""
import logging
import re
from typing import List, Optional, Tuple

from app.fetch import SourceClient, fetch_all, get_source_client
from app.models import PlayerStatLine
from app.player_stats import get_team_roster
from app.teams import NBA_TEAMS
from app.utils.helpers import safe_lower
from config.settings import settings

logger = logging.getLogger("search")

# Match tiers, highest first
SCORE_EXACT = 1000
SCORE_STARTS_WITH = 500
SCORE_WORD_PREFIX = 300
SCORE_WORD_CONTAINS = 100
SCORE_SUBSTRING = 50

_WHITESPACE = re.compile(r"\s+")


def score_name(name: str, query: str) -> int:
    """
    Score one name against a query.

    Tiers: exact match, name starts with query, a name word starts with a
    query word, a name word contains a query word, name contains query.
    0 means no match.
    """
    name = _WHITESPACE.sub(" ", safe_lower(name).strip())
    query = _WHITESPACE.sub(" ", safe_lower(query).strip())
    if not name or not query:
        return 0

    if name == query:
        return SCORE_EXACT
    if name.startswith(query):
        return SCORE_STARTS_WITH

    name_words = name.split(" ")
    query_words = query.split(" ")
    if any(nw.startswith(qw) for nw in name_words for qw in query_words):
        return SCORE_WORD_PREFIX
    if any(qw in nw for nw in name_words for qw in query_words):
        return SCORE_WORD_CONTAINS
    if query in name:
        return SCORE_SUBSTRING
    return 0


def score_player_match(player: PlayerStatLine, query: str) -> int:
    """Best score over the player's display, first and last names."""
    return max(
        score_name(player.display_name, query),
        score_name(player.first_name, query),
        score_name(player.last_name, query),
    )


def rank_players(players: List[PlayerStatLine], query: str, limit: int) -> List[PlayerStatLine]:
    """Matching players, best score first; ties keep input order."""
    scored: List[Tuple[int, PlayerStatLine]] = []
    for player in players:
        score = score_player_match(player, query)
        if score > 0:
            scored.append((score, player))
    scored.sort(key=lambda item: item[0], reverse=True)
    return [player for _, player in scored[:limit]]


def search_all_players(
    query: str,
    client: Optional[SourceClient] = None,
    limit: Optional[int] = None,
) -> List[PlayerStatLine]:
    """
    Fuzzy search every team's roster.

    Queries shorter than the minimum length return [] without any
    upstream call. Rosters that fail to load are skipped.
    """
    query = (query or "").strip()
    if len(query) < settings.search_min_query_length:
        return []

    limit = limit or settings.search_result_limit
    client = client or get_source_client()

    tricodes = [team.tricode for team in NBA_TEAMS]
    rosters = fetch_all(lambda t: get_team_roster(t, client), tricodes)

    failed = [t for t, roster in zip(tricodes, rosters) if roster is None]
    if failed:
        logger.warning(f"Search skipped {len(failed)} rosters: {', '.join(failed)}")

    players = [player for roster in rosters if roster for player in roster]
    results = rank_players(players, query, limit)
    logger.info(f"Search '{query}': {len(results)} of {len(players)} players matched")
    return results
