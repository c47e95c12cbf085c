"""
Player and team statistics aggregation.

Per-player stats come from two endpoint shapes: the stats summary
embedded in the athlete detail payload (primary) and the column-labeled
comprehensive stats endpoint (supplemental, fills gaps only).
"""
import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional

from app.fetch import FetchError, SourceClient, fetch_all, get_source_client
from app.models import PlayerGameLine, PlayerProfile, PlayerStatLine, TeamStatLine
from app.stats import (
    StatMap,
    build_stat_map,
    coerce_stat_value,
    embedded_stat_map,
    flatten_stat_categories,
    merge_stat_maps,
    parse_web_averages,
    records_by_label,
)
from app.teams import NBA_TEAMS, espn_team_id, normalize_tricode, resolve_team_identifier
from app.utils.helpers import dig, safe_int, safe_str
from config.settings import settings

logger = logging.getLogger("player_stats")

_WEIGHT_UNIT = re.compile(r"\s*lbs?\.?\s*", re.IGNORECASE)


def _athlete_url(player_id: str) -> str:
    return f"{settings.espn_common_base_url}/athletes/{player_id}"


def _team_abbreviation(athlete: dict) -> Optional[str]:
    abbreviation = dig(athlete, "team", "abbreviation")
    if not abbreviation:
        return None
    return resolve_team_identifier(abbreviation) or normalize_tricode(abbreviation)


def _jersey(value: Any) -> str:
    """Jersey arrives as "23" or {"value": 23, "displayValue": "23"}."""
    if isinstance(value, dict):
        value = value.get("displayValue") or value.get("value")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return safe_str(value)


def _display(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("displayValue") or value.get("value")
    if value is None or value == "":
        return None
    return str(value)


def fetch_athlete(
    player_id: str,
    client: Optional[SourceClient] = None,
    timeout: Optional[float] = None,
    on_retry: Optional[Callable[[FetchError], None]] = None,
) -> Optional[dict]:
    """
    The athlete object from the detail endpoint.

    Returns None when the payload has no athlete.

    Raises:
        FetchError: when the upstream call fails after retries
    """
    client = client or get_source_client()
    payload = client.get_json(
        _athlete_url(player_id),
        timeout=timeout or settings.detail_timeout_seconds,
        on_retry=on_retry,
    )
    athlete = payload.get("athlete") if isinstance(payload, dict) else None
    return athlete if isinstance(athlete, dict) else None


def summary_stat_map(athlete: dict) -> StatMap:
    """Primary-source stats from an athlete's statsSummary."""
    return build_stat_map(dig(athlete, "statsSummary", "statistics"))


def player_line_from_athlete(athlete: dict, stat_map: StatMap) -> PlayerStatLine:
    return PlayerStatLine.from_stat_map(
        stat_map,
        player_id=safe_str(athlete.get("id")),
        display_name=safe_str(athlete.get("displayName") or athlete.get("fullName")),
        first_name=safe_str(athlete.get("firstName")),
        last_name=safe_str(athlete.get("lastName")),
        team_tricode=_team_abbreviation(athlete),
        position=safe_str(dig(athlete, "position", "abbreviation")),
        jersey=_jersey(athlete.get("jersey")),
        headshot=dig(athlete, "headshot", "href"),
    )


def get_player_details(player_id: str, client: Optional[SourceClient] = None) -> Optional[PlayerProfile]:
    """
    Bio fields for one player, with normalized height and weight.

    Returns None when the player cannot be found or fetched.
    """
    try:
        athlete = fetch_athlete(player_id, client)
    except FetchError as e:
        logger.warning(f"Failed to fetch player details for {player_id}: {e}")
        return None
    if athlete is None:
        logger.info(f"No athlete data for player {player_id}")
        return None

    height = _display(athlete.get("displayHeight")) or _display(athlete.get("height"))
    weight = _display(athlete.get("displayWeight")) or _display(athlete.get("weight"))
    if weight:
        weight = _WEIGHT_UNIT.sub("", weight).strip() or None

    age = athlete.get("age")
    return PlayerProfile(
        player_id=safe_str(athlete.get("id") or player_id),
        display_name=safe_str(athlete.get("displayName") or athlete.get("fullName")),
        first_name=safe_str(athlete.get("firstName")),
        last_name=safe_str(athlete.get("lastName")),
        team_tricode=_team_abbreviation(athlete),
        position=safe_str(dig(athlete, "position", "abbreviation")),
        jersey=_jersey(athlete.get("jersey")),
        height=height,
        weight=weight,
        age=safe_int(age) if age is not None else None,
        headshot=dig(athlete, "headshot", "href"),
    )


def fetch_web_averages(player_id: str, client: SourceClient) -> StatMap:
    """Supplemental season averages. Failures yield {}."""
    url = f"{settings.espn_web_base_url}/athletes/{player_id}/stats"
    try:
        payload = client.get_json(url)
    except FetchError as e:
        logger.info(f"Comprehensive stats unavailable for {player_id}: {e}")
        return {}
    return parse_web_averages(payload)


def get_player_stats(player_id: str, client: Optional[SourceClient] = None) -> Optional[PlayerStatLine]:
    """
    Season averages for one player, merged from both stat sources.

    Returns None when the primary detail payload cannot be fetched or has
    no athlete. Stats no source carries stay None.
    """
    client = client or get_source_client()
    try:
        athlete = fetch_athlete(player_id, client)
    except FetchError as e:
        logger.warning(f"Failed to fetch stats for player {player_id}: {e}")
        return None
    if athlete is None:
        return None

    primary = summary_stat_map(athlete)
    merged = merge_stat_maps(primary, fetch_web_averages(player_id, client))
    logger.debug(
        f"Player {player_id}: {len(primary)} summary stats, {len(merged)} after merge"
    )
    return player_line_from_athlete(athlete, merged)


def get_team_stats(identifier: str, client: Optional[SourceClient] = None) -> Optional[TeamStatLine]:
    """
    One team's season statistics as a flat map.

    Returns None for an unknown team or when the endpoint fails.
    """
    tricode = resolve_team_identifier(identifier)
    team_id = espn_team_id(tricode)
    if team_id is None:
        return None

    client = client or get_source_client()
    url = f"{settings.espn_site_base_url}/teams/{team_id}/statistics"
    try:
        payload = client.get_json(url)
    except FetchError as e:
        logger.warning(f"Failed to fetch team stats for {tricode}: {e}")
        return None

    categories = dig(payload, "results", "stats", "categories")
    if categories is None:
        categories = dig(payload, "statistics", "splits", "categories")
    stats = flatten_stat_categories(categories)
    if not stats:
        logger.warning(f"No statistics in team stats payload for {tricode}")

    return TeamStatLine(
        tricode=tricode,
        team_id=team_id,
        display_name=safe_str(dig(payload, "team", "displayName")),
        stats=stats,
    )


def _roster_athletes(payload: Any) -> List[dict]:
    """Roster athletes, flat or grouped by position ({"items": [...]})."""
    athletes = payload.get("athletes") if isinstance(payload, dict) else None
    result = []
    for athlete in athletes or []:
        if not isinstance(athlete, dict):
            continue
        if isinstance(athlete.get("items"), list):
            result.extend(a for a in athlete["items"] if isinstance(a, dict))
        else:
            result.append(athlete)
    return result


def get_team_roster(
    identifier: str,
    client: Optional[SourceClient] = None,
    on_retry: Optional[Callable[[FetchError], None]] = None,
) -> Optional[List[PlayerStatLine]]:
    """
    A team's roster with whatever stats the roster embeds.

    Returns [] for an unknown team and None when the roster cannot be fetched.
    on_retry is passed through to the fetch and sees each retried failure.
    """
    tricode = resolve_team_identifier(identifier)
    team_id = espn_team_id(tricode)
    if team_id is None:
        return []

    client = client or get_source_client()
    url = f"{settings.espn_site_base_url}/teams/{team_id}/roster"
    try:
        payload = client.get_json(url, on_retry=on_retry)
    except FetchError as e:
        logger.warning(f"Failed to fetch roster for {tricode}: {e}")
        return None

    players = []
    for athlete in _roster_athletes(payload):
        player_id = safe_str(athlete.get("id"))
        if not player_id:
            continue
        players.append(
            PlayerStatLine.from_stat_map(
                embedded_stat_map(athlete.get("statistics")),
                player_id=player_id,
                display_name=safe_str(athlete.get("displayName") or athlete.get("fullName")),
                first_name=safe_str(athlete.get("firstName")),
                last_name=safe_str(athlete.get("lastName")),
                team_tricode=tricode,
                position=safe_str(dig(athlete, "position", "abbreviation")),
                jersey=_jersey(athlete.get("jersey")),
                headshot=dig(athlete, "headshot", "href"),
            )
        )
    return players


def _points_sort_key(player: PlayerStatLine):
    # Unknown PPG sorts after every known value
    return (player.points is None, -(player.points or 0.0))


def get_team_roster_with_stats(
    identifier: str,
    client: Optional[SourceClient] = None,
    batch_size: Optional[int] = None,
    batch_delay: Optional[float] = None,
) -> Optional[List[PlayerStatLine]]:
    """
    A team's roster with each player's season averages, best scorer first.

    Player details are fetched in batches with a pause between batches.
    A player whose fetch fails stays on the roster with unknown stats.

    Returns None only when the roster itself cannot be fetched.
    """
    batch_size = batch_size or settings.roster_batch_size
    batch_delay = settings.roster_batch_delay_seconds if batch_delay is None else batch_delay
    client = client or get_source_client()

    roster = get_team_roster(identifier, client)
    if roster is None:
        return None

    detailed: List[PlayerStatLine] = []
    failed = 0
    for start in range(0, len(roster), batch_size):
        if start > 0 and batch_delay > 0:
            time.sleep(batch_delay)
        batch = roster[start:start + batch_size]
        results = fetch_all(lambda p: get_player_stats(p.player_id, client), batch)
        for player, stats in zip(batch, results):
            if stats is None:
                failed += 1
                detailed.append(player)
            else:
                detailed.append(player.with_stats_from(stats))

    if failed:
        logger.warning(f"Stats unavailable for {failed}/{len(roster)} players on {identifier}")

    detailed.sort(key=_points_sort_key)
    return detailed


def _game_log_value(stats: Dict[str, Any], label: str) -> Optional[float]:
    return coerce_stat_value(stats.get(label))


def get_player_game_log(
    player_id: str,
    limit: int = 10,
    client: Optional[SourceClient] = None,
) -> Optional[List[PlayerGameLine]]:
    """
    A player's recent regular-season games, most recent first.

    Returns None when the game log cannot be fetched.
    """
    client = client or get_source_client()
    url = f"{settings.espn_web_base_url}/athletes/{player_id}/gamelog"
    try:
        payload = client.get_json(url, timeout=settings.detail_timeout_seconds)
    except FetchError as e:
        logger.warning(f"Failed to fetch game log for player {player_id}: {e}")
        return None
    if not isinstance(payload, dict):
        return []

    labels = payload.get("labels") or []
    events = payload.get("events") if isinstance(payload.get("events"), dict) else {}

    # eventId -> {label: value} for regular-season games
    stats_by_event: Dict[str, Dict[str, Any]] = {}
    for season_type in payload.get("seasonTypes") or []:
        if "regular" not in safe_str(dig(season_type, "displayName")).lower():
            continue
        for category in season_type.get("categories") or []:
            for game in dig(category, "events") or []:
                event_id = safe_str(dig(game, "eventId"))
                if event_id:
                    stats_by_event[event_id] = records_by_label(labels, game.get("stats") or [])

    event_ids = list(stats_by_event) if stats_by_event else list(events)

    games = []
    for event_id in event_ids:
        info = events.get(event_id) or {}
        stats = stats_by_event.get(event_id, {})
        opponent = safe_str(dig(info, "opponent", "abbreviation"))
        at_vs = info.get("atVs")
        games.append(
            PlayerGameLine(
                game_id=event_id,
                game_date=info.get("gameDate"),
                opponent=resolve_team_identifier(opponent) or normalize_tricode(opponent) or None,
                home=(at_vs == "vs") if at_vs else None,
                result=info.get("gameResult"),
                score=info.get("score"),
                points=_game_log_value(stats, "PTS"),
                rebounds=_game_log_value(stats, "REB"),
                assists=_game_log_value(stats, "AST"),
                steals=_game_log_value(stats, "STL"),
                blocks=_game_log_value(stats, "BLK"),
                turnovers=_game_log_value(stats, "TO"),
                minutes=_game_log_value(stats, "MIN"),
                fg_pct=_game_log_value(stats, "FG%"),
                three_pct=_game_log_value(stats, "3P%"),
            )
        )

    games.sort(key=lambda g: g.game_date or "", reverse=True)
    return games[:limit]


def find_player_in_rosters(player_id: str, client: Optional[SourceClient] = None) -> Optional[PlayerStatLine]:
    """
    Scan every roster for a player id.

    Used for players without a detail page. Rosters that fail to load are
    skipped.
    """
    client = client or get_source_client()
    player_id = str(player_id)
    for team in NBA_TEAMS:
        roster = get_team_roster(team.tricode, client) or []
        for player in roster:
            if player.player_id == player_id:
                logger.info(f"Found player {player.display_name} on {team.tricode} roster")
                return player
    logger.info(f"Player {player_id} not found on any roster")
    return None
