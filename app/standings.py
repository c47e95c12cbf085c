"""
Standings aggregation.

Strategy A parses the direct standings endpoint. Strategy B derives
standings by scanning recent scoreboards and keeping each team's most
recent record summary. Both end in the same ranking pass, so conference
rank and games behind are always recomputed here.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from app.fetch import FetchError, SourceClient, get_source_client
from app.models import StandingEntry, Standings
from app.scoreboard import DateLike, fetch_scoreboard_payload, parse_calendar_date
from app.stats import find_record, get_stat, overall_record, parse_record_summary
from app.teams import NBA_TEAMS, conference_for, resolve_team_identifier
from app.utils.helpers import dig, safe_str
from config.settings import settings

logger = logging.getLogger("standings")

CONFERENCES = ("East", "West")

HOME_TYPES = ("home",)
AWAY_TYPES = ("road", "away")
CONF_TYPES = ("vsconf", "vs. conf.")
LAST_TEN_TYPES = ("last10", "lasttengames", "last ten games")
STREAK_TYPES = ("streak",)


def season_label(reference: date) -> str:
    """
    Season containing a date: October-December belongs to the season
    starting that year, January-September to the one that started the
    year before.

    >>> season_label(date(2024, 11, 2))
    '2024-25'
    >>> season_label(date(2025, 3, 15))
    '2024-25'
    """
    start = reference.year if reference.month >= 10 else reference.year - 1
    return f"{start}-{(start + 1) % 100:02d}"


def season_end_year(reference: date) -> int:
    """Calendar year the season containing reference ends in (ESPN's season id)."""
    return reference.year + 1 if reference.month >= 10 else reference.year


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def rank_conference(entries: List[StandingEntry]) -> List[StandingEntry]:
    """
    Assign dense ranks and games behind within one conference.

    Sort is stable, so equal win percentages keep their input order.
    """
    ranked = sorted(entries, key=lambda e: e.win_pct, reverse=True)
    if not ranked:
        return ranked
    leader = ranked[0]
    for index, entry in enumerate(ranked):
        entry.conf_rank = index + 1
        if index == 0:
            entry.games_behind = 0.0
        else:
            entry.games_behind = ((leader.wins - entry.wins) + (entry.losses - leader.losses)) / 2
    return ranked


def rank_standings(entries: Iterable[StandingEntry]) -> List[StandingEntry]:
    """Partition by conference and rank each; East first, then West."""
    result: List[StandingEntry] = []
    entries = list(entries)
    for conference in CONFERENCES:
        result.extend(rank_conference([e for e in entries if e.conference == conference]))
    return result


def _split(records: Any, types: Iterable[str]) -> tuple:
    record = find_record(records, types)
    if record is None:
        return 0, 0
    return parse_record_summary(record.get("summary") or record.get("displayValue"))


def _streak_from_value(value: Optional[float]) -> str:
    if value is None or value == 0:
        return "-"
    count = int(abs(value))
    return f"W{count}" if value > 0 else f"L{count}"


# Strategy A -----------------------------------------------------------------

def _parse_direct_entry(entry: dict, conference: str) -> Optional[StandingEntry]:
    team = entry.get("team") or {}
    abbreviation = safe_str(team.get("abbreviation"))
    tricode = resolve_team_identifier(abbreviation) or resolve_team_identifier(team.get("displayName"))
    if tricode is None:
        logger.warning(f"Unresolved team in standings: {abbreviation or team.get('displayName')!r}")
        return None

    stats = entry.get("stats") or []
    wins = get_stat(stats, "wins")
    losses = get_stat(stats, "losses")
    home_wins, home_losses = _split(stats, HOME_TYPES)
    away_wins, away_losses = _split(stats, AWAY_TYPES)
    conf_wins, conf_losses = _split(stats, CONF_TYPES)
    last_ten_wins, last_ten_losses = _split(stats, LAST_TEN_TYPES)

    streak_stat = find_record(stats, STREAK_TYPES)
    streak = safe_str(streak_stat.get("displayValue")) if streak_stat else ""
    if not streak:
        streak = _streak_from_value(get_stat(stats, "streak"))

    seed = get_stat(stats, "playoffSeed")
    return StandingEntry(
        tricode=tricode,
        team_id=safe_str(team.get("id")) or None,
        city=safe_str(team.get("location")),
        name=safe_str(team.get("name")),
        conference=conference,
        wins=int(wins or 0),
        losses=int(losses or 0),
        home_wins=home_wins,
        home_losses=home_losses,
        away_wins=away_wins,
        away_losses=away_losses,
        conf_wins=conf_wins,
        conf_losses=conf_losses,
        last_ten_wins=last_ten_wins,
        last_ten_losses=last_ten_losses,
        streak=streak,
        playoff_seed=int(seed) if seed else None,
    )


def parse_direct_standings(payload: Any) -> List[StandingEntry]:
    """
    Entries from the direct standings endpoint, before ranking.

    Within a conference, entries are pre-ordered by playoff seed where
    the payload has one, so tiebreakers survive the stable win-pct sort.

    Raises:
        ValueError: if the payload has no conference groups or no teams
    """
    children = payload.get("children") if isinstance(payload, dict) else None
    if not isinstance(children, list) or not children:
        raise ValueError("standings payload has no conference groups")

    entries: List[StandingEntry] = []
    for group in children:
        if not isinstance(group, dict):
            continue
        group_name = safe_str(group.get("name") or group.get("abbreviation")).lower()
        group_conference = "East" if group_name.startswith("east") else "West"

        parsed = []
        for raw in dig(group, "standings", "entries") or []:
            if not isinstance(raw, dict):
                continue
            entry = _parse_direct_entry(raw, group_conference)
            if entry is None:
                continue
            # The franchise table is authoritative for conference membership
            entry.conference = conference_for(entry.tricode) or group_conference
            parsed.append(entry)

        parsed.sort(key=lambda e: e.playoff_seed if e.playoff_seed is not None else 99)
        entries.extend(parsed)

    if not entries:
        raise ValueError("standings payload contains no teams")

    return _dedupe(entries)


def _dedupe(entries: List[StandingEntry]) -> List[StandingEntry]:
    seen: Dict[str, StandingEntry] = {}
    for entry in entries:
        seen.setdefault(entry.tricode, entry)
    return list(seen.values())


# Strategy B -----------------------------------------------------------------

def entry_from_competitor(competitor: dict) -> Optional[StandingEntry]:
    """
    A StandingEntry from one scoreboard competitor's record summaries.

    Returns None for teams the resolver does not know.
    """
    team = competitor.get("team") or {}
    abbreviation = safe_str(team.get("abbreviation"))
    tricode = resolve_team_identifier(abbreviation)
    if tricode is None:
        logger.warning(f"Unresolved team on scoreboard: {abbreviation!r}")
        return None

    records = competitor.get("records") or []
    wins, losses = overall_record(records)
    home_wins, home_losses = _split(records, HOME_TYPES)
    away_wins, away_losses = _split(records, AWAY_TYPES)
    conf_wins, conf_losses = _split(records, CONF_TYPES)
    last_ten_wins, last_ten_losses = _split(records, LAST_TEN_TYPES)
    streak_record = find_record(records, STREAK_TYPES)
    streak = safe_str(streak_record.get("summary")) if streak_record else ""

    return StandingEntry(
        tricode=tricode,
        team_id=safe_str(team.get("id")) or None,
        city=safe_str(team.get("location")),
        name=safe_str(team.get("name")),
        conference=conference_for(tricode),
        wins=wins,
        losses=losses,
        home_wins=home_wins,
        home_losses=home_losses,
        away_wins=away_wins,
        away_losses=away_losses,
        conf_wins=conf_wins,
        conf_losses=conf_losses,
        last_ten_wins=last_ten_wins,
        last_ten_losses=last_ten_losses,
        streak=streak or "-",
    )


def derive_standings(
    reference: date,
    client: SourceClient,
    scan_days: Optional[int] = None,
) -> Optional[Standings]:
    """
    Build standings from scoreboards on reference and the days before it.

    Scans newest first; the first record seen for a team is kept. Stops
    as soon as every franchise has been seen.

    Returns:
        Standings, or None when no team was found in the whole window.
    """
    scan_days = settings.standings_scan_days if scan_days is None else scan_days
    total_teams = len(NBA_TEAMS)
    teams: Dict[str, StandingEntry] = {}
    days_scanned = 0

    for days_ago in range(scan_days + 1):
        if len(teams) >= total_teams:
            break
        day = reference - timedelta(days=days_ago)
        days_scanned += 1
        try:
            payload = fetch_scoreboard_payload(day, client)
        except FetchError as e:
            logger.warning(f"Skipping {day} while deriving standings: {e}")
            continue

        events = payload.get("events") if isinstance(payload, dict) else None
        for event in events or []:
            for competitor in dig(event, "competitions", 0, "competitors") or []:
                if not isinstance(competitor, dict):
                    continue
                tricode = resolve_team_identifier(dig(competitor, "team", "abbreviation"))
                if tricode in teams:
                    continue
                entry = entry_from_competitor(competitor)
                if entry is not None:
                    teams[entry.tricode] = entry

    if not teams:
        logger.error(f"No teams found scanning {days_scanned} days back from {reference}")
        return None

    if len(teams) < total_teams:
        missing = sorted(t.tricode for t in NBA_TEAMS if t.tricode not in teams)
        logger.warning(
            f"Derived standings cover {len(teams)}/{total_teams} teams; "
            f"not seen in {days_scanned} days: {', '.join(missing)}"
        )
    else:
        logger.info(f"Derived standings for all teams in {days_scanned} days")

    return Standings(
        season=season_label(reference),
        standings=rank_standings(teams.values()),
        source="scoreboard-derived",
        days_scanned=days_scanned,
    )


# Public API -----------------------------------------------------------------

def get_standings(
    reference_date: Optional[DateLike] = None,
    client: Optional[SourceClient] = None,
) -> Optional[Standings]:
    """
    Current standings.

    Tries the direct endpoint and falls back to scoreboard derivation.
    The reference date (UTC today when omitted) fixes the season label
    and the derivation window.

    Returns:
        Standings, or None when both strategies fail.
    """
    reference = parse_calendar_date(reference_date) if reference_date else _utc_today()
    client = client or get_source_client()

    try:
        payload = client.get_json(settings.espn_standings_url)
        entries = parse_direct_standings(payload)
    except FetchError as e:
        logger.warning(f"Standings endpoint failed: {e}; deriving from scoreboards")
    except (ValueError, KeyError, TypeError) as e:
        logger.warning(f"Unexpected standings payload: {e}; deriving from scoreboards")
    else:
        logger.info(f"Standings for {len(entries)} teams from standings endpoint")
        return Standings(
            season=season_label(reference),
            standings=rank_standings(entries),
            source="standings-endpoint",
        )

    return derive_standings(reference, client)


def get_standings_by_season(
    as_of_date: DateLike,
    client: Optional[SourceClient] = None,
) -> Optional[Standings]:
    """
    Standings as of a given date, derived from that date's scoreboards.

    Raises:
        ValueError: if as_of_date is not a valid calendar date
    """
    reference = parse_calendar_date(as_of_date)
    return derive_standings(reference, client or get_source_client())
