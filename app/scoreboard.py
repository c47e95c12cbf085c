"""
Scoreboard aggregation.

ESPN's site scoreboard is the primary source; the NBA stats
scoreboardv2 endpoint is the secondary one. The caller always supplies
the calendar date: nothing here reads the server clock.
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from app.fetch import FetchError, SourceClient, get_source_client
from app.models import GameRecord, GameStatus, Scoreboard, TeamGameResult, TeamScore
from app.stats import coerce_stat_value, overall_record, parse_record_summary
from app.teams import espn_team_id, normalize_tricode, resolve_team_identifier
from app.utils.helpers import dig, safe_int, safe_str
from config.settings import settings

logger = logging.getLogger("scoreboard")

# stats.nba.com rejects requests without browser-like origin headers
NBA_STATS_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Origin": "https://www.nba.com",
    "Referer": "https://www.nba.com/",
}

DateLike = Union[str, date]


def parse_calendar_date(value: DateLike) -> date:
    """
    Parse an explicit calendar date.

    Accepts a date, "YYYY-MM-DD" or "YYYYMMDD".

    Raises:
        ValueError: for anything else
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in ("%Y-%m-%d", "%Y%m%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid calendar date: {value!r} (expected YYYY-MM-DD)")


def fetch_scoreboard_payload(game_date: date, client: Optional[SourceClient] = None) -> Any:
    """
    Raw ESPN scoreboard payload for one date.

    Raises:
        FetchError: when the upstream call fails after retries
    """
    client = client or get_source_client()
    url = f"{settings.espn_site_base_url}/scoreboard"
    return client.get_json(url, params={"dates": game_date.strftime("%Y%m%d")})


def parse_status(status: Any) -> Dict[str, Any]:
    """
    Map an ESPN competition status.

    "completed" wins over state, so a finished game is never reported Live.
    """
    status = status if isinstance(status, dict) else {}
    status_type = status.get("type") if isinstance(status.get("type"), dict) else {}

    if status_type.get("completed"):
        game_status = GameStatus.FINAL
    elif status_type.get("state") == "in":
        game_status = GameStatus.LIVE
    else:
        game_status = GameStatus.SCHEDULED

    return {
        "status": game_status,
        "status_text": safe_str(status_type.get("detail") or status_type.get("shortDetail")),
        "period": safe_int(status.get("period")),
        "clock": safe_str(status.get("displayClock")),
    }


def parse_competitor(competitor: dict) -> TeamScore:
    """One ESPN competitor into a TeamScore. Bad records become 0-0."""
    team = competitor.get("team") or {}
    records = competitor.get("records")
    if records is None:
        records = competitor.get("record")
    wins, losses = overall_record(records)

    raw_score = competitor.get("score")
    score = coerce_stat_value(raw_score)
    abbreviation = safe_str(team.get("abbreviation"))

    return TeamScore(
        tricode=resolve_team_identifier(abbreviation) or normalize_tricode(abbreviation),
        team_id=safe_str(team.get("id")) or None,
        city=safe_str(team.get("location")),
        name=safe_str(team.get("name")),
        score=int(score) if score is not None else None,
        wins=wins,
        losses=losses,
    )


def parse_event(event: Any) -> Optional[GameRecord]:
    """
    Map one ESPN event to a GameRecord.

    Returns None (and logs) when the event lacks a home/away pair.
    """
    competition = dig(event, "competitions", 0)
    if not isinstance(competition, dict):
        logger.warning(f"Skipping event without competition: {dig(event, 'id')}")
        return None

    competitors = competition.get("competitors") or []
    home = next((c for c in competitors if isinstance(c, dict) and c.get("homeAway") == "home"), None)
    away = next((c for c in competitors if isinstance(c, dict) and c.get("homeAway") == "away"), None)
    if home is None or away is None:
        logger.warning(f"Skipping event without home/away competitors: {event.get('id')}")
        return None

    status = parse_status(competition.get("status") or event.get("status"))
    return GameRecord(
        game_id=safe_str(event.get("id") or competition.get("id")),
        start_time_utc=event.get("date") or competition.get("date"),
        home=parse_competitor(home),
        away=parse_competitor(away),
        **status,
    )


def parse_scoreboard(payload: Any, requested: date) -> Scoreboard:
    """
    ESPN scoreboard payload into a Scoreboard.

    Empty or malformed payloads give an empty games list; malformed
    events are skipped one by one.
    """
    game_date = requested.isoformat()
    if not isinstance(payload, dict):
        logger.warning(f"Unexpected scoreboard payload for {game_date}: {type(payload).__name__}")
        return Scoreboard(game_date=game_date, games=[])

    day = dig(payload, "day", "date")
    if isinstance(day, str) and day:
        game_date = day[:10]

    events = payload.get("events")
    if not isinstance(events, list):
        return Scoreboard(game_date=game_date, games=[])

    games: List[GameRecord] = []
    for event in events:
        if not isinstance(event, dict):
            continue
        game = parse_event(event)
        if game is not None:
            games.append(game)

    return Scoreboard(game_date=game_date, games=games)


def _result_set_rows(payload: Any, name: str) -> List[Dict[str, Any]]:
    """NBA stats resultSets entry as a list of dicts keyed by header."""
    result_sets = payload.get("resultSets") if isinstance(payload, dict) else None
    if not isinstance(result_sets, list):
        return []
    for result_set in result_sets:
        if isinstance(result_set, dict) and result_set.get("name") == name:
            headers = result_set.get("headers") or []
            return [dict(zip(headers, row)) for row in result_set.get("rowSet") or []]
    return []


def _nba_stats_status(status_id: Any) -> GameStatus:
    return {
        2: GameStatus.LIVE,
        3: GameStatus.FINAL,
    }.get(safe_int(status_id), GameStatus.SCHEDULED)


def parse_nba_stats_scoreboard(payload: Any, requested: date) -> Scoreboard:
    """
    NBA stats scoreboardv2 payload (GameHeader + LineScore) into a Scoreboard.
    """
    line_scores = {
        (safe_str(row.get("GAME_ID")), safe_str(row.get("TEAM_ID"))): row
        for row in _result_set_rows(payload, "LineScore")
    }

    def team_score(game_id: str, team_id: Any) -> TeamScore:
        row = line_scores.get((game_id, safe_str(team_id)), {})
        abbreviation = safe_str(row.get("TEAM_ABBREVIATION"))
        wins, losses = parse_record_summary(row.get("TEAM_WINS_LOSSES"))
        points = row.get("PTS")
        return TeamScore(
            tricode=resolve_team_identifier(abbreviation) or normalize_tricode(abbreviation),
            team_id=safe_str(team_id) or None,
            city=safe_str(row.get("TEAM_CITY_NAME")),
            name=safe_str(row.get("TEAM_NAME")),
            score=safe_int(points) if points is not None else None,
            wins=wins,
            losses=losses,
        )

    games: List[GameRecord] = []
    for header in _result_set_rows(payload, "GameHeader"):
        game_id = safe_str(header.get("GAME_ID"))
        if not game_id:
            continue
        games.append(
            GameRecord(
                game_id=game_id,
                start_time_utc=header.get("GAME_DATE_EST"),
                status=_nba_stats_status(header.get("GAME_STATUS_ID")),
                status_text=safe_str(header.get("GAME_STATUS_TEXT")).strip(),
                period=safe_int(header.get("LIVE_PERIOD")),
                clock=safe_str(header.get("LIVE_PC_TIME")).strip(),
                home=team_score(game_id, header.get("HOME_TEAM_ID")),
                away=team_score(game_id, header.get("VISITOR_TEAM_ID")),
            )
        )

    return Scoreboard(game_date=requested.isoformat(), games=games, source="nba-stats")


def _fetch_secondary(requested: date, client: SourceClient) -> Scoreboard:
    url = f"{settings.nba_stats_base_url}/scoreboardv2"
    payload = client.get_json(
        url,
        params={
            "GameDate": requested.isoformat(),
            "LeagueID": "00",
            "DayOffset": "0",
        },
        headers=NBA_STATS_HEADERS,
    )
    return parse_nba_stats_scoreboard(payload, requested)


def get_scoreboard(game_date: DateLike, client: Optional[SourceClient] = None) -> Optional[Scoreboard]:
    """
    All games for a calendar date.

    Args:
        game_date: Explicit date ("YYYY-MM-DD" or date). Required.
        client: Source client (defaults to the shared one)

    Returns:
        Scoreboard (possibly with no games), or None when neither the
        primary nor the secondary provider could be fetched.

    Raises:
        ValueError: if game_date is not a valid calendar date
    """
    requested = parse_calendar_date(game_date)
    client = client or get_source_client()

    try:
        payload = fetch_scoreboard_payload(requested, client)
    except FetchError as e:
        logger.warning(f"Primary scoreboard failed for {requested}: {e}; trying NBA stats")
    else:
        scoreboard = parse_scoreboard(payload, requested)
        logger.info(f"Scoreboard {scoreboard.game_date}: {len(scoreboard.games)} games (espn)")
        return scoreboard

    try:
        scoreboard = _fetch_secondary(requested, client)
    except FetchError as e:
        logger.error(f"All scoreboard sources failed for {requested}: {e}")
        return None

    logger.info(f"Scoreboard {scoreboard.game_date}: {len(scoreboard.games)} games (nba-stats)")
    return scoreboard


def get_game(game_id: str, client: Optional[SourceClient] = None) -> Optional[GameRecord]:
    """
    A single game from the provider's event summary.

    Returns None when the game does not exist or cannot be fetched.
    """
    client = client or get_source_client()
    url = f"{settings.espn_site_base_url}/summary"
    try:
        payload = client.get_json(url, params={"event": game_id})
    except FetchError as e:
        if e.is_not_found:
            logger.info(f"Game {game_id} not found")
        else:
            logger.warning(f"Failed to fetch game {game_id}: {e}")
        return None

    competition = dig(payload, "header", "competitions", 0)
    if not isinstance(competition, dict):
        logger.warning(f"No competition in summary for game {game_id}")
        return None

    event = {
        "id": dig(payload, "header", "id") or game_id,
        "date": competition.get("date"),
        "competitions": [competition],
    }
    return parse_event(event)


def _team_game_result(event: dict, team_id: str) -> Optional[TeamGameResult]:
    competition = dig(event, "competitions", 0) or {}
    competitors = competition.get("competitors") or []
    own = next((c for c in competitors if safe_str(dig(c, "team", "id")) == team_id), None)
    other = next((c for c in competitors if c is not own), None)
    if own is None or other is None:
        return None

    own_score = coerce_stat_value(own.get("score"))
    other_score = coerce_stat_value(other.get("score"))
    opponent = safe_str(dig(other, "team", "abbreviation"))
    return TeamGameResult(
        game_id=safe_str(event.get("id")),
        game_date=event.get("date"),
        opponent=resolve_team_identifier(opponent) or normalize_tricode(opponent) or None,
        home=own.get("homeAway") == "home",
        team_score=int(own_score) if own_score is not None else None,
        opponent_score=int(other_score) if other_score is not None else None,
    )


def get_team_game_log(
    identifier: str,
    limit: int = 10,
    client: Optional[SourceClient] = None,
) -> Optional[List[TeamGameResult]]:
    """
    A team's most recent completed games, most recent first.

    Returns [] for an unknown team and None when the schedule cannot be fetched.
    """
    team_id = espn_team_id(identifier)
    if team_id is None:
        return []

    client = client or get_source_client()
    url = f"{settings.espn_site_base_url}/teams/{team_id}/schedule"
    try:
        payload = client.get_json(url)
    except FetchError as e:
        logger.warning(f"Failed to fetch schedule for {identifier}: {e}")
        return None

    events = payload.get("events") if isinstance(payload, dict) else None
    if not isinstance(events, list):
        return []

    completed = [
        e for e in events
        if isinstance(e, dict) and dig(e, "competitions", 0, "status", "type", "completed")
    ]
    results = []
    for event in reversed(completed):
        result = _team_game_result(event, team_id)
        if result is not None:
            results.append(result)
        if len(results) >= limit:
            break
    return results
