"""
Top scorers pipeline.

Three tiers, tried in order until one yields qualifying players:

1. leaders API: league-wide points-per-game leaders, each re-fetched for detail
2. roster crawl: every team's roster, filtered on embedded PPG
3. static list: curated player ids, each re-fetched for live stats

Every run leaves a FetchStatus record (tier used, count, errors, retries)
in an injected status store.
"""
import logging
import re
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from app.fetch import FetchError, SourceClient, fetch_all, get_source_client
from app.models import FetchStatus, FetchTier, PlayerStatLine
from app.player_stats import fetch_athlete, get_team_roster, player_line_from_athlete, summary_stat_map
from app.standings import season_end_year
from app.teams import NBA_TEAMS
from app.utils.helpers import dig
from config.settings import settings

logger = logging.getLogger("leaders")

# Curated top scorers (identities only; stats are always fetched live)
FALLBACK_TOP_PLAYER_IDS: List[str] = [
    "3945274",  # Luka Doncic
    "4278073",  # Shai Gilgeous-Alexander
    "4431678",  # Tyrese Maxey
    "3112335",  # Nikola Jokic
    "3908809",  # Giannis Antetokounmpo
    "3917376",  # Jayson Tatum
    "3934672",  # Anthony Edwards
    "4594268",  # Alperen Sengun
    "3975",     # Kevin Durant
    "3032977",  # Damian Lillard
    "6450",     # Kawhi Leonard
    "4066336",  # Donovan Mitchell
    "4066457",  # LaMelo Ball
    "4432166",  # Cam Thomas
    "3992",     # LeBron James
    "4278104",  # Michael Porter Jr.
    "4683021",  # Paolo Banchero
    "3202",     # Kevin Love
    "3136193",  # Devin Booker
    "3936299",  # Jalen Brunson
    "4433627",  # Franz Wagner
    "5104157",  # Victor Wembanyama
    "2595516",  # Trae Young
    "4701230",  # Gradey Dick
    "3149673",  # Karl-Anthony Towns
    "4066261",  # De'Aaron Fox
    "4397020",  # Luguentz Dort
    "3059318",  # Joel Embiid
    "4395628",  # Zion Williamson
    "6583",     # Anthony Davis
]

ATHLETE_REF_PATTERN = re.compile(r"athletes/(\d+)")


class TierFailed(Exception):
    """A tier could not produce any candidates."""


class FetchStatusStore:
    """
    Holds the most recent FetchStatus.

    Starts empty (tier NONE) and is overwritten by every run. Readers get
    a copy.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._status = FetchStatus()

    def get(self) -> FetchStatus:
        with self._lock:
            return replace(self._status, errors=list(self._status.errors))

    def set(self, status: FetchStatus) -> None:
        with self._lock:
            self._status = replace(status, errors=list(status.errors))

    def reset(self) -> None:
        self.set(FetchStatus())


def extract_athlete_id(ref_url: str) -> Optional[str]:
    """
    Athlete id from a core API $ref.

    >>> extract_athlete_id("http://sports.core.api.espn.com/v2/sports/basketball/leagues/nba/seasons/2026/athletes/3945274?lang=en")
    '3945274'
    """
    if not isinstance(ref_url, str):
        return None
    match = ATHLETE_REF_PATTERN.search(ref_url)
    return match.group(1) if match else None


def leader_athlete_ids(payload, limit: int) -> List[str]:
    """
    Ordered, de-duplicated athlete ids from the points-per-game category.

    Raises:
        TierFailed: if the payload has no points-per-game leaders
    """
    categories = payload.get("categories") if isinstance(payload, dict) else None
    category = next(
        (
            c for c in categories or []
            if isinstance(c, dict)
            and (c.get("abbreviation") == "PTS" or c.get("name") == "pointsPerGame")
        ),
        None,
    )
    if category is None or not isinstance(category.get("leaders"), list):
        raise TierFailed("points-per-game leaders not found in response")

    ids: List[str] = []
    for leader in category["leaders"]:
        athlete_id = extract_athlete_id(dig(leader, "athlete", "$ref"))
        if athlete_id and athlete_id not in ids:
            ids.append(athlete_id)
        if len(ids) >= limit:
            break
    return ids


class TopScorersPipeline:
    """
    Runs the three-tier top-scorers fetch.

    All tuning constants come from settings unless passed in; the client
    and status store are injectable for tests.
    """

    def __init__(
        self,
        client: Optional[SourceClient] = None,
        status_store: Optional[FetchStatusStore] = None,
        min_ppg: Optional[float] = None,
        roster_min_ppg: Optional[float] = None,
        batch_size: Optional[int] = None,
        player_timeout: Optional[float] = None,
        season_year: Optional[int] = None,
        fallback_ids: Optional[Sequence[str]] = None,
    ):
        self.client = client or get_source_client()
        self.status_store = status_store if status_store is not None else _status_store
        self.min_ppg = settings.top_scorers_min_ppg if min_ppg is None else min_ppg
        self.roster_min_ppg = settings.roster_crawl_min_ppg if roster_min_ppg is None else roster_min_ppg
        self.batch_size = batch_size or settings.leaders_batch_size
        self.player_timeout = player_timeout or settings.player_fetch_timeout_seconds
        self.season_year = season_year or settings.leaders_season_year
        self.fallback_ids = list(fallback_ids) if fallback_ids is not None else FALLBACK_TOP_PLAYER_IDS
        self._status = FetchStatus()
        self._retry_lock = threading.Lock()

    def _count_retry(self, error: FetchError) -> None:
        with self._retry_lock:
            self._status.retry_attempts += 1

    def _leaders_url(self) -> str:
        year = self.season_year or season_end_year(datetime.now(timezone.utc).date())
        return f"{settings.espn_core_base_url}/seasons/{year}/types/2/leaders"

    def fetch_player(self, player_id: str) -> Optional[PlayerStatLine]:
        """
        One player's live stats from the detail endpoint.

        Players with no PPG (or 0) are treated as inactive and skipped.
        """
        athlete = fetch_athlete(
            player_id,
            self.client,
            timeout=self.player_timeout,
            on_retry=self._count_retry,
        )
        if athlete is None:
            return None
        player = player_line_from_athlete(athlete, summary_stat_map(athlete))
        if not player.points:
            logger.info(f"Skipping {player.display_name or player_id}: no PPG data")
            return None
        return player

    def fetch_players(self, player_ids: Sequence[str]) -> List[PlayerStatLine]:
        """Fetch players in concurrent batches; failed players are dropped."""
        players: List[PlayerStatLine] = []
        total_batches = (len(player_ids) + self.batch_size - 1) // self.batch_size
        for batch_number, start in enumerate(range(0, len(player_ids), self.batch_size), 1):
            batch = list(player_ids[start:start + self.batch_size])
            logger.debug(f"Fetching player batch {batch_number}/{total_batches}")
            players.extend(p for p in fetch_all(self.fetch_player, batch) if p is not None)
        return players

    def from_leaders_api(self, limit: int) -> List[PlayerStatLine]:
        payload = self.client.get_json(
            self._leaders_url(),
            params={"lang": "en", "region": "us"},
            on_retry=self._count_retry,
        )
        ids = leader_athlete_ids(payload, limit)
        if not ids:
            raise TierFailed("leaders response listed no athletes")
        logger.info(f"Leaders API listed {len(ids)} scorers")
        return self.fetch_players(ids)

    def from_roster_crawl(self, limit: int) -> List[PlayerStatLine]:
        tricodes = [team.tricode for team in NBA_TEAMS]
        rosters = fetch_all(
            lambda t: get_team_roster(t, self.client, on_retry=self._count_retry), tricodes
        )
        if all(roster is None for roster in rosters):
            raise TierFailed("no team roster could be fetched")

        players = [
            player
            for roster in rosters if roster
            for player in roster
            if player.points is not None and player.points >= self.roster_min_ppg
        ]
        logger.info(f"Roster crawl found {len(players)} players at {self.roster_min_ppg}+ PPG")
        return players

    def from_static_list(self, limit: int) -> List[PlayerStatLine]:
        return self.fetch_players(self.fallback_ids[:limit])

    def validate(self, players: List[PlayerStatLine], limit: int) -> List[PlayerStatLine]:
        """Drop players under the PPG floor, sort by PPG, truncate."""
        qualified = [p for p in players if p.points is not None and p.points >= self.min_ppg]
        filtered = len(players) - len(qualified)
        if filtered:
            logger.warning(f"Filtered {filtered} players below {self.min_ppg} PPG")
        self._status.filtered_count += filtered
        qualified.sort(key=lambda p: p.points, reverse=True)
        return qualified[:limit]

    def run(self, limit: int) -> List[PlayerStatLine]:
        """
        Produce up to limit top scorers.

        Returns [] only when every tier failed or none yielded a
        qualifying player.
        """
        self._status = FetchStatus(fetched_at=datetime.now(timezone.utc))
        tiers: List[tuple] = [
            (FetchTier.LEADERS_API, self.from_leaders_api),
            (FetchTier.ROSTER_CRAWL, self.from_roster_crawl),
            (FetchTier.STATIC_FALLBACK, self.from_static_list),
        ]

        for tier, fetch in tiers:
            try:
                candidates = fetch(limit)
            except (FetchError, TierFailed) as e:
                logger.warning(f"Top scorers tier {tier.value} failed: {e}")
                self._status.errors.append(f"{tier.value}: {e}")
                self.status_store.set(self._status)
                continue

            players = self.validate(candidates, limit)
            if players:
                self._status.tier = tier
                self._status.player_count = len(players)
                self.status_store.set(self._status)
                logger.info(f"Top scorers: {len(players)} players from {tier.value}")
                return players

            logger.warning(f"Top scorers tier {tier.value} yielded no qualifying players")
            self._status.errors.append(f"{tier.value}: no qualifying players")
            self.status_store.set(self._status)

        self._status.tier = FetchTier.NONE
        self._status.player_count = 0
        self.status_store.set(self._status)
        logger.error("Top scorers: every tier failed")
        return []


_status_store = FetchStatusStore()


def get_top_scorers(
    limit: Optional[int] = None,
    client: Optional[SourceClient] = None,
    status_store: Optional[FetchStatusStore] = None,
) -> List[PlayerStatLine]:
    """Leading scorers by PPG, best first."""
    limit = limit or settings.top_scorers_default_limit
    pipeline = TopScorersPipeline(client=client, status_store=status_store)
    return pipeline.run(limit)


def get_last_fetch_status(status_store: Optional[FetchStatusStore] = None) -> FetchStatus:
    """The FetchStatus of the most recent top-scorers run."""
    return (status_store or _status_store).get()
