"""
Normalized data model.

These dataclasses are the canonical shape of NBA data, independent of
which upstream provider supplied it. Every object is built fresh from
upstream JSON and serialized with to_dict() (camelCase keys); raw
payloads never pass through.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class GameStatus(Enum):
    """Game lifecycle, driven by the upstream provider."""
    SCHEDULED = "Scheduled"
    LIVE = "Live"
    FINAL = "Final"


@dataclass
class TeamScore:
    """One side of a game."""
    tricode: str
    team_id: Optional[str]  # provider team id
    city: str
    name: str
    score: Optional[int]
    wins: int = 0
    losses: int = 0
    winner: Optional[bool] = None

    @property
    def record(self) -> str:
        """Win-loss record at the time of the game, e.g. "23-5"."""
        return f"{self.wins}-{self.losses}"

    def to_dict(self) -> dict:
        return {
            "teamId": self.team_id,
            "tricode": self.tricode,
            "city": self.city,
            "name": self.name,
            "score": self.score,
            "wins": self.wins,
            "losses": self.losses,
            "record": self.record,
            "winner": self.winner,
        }


@dataclass
class GameRecord:
    """A single game on a scoreboard."""
    game_id: str
    start_time_utc: Optional[str]
    status: GameStatus
    status_text: str
    period: int
    clock: str
    home: TeamScore
    away: TeamScore

    def __post_init__(self):
        self._derive_winner()

    def _derive_winner(self) -> None:
        """
        Winner flags for Final games come from the scores alone.

        Equal or missing scores leave both flags unset; non-final games
        never carry a winner.
        """
        self.home.winner = None
        self.away.winner = None
        if self.status != GameStatus.FINAL:
            return
        if self.home.score is None or self.away.score is None:
            return
        if self.home.score > self.away.score:
            self.home.winner, self.away.winner = True, False
        elif self.away.score > self.home.score:
            self.home.winner, self.away.winner = False, True

    @property
    def game_code(self) -> str:
        return f"{self.away.tricode}{self.home.tricode}"

    def to_dict(self) -> dict:
        return {
            "gameId": self.game_id,
            "gameCode": self.game_code,
            "startTimeUTC": self.start_time_utc,
            "status": self.status.value,
            "statusText": self.status_text,
            "period": self.period,
            "clock": self.clock,
            "homeTeam": self.home.to_dict(),
            "awayTeam": self.away.to_dict(),
        }


@dataclass
class Scoreboard:
    """All games for one calendar date."""
    game_date: str  # YYYY-MM-DD
    games: List[GameRecord] = field(default_factory=list)
    source: str = "espn"

    def to_dict(self) -> dict:
        return {
            "gameDate": self.game_date,
            "source": self.source,
            "games": [g.to_dict() for g in self.games],
        }


@dataclass
class StandingEntry:
    """One team's row in the conference standings."""
    tricode: str
    team_id: Optional[str]
    city: str
    name: str
    conference: str  # "East" or "West"
    wins: int
    losses: int
    conf_rank: int = 0
    games_behind: float = 0.0
    home_wins: int = 0
    home_losses: int = 0
    away_wins: int = 0
    away_losses: int = 0
    conf_wins: int = 0
    conf_losses: int = 0
    last_ten_wins: int = 0
    last_ten_losses: int = 0
    streak: str = "-"
    playoff_seed: Optional[int] = None

    @property
    def win_pct(self) -> float:
        games = self.wins + self.losses
        if games <= 0:
            return 0.0
        return self.wins / games

    def to_dict(self) -> dict:
        return {
            "teamId": self.team_id,
            "tricode": self.tricode,
            "city": self.city,
            "name": self.name,
            "conference": self.conference,
            "confRank": self.conf_rank,
            "wins": self.wins,
            "losses": self.losses,
            "winPct": round(self.win_pct, 3),
            "gamesBehind": self.games_behind,
            "homeRecord": f"{self.home_wins}-{self.home_losses}",
            "awayRecord": f"{self.away_wins}-{self.away_losses}",
            "confRecord": f"{self.conf_wins}-{self.conf_losses}",
            "lastTen": f"{self.last_ten_wins}-{self.last_ten_losses}",
            "streak": self.streak,
        }


@dataclass
class Standings:
    """League standings, East then West, each ranked 1..N."""
    season: str  # "2024-25"
    standings: List[StandingEntry] = field(default_factory=list)
    season_type: str = "Regular Season"
    source: str = "standings-endpoint"
    days_scanned: Optional[int] = None

    def conference(self, name: str) -> List[StandingEntry]:
        return [s for s in self.standings if s.conference == name]

    def to_dict(self) -> dict:
        result = {
            "season": self.season,
            "seasonType": self.season_type,
            "source": self.source,
            "teamsFound": len(self.standings),
            "standings": [s.to_dict() for s in self.standings],
        }
        if self.days_scanned is not None:
            result["daysScanned"] = self.days_scanned
        return result


# PlayerStatLine field -> upstream stat name
PLAYER_STAT_FIELDS: Dict[str, str] = {
    "games_played": "gamesPlayed",
    "points": "avgPoints",
    "rebounds": "avgRebounds",
    "assists": "avgAssists",
    "steals": "avgSteals",
    "blocks": "avgBlocks",
    "turnovers": "avgTurnovers",
    "minutes": "avgMinutes",
    "fg_made": "avgFieldGoalsMade",
    "fg_attempted": "avgFieldGoalsAttempted",
    "fg_pct": "fieldGoalPct",
    "three_made": "avgThreePointFieldGoalsMade",
    "three_attempted": "avgThreePointFieldGoalsAttempted",
    "three_pct": "threePointFieldGoalPct",
    "ft_made": "avgFreeThrowsMade",
    "ft_attempted": "avgFreeThrowsAttempted",
    "ft_pct": "freeThrowPct",
}


@dataclass
class PlayerStatLine:
    """
    A player with season per-game averages.

    Every stat is Optional: None means no source returned it, which is
    not the same as 0.
    """
    player_id: str
    display_name: str
    first_name: str = ""
    last_name: str = ""
    team_tricode: Optional[str] = None
    position: str = ""
    jersey: str = ""
    headshot: Optional[str] = None
    games_played: Optional[float] = None
    points: Optional[float] = None
    rebounds: Optional[float] = None
    assists: Optional[float] = None
    steals: Optional[float] = None
    blocks: Optional[float] = None
    turnovers: Optional[float] = None
    minutes: Optional[float] = None
    fg_made: Optional[float] = None
    fg_attempted: Optional[float] = None
    fg_pct: Optional[float] = None
    three_made: Optional[float] = None
    three_attempted: Optional[float] = None
    three_pct: Optional[float] = None
    ft_made: Optional[float] = None
    ft_attempted: Optional[float] = None
    ft_pct: Optional[float] = None

    @classmethod
    def from_stat_map(cls, stat_map: Dict[str, Optional[float]], **identity) -> "PlayerStatLine":
        """Build from a flat {statName: value} map plus identity fields."""
        stats = {
            attr: stat_map.get(stat_name)
            for attr, stat_name in PLAYER_STAT_FIELDS.items()
        }
        return cls(**identity, **stats)

    def with_stats_from(self, other: "PlayerStatLine") -> "PlayerStatLine":
        """Copy of this line with every stat taken from other."""
        stats = {attr: getattr(other, attr) for attr in PLAYER_STAT_FIELDS}
        return PlayerStatLine(
            player_id=self.player_id,
            display_name=self.display_name or other.display_name,
            first_name=self.first_name or other.first_name,
            last_name=self.last_name or other.last_name,
            team_tricode=self.team_tricode or other.team_tricode,
            position=self.position or other.position,
            jersey=self.jersey or other.jersey,
            headshot=self.headshot or other.headshot,
            **stats,
        )

    @property
    def has_stats(self) -> bool:
        return any(getattr(self, attr) is not None for attr in PLAYER_STAT_FIELDS)

    def to_dict(self) -> dict:
        return {
            "id": self.player_id,
            "displayName": self.display_name,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "team": self.team_tricode,
            "position": self.position,
            "jersey": self.jersey,
            "headshot": self.headshot,
            "stats": {
                "gamesPlayed": self.games_played,
                "ppg": self.points,
                "rpg": self.rebounds,
                "apg": self.assists,
                "spg": self.steals,
                "bpg": self.blocks,
                "topg": self.turnovers,
                "mpg": self.minutes,
                "fgm": self.fg_made,
                "fga": self.fg_attempted,
                "fgPct": self.fg_pct,
                "fg3m": self.three_made,
                "fg3a": self.three_attempted,
                "fg3Pct": self.three_pct,
                "ftm": self.ft_made,
                "fta": self.ft_attempted,
                "ftPct": self.ft_pct,
            },
        }


@dataclass
class TeamStatLine:
    """A team's season statistics as one flat map."""
    tricode: str
    team_id: Optional[str]
    display_name: str
    stats: Dict[str, Optional[float]] = field(default_factory=dict)

    def get(self, name: str) -> Optional[float]:
        return self.stats.get(name)

    @property
    def points(self) -> Optional[float]:
        return self.get("avgPoints")

    @property
    def rebounds(self) -> Optional[float]:
        return self.get("avgRebounds")

    @property
    def assists(self) -> Optional[float]:
        return self.get("avgAssists")

    def to_dict(self) -> dict:
        return {
            "teamId": self.team_id,
            "tricode": self.tricode,
            "displayName": self.display_name,
            "ppg": self.points,
            "rpg": self.rebounds,
            "apg": self.assists,
            "stats": dict(self.stats),
        }


@dataclass
class PlayerProfile:
    """Bio fields from a player's detail page."""
    player_id: str
    display_name: str
    first_name: str = ""
    last_name: str = ""
    team_tricode: Optional[str] = None
    position: str = ""
    jersey: str = ""
    height: Optional[str] = None
    weight: Optional[str] = None  # pounds, unit stripped
    age: Optional[int] = None
    headshot: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.player_id,
            "displayName": self.display_name,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "team": self.team_tricode,
            "position": self.position,
            "jersey": self.jersey,
            "height": self.height,
            "weight": self.weight,
            "age": self.age,
            "headshot": self.headshot,
        }


@dataclass
class PlayerGameLine:
    """A player's box-score line for one game."""
    game_id: str
    game_date: Optional[str]
    opponent: Optional[str]
    home: Optional[bool]
    result: Optional[str]  # "W" / "L"
    score: Optional[str]
    points: Optional[float] = None
    rebounds: Optional[float] = None
    assists: Optional[float] = None
    steals: Optional[float] = None
    blocks: Optional[float] = None
    turnovers: Optional[float] = None
    minutes: Optional[float] = None
    fg_pct: Optional[float] = None
    three_pct: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "gameId": self.game_id,
            "gameDate": self.game_date,
            "opponent": self.opponent,
            "home": self.home,
            "result": self.result,
            "score": self.score,
            "playerStats": {
                "pts": self.points,
                "reb": self.rebounds,
                "ast": self.assists,
                "stl": self.steals,
                "blk": self.blocks,
                "to": self.turnovers,
                "min": self.minutes,
                "fgPct": self.fg_pct,
                "fg3Pct": self.three_pct,
            },
        }


@dataclass
class TeamGameResult:
    """A completed game from a team's schedule."""
    game_id: str
    game_date: Optional[str]
    opponent: Optional[str]
    home: bool
    team_score: Optional[int]
    opponent_score: Optional[int]

    @property
    def result(self) -> Optional[str]:
        if self.team_score is None or self.opponent_score is None:
            return None
        if self.team_score > self.opponent_score:
            return "W"
        if self.team_score < self.opponent_score:
            return "L"
        return None

    def to_dict(self) -> dict:
        return {
            "gameId": self.game_id,
            "gameDate": self.game_date,
            "opponent": self.opponent,
            "home": self.home,
            "teamScore": self.team_score,
            "opponentScore": self.opponent_score,
            "result": self.result,
        }


class FetchTier(Enum):
    """Which top-scorers source produced the data."""
    LEADERS_API = "leaders-api"
    ROSTER_CRAWL = "roster-crawl"
    STATIC_FALLBACK = "static-fallback"
    NONE = "none"


@dataclass
class FetchStatus:
    """Audit record of the most recent top-scorers fetch."""
    tier: FetchTier = FetchTier.NONE
    player_count: int = 0
    errors: List[str] = field(default_factory=list)
    retry_attempts: int = 0
    filtered_count: int = 0
    fetched_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "source": self.tier.value,
            "playerCount": self.player_count,
            "errors": list(self.errors),
            "retryAttempts": self.retry_attempts,
            "filteredCount": self.filtered_count,
            "fetchedAt": self.fetched_at.strftime("%Y-%m-%dT%H:%M:%SZ") if self.fetched_at else None,
        }
