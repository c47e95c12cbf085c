"""
Team identifier resolution.

Every upstream provider names teams differently (ESPN uses "UTAH", "GS",
"NO", "WSH"; URLs use slugs like "golden-state"; users type nicknames).
All joins across sources go through the canonical 3-letter tricode
resolved here. Pure lookups only, no I/O.
"""
import re
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class TeamIdentity:
    """Canonical identity of one franchise."""
    tricode: str
    city: str
    name: str
    full_name: str
    conference: str  # "East" or "West"

    def to_dict(self) -> dict:
        return {
            "tricode": self.tricode,
            "city": self.city,
            "name": self.name,
            "fullName": self.full_name,
            "conference": self.conference,
        }


NBA_TEAMS: List[TeamIdentity] = [
    TeamIdentity("ATL", "Atlanta", "Hawks", "Atlanta Hawks", "East"),
    TeamIdentity("BOS", "Boston", "Celtics", "Boston Celtics", "East"),
    TeamIdentity("BKN", "Brooklyn", "Nets", "Brooklyn Nets", "East"),
    TeamIdentity("CHA", "Charlotte", "Hornets", "Charlotte Hornets", "East"),
    TeamIdentity("CHI", "Chicago", "Bulls", "Chicago Bulls", "East"),
    TeamIdentity("CLE", "Cleveland", "Cavaliers", "Cleveland Cavaliers", "East"),
    TeamIdentity("DAL", "Dallas", "Mavericks", "Dallas Mavericks", "West"),
    TeamIdentity("DEN", "Denver", "Nuggets", "Denver Nuggets", "West"),
    TeamIdentity("DET", "Detroit", "Pistons", "Detroit Pistons", "East"),
    TeamIdentity("GSW", "Golden State", "Warriors", "Golden State Warriors", "West"),
    TeamIdentity("HOU", "Houston", "Rockets", "Houston Rockets", "West"),
    TeamIdentity("IND", "Indiana", "Pacers", "Indiana Pacers", "East"),
    TeamIdentity("LAC", "Los Angeles", "Clippers", "Los Angeles Clippers", "West"),
    TeamIdentity("LAL", "Los Angeles", "Lakers", "Los Angeles Lakers", "West"),
    TeamIdentity("MEM", "Memphis", "Grizzlies", "Memphis Grizzlies", "West"),
    TeamIdentity("MIA", "Miami", "Heat", "Miami Heat", "East"),
    TeamIdentity("MIL", "Milwaukee", "Bucks", "Milwaukee Bucks", "East"),
    TeamIdentity("MIN", "Minnesota", "Timberwolves", "Minnesota Timberwolves", "West"),
    TeamIdentity("NOP", "New Orleans", "Pelicans", "New Orleans Pelicans", "West"),
    TeamIdentity("NYK", "New York", "Knicks", "New York Knicks", "East"),
    TeamIdentity("OKC", "Oklahoma City", "Thunder", "Oklahoma City Thunder", "West"),
    TeamIdentity("ORL", "Orlando", "Magic", "Orlando Magic", "East"),
    TeamIdentity("PHI", "Philadelphia", "76ers", "Philadelphia 76ers", "East"),
    TeamIdentity("PHX", "Phoenix", "Suns", "Phoenix Suns", "West"),
    TeamIdentity("POR", "Portland", "Trail Blazers", "Portland Trail Blazers", "West"),
    TeamIdentity("SAC", "Sacramento", "Kings", "Sacramento Kings", "West"),
    TeamIdentity("SAS", "San Antonio", "Spurs", "San Antonio Spurs", "West"),
    TeamIdentity("TOR", "Toronto", "Raptors", "Toronto Raptors", "East"),
    TeamIdentity("UTA", "Utah", "Jazz", "Utah Jazz", "West"),
    TeamIdentity("WAS", "Washington", "Wizards", "Washington Wizards", "East"),
]

TEAMS_BY_TRICODE: Dict[str, TeamIdentity] = {team.tricode: team for team in NBA_TEAMS}

# ESPN numeric team ids (used in roster/statistics/schedule URLs)
ESPN_TEAM_IDS: Dict[str, str] = {
    "ATL": "1", "BOS": "2", "BKN": "17", "CHA": "30", "CHI": "4",
    "CLE": "5", "DAL": "6", "DEN": "7", "DET": "8", "GSW": "9",
    "HOU": "10", "IND": "11", "LAC": "12", "LAL": "13", "MEM": "29",
    "MIA": "14", "MIL": "15", "MIN": "16", "NOP": "3", "NYK": "18",
    "OKC": "25", "ORL": "19", "PHI": "20", "PHX": "21", "POR": "22",
    "SAC": "23", "SAS": "24", "TOR": "28", "UTA": "26", "WAS": "27",
}

_TRICODES_BY_ESPN_ID: Dict[str, str] = {v: k for k, v in ESPN_TEAM_IDS.items()}

# Provider abbreviations that differ from the canonical tricode
PROVIDER_ABBREVIATIONS: Dict[str, str] = {
    "UTAH": "UTA",
    "GS": "GSW",
    "NO": "NOP",
    "NOR": "NOP",
    "SA": "SAS",
    "NY": "NYK",
    "WSH": "WAS",
    "PHO": "PHX",
    "BRK": "BKN",
    "CHO": "CHA",
}

# Keys are already normalized (lowercase, no spaces/hyphens/underscores)
_ALIASES: Dict[str, str] = {
    "atl": "ATL", "atlanta": "ATL", "hawks": "ATL",
    "bos": "BOS", "boston": "BOS", "celtics": "BOS", "celts": "BOS",
    "bkn": "BKN", "brk": "BKN", "brooklyn": "BKN", "nets": "BKN",
    "nj": "BKN", "njn": "BKN", "newjersey": "BKN", "newjerseynets": "BKN",
    "cha": "CHA", "cho": "CHA", "charlotte": "CHA", "hornets": "CHA",
    "charlottebobcats": "CHA", "bobcats": "CHA",
    "chi": "CHI", "chicago": "CHI", "bulls": "CHI",
    "cle": "CLE", "cleveland": "CLE", "cavaliers": "CLE", "cavs": "CLE",
    "dal": "DAL", "dallas": "DAL", "mavericks": "DAL", "mavs": "DAL",
    "den": "DEN", "denver": "DEN", "nuggets": "DEN",
    "det": "DET", "detroit": "DET", "pistons": "DET",
    "gsw": "GSW", "gs": "GSW", "goldenstate": "GSW", "warriors": "GSW",
    "dubs": "GSW",
    "hou": "HOU", "houston": "HOU", "rockets": "HOU",
    "ind": "IND", "indiana": "IND", "pacers": "IND",
    "lac": "LAC", "laclippers": "LAC", "clippers": "LAC",
    "lal": "LAL", "lalakers": "LAL", "lakers": "LAL", "losangeles": "LAL",
    "mem": "MEM", "memphis": "MEM", "grizzlies": "MEM", "grizz": "MEM",
    "mia": "MIA", "miami": "MIA", "heat": "MIA",
    "mil": "MIL", "milwaukee": "MIL", "bucks": "MIL",
    "min": "MIN", "minnesota": "MIN", "timberwolves": "MIN", "wolves": "MIN",
    "twolves": "MIN",
    "nop": "NOP", "no": "NOP", "nor": "NOP", "neworleans": "NOP",
    "pelicans": "NOP", "pels": "NOP", "neworleanshornets": "NOP",
    "nyk": "NYK", "ny": "NYK", "newyork": "NYK", "knicks": "NYK",
    "okc": "OKC", "oklahomacity": "OKC", "oklahoma": "OKC", "thunder": "OKC",
    "sea": "OKC", "seattle": "OKC", "supersonics": "OKC", "sonics": "OKC",
    "seattlesupersonics": "OKC",
    "orl": "ORL", "orlando": "ORL", "magic": "ORL",
    "phi": "PHI", "philadelphia": "PHI", "76ers": "PHI", "sixers": "PHI",
    "philly": "PHI",
    "phx": "PHX", "pho": "PHX", "phoenix": "PHX", "suns": "PHX",
    "por": "POR", "portland": "POR", "trailblazers": "POR", "blazers": "POR",
    "sac": "SAC", "sacramento": "SAC", "kings": "SAC",
    "sas": "SAS", "sa": "SAS", "sanantonio": "SAS", "spurs": "SAS",
    "tor": "TOR", "toronto": "TOR", "raptors": "TOR", "raps": "TOR",
    "uta": "UTA", "utah": "UTA", "jazz": "UTA",
    "was": "WAS", "wsh": "WAS", "washington": "WAS", "wizards": "WAS",
    "wiz": "WAS", "washingtonbullets": "WAS",
    "vancouvergrizzlies": "MEM", "vancouver": "MEM",
}

_SEPARATORS = re.compile(r"[\s\-_]+")


def _normalize(identifier: str) -> str:
    return _SEPARATORS.sub("", identifier.strip().lower())


def _build_alias_table() -> Dict[str, str]:
    table = dict(_ALIASES)
    for team in NBA_TEAMS:
        table.setdefault(_normalize(team.full_name), team.tricode)
        table.setdefault(_normalize(f"{team.tricode} {team.name}"), team.tricode)
    return table


ALIAS_TABLE: Dict[str, str] = _build_alias_table()


def resolve_team_identifier(identifier: Optional[str]) -> Optional[str]:
    """
    Resolve any team identifier to its canonical tricode.

    Accepts tricodes, provider abbreviations, city names, nicknames, full
    names and URL slugs, case-insensitively and with or without separators.

    Returns:
        Canonical tricode (e.g. "UTA"), or None when nothing matches.
        None means "team not found" and must not be retried.
    """
    if not identifier or not isinstance(identifier, str):
        return None

    normalized = _normalize(identifier)
    if not normalized:
        return None

    tricode = ALIAS_TABLE.get(normalized)
    if tricode:
        return tricode

    upper = normalized.upper()
    if upper in TEAMS_BY_TRICODE:
        return upper

    return None


def normalize_tricode(code: str) -> str:
    """Map a provider abbreviation ("UTAH", "GS", ...) to the canonical tricode."""
    upper = (code or "").strip().upper()
    return PROVIDER_ABBREVIATIONS.get(upper, upper)


def get_team_info(identifier: Optional[str]) -> Optional[TeamIdentity]:
    """Full TeamIdentity for any identifier, or None."""
    tricode = resolve_team_identifier(identifier)
    if not tricode:
        return None
    return TEAMS_BY_TRICODE.get(tricode)


def is_valid_team_identifier(identifier: Optional[str]) -> bool:
    return resolve_team_identifier(identifier) is not None


def get_team_identifiers(tricode: str) -> List[str]:
    """All alias strings that resolve to the given tricode."""
    canonical = resolve_team_identifier(tricode)
    if not canonical:
        return []
    return sorted(alias for alias, code in ALIAS_TABLE.items() if code == canonical)


def espn_team_id(identifier: Optional[str]) -> Optional[str]:
    """ESPN numeric team id for any identifier."""
    tricode = resolve_team_identifier(identifier)
    if not tricode:
        return None
    return ESPN_TEAM_IDS.get(tricode)


def tricode_for_espn_id(team_id) -> Optional[str]:
    if team_id is None:
        return None
    return _TRICODES_BY_ESPN_ID.get(str(team_id))


def conference_for(identifier: Optional[str]) -> Optional[str]:
    team = get_team_info(identifier)
    return team.conference if team else None
