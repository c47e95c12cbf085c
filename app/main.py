"""
NBA Dashboard - Main FastAPI Application
All data fetched LIVE from public NBA data providers - no local database
"""
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Path, Query

from app import leaders, player_stats, scoreboard, search, standings
from app.cache import get_cache_manager
from app.schemas import FetchStatusOut, HealthStatus, PlayerSearchResponse, VersionInfo
from app.teams import get_team_info
from config.settings import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("main")

# Version tracking
APP_VERSION = "v0.3.0"
APP_NAME = "NBA Dashboard"

app = FastAPI(
    title=APP_NAME,
    description="Live NBA scores, standings and player stats",
    version=APP_VERSION,
)

UNAVAILABLE = "Data temporarily unavailable, please try again shortly"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
NUMERIC_ID = r"^\d+$"


def _resolve_team_or_404(identifier: str):
    team = get_team_info(identifier)
    if team is None:
        raise HTTPException(status_code=404, detail=f"Team not found: {identifier}")
    return team


@app.get("/health", response_model=HealthStatus)
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": APP_VERSION, "cacheEnabled": settings.cache_enabled}


@app.get("/version", response_model=VersionInfo)
def version_info():
    """Version information endpoint."""
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "full": f"{APP_NAME} {APP_VERSION}",
    }


@app.get("/cache/stats")
def cache_stats():
    """Get cache statistics."""
    return get_cache_manager().get_stats()


# ===== SCORES =====

@app.get("/api/scores")
def get_scores(
    date: str = Query(..., pattern=DATE_PATTERN, description="Calendar date (YYYY-MM-DD) in the viewer's timezone"),
):
    """Get every game on a date."""
    try:
        result = scoreboard.get_scoreboard(date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if result is None:
        raise HTTPException(status_code=503, detail=UNAVAILABLE)
    return result.to_dict()


@app.get("/api/games/{game_id}")
def get_game(game_id: str = Path(..., pattern=NUMERIC_ID)):
    """Get one game by ID."""
    game = scoreboard.get_game(game_id)
    if game is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return game.to_dict()


# ===== STANDINGS =====

@app.get("/api/standings")
def get_standings(
    date: Optional[str] = Query(None, pattern=DATE_PATTERN, description="Standings as of this date"),
):
    """
    Get conference standings.

    Without a date, current standings (direct endpoint first). With a
    date, standings derived from that date's scoreboards.
    """
    try:
        if date:
            result = standings.get_standings_by_season(date)
        else:
            result = standings.get_standings()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if result is None:
        raise HTTPException(status_code=503, detail=UNAVAILABLE)
    return result.to_dict()


# ===== TEAMS =====

@app.get("/api/teams/{identifier}")
def get_team(identifier: str):
    """Resolve any team identifier (tricode, city, nickname, slug)."""
    team = _resolve_team_or_404(identifier)
    return team.to_dict()


@app.get("/api/teams/{identifier}/stats")
def get_team_stats(identifier: str):
    """Get a team's season statistics."""
    team = _resolve_team_or_404(identifier)
    result = player_stats.get_team_stats(team.tricode)
    if result is None:
        raise HTTPException(status_code=503, detail=UNAVAILABLE)
    return {"team": team.to_dict(), **result.to_dict()}


@app.get("/api/teams/{identifier}/roster")
def get_team_roster(identifier: str):
    """Get a team's roster with season averages, best scorer first."""
    team = _resolve_team_or_404(identifier)
    roster = player_stats.get_team_roster_with_stats(team.tricode)
    if roster is None:
        raise HTTPException(status_code=503, detail=UNAVAILABLE)
    return {
        "team": team.to_dict(),
        "count": len(roster),
        "players": [p.to_dict() for p in roster],
    }


@app.get("/api/teams/{identifier}/games")
def get_team_games(
    identifier: str,
    limit: int = Query(default=10, ge=1, le=82, description="Number of games to return"),
):
    """Get a team's most recent completed games."""
    team = _resolve_team_or_404(identifier)
    games = scoreboard.get_team_game_log(team.tricode, limit=limit)
    if games is None:
        raise HTTPException(status_code=503, detail=UNAVAILABLE)
    return {
        "team": team.to_dict(),
        "count": len(games),
        "games": [g.to_dict() for g in games],
    }


# ===== PLAYERS =====

@app.get("/api/players/search", response_model=PlayerSearchResponse)
def search_players(
    q: str = Query(..., min_length=settings.search_min_query_length, description="Player name"),
):
    """Fuzzy search across every roster."""
    players = search.search_all_players(q)
    return {
        "query": q,
        "count": len(players),
        "players": [
            {
                "id": p.player_id,
                "displayName": p.display_name,
                "team": p.team_tricode,
                "position": p.position,
                "jersey": p.jersey,
                "headshot": p.headshot,
            }
            for p in players
        ],
    }


@app.get("/api/players/top-scorers")
def get_top_scorers(
    limit: int = Query(default=settings.top_scorers_default_limit, ge=1, le=100, description="Number of top scorers"),
):
    """Get the league's top scorers by PPG."""
    players = leaders.get_top_scorers(limit)
    status = leaders.get_last_fetch_status()
    if not players:
        raise HTTPException(status_code=503, detail=UNAVAILABLE)
    return {
        "count": len(players),
        "source": status.tier.value,
        "players": [p.to_dict() for p in players],
    }


@app.get("/api/players/top-scorers/status", response_model=FetchStatusOut)
def get_top_scorers_status():
    """Diagnostic record of the last top-scorers fetch."""
    return leaders.get_last_fetch_status().to_dict()


@app.get("/api/players/{player_id}")
def get_player(player_id: str = Path(..., pattern=NUMERIC_ID)):
    """
    Get player bio and season averages.
    Falls back to a roster scan for players without a detail page.
    """
    profile = player_stats.get_player_details(player_id)
    if profile is None:
        roster_entry = player_stats.find_player_in_rosters(player_id)
        if roster_entry is None:
            raise HTTPException(status_code=404, detail="Player not found")
        return {"player": roster_entry.to_dict(), "stats": roster_entry.to_dict()["stats"]}

    stats = player_stats.get_player_stats(player_id)
    return {
        "player": profile.to_dict(),
        "stats": stats.to_dict()["stats"] if stats else None,
    }


@app.get("/api/players/{player_id}/games")
def get_player_games(
    player_id: str = Path(..., pattern=NUMERIC_ID),
    limit: int = Query(default=10, ge=1, le=82, description="Number of games to return"),
):
    """Get a player's recent regular-season games with per-game stats."""
    games = player_stats.get_player_game_log(player_id, limit=limit)
    if games is None:
        raise HTTPException(status_code=503, detail=UNAVAILABLE)
    return {
        "playerId": player_id,
        "count": len(games),
        "games": [g.to_dict() for g in games],
    }
