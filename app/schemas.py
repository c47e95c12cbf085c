"""
Pydantic schemas for API responses.

Only the small, fixed-shape responses are modelled here; data payloads
are the models' to_dict() output.
"""
from pydantic import BaseModel
from typing import List, Optional


# ===== SERVICE SCHEMAS =====

class HealthStatus(BaseModel):
    """Health check response"""
    status: str
    version: str
    cacheEnabled: bool


class VersionInfo(BaseModel):
    """Version information"""
    name: str
    version: str
    full: str


# ===== TOP SCORERS SCHEMAS =====

class FetchStatusOut(BaseModel):
    """Last top-scorers fetch status"""
    source: str
    playerCount: int
    errors: List[str]
    retryAttempts: int
    filteredCount: int
    fetchedAt: Optional[str] = None


# ===== SEARCH SCHEMAS =====

class PlayerSearchResult(BaseModel):
    """One player search hit"""
    id: str
    displayName: str
    team: Optional[str] = None
    position: str = ""
    jersey: str = ""
    headshot: Optional[str] = None


class PlayerSearchResponse(BaseModel):
    """Player search results"""
    query: str
    count: int
    players: List[PlayerSearchResult]
