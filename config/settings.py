"""Configuration management using pydantic-settings."""
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Upstream providers
    espn_site_base_url: str = "https://site.api.espn.com/apis/site/v2/sports/basketball/nba"
    espn_common_base_url: str = "https://site.api.espn.com/apis/common/v3/sports/basketball/nba"
    espn_web_base_url: str = "https://site.web.api.espn.com/apis/common/v3/sports/basketball/nba"
    espn_core_base_url: str = "https://sports.core.api.espn.com/v2/sports/basketball/leagues/nba"
    espn_standings_url: str = "https://site.api.espn.com/apis/v2/sports/basketball/nba/standings"
    nba_stats_base_url: str = "https://stats.nba.com/stats"

    # Request policy
    request_timeout_seconds: float = 8.0
    detail_timeout_seconds: float = 10.0
    player_fetch_timeout_seconds: float = 3.0
    max_retries: int = 2
    retry_base_delay_seconds: float = 0.5
    retry_max_delay_seconds: float = 4.0
    max_concurrent_requests: int = 10
    # Extra wait, beyond a call's own retry budget, when joining an identical in-flight call
    coalesce_wait_margin_seconds: float = 2.0
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # Stats aggregation
    roster_batch_size: int = 5
    roster_batch_delay_seconds: float = 0.25

    # Top scorers pipeline
    leaders_batch_size: int = 15
    top_scorers_min_ppg: float = 15.0
    roster_crawl_min_ppg: float = 15.0
    top_scorers_default_limit: int = 30

    # Standings derivation window (days before the reference date)
    standings_scan_days: int = 7

    # Player search
    search_result_limit: int = 50
    search_min_query_length: int = 2

    # Cache settings
    cache_enabled: bool = True

    log_level: str = "INFO"

    # Optional override for the leaders season (ESPN uses the season's end year)
    leaders_season_year: Optional[int] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
