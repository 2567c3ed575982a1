# -*- coding: utf-8 -*-
"""Application settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from the environment and `.env`."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # App
    app_name: str = "Smart Search"
    app_version: str = "0.1.0"
    api_v1_prefix: str = "/api/v1"
    debug: bool = False
    environment: str = "development"  # development, production
    log_level: str = ""  # empty = DEBUG when debug, else INFO

    # Database (history persistence)
    database_url: str = "sqlite:///./data/smart_search.db"

    # Remote search service
    search_api_url: str = "http://localhost:8000/api"
    search_api_token: str = ""
    search_fetch_timeout_seconds: float = 10.0
    suggestion_cache_ttl_seconds: int = 300  # 5 minutes

    # Controller behaviour
    search_debounce_ms: int = 300
    search_min_query_length: int = 2
    search_result_cap: int = 10
    search_suggestion_limit: int = 8

    # History
    history_max_entries: int = 10
    history_storage_key: str = "smart_search_history"

    @property
    def strict_navigation(self) -> bool:
        """Unresolvable destinations raise instead of degrading to a no-op."""
        return self.debug or self.environment == "development"

    @property
    def debounce_seconds(self) -> float:
        return self.search_debounce_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
