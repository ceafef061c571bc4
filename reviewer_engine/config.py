"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars that don't match field names
    )

    # Application
    app_name: str = "Reviewer Assignment Engine"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"

    # API
    api_prefix: str = "/api/v1"

    # Assignment defaults (seed the initial AlgorithmConfig)
    max_reviewers_per_pr: int = 3
    min_expertise_level: Literal["novice", "intermediate", "advanced", "expert"] = "intermediate"
    max_workload_threshold: float = 0.8
    require_team_diversity: bool = True
    avoid_same_author: bool = True
    default_max_assignments: int = 2

    # Observability
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
