"""
Application configuration using Pydantic Settings.
Loads from environment variables and .env file.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OpenAI / LLM
    openai_api_key: SecretStr = Field(default=SecretStr(""))
    openai_model: str = Field(default="gpt-4o-mini")
    openai_timeout: float = Field(default=30.0, description="Per-request timeout in seconds")
    openai_temperature: float = Field(default=0.3)

    # Relevance scorer blend
    scorer_keyword_weight: float = Field(default=0.7)
    scorer_impact_weight: float = Field(default=0.3)

    # Selector budget
    selector_max_bullets_per_experience: int = Field(default=4)
    selector_max_chars_per_experience: int = Field(
        default=1200, description="Character budget for one experience section"
    )
    selector_max_total_chars: int = Field(
        default=4000, description="Character budget for all selected bullets"
    )

    # Rewrite orchestrator
    rewrite_max_in_flight: int = Field(
        default=4, description="Provider calls in flight per process"
    )
    rewrite_max_attempts: int = Field(default=3)
    rewrite_base_delay: float = Field(default=0.5, description="First backoff delay in seconds")
    rewrite_max_delay: float = Field(default=8.0)
    rewrite_breaker_threshold: int = Field(
        default=5, description="Consecutive failures before the provider is skipped"
    )
    rewrite_deadline_seconds: float = Field(default=60.0)

    # Match score weights
    score_relevance_weight: float = Field(default=0.60)
    score_skill_weight: float = Field(default=0.25)
    score_keyword_weight: float = Field(default=0.15)

    # Paths
    profile_path: Path = Field(default=Path("config/profile.yaml"))
    output_dir: Path = Field(default=Path("./output"))

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
