"""
Configuration for finboard.

Values come from environment variables prefixed with FINBOARD_ (or a local
.env file), e.g. FINBOARD_TICK_SECONDS=1.5.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_prefix="FINBOARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    seed_path: str = Field(
        default="data/seed.json",
        description="JSON file used to bootstrap the ledger"
    )

    # Market feed timing, in seconds
    tick_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Period of the price update timer"
    )
    fetch_latency: float = Field(
        default=0.5,
        ge=0,
        description="Simulated latency of an initial price fetch"
    )
    movers_latency: float = Field(
        default=0.3,
        ge=0,
        description="Simulated latency of the top movers query"
    )

    top_movers_limit: int = Field(default=10, ge=1)
    recent_transactions: int = Field(default=5, ge=1)

    currency_symbol: str = Field(default="R$")

    log_level: str = Field(default="INFO")
    json_logs: bool = Field(
        default=False,
        description="Render log lines as JSON instead of the console format"
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload after changing the environment.
    """
    return Settings()
