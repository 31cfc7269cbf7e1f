"""
Typed settings for the government-data ingestion service.

Uses Pydantic Settings to load configuration from environment variables
with validation and type safety. Settings are loaded from the root .env
file when present so local runs and containers share one source of truth.
"""

from __future__ import annotations

from datetime import date
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .validate_env import validate_env


class FetchConfig(BaseModel):
    request_timeout_seconds: float = 30.0
    # SBIR.gov returns whole agency-year result sets in one response
    sbir_timeout_seconds: float = 60.0
    targeted_timeout_seconds: float = 25.0
    # Attempts for transient failures (timeouts, network errors, 5xx)
    transient_retry_attempts: int = 2
    retry_wait_min_seconds: float = 1.0
    retry_wait_max_seconds: float = 10.0
    user_agent: str = "govdata-scraper/1.0"


class RateLimitConfig(BaseModel):
    """Token bucket parameters for one upstream provider."""

    requests_per_second: float
    burst: int = 1
    min_requests_per_second: float = 0.05
    # Additive recovery applied after every successful call
    recovery_step: float = 0.1
    max_backoff_seconds: float = 60.0


def _default_rate_limits() -> dict[str, RateLimitConfig]:
    return {
        # USASpending tolerates ~150ms between page calls
        "usaspending": RateLimitConfig(requests_per_second=6.0, burst=2),
        "sam": RateLimitConfig(requests_per_second=3.0, burst=1),
        # SBIR.gov rate limits aggressively; 2s between requests
        "sbir": RateLimitConfig(requests_per_second=0.5, burst=1, recovery_step=0.02),
        "nsf": RateLimitConfig(requests_per_second=2.0, burst=1),
        "gsa_calc": RateLimitConfig(requests_per_second=3.0, burst=1),
    }


class CircuitBreakerConfig(BaseModel):
    max_consecutive_failures: int = 5
    cooldown_seconds: float = 120.0


class VacuumConfig(BaseModel):
    fiscal_window_start: date = date(2023, 10, 1)
    fiscal_window_end: date = date(2025, 9, 30)
    opportunity_lookback_days: int = 90
    targeted_opportunity_lookback_days: int = 180
    resolution_batch_size: int = 300
    # Hard limit for one vacuum task; stale-run detection keys off it
    task_time_limit_seconds: int = 3 * 3600
    # Outlives the task limit and is extended after every source
    run_lock_timeout_seconds: int = 3 * 3600 + 900
    # pg_trgm similarity needed to reuse an entity with a near-identical name
    similarity_threshold: float = 0.7
    abstract_max_length: int = 5000
    requirement_max_length: int = 2000


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    In Docker, environment variables are passed directly via docker-compose.
    For local development, loads from the repository root .env file. All
    settings are validated by Pydantic.
    """
    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[2] / ".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="allow",
    )

    database_url: str = Field(..., alias="DATABASE_URL")

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_async_to_sync(cls, v: str) -> str:
        """
        Convert asyncpg URL to psycopg URL for synchronous SQLAlchemy.

        Hosted Postgres connection strings are often shared with async
        services; the worker and the invocation endpoint use sync psycopg.
        """
        if isinstance(v, str) and "asyncpg" in v:
            return v.replace("asyncpg", "psycopg")
        return v

    redis_url: str = Field("redis://localhost:6379/3", alias="REDIS_URL")
    redis_host: str = Field("localhost", alias="REDIS_HOST")
    redis_password: str | None = Field(None, alias="REDIS_PASSWORD")
    redis_db: int = Field(3, alias="REDIS_DB")

    @model_validator(mode="after")
    def _build_redis_url(self) -> Settings:
        """Build the Redis URL from components when REDIS_HOST is not localhost."""
        if self.redis_host != "localhost":
            if self.redis_password:
                self.redis_url = f"redis://:{self.redis_password}@{self.redis_host}:6379/{self.redis_db}"
            else:
                self.redis_url = f"redis://{self.redis_host}:6379/{self.redis_db}"
        return self

    sam_api_key: str | None = Field(None, alias="SAM_API_KEY")
    data_gov_key: str | None = Field(None, alias="DATA_GOV_KEY")
    environment: str = Field("development", alias="ENVIRONMENT")
    log_level: str | None = Field(None, alias="LOG_LEVEL")
    sql_echo: bool = Field(False, alias="SQL_ECHO")
    cors_origins: str | None = Field(None, alias="ALLOWED_CORS_ORIGINS")

    fetch_config: FetchConfig = Field(default_factory=FetchConfig)
    rate_limits: dict[str, RateLimitConfig] = Field(default_factory=_default_rate_limits)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    vacuum_config: VacuumConfig = Field(default_factory=VacuumConfig)

    @property
    def sam_key(self) -> str | None:
        """SAM.gov key, falling back to the shared api.data.gov key."""
        return self.sam_api_key or self.data_gov_key or None

    @property
    def allowed_cors_origins(self) -> list[str]:
        """Explicit origins from ALLOWED_CORS_ORIGINS, otherwise any origin."""
        if not self.cors_origins:
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def rate_limit_for(self, key: str) -> RateLimitConfig:
        return self.rate_limits.get(key) or RateLimitConfig(requests_per_second=1.0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Settings are cached to avoid re-parsing environment variables
    on every access.
    """
    validate_env()
    return Settings()


# Global settings instance - import this in other modules
settings = get_settings()
