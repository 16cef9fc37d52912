"""
Centralized configuration management for the Daily Discovery Feed services.
Uses Pydantic Settings for validation and type safety.
"""

import re
from functools import lru_cache
from typing import List, Optional
from urllib.parse import urlparse

from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# must list the keys of services/generator/app/profiles.PROFILES
PROFILES = ("daily", "global", "onthisday")


class AppBaseSettings(BaseSettings):
    """Base settings with shared configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class DatabaseSettings(AppBaseSettings):
    """Database configuration settings."""

    postgres_user: str = Field(
        default="postgres",
        validation_alias="POSTGRES_USER",
    )
    postgres_password: str = Field(
        default="postgres",
        validation_alias="POSTGRES_PASSWORD",
    )
    postgres_db: str = Field(
        default="discovery_feed",
        validation_alias="POSTGRES_DB",
    )
    postgres_host: str = Field(
        default="postgres",
        validation_alias="POSTGRES_HOST",
    )
    postgres_port: int = Field(
        default=5432,
        validation_alias="POSTGRES_PORT",
    )
    database_url: Optional[str] = Field(
        default=None,
        validation_alias="DATABASE_URL",
    )

    @validator("database_url", pre=True, always=True)
    def validate_database_url(cls, v, values):
        """Build the database URL from its parts when it is not given."""
        if not v:
            user = values.get("postgres_user", "postgres")
            password = values.get("postgres_password", "")
            host = values.get("postgres_host", "postgres")
            port = values.get("postgres_port", 5432)
            db = values.get("postgres_db", "discovery_feed")
            return f"postgresql://{user}:{password}@{host}:{port}/{db}"
        return v


class ServiceSettings(AppBaseSettings):
    """Outbound HTTP and retry settings shared by every service."""

    http_timeout: float = Field(
        default=10.0,
        validation_alias="HTTP_TIMEOUT",
    )
    max_retries: int = Field(
        default=2,
        validation_alias="MAX_RETRIES",
    )
    retry_delay: float = Field(
        default=1.0,
        validation_alias="RETRY_DELAY",
    )
    retry_backoff_factor: float = Field(
        default=2.0,
        validation_alias="RETRY_BACKOFF_FACTOR",
    )
    user_agent: str = Field(
        default="DailyDiscoveryFeed/1.0",
        validation_alias="USER_AGENT",
    )
    timezone: str = Field(
        default="America/Los_Angeles",
        validation_alias="FEED_TIMEZONE",
    )


class PipelineSettings(AppBaseSettings):
    """Generation pipeline settings: active profile and per-source knobs."""

    profile: str = Field(
        default="daily",
        validation_alias="FEED_PROFILE",
    )
    video_queries: List[str] = Field(
        default=[
            "best salsa dancing",
            "acoustic guitar cover",
            "street food tour",
            "nature documentary short",
        ],
        validation_alias="VIDEO_QUERIES",
    )
    videos_per_cycle: int = Field(
        default=1,
        validation_alias="VIDEOS_PER_CYCLE",
    )
    youtube_base_url: str = Field(
        default="https://www.youtube.com",
        validation_alias="YOUTUBE_BASE_URL",
    )
    invidious_base_url: str = Field(
        default="https://yewtu.be",
        validation_alias="INVIDIOUS_BASE_URL",
    )
    book_subject: str = Field(
        default="self-help",
        validation_alias="BOOK_SUBJECT",
    )
    books_per_cycle: int = Field(
        default=2,
        validation_alias="BOOKS_PER_CYCLE",
    )
    news_keywords: List[str] = Field(
        default=[
            "ai",
            "llm",
            "gpt",
            "openai",
            "anthropic",
            "claude",
            "gemini",
            "machine learning",
            "neural",
            "transformer",
        ],
        validation_alias="NEWS_KEYWORDS",
    )
    news_lookahead: int = Field(
        default=60,
        validation_alias="NEWS_LOOKAHEAD",
    )
    wikipedia_base_url: str = Field(
        default="https://en.wikipedia.org/api/rest_v1",
        validation_alias="WIKIPEDIA_BASE_URL",
    )
    history_max_per_kind: int = Field(
        default=20,
        validation_alias="HISTORY_MAX_PER_KIND",
    )
    extract_batch_size: int = Field(
        default=10,
        validation_alias="EXTRACT_BATCH_SIZE",
    )

    @validator("video_queries", "news_keywords", pre=True)
    def parse_list_from_string(cls, v):
        """Parse comma-separated string into list if needed."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @validator("profile")
    def validate_profile(cls, v):
        v = v.strip().lower()
        if v not in PROFILES:
            raise ValueError(f"FEED_PROFILE must be one of {', '.join(PROFILES)}")
        return v

    @validator("youtube_base_url", "invidious_base_url", "wikipedia_base_url")
    def validate_base_url(cls, v):
        """Validate that provider base URLs are absolute HTTP(S) URLs."""
        parsed = urlparse(v)
        if parsed.scheme not in ["http", "https"] or not parsed.netloc:
            raise ValueError(f"Invalid provider URL: {v}")
        return v.rstrip("/")


class SchedulerSettings(AppBaseSettings):
    """Daily trigger settings."""

    feed_api_url: str = Field(
        default="http://feed-api:8000",
        validation_alias="FEED_API_URL",
    )
    run_at: str = Field(
        default="00:00",
        validation_alias="SCHEDULE_AT",
    )
    timezone: str = Field(
        default="America/Los_Angeles",
        validation_alias="SCHEDULE_TIMEZONE",
    )
    request_timeout: float = Field(
        default=300.0,
        validation_alias="SCHEDULER_HTTP_TIMEOUT",
    )

    @validator("run_at")
    def validate_run_at(cls, v):
        if not re.match(r"^([01]\d|2[0-3]):[0-5]\d$", v):
            raise ValueError("SCHEDULE_AT must be HH:MM")
        return v


class LoggingSettings(AppBaseSettings):
    """Logging configuration settings."""

    level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
    )
    include_correlation_id: bool = Field(
        default=True,
        validation_alias="LOG_INCLUDE_CORRELATION_ID",
    )
    json_logs: bool = Field(
        default=False,
        validation_alias="JSON_LOGS",
    )


class Settings(AppBaseSettings):
    """Main settings class that combines all configuration sections."""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    service_name: str = Field(
        default="discovery-feed",
        validation_alias="SERVICE_NAME",
    )
    environment: str = Field(
        default="development",
        validation_alias="ENVIRONMENT",
    )
    version: str = Field(
        default="1.0.0",
        validation_alias="SERVICE_VERSION",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
