"""Configuration management for the scheduling engine."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Backend API
    api_base_url: str = Field(
        default="http://localhost:3000/api",
        description="Base URL of the telehealth backend API",
    )
    api_timeout: int = Field(
        default=30,
        description="Timeout in seconds for backend requests",
    )
    api_max_retries: int = Field(
        default=3,
        description="Max attempts for idempotent GET requests on transport failure",
    )

    # Endpoints
    availability_path: str = Field(default="/therapist-availability")
    availability_dashboard_path: str = Field(
        default="/therapist-availability/dashboard",
        description="A practitioner's own availability, as shown on their dashboard",
    )
    demo_booking_path: str = Field(
        default="/slot-requests/demo",
        description="Public (unauthenticated) booking endpoint",
    )
    secure_booking_path: str = Field(
        default="/slot-requests",
        description="Authenticated booking endpoint",
    )

    # Calendar
    default_timezone: str = Field(
        default="UTC",
        description="Viewing timezone used when no preference is supplied",
    )
    default_session_type: str = Field(default="Virtual")

    # Session join window
    session_pre_roll_minutes: int = Field(
        default=15,
        description="Minutes before start when joining becomes possible",
    )
    session_post_roll_minutes: int = Field(
        default=-30,
        description="Minutes-until-end below which the session counts as expired",
    )

    # Query cache
    slots_stale_seconds: float = Field(
        default=60.0,
        description="How long fetched slots are served without refetching",
    )
    slots_gc_seconds: float = Field(
        default=600.0,
        description="Unused cache entries are evicted after this many seconds",
    )

    # Observability
    observability_enabled: bool = Field(default=True)
    observability_log_dir: Path = Field(
        default=Path("./data/logs"),
        description="Directory for JSON Lines event logs",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    @property
    def api_root(self) -> str:
        """Base URL without a trailing slash."""
        return self.api_base_url.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
