"""Configuration management for the calendar core."""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

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

    # Time zones
    default_timezone: str = Field(
        default="America/Chicago",
        description="IANA zone used when a clinician or pattern has none",
    )

    # Recurrence
    max_occurrences: int = Field(
        default=52,
        ge=1,
        description="Ceiling on generated occurrences for open-ended patterns",
    )
    bulk_max_occurrences: int = Field(
        default=26,
        ge=1,
        description="Ceiling used when creating a whole series at once",
    )

    # Conflict detection
    adjacency_threshold_minutes: int = Field(
        default=5,
        ge=0,
        description="Gap at or below which two appointments count as adjacent",
    )
    business_start_hour: int = Field(default=8, ge=0, le=23)
    business_end_hour: int = Field(default=17, ge=1, le=24)
    max_suggestions: int = Field(
        default=5,
        ge=1,
        description="Alternative start times offered for a conflicting appointment",
    )
    default_slot_minutes: int = Field(
        default=60,
        ge=5,
        description="Length of open slots carved out of weekly availability",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    component_log_levels: dict[str, str] = Field(
        default_factory=dict,
        description="Per-component overrides, e.g. {\"recurrence\": \"DEBUG\"}",
    )
    log_dir: Optional[Path] = Field(
        default=None,
        description="Directory for JSON Lines calendar events (disabled when unset)",
    )

    # Repository retries
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=10.0, ge=0)
    retry_jitter: float = Field(default=0.5, ge=0)

    # Appointment cache
    cache_ttl_seconds: float = Field(default=120.0, gt=0)
    cache_max_size: int = Field(default=50, ge=1)

    @property
    def business_hours(self) -> tuple[int, int]:
        """Business day as ``(start_hour, end_hour)``."""
        return (self.business_start_hour, self.business_end_hour)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
