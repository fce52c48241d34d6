"""Application configuration and settings management."""

from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="FT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Field Representative Tracking API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level for the service.")
    timezone: str = Field(
        default="UTC",
        description="IANA timezone used to decide which calendar day an attendance record belongs to.",
    )

    # Event store
    retention_days: int = Field(default=30, ge=1, description="Rolling window of retained events.")
    max_clock_skew_seconds: int = Field(
        default=300,
        ge=0,
        description="How far in the future a device timestamp may be before the event is rejected.",
    )
    store_max_retries: int = Field(default=3, ge=0)
    store_backoff_seconds: float = Field(default=0.5, ge=0.0)

    # Status resolution
    stale_after_hours: float = Field(
        default=12.0,
        gt=0.0,
        description="Open visits/attendance older than this are treated as abandoned.",
    )
    sweep_interval_seconds: float = Field(default=30.0, gt=0.0)
    resolver_workers: int = Field(default=4, ge=1)

    # Aggregation
    max_gap_minutes: float = Field(
        default=120.0,
        gt=0.0,
        description="Consecutive pings further apart than this are excluded from distance totals.",
    )
    rating_thresholds: tuple[float, ...] = Field(
        default=(90.0, 80.0, 70.0, 60.0),
        description="Descending success-rate floors for ratings 5, 4, 3 and 2; anything below rates 1.",
    )
    aggregation_workers: int = Field(default=4, ge=1)
    aggregation_timeout_seconds: float = Field(default=30.0, gt=0.0)

    # Late visit monitoring
    late_visit_grace_minutes: int = Field(default=10, ge=0)
    late_visit_escalation_minutes: int = Field(default=30, ge=1)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )
    journal_table: str = Field(default="tracking_events", description="Table mirroring accepted events.")
    journal_replay_on_startup: bool = True

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("rating_thresholds", mode="before")
    @classmethod
    def _parse_float_tuple_from_env(cls, value: Any) -> tuple[float, ...]:
        """Parse float tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, (tuple, list)):
            return tuple(float(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(float(item) for item in parsed)
            except (json.JSONDecodeError, TypeError, ValueError):
                pass
            return tuple(float(item.strip()) for item in value.split(",") if item.strip())
        return tuple()

    @field_validator("rating_thresholds")
    @classmethod
    def _check_rating_thresholds(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        if len(value) != 4:
            raise ValueError("rating_thresholds needs exactly four values (for ratings 5, 4, 3, 2)")
        if any(later > earlier for earlier, later in zip(value, value[1:])):
            raise ValueError("rating_thresholds must be in descending order")
        if any(item < 0 or item > 100 for item in value):
            raise ValueError("rating_thresholds must lie within [0, 100]")
        return value


settings = Settings()
