"""Application configuration and settings management."""

from typing import Annotated, Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ROUTE_OPT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Recurring Route Optimizer API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logging level.")
    frontend_allowed_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Geocoding (Nominatim compatible /search endpoint)
    geocoder_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the geocoding service (e.g., https://nominatim.openstreetmap.org).",
    )
    geocoder_user_agent: str = Field(default="recurring-route-optimizer/1.0")
    geocoder_timeout_seconds: float = Field(default=10.0, gt=0.0)

    # Travel times
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when computing travel times.",
    )
    osrm_max_retries: int = Field(default=3, ge=0)
    osrm_backoff_seconds: float = Field(default=1.0, ge=0.0)
    travel_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Upper bound for a full travel segment fetch before it is reported as failed.",
    )
    average_speed_mph: float = Field(
        default=25.0,
        gt=0.0,
        description="Speed used to estimate travel time when no OSRM service is configured.",
    )

    # AI optimization service (OpenAI compatible chat completions)
    ai_base_url: Optional[str] = Field(
        default=None,
        description="Base URL of the chat completions gateway (e.g., https://ai.gateway.example/v1).",
    )
    ai_api_key: Optional[str] = Field(default=None)
    ai_model: str = Field(default="google/gemini-2.5-flash")
    ai_timeout_seconds: float = Field(
        default=60.0,
        gt=0.0,
        description="Upper bound for an AI optimization round trip before it is reported as failed.",
    )

    # Default scheduling constraints sent with AI optimization requests
    default_max_daily_hours: float = Field(default=8.0, gt=0.0)
    default_start_time: str = Field(default="08:00")
    default_end_time: str = Field(default="17:00")

    # Route metrics suggestions
    outlier_segment_share: float = Field(default=0.4, gt=0.0, le=1.0)
    outlier_min_segments: int = Field(default=3, ge=1)
    low_efficiency_threshold: int = Field(default=50, ge=0, le=100)
    missing_address_threshold: int = Field(default=2, ge=1)
    optimize_prompt_score: int = Field(
        default=85,
        ge=0,
        le=100,
        description="Previews offer the optimize action below this efficiency score.",
    )

    max_sessions: int = Field(default=200, ge=1)

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

    @field_validator("geocoder_base_url", "osrm_base_url", "ai_base_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().rstrip("/")
            return value or None
        return value


settings = Settings()
