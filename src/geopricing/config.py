"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="GEOPRICING_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Geopricing Engine API"
    api_prefix: str = "/api"
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Travel time providers
    travel_time_provider: Literal["osrm", "google", "estimate"] = Field(
        default="osrm",
        description="Backend used to compute drive time from the business origin.",
    )
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when computing travel times.",
    )
    google_maps_api_key: Optional[str] = Field(
        default=None,
        description="API key for the Google Distance Matrix and Geocoding services.",
    )
    routing_timeout_seconds: float = Field(default=5.0, gt=0.0)
    routing_max_retries: int = Field(default=0, ge=0)
    routing_backoff_seconds: float = Field(default=0.5, ge=0.0)
    estimate_average_speed_kmh: float = Field(default=48.0, gt=0.0)
    estimate_road_factor: float = Field(
        default=1.3,
        ge=1.0,
        description="Multiplier applied to straight-line distance to approximate road distance.",
    )

    # Geocoding
    geocoder_provider: Literal["nominatim", "google"] = Field(default="nominatim")
    nominatim_base_url: str = Field(default="https://nominatim.openstreetmap.org")
    geocoder_user_agent: str = Field(default="geopricing-engine")
    geocoder_country_codes: tuple[str, ...] = Field(
        default=("ca", "us"),
        description="ISO country codes used to bias geocoding results.",
    )
    geocoding_timeout_seconds: float = Field(default=5.0, gt=0.0)

    # Result cache
    cache_ttl_seconds: float = Field(default=900.0, gt=0.0)
    cache_coordinate_precision: int = Field(
        default=4,
        ge=0,
        le=7,
        description="Decimal places kept on coordinates before building cache keys (4 ~ 11m).",
    )
    cache_max_entries: int = Field(default=10_000, ge=1)
    serve_stale_on_failure: bool = Field(
        default=False,
        description="Serve an expired travel-time entry when the provider fails.",
    )

    # Pricing configuration store
    pricing_config_file: Optional[Path] = Field(
        default=None,
        description="JSON file with pricing configurations loaded at startup.",
    )
    reject_malformed_zones: bool = Field(
        default=False,
        description="Reject overlapping or non-contiguous zones when a config is created.",
    )

    # Calculation records
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )
    calculations_table: str = Field(default="pricing_calculations")
    calculations_dir: Optional[Path] = Field(
        default=None,
        description="Directory for JSON calculation records when Supabase is not configured.",
    )

    batch_max_parallel: int = Field(default=5, ge=1)

    @field_validator("pricing_config_file", "calculations_dir", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Optional[Path]:
        if value is None or value == "":
            return None
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", "geocoder_country_codes", mode="before")
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


settings = Settings()
