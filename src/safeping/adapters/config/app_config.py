"""12-factor configuration adapter using environment variables and TOML config."""

import tomllib
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# TOML section -> settings it may override
_TOML_SECTIONS: dict[str, tuple[str, ...]] = {
    "sync": (
        "max_retries",
        "retry_base_delay_seconds",
        "retry_max_delay_seconds",
        "retry_jitter_seconds",
        "sync_interval_seconds",
        "request_timeout_seconds",
    ),
    "aggregator": (
        "organization_id",
        "aggregator_poll_interval_seconds",
        "reconcile_tolerance_seconds",
        "check_in_cadence_minutes",
        "feed_heartbeat_seconds",
        "feed_reconnect_max_delay_seconds",
    ),
    "connectivity": (
        "stabilization_delay_seconds",
        "connectivity_probe_interval_seconds",
    ),
}


class AppConfig(BaseSettings):
    """Application configuration following 12-factor principles."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Backend configuration
    supabase_url: str = Field(
        default="http://localhost:54321", description="Base URL of the Supabase project"
    )
    supabase_anon_key: str = Field(
        default="", description="Public API key sent as the apikey header"
    )
    organization_id: str | None = Field(
        default=None, description="Organization aggregated by the dashboard (unset disables it)"
    )

    # Local queue
    queue_db_path: str = Field(
        default="safeping-offline.db", description="SQLite file holding the offline queue"
    )

    # Sync configuration
    max_retries: int = Field(default=5, description="Retries before an action is dropped")
    retry_base_delay_seconds: float = Field(default=1.0, description="Backoff base delay")
    retry_max_delay_seconds: float = Field(default=300.0, description="Backoff delay cap")
    retry_jitter_seconds: float = Field(
        default=1.0, description="Upper bound of the random jitter added to each backoff"
    )
    sync_interval_seconds: float = Field(
        default=30.0, description="Interval of the periodic sync trigger"
    )
    request_timeout_seconds: float = Field(
        default=15.0, description="Timeout for each remote write in seconds"
    )

    # Connectivity
    stabilization_delay_seconds: float = Field(
        default=1.0, description="Delay after reconnecting before syncing"
    )
    connectivity_probe_interval_seconds: float = Field(
        default=10.0, description="Interval between connectivity probes"
    )

    # Dashboard aggregation
    aggregator_poll_interval_seconds: float = Field(
        default=60.0, description="Fallback snapshot polling interval"
    )
    reconcile_tolerance_seconds: float = Field(
        default=5.0,
        description="Max timestamp difference when matching optimistic check-ins",
    )
    check_in_cadence_minutes: float | None = Field(
        default=None,
        description="Expected check-in cadence; safe check-ins older than this show as no data",
    )
    feed_heartbeat_seconds: float = Field(
        default=30.0, description="Heartbeat interval of the realtime connection"
    )
    feed_reconnect_max_delay_seconds: float = Field(
        default=60.0, description="Cap of the realtime reconnect backoff"
    )

    # TOML config file path
    config_file: str | None = Field(
        default=None,
        description="Path to TOML file whose [sync], [aggregator] and [connectivity] "
        "sections override these settings",
    )

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        """Validate the retry ceiling is not negative."""
        if v < 0:
            raise ValueError("max_retries must not be negative")
        return v

    @field_validator(
        "retry_base_delay_seconds",
        "retry_max_delay_seconds",
        "sync_interval_seconds",
        "request_timeout_seconds",
        "connectivity_probe_interval_seconds",
        "aggregator_poll_interval_seconds",
        "feed_heartbeat_seconds",
        "feed_reconnect_max_delay_seconds",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate intervals and delays are positive."""
        if v <= 0:
            raise ValueError("intervals and delays must be positive")
        return v

    @field_validator(
        "retry_jitter_seconds", "stabilization_delay_seconds", "reconcile_tolerance_seconds"
    )
    @classmethod
    def validate_not_negative(cls, v: float) -> float:
        """Validate optional delays are not negative."""
        if v < 0:
            raise ValueError("value must not be negative")
        return v

    @field_validator("check_in_cadence_minutes")
    @classmethod
    def validate_cadence(cls, v: float | None) -> float | None:
        """Validate the cadence is positive when set."""
        if v is not None and v <= 0:
            raise ValueError("check_in_cadence_minutes must be positive")
        return v

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        """Validate the backend URL and strip any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("supabase_url must start with http:// or https://")
        return v.rstrip("/")

    @classmethod
    def for_testing(cls, **overrides: Any) -> "AppConfig":
        """Build a config that ignores the environment file."""
        return cls(_env_file=None, **overrides)

    @property
    def check_in_cadence(self) -> timedelta | None:
        """Check-in cadence as a timedelta, if configured."""
        if self.check_in_cadence_minutes is None:
            return None
        return timedelta(minutes=self.check_in_cadence_minutes)

    @property
    def realtime_url(self) -> str:
        """Websocket URL of the realtime endpoint."""
        ws_base = self.supabase_url.replace("https://", "wss://", 1).replace(
            "http://", "ws://", 1
        )
        return f"{ws_base}/realtime/v1/websocket"

    def load_overrides(self) -> dict[str, Any]:
        """Apply overrides from the TOML config file, if one is set.

        Returns:
            The parsed TOML data, empty when no file is configured.

        Raises:
            FileNotFoundError: If ``config_file`` points to a missing file.
            ValueError: If an overridden value fails validation.
        """
        if not self.config_file:
            return {}

        config_path = Path(self.config_file)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)

        updates: dict[str, Any] = {}
        for section, keys in _TOML_SECTIONS.items():
            values = toml_data.get(section, {})
            if not isinstance(values, dict):
                raise ValueError(f"TOML config '{section}' must be a table")
            updates.update({key: values[key] for key in keys if key in values})

        if updates:
            # Re-validate through the model so TOML values obey the same rules.
            validated = self.model_validate({**self.model_dump(), **updates})
            for key in updates:
                setattr(self, key, getattr(validated, key))

        return toml_data
