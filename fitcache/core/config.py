"""
fitcache Configuration

Configuration management with environment variable support.
Freshness windows default to the tracker screens' historical behaviour and
may be overridden per domain.
"""

from functools import lru_cache
from typing import Dict

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import DOMAIN_POLICY_PRESETS
from ..domain.cache.exceptions import ConfigurationError
from ..domain.cache.value_objects import FreshnessPolicy

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation and sane defaults."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        validate_assignment=True,
    )

    # Environment settings
    ENVIRONMENT: str = Field(
        default="development", description="Application environment"
    )

    # Freshness defaults
    CACHE_DEFAULT_FRESH_WINDOW_SECONDS: float = Field(
        default=5.0, ge=0, description="Age below which an entry is FRESH"
    )
    CACHE_DEFAULT_STALE_WINDOW_SECONDS: float = Field(
        default=30.0,
        ge=0,
        description="Age from which an entry is treated as MISSING",
    )
    CACHE_DOMAIN_POLICIES: Dict[str, Dict[str, float]] = Field(
        default_factory=dict,
        description='Per-domain overrides, e.g. {"weight": {"fresh": 60, "stale": 300}}',
    )

    # Observability
    CACHE_METRICS_ENABLED: bool = Field(
        default=True, description="Record Prometheus cache metrics"
    )

    # Development and debugging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_JSON: bool = Field(default=True, description="Render logs as JSON")

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value."""
        allowed = ["development", "test", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @field_validator("CACHE_DOMAIN_POLICIES")
    @classmethod
    def validate_domain_policies(cls, v):
        """Each override needs both windows, forming a valid policy."""
        for name, windows in v.items():
            missing = {"fresh", "stale"} - set(windows)
            if missing:
                raise ValueError(
                    f"Policy for domain '{name}' is missing: {sorted(missing)}"
                )
            try:
                FreshnessPolicy.seconds(windows["fresh"], windows["stale"])
            except ConfigurationError as e:
                raise ValueError(
                    f"Invalid freshness override for domain '{name}': {e.message}"
                ) from e
        return v

    @model_validator(mode="after")
    def validate_default_windows(self):
        """Fresh window must not exceed stale window."""
        if (
            self.CACHE_DEFAULT_FRESH_WINDOW_SECONDS
            > self.CACHE_DEFAULT_STALE_WINDOW_SECONDS
        ):
            raise ValueError(
                "CACHE_DEFAULT_FRESH_WINDOW_SECONDS must not exceed "
                "CACHE_DEFAULT_STALE_WINDOW_SECONDS"
            )
        return self

    @property
    def default_policy(self) -> FreshnessPolicy:
        return FreshnessPolicy.seconds(
            self.CACHE_DEFAULT_FRESH_WINDOW_SECONDS,
            self.CACHE_DEFAULT_STALE_WINDOW_SECONDS,
        )

    def policy_for(self, name: str) -> FreshnessPolicy:
        """Resolve a domain's policy: explicit override, preset, then default."""
        override = self.CACHE_DOMAIN_POLICIES.get(name)
        if override is not None:
            return FreshnessPolicy.seconds(override["fresh"], override["stale"])

        preset = DOMAIN_POLICY_PRESETS.get(name)
        if preset is not None:
            return preset()

        return self.default_policy


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
