"""
Application configuration using Pydantic Settings.
All configuration is loaded from environment variables with sensible defaults.
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Library settings loaded from environment variables.

    Every component accepts explicit constructor arguments; these values are
    only the fallbacks used when an argument is omitted.
    """

    model_config = SettingsConfigDict(
        env_prefix="MEDSIG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Core Settings
    # ==========================================================================
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ==========================================================================
    # Unit Conversion
    # ==========================================================================
    precision_tolerance: float = Field(
        default=0.001,
        ge=0,
        description="Relative precision loss tolerated before a conversion is flagged",
    )
    enforce_precision: bool = Field(
        default=False,
        description="Fail lossy conversions with PrecisionError instead of only flagging them",
    )
    max_decimal_places: int = Field(default=4, ge=0, le=12)

    # ==========================================================================
    # Conversion Tracing
    # ==========================================================================
    tracing_enabled: bool = Field(default=False)
    max_trace_entries: int = Field(default=1000, ge=1)
    trace_dry_run: bool = Field(
        default=False,
        description="Mark traced conversions as dry runs so callers can skip applying them",
    )

    # ==========================================================================
    # Template Rendering
    # ==========================================================================
    template_locale: str = Field(default="en-US")
    template_cache_size: int = Field(default=100, ge=1)
    template_performance_logging: bool = Field(
        default=False,
        description="Log a warning when a single render takes longer than 1ms",
    )

    @model_validator(mode="after")
    def _validate_template_locale(self) -> Self:
        """Reject locale tags that cannot be used as catalog keys."""
        locale = self.template_locale.strip()
        if not locale:
            raise ValueError("template_locale must not be empty")
        self.template_locale = locale
        return self


@lru_cache
def get_settings() -> Settings:
    """
    Get cached library settings.

    Using lru_cache ensures settings are loaded once and reused,
    avoiding repeated environment variable parsing.
    """
    return Settings()
