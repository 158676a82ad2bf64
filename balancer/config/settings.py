"""
Configuration Management for the Double-Entry Balancer

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Balancing tolerance, currencies and input limits are read in one place
so every editing surface agrees on them.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BalancingSettings(BaseSettings):
    """Balancing rules shared by the auto-balancer and the commit gate."""

    model_config = SettingsConfigDict(
        env_prefix="BALANCER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Maximum debit/credit difference still treated as balanced"
    )
    default_currency: str = Field(
        default="PLN",
        description="Currency used for new documents"
    )
    base_currency: str = Field(
        default="PLN",
        description="Currency amounts are converted to for reporting"
    )
    max_amount_input_length: int = Field(
        default=10,
        ge=1,
        le=30,
        description="Maximum number of whole-unit digits accepted in an amount field"
    )

    # Chart-of-accounts lookup
    account_search_min_length: int = Field(
        default=2,
        ge=0,
        description="Shortest query the account lookup will run"
    )
    account_search_limit: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Maximum number of accounts returned by a lookup"
    )

    @field_validator("default_currency", "base_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Currency codes are stored upper-case."""
        v = v.strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError(f"Invalid currency code: {v!r}")
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for structured logs"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (False renders for the console)"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def balancing(self) -> BalancingSettings:
        return BalancingSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.balancing
        results["balancing"] = True
    except Exception as e:
        results["balancing"] = False
        results["balancing_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
