"""Configuration package."""

from balancer.config.settings import (
    AppSettings,
    BalancingSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BalancingSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
