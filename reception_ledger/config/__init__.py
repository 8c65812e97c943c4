"""Configuration package."""

from reception_ledger.config.settings import (
    AppSettings,
    HierarchySettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "HierarchySettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
