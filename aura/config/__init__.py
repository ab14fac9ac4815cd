"""Configuration package."""

from aura.config.settings import (
    Settings,
    StoreSettings,
    VaultSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "Settings",
    "StoreSettings",
    "VaultSettings",
    "get_settings",
    "validate_all_settings",
]
