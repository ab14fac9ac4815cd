"""
Configuration Management for Aura Vault

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The store location and the import policy are the only knobs a
deployment usually needs; everything else has a sane default.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Embedded store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AURA_STORE_",
        extra="ignore"
    )

    db_path: str = Field(
        default="aura_vault.sqlite3",
        description="Path to the SQLite database file (':memory:' for a throwaway store)"
    )
    busy_timeout_seconds: float = Field(
        default=5.0,
        ge=0.0,
        le=120.0,
        description="How long a writer waits on a locked database"
    )

    @field_validator('db_path')
    @classmethod
    def validate_db_path(cls, v: str) -> str:
        """Warn if the parent directory is missing (but don't fail - might be mounted later)."""
        if v != ":memory:" and not Path(v).expanduser().parent.exists():
            import warnings
            warnings.warn(
                f"Directory for the vault database not found: {v}. "
                "Make sure it exists before running the application."
            )
        return v


class VaultSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="AURA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Derivation defaults
    default_currency: str = Field(
        default="INR",
        min_length=1,
        max_length=10,
        description="Currency applied when a captured expense names none"
    )

    # Import policy
    strict_import_references: bool = Field(
        default=True,
        description=(
            "Abort an import when a record points at a voice entry the "
            "backup does not contain (False mints a detached id instead)"
        )
    )

    # Audit trail
    audit_trail_size: int = Field(
        default=200,
        ge=0,
        le=10000,
        description="How many recent audit events are kept in memory"
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
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def vault(self) -> VaultSettings:
        return VaultSettings()


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
        _ = settings.store
        results["store"] = True
    except Exception as e:
        results["store"] = False
        results["store_error"] = str(e)

    try:
        _ = settings.vault
        results["vault"] = True
    except Exception as e:
        results["vault"] = False
        results["vault_error"] = str(e)

    return results
