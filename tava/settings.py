"""
Configuration settings for Tava.

This module provides a settings class for the Tava photo cache, with support for
loading configuration from TOML files and environment variables.
"""

from functools import lru_cache
from pathlib import Path
from typing import Self

from pydantic import model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

MB = 1024 * 1024


class Settings(BaseSettings):
    """Main settings class for Tava.

    This class handles loading configuration from TOML files and environment variables,
    with support for custom settings sources.
    """

    model_config = SettingsConfigDict(
        toml_file=["settings.toml", "settings.custom.toml"], env_prefix="TAVA_", extra="ignore"
    )

    # Backend settings
    supabase_url: str = "http://localhost:54321"
    supabase_key: str = ""
    default_bucket: str = "meal-photos"
    request_timeout: float = 20.0

    # Storage settings
    storage_path: str = str(Path.home() / ".tava")
    cache_dir: str | None = None  # If None, will use {storage_path}/image_cache

    # Signed URL settings
    signed_url_remote_ttl: int = 3600  # Lifetime of links minted by the backend
    signed_url_cache_ttl: int = 3000  # Refresh 10 minutes before the link dies
    signed_url_cache_limit: int = 1000
    signed_url_overflow_margin: int = 100

    # Cache budgets
    memory_cache_bytes: int = 50 * MB
    disk_cache_bytes: int = 200 * MB
    disk_cache_retention_days: int = 7
    preload_concurrency: int = 4

    # Maintenance intervals (seconds)
    signed_url_cleanup_interval: int = 300
    disk_cleanup_interval: int = 3600

    # Photo upload settings
    photo_max_dimension: int = 1920
    photo_quality: int = 70

    # Logging settings
    log_level: str = "INFO"
    log_to_file: bool = False
    log_dir: str | None = None  # If None, will use {storage_path}/logs
    log_rotation: str = "20 MB"
    log_retention: str = "1 week"
    log_format: str | None = None  # Use default if None

    @model_validator(mode="after")
    def check_signed_url_ttl(self) -> Self:
        """Cached signed URLs must go stale before the backend link does."""
        if self.signed_url_cache_ttl >= self.signed_url_remote_ttl:
            raise ValueError(
                "signed_url_cache_ttl must be shorter than signed_url_remote_ttl "
                f"({self.signed_url_cache_ttl} >= {self.signed_url_remote_ttl})"
            )
        return self

    @classmethod
    def settings_customize_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize the sources for settings.

        Priority order: explicit arguments, environment variables, then TOML config files
        """
        return init_settings, env_settings, TomlConfigSettingsSource(settings_cls)

    def get_cache_dir(self) -> Path:
        """Get the disk cache directory path.

        Returns:
            Path to the disk cache directory. Uses cache_dir if specified,
            otherwise image_cache inside storage_path.
        """
        if self.cache_dir:
            return Path(self.cache_dir)
        return Path(self.storage_path) / "image_cache"

    def get_log_dir(self) -> Path:
        """Get the log directory path."""
        if self.log_dir:
            return Path(self.log_dir)
        return Path(self.storage_path) / "logs"


@lru_cache
def get_settings() -> Settings:
    """Get the settings instance, with caching.

    Returns:
        Cached Settings instance
    """
    return Settings()


# Create a global settings instance for easy imports
settings = get_settings()
