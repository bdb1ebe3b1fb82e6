"""Global settings instance for StockBox.

This module provides a unified settings object that combines:
- Configuration from config.toml
- Secrets from secrets.env
- Environment variable overrides
"""

import logging
from pathlib import Path

from stockbox.config.loader import load_config, load_secrets
from stockbox.config.schema import (
    ApiConfig,
    EnrichmentConfig,
    GridConfig,
    ImporterConfig,
    SecretsConfig,
    StockboxConfig,
)

logger = logging.getLogger(__name__)


class Settings:
    """Unified settings object combining config and secrets.

    Section objects are exposed for the import engine, plus a flat property
    interface for the handful of values read directly.
    """

    def __init__(
        self,
        config: StockboxConfig | None = None,
        secrets: SecretsConfig | None = None,
    ):
        """Initialize settings.

        Args:
            config: Optional StockboxConfig instance. If not provided, loads from file.
            secrets: Optional SecretsConfig instance. If not provided, loads from file.
        """
        self._config = config or load_config()
        self._secrets = secrets or load_secrets()

        if not self._secrets.api_token:
            logger.debug("No API token configured; requests will be sent unauthenticated")

    @property
    def config(self) -> StockboxConfig:
        """Get the full configuration object."""
        return self._config

    @property
    def secrets(self) -> SecretsConfig:
        """Get the secrets configuration object."""
        return self._secrets

    # Sections
    @property
    def importer(self) -> ImporterConfig:
        return self._config.importer

    @property
    def enrichment(self) -> EnrichmentConfig:
        return self._config.enrichment

    @property
    def api(self) -> ApiConfig:
        return self._config.api

    @property
    def grid(self) -> GridConfig:
        return self._config.grid

    # Flat accessors
    @property
    def app_name(self) -> str:
        return self._config.app_name

    @property
    def api_base_url(self) -> str:
        return self._config.api.base_url

    @property
    def decimal_separator(self) -> str:
        return self._config.grid.decimal_separator

    @property
    def log_level(self) -> str:
        return self._config.logging.level

    @property
    def log_dir(self) -> Path | None:
        """Directory for the import log file; None logs to the console only."""
        return self._config.logging.log_dir

    @property
    def api_token(self) -> str | None:
        return self._secrets.api_token


# Global settings instance - lazily initialized
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, loading it on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance.

    This is primarily useful for testing to reload configuration.
    """
    global _settings
    _settings = None


class _SettingsProxy:
    """Proxy object that lazily loads settings on first access."""

    def __getattr__(self, name: str):
        return getattr(get_settings(), name)

    def __repr__(self) -> str:
        return repr(get_settings())


settings = _SettingsProxy()
