"""StockBox configuration module.

This module provides TOML-based configuration with environment variable overrides.

Configuration is loaded from the following locations (in order of priority):
1. Environment variables (highest priority)
2. ./config.toml (project root - for development)
3. ~/.config/stockbox/config.toml (user config)
4. /etc/stockbox/config.toml (system config)

Secrets are loaded from secrets.env files in the same directories.
"""

from stockbox.config.schema import (
    ApiConfig,
    EnrichmentConfig,
    GridConfig,
    ImporterConfig,
    LoggingConfig,
    SecretsConfig,
    StockboxConfig,
)
from stockbox.config.settings import Settings, get_settings, reset_settings, settings

__all__ = [
    "ApiConfig",
    "EnrichmentConfig",
    "GridConfig",
    "ImporterConfig",
    "LoggingConfig",
    "SecretsConfig",
    "StockboxConfig",
    "Settings",
    "get_settings",
    "reset_settings",
    "settings",
]
