"""Configuration loader for StockBox.

Loads configuration from TOML files and secrets from .env files.
Environment variables can override any configuration value.
"""

import logging
import os
from pathlib import Path
from typing import Any

from stockbox.config.schema import SecretsConfig, StockboxConfig

logger = logging.getLogger(__name__)

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[import-not-found,no-redef]


# Env var -> (section, key, type)
ENV_OVERRIDES: dict[str, tuple[str, str, type]] = {
    # Importer
    "STOCKBOX_IMPORTER_BATCH_SIZE": ("importer", "batch_size", int),
    "STOCKBOX_IMPORTER_DELAY_BETWEEN_ITEMS": ("importer", "delay_between_items", float),
    "STOCKBOX_IMPORTER_DELAY_BETWEEN_BATCHES": ("importer", "delay_between_batches", float),
    "STOCKBOX_IMPORTER_RATE_LIMIT_DELAY": ("importer", "rate_limit_delay", float),
    "STOCKBOX_IMPORTER_MAX_RATE_LIMIT_RETRIES": ("importer", "max_rate_limit_retries", int),
    # Enrichment
    "STOCKBOX_ENRICHMENT_REGISTRY_URL": ("enrichment", "registry_url", str),
    "STOCKBOX_ENRICHMENT_BATCH_SIZE": ("enrichment", "batch_size", int),
    "STOCKBOX_ENRICHMENT_DELAY_BETWEEN_ITEMS": ("enrichment", "delay_between_items", float),
    "STOCKBOX_ENRICHMENT_DELAY_BETWEEN_BATCHES": ("enrichment", "delay_between_batches", float),
    # API
    "STOCKBOX_API_BASE_URL": ("api", "base_url", str),
    "STOCKBOX_API_TIMEOUT": ("api", "timeout", float),
    "STOCKBOX_API_URL": ("api", "base_url", str),  # Shorthand
    # Grid
    "STOCKBOX_GRID_DECIMAL_SEPARATOR": ("grid", "decimal_separator", str),
    "STOCKBOX_DECIMAL_SEPARATOR": ("grid", "decimal_separator", str),  # Shorthand
    # Logging
    "STOCKBOX_LOGGING_LEVEL": ("logging", "level", str),
    "STOCKBOX_LOG_LEVEL": ("logging", "level", str),  # Shorthand
    "STOCKBOX_LOGGING_LOG_DIR": ("logging", "log_dir", Path),
    "STOCKBOX_LOG_DIR": ("logging", "log_dir", Path),  # Shorthand
}


def get_config_search_paths() -> list[Path]:
    """Get the list of paths to search for configuration files.

    Returns paths in priority order (first found wins):
    1. ./config.toml (project root - for development)
    2. ~/.config/stockbox/config.toml (user config)
    3. /etc/stockbox/config.toml (system config)
    """
    return [
        Path.cwd() / "config.toml",
        Path.home() / ".config" / "stockbox" / "config.toml",
        Path("/etc/stockbox/config.toml"),
    ]


def get_secrets_search_paths() -> list[Path]:
    """Get the list of paths to search for secrets files, in priority order."""
    return [
        Path.cwd() / "secrets.env",
        Path.home() / ".config" / "stockbox" / "secrets.env",
        Path("/etc/stockbox/secrets.env"),
    ]


def find_config_file() -> Path | None:
    """Find the first existing config file from search paths."""
    for path in get_config_search_paths():
        if path.exists() and path.is_file():
            logger.debug("Found config file: %s", path)
            return path
    return None


def find_secrets_file() -> Path | None:
    """Find the first existing secrets file from search paths."""
    for path in get_secrets_search_paths():
        if path.exists() and path.is_file():
            logger.debug("Found secrets file: %s", path)
            return path
    return None


def load_toml_file(path: Path) -> dict[str, Any]:
    """Load a TOML file and return its contents as a dictionary."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def apply_env_overrides(config_dict: dict[str, Any]) -> None:
    """Apply environment variable overrides to a configuration dictionary.

    STOCKBOX_IMPORTER_BATCH_SIZE -> config_dict["importer"]["batch_size"], etc.

    Note: This modifies config_dict in place.
    """
    for env_var, (section, key, value_type) in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        config_dict.setdefault(section, {})
        config_dict[section][key] = value_type(value)


def load_secrets(secrets_file: Path | None = None) -> SecretsConfig:
    """Load secrets from environment variables and an optional secrets.env file.

    Environment variables take precedence over file values.
    """
    if secrets_file is None:
        secrets_file = find_secrets_file()

    if secrets_file and secrets_file.exists():
        logger.info("Loading secrets from: %s", secrets_file)
        return SecretsConfig(_env_file=secrets_file)

    return SecretsConfig()


def load_config(config_file: Path | None = None) -> StockboxConfig:
    """Load configuration from a TOML file with environment variable overrides.

    Args:
        config_file: Optional path to config file. If not provided,
                     searches default locations.

    Returns:
        StockboxConfig instance with all settings loaded.
    """
    config_dict: dict[str, Any] = {}

    if config_file is None:
        config_file = find_config_file()

    if config_file and config_file.exists():
        logger.info("Loading config from: %s", config_file)
        config_dict = load_toml_file(config_file)
    else:
        logger.info("No config file found, using defaults with env overrides")

    apply_env_overrides(config_dict)

    return StockboxConfig(**config_dict)
