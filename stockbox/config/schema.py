"""Pydantic models for StockBox configuration.

These models define the structure of config.toml and secrets.env files.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ImporterConfig(BaseModel):
    """Pacing for the generic import controller (delays in seconds)."""

    batch_size: int = Field(10, ge=1)
    delay_between_items: float = Field(0.1, ge=0)
    delay_between_batches: float = Field(1.0, ge=0)
    rate_limit_delay: float = Field(5.0, ge=0)
    # None keeps retrying a rate-limited row until the run is cancelled
    max_rate_limit_retries: int | None = None
    pause_poll_interval: float = Field(0.1, gt=0)


class EnrichmentConfig(BaseModel):
    """Company registry lookup and its stricter pacing."""

    registry_url: str = "https://brasilapi.com.br/api/cnpj/v1"
    timeout: float = 15.0
    batch_size: int = Field(3, ge=1)
    delay_between_items: float = Field(0.5, ge=0)
    delay_between_batches: float = Field(2.0, ge=0)
    rate_limit_delay: float = Field(5.0, ge=0)


class ApiConfig(BaseModel):
    """Inventory API connection."""

    base_url: str = "http://localhost:3000/api"
    timeout: float = 30.0


class GridConfig(BaseModel):
    """Spreadsheet grid defaults."""

    decimal_separator: Literal["comma", "dot"] = "comma"
    initial_rows: int = Field(50, ge=1)
    min_rows: int = Field(10, ge=1)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_dir: Path | None = None


class StockboxConfig(BaseModel):
    """Main StockBox configuration loaded from config.toml."""

    app_name: str = "StockBox"
    importer: ImporterConfig = Field(default_factory=ImporterConfig)
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    grid: GridConfig = Field(default_factory=GridConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class SecretsConfig(BaseSettings):
    """Secrets loaded from the environment and an optional secrets.env file.

    These are sensitive values that should not be stored in config.toml.
    """

    model_config = SettingsConfigDict(
        env_prefix="STOCKBOX_",
        extra="ignore",
    )

    api_token: str | None = None
