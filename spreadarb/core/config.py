"""
Configuration management for spreadarb.

Supports:
- Secrets and runtime switches: environment variables / .env file
- Business rules (thresholds, fees, sizing, risk): YAML config
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==============================================
    # Environment
    # ==============================================
    spreadarb_env: str = Field(default="local", description="Environment: local/cloud")
    log_level: str = Field(default="INFO")
    timezone: str = Field(default="Asia/Shanghai")

    # ==============================================
    # Trading
    # ==============================================
    trading_mode: str = Field(default="simulation", description="simulation or live")
    symbol: str = Field(default="ETHUSDT", description="Instrument traded on both venues")

    # ==============================================
    # Venue API Keys (live mode only)
    # ==============================================
    binance_api_key: Optional[str] = Field(default=None)
    binance_secret_key: Optional[str] = Field(default=None)

    bitget_api_key: Optional[str] = Field(default=None)
    bitget_secret_key: Optional[str] = Field(default=None)
    bitget_passphrase: Optional[str] = Field(default=None)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v

    @field_validator("trading_mode")
    @classmethod
    def validate_trading_mode(cls, v: str) -> str:
        v = v.lower()
        if v not in {"simulation", "live"}:
            raise ValueError(f"Invalid trading mode: {v}. Must be 'simulation' or 'live'")
        return v

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        return v.replace("-", "").replace("/", "").upper()

    @property
    def is_local(self) -> bool:
        return self.spreadarb_env == "local"

    @property
    def is_live(self) -> bool:
        return self.trading_mode == "live"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def find_project_root() -> Optional[Path]:
    """Locate the directory holding pyproject.toml, if any."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def load_yaml_config(config_path: Optional[str] = None) -> dict[str, Any]:
    """
    Load YAML configuration file.

    Args:
        config_path: Path to config file. Defaults to $SPREADARB_CONFIG,
            then config/config.yaml under the project root.

    Returns:
        Configuration dictionary (empty if the file is empty)
    """
    if config_path is None:
        config_path = os.getenv("SPREADARB_CONFIG")

    if config_path is None:
        root = find_project_root()
        if root is not None:
            config_path = str(root / "config" / "config.yaml")
        else:
            config_path = "config/config.yaml"

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_arbitrage_config(config: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Return the `arbitrage` section of the YAML config."""
    if config is None:
        config = load_yaml_config()
    return config.get("arbitrage", {}) or {}
