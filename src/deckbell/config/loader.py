"""Configuration loading from TOML files and environment variables."""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import SecretStr

from deckbell.config.models import DeckbellConfig
from deckbell.config.paths import get_config_path

TIMEZONE_ENV_VAR = "DECKBELL_TIMEZONE"


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("config.toml"),  # Current directory
        get_config_path(),  # ~/.deckbell/config.toml (or DECKBELL_HOME)
        Path("/etc/deckbell/config.toml"),  # System-wide
    ]


def _resolve_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment overrides where the config file leaves a value unset."""
    if (sentry := config.get("sentry")) is not None and sentry.get("dsn") is None:
        if dsn := os.environ.get("SENTRY_DSN"):
            sentry["dsn"] = SecretStr(dsn)

    # Explicit env timezone wins over the file; handy for travel and tests
    if tz := os.environ.get(TIMEZONE_ENV_VAR):
        config["timezone"] = tz

    return config


def load_config(path: Path | None = None) -> DeckbellConfig:
    """Load configuration from TOML file.

    Args:
        path: Explicit path to config file. If None, searches default locations
            and falls back to built-in defaults when none exist.

    Returns:
        Validated DeckbellConfig instance.

    Raises:
        FileNotFoundError: If an explicit config file does not exist.
        ValueError: If config file is invalid.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for default_path in _get_default_config_paths():
            expanded = default_path.expanduser()
            if expanded.exists():
                config_path = expanded
                break

    raw_config: dict[str, Any] = {}
    if config_path is not None:
        with config_path.open("rb") as f:
            raw_config = tomllib.load(f)

    raw_config = _resolve_env_overrides(raw_config)

    return DeckbellConfig.model_validate(raw_config)


def get_default_config() -> DeckbellConfig:
    """Get a default configuration for development/testing."""
    return DeckbellConfig()
