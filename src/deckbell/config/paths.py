"""Centralized path management for deckbell.

All state (config, reminder store, logs) lives under a single base directory.
The base directory can be overridden with the DECKBELL_HOME environment variable.

Default locations:
- Linux/macOS: ~/.deckbell
- Windows: %USERPROFILE%\\.deckbell
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "DECKBELL_HOME"


def get_system_timezone() -> str:
    """Detect system timezone, falling back to UTC.

    Resolution order:
    1. TZ environment variable (if set)
    2. /etc/timezone file (Debian/Ubuntu)
    3. /etc/localtime symlink target (most Linux distros)
    4. Fallback to UTC

    Returns:
        IANA timezone name (e.g., "America/Los_Angeles", "Europe/London", "UTC").
    """
    if tz := os.environ.get("TZ"):
        return tz.lstrip(":")

    try:
        tz = Path("/etc/timezone").read_text().strip()
        if tz:
            return tz
    except (FileNotFoundError, PermissionError):
        pass

    try:
        link = Path("/etc/localtime").resolve()
        parts = str(link).split("zoneinfo/")
        if len(parts) > 1:
            return parts[1]
    except (FileNotFoundError, PermissionError):
        pass

    return "UTC"


@lru_cache(maxsize=1)
def get_deckbell_home() -> Path:
    """Get the base directory for all deckbell data.

    Resolution order:
    1. DECKBELL_HOME environment variable (if set)
    2. Platform default (~/.deckbell)
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()

    return Path.home() / ".deckbell"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_deckbell_home() / "config.toml"


def get_state_dir() -> Path:
    """Get the reminder store directory (deck records, trigger index)."""
    return get_deckbell_home() / "state"


def get_decks_file() -> Path:
    """Get the default due-deck snapshot file path."""
    return get_deckbell_home() / "decks.json"


def get_logs_path() -> Path:
    """Get the default logs directory path."""
    return get_deckbell_home() / "logs"


def get_all_paths() -> dict[str, Path]:
    """Get all standard paths for debugging/display."""
    return {
        "home": get_deckbell_home(),
        "config": get_config_path(),
        "state": get_state_dir(),
        "decks": get_decks_file(),
        "logs": get_logs_path(),
    }
