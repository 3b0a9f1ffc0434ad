"""Configuration module."""

from deckbell.config.loader import get_default_config, load_config
from deckbell.config.models import (
    DeckbellConfig,
    NotificationConfig,
    ReminderConfig,
    SentryConfig,
    TimezoneWatchConfig,
)
from deckbell.config.paths import (
    get_config_path,
    get_deckbell_home,
    get_decks_file,
    get_state_dir,
    get_system_timezone,
)

__all__ = [
    "DeckbellConfig",
    "NotificationConfig",
    "ReminderConfig",
    "SentryConfig",
    "TimezoneWatchConfig",
    "get_config_path",
    "get_deckbell_home",
    "get_decks_file",
    "get_default_config",
    "get_state_dir",
    "get_system_timezone",
    "load_config",
]
