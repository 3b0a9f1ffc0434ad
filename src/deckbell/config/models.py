"""Configuration models using Pydantic."""

import logging
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, SecretStr, field_validator

from deckbell.config.paths import (
    get_decks_file,
    get_state_dir,
    get_system_timezone,
)

logger = logging.getLogger(__name__)


class ReminderConfig(BaseModel):
    """Configuration for the reminder engine.

    The aggregate "all decks" reminder fires once the total number of due
    cards reaches ``min_cards_due``.
    """

    min_cards_due: int = Field(default=1, ge=0)
    # Upper bound on any single wake delay; also the idle heartbeat
    heartbeat_minutes: int = Field(default=60, gt=0)
    # Floor for the re-arm delay when the deck snapshot was unavailable
    retry_minutes: int = Field(default=15, gt=0)
    # How often the service checks for index changes made by CLI commands
    sync_seconds: float = Field(default=5.0, gt=0)


class NotificationConfig(BaseModel):
    """Configuration for reminder display."""

    enabled: bool = True


class TimezoneWatchConfig(BaseModel):
    """Configuration for the timezone change watcher."""

    poll_interval: float = Field(default=60.0, gt=0)


class SentryConfig(BaseModel):
    """Configuration for Sentry error reporting."""

    dsn: SecretStr | None = None
    environment: str = "production"
    release: str | None = None
    traces_sample_rate: float = 0.0
    profiles_sample_rate: float = 0.0
    send_default_pii: bool = False
    debug: bool = False


class DeckbellConfig(BaseModel):
    """Root configuration model."""

    timezone: str = Field(default_factory=get_system_timezone)
    state_dir: Path = Field(default_factory=get_state_dir)
    decks_file: Path = Field(default_factory=get_decks_file)
    reminders: ReminderConfig = Field(default_factory=ReminderConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    timezone_watch: TimezoneWatchConfig = Field(default_factory=TimezoneWatchConfig)
    sentry: SentryConfig | None = None

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @property
    def heartbeat_ms(self) -> int:
        return self.reminders.heartbeat_minutes * 60_000

    @property
    def retry_ms(self) -> int:
        return self.reminders.retry_minutes * 60_000
