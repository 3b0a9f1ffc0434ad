"""Reminder types.

Public types:
- DeckSchedule: A deck's daily reminder settings (persisted per deck)
- DueCounts / DueDeck: Due-card snapshot for one deck
- FireDecision: Calculator output for one deck
- WakeResult: Summary of one wake cycle
- Dispatcher, NotificationSink, DeckSnapshot: Collaborator protocols
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from deckbell.reminders.errors import InvalidScheduleError

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS
ONE_DAY_MS = 24 * HOUR_MS

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def to_epoch_ms(moment: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(instant_ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=instant_ms)


@dataclass
class DeckSchedule:
    """Daily reminder settings for one deck."""

    deck_id: int
    scheduled_hour: int
    scheduled_minute: int
    deck_name: str = ""
    min_cards_due: int = 0
    enabled: bool = True

    def validate(self) -> None:
        """Raise InvalidScheduleError if any field is out of range."""
        if not 0 <= self.scheduled_hour <= 23:
            raise InvalidScheduleError(
                f"scheduled_hour must be 0-23, got {self.scheduled_hour}"
            )
        if not 0 <= self.scheduled_minute <= 59:
            raise InvalidScheduleError(
                f"scheduled_minute must be 0-59, got {self.scheduled_minute}"
            )
        if self.min_cards_due < 0:
            raise InvalidScheduleError(
                f"min_cards_due must be non-negative, got {self.min_cards_due}"
            )

    @property
    def time_of_day(self) -> str:
        return f"{self.scheduled_hour:02d}:{self.scheduled_minute:02d}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "deck_id": self.deck_id,
            "deck_name": self.deck_name,
            "scheduled_hour": self.scheduled_hour,
            "scheduled_minute": self.scheduled_minute,
            "min_cards_due": self.min_cards_due,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeckSchedule | None":
        """Parse a stored record. Returns None for malformed records."""
        try:
            schedule = cls(
                deck_id=int(data["deck_id"]),
                scheduled_hour=int(data["scheduled_hour"]),
                scheduled_minute=int(data["scheduled_minute"]),
                deck_name=str(data.get("deck_name", "")),
                min_cards_due=int(data.get("min_cards_due", 0)),
                enabled=bool(data.get("enabled", True)),
            )
            schedule.validate()
        except (KeyError, TypeError, ValueError):
            return None
        return schedule


@dataclass(frozen=True)
class DueCounts:
    """Due cards split by queue."""

    new: int = 0
    learn: int = 0
    review: int = 0

    @property
    def total(self) -> int:
        return self.new + self.learn + self.review

    def __add__(self, other: "DueCounts") -> "DueCounts":
        return DueCounts(
            new=self.new + other.new,
            learn=self.learn + other.learn,
            review=self.review + other.review,
        )


@dataclass(frozen=True)
class DueDeck:
    """One deck's entry in the due-deck snapshot."""

    deck_id: int
    full_name: str
    counts: DueCounts = field(default_factory=DueCounts)
    eta_minutes: int = 0

    @property
    def short_name(self) -> str:
        """Last component of a nested deck name ("Lang::French" -> "French")."""
        return self.full_name.rsplit("::", 1)[-1]


@dataclass(frozen=True)
class FireDecision:
    """Where a deck lands in the index and whether the wake-up must move."""

    instant_ms: int
    must_reschedule: bool


@dataclass
class WakeResult:
    """Outcome of one wake cycle."""

    snapshot_ok: bool = True
    due_deck_ids: list[int] = field(default_factory=list)
    fired_deck_ids: list[int] = field(default_factory=list)
    skipped_deck_ids: list[int] = field(default_factory=list)
    aggregate_fired: bool = False
    next_delay_ms: int = 0


class Dispatcher(Protocol):
    """Single-slot background job: invoke the engine once after a delay."""

    def arm(self, delay_ms: int, force: bool) -> bool: ...

    def cancel(self) -> None: ...


class NotificationSink(Protocol):
    """Renders and shows reminders."""

    def notifications_enabled(self) -> bool: ...

    def show_deck_reminder(self, deck: DueDeck) -> None: ...

    def show_aggregate_reminder(self, counts: DueCounts, eta_minutes: int) -> None: ...


class DeckSnapshot(Protocol):
    """Read-only view of which decks currently have due cards.

    Implementations raise SnapshotUnavailableError when the collection
    cannot be read.
    """

    def list_due_decks(self) -> list[DueDeck]: ...
