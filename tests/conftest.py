"""Shared test fixtures and factories."""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from deckbell.config.paths import get_deckbell_home
from deckbell.reminders import (
    DueCounts,
    DueDeck,
    RecordingDispatcher,
    ReminderEngine,
    ScheduleStore,
    SnapshotUnavailableError,
)
from deckbell.reminders.types import to_epoch_ms

# Tuesday; US daylight saving time is already in effect (since March 8)
START = datetime(2026, 3, 10, 8, 0, tzinfo=UTC)


def at(hour: int, minute: int = 0, day: int = 10) -> int:
    """Epoch ms for 2026-03-<day> hour:minute UTC."""
    return to_epoch_ms(datetime(2026, 3, day, hour, minute, tzinfo=UTC))


# =============================================================================
# Fakes
# =============================================================================


class FakeClock:
    """Mutable clock; call it to get the current time."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, moment: datetime) -> None:
        self.now = moment


class FakeSink:
    """NotificationSink that records what would have been shown."""

    def __init__(self):
        self.enabled = True
        self.deck_reminders: list[DueDeck] = []
        self.aggregate_reminders: list[tuple[DueCounts, int]] = []
        self.fail_for: set[int] = set()

    @property
    def shown_deck_ids(self) -> list[int]:
        return [deck.deck_id for deck in self.deck_reminders]

    def notifications_enabled(self) -> bool:
        return self.enabled

    def show_deck_reminder(self, deck: DueDeck) -> None:
        if deck.deck_id in self.fail_for:
            raise RuntimeError(f"cannot show deck {deck.deck_id}")
        self.deck_reminders.append(deck)

    def show_aggregate_reminder(self, counts: DueCounts, eta_minutes: int) -> None:
        self.aggregate_reminders.append((counts, eta_minutes))


class FakeSnapshot:
    """DeckSnapshot backed by an in-memory dict."""

    def __init__(self):
        self.decks: dict[int, DueDeck] = {}
        self.unavailable = False
        self.calls = 0

    def set(
        self,
        deck_id: int,
        name: str = "",
        new: int = 0,
        learn: int = 0,
        review: int = 0,
        eta: int = 0,
    ) -> None:
        self.decks[deck_id] = DueDeck(
            deck_id=deck_id,
            full_name=name or f"Deck {deck_id}",
            counts=DueCounts(new=new, learn=learn, review=review),
            eta_minutes=eta,
        )

    def list_due_decks(self) -> list[DueDeck]:
        self.calls += 1
        if self.unavailable:
            raise SnapshotUnavailableError("collection busy")
        return list(self.decks.values())


# =============================================================================
# Environment Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch):
    """Point DECKBELL_HOME at a temp dir and clear env overrides."""
    home = tmp_path / "home"
    monkeypatch.setenv("DECKBELL_HOME", str(home))
    monkeypatch.setenv("TZ", "UTC")
    monkeypatch.delenv("DECKBELL_TIMEZONE", raising=False)
    monkeypatch.delenv("DECKBELL_LOG_LEVEL", raising=False)
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    # Keep ./config.toml lookups away from the repo checkout
    monkeypatch.chdir(tmp_path)
    get_deckbell_home.cache_clear()
    yield home
    get_deckbell_home.cache_clear()


# =============================================================================
# Reminder Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path) -> ScheduleStore:
    return ScheduleStore(tmp_path / "state")


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def snapshot() -> FakeSnapshot:
    return FakeSnapshot()


@pytest.fixture
def engine(store, dispatcher, sink, snapshot, clock) -> ReminderEngine:
    """Engine in UTC with a one-hour heartbeat and 15-minute retry floor."""
    return ReminderEngine(
        store,
        dispatcher,
        sink,
        snapshot,
        timezone="UTC",
        min_cards_due=1,
        clock=clock,
    )


# =============================================================================
# CLI Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner with colors disabled."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1", "COLUMNS": "200"})


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Config file with state and deck snapshot under tmp_path."""
    path = tmp_path / "config.toml"
    path.write_text(
        f"""
timezone = "UTC"
state_dir = "{tmp_path / "state"}"
decks_file = "{tmp_path / "decks.json"}"

[reminders]
min_cards_due = 1
"""
    )
    return path
