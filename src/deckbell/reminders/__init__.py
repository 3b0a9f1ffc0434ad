"""Reminder subsystem - daily per-deck study reminders.

Public API:
- ReminderEngine: Schedules decks, fires reminders, re-arms the wake-up
- ScheduleStore: File-backed deck records and trigger index
- TriggerIndex: Ordered map of fire instant -> deck ids
- TimezoneWatcher: Recalibrates when the local timezone changes
- IndexWatcher: Re-arms when another process schedules an earlier reminder
- AsyncioDispatcher / RecordingDispatcher: Wake-up slot implementations
- JsonDeckSnapshot: Due counts read from a JSON file
- ConsoleNotificationSink: Prints reminders to the terminal

Types:
- DeckSchedule, DueCounts, DueDeck, FireDecision, WakeResult
- Dispatcher, NotificationSink, DeckSnapshot: Collaborator protocols
"""

from deckbell.reminders.calculator import compute_next_fire
from deckbell.reminders.dispatcher import AsyncioDispatcher, RecordingDispatcher
from deckbell.reminders.engine import ReminderEngine
from deckbell.reminders.errors import (
    InvalidScheduleError,
    ReminderError,
    SnapshotUnavailableError,
)
from deckbell.reminders.index import TriggerIndex
from deckbell.reminders.notifications import ConsoleNotificationSink
from deckbell.reminders.snapshot import JsonDeckSnapshot
from deckbell.reminders.store import ScheduleStore
from deckbell.reminders.types import (
    ONE_DAY_MS,
    DeckSchedule,
    DeckSnapshot,
    Dispatcher,
    DueCounts,
    DueDeck,
    FireDecision,
    NotificationSink,
    WakeResult,
)
from deckbell.reminders.watcher import IndexWatcher, TimezoneChange, TimezoneWatcher

__all__ = [
    "ONE_DAY_MS",
    "AsyncioDispatcher",
    "ConsoleNotificationSink",
    "DeckSchedule",
    "DeckSnapshot",
    "Dispatcher",
    "DueCounts",
    "DueDeck",
    "FireDecision",
    "IndexWatcher",
    "InvalidScheduleError",
    "JsonDeckSnapshot",
    "NotificationSink",
    "RecordingDispatcher",
    "ReminderEngine",
    "ReminderError",
    "ScheduleStore",
    "SnapshotUnavailableError",
    "TimezoneChange",
    "TimezoneWatcher",
    "TriggerIndex",
    "WakeResult",
    "compute_next_fire",
]
