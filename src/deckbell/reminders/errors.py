"""Reminder error types."""


class ReminderError(Exception):
    """Base class for reminder engine errors."""


class SnapshotUnavailableError(ReminderError):
    """The due-deck snapshot could not be read (collection busy, file missing).

    Transient: the wake cycle skips notifications and re-arms for a retry.
    """


class InvalidScheduleError(ReminderError, ValueError):
    """A deck schedule has out-of-range fields."""
