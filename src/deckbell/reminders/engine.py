"""Reminder engine: keeps the trigger index and the wake-up slot in sync.

All decks share one dispatcher slot. The engine owns the read-modify-write
cycle on the trigger index: every operation runs under ``self._lock``
(one writer per process) and ``store.locked()`` (one writer across
processes), and leaves the store consistent before returning.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from deckbell.reminders.calculator import compute_next_fire
from deckbell.reminders.errors import SnapshotUnavailableError
from deckbell.reminders.index import TriggerIndex
from deckbell.reminders.store import ScheduleStore
from deckbell.reminders.types import (
    HOUR_MS,
    MINUTE_MS,
    ONE_DAY_MS,
    DeckSchedule,
    DeckSnapshot,
    Dispatcher,
    DueCounts,
    DueDeck,
    FireDecision,
    NotificationSink,
    WakeResult,
    from_epoch_ms,
    to_epoch_ms,
)

if TYPE_CHECKING:
    from deckbell.config import DeckbellConfig

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


def advance_past(instant_ms: int, now_ms: int) -> int:
    """Move a processed instant forward by whole days until it is after now.

    A bucket missed by less than a day moves exactly one day; one missed for
    several days catches up to its next future occurrence.
    """
    advanced = instant_ms + ONE_DAY_MS
    if advanced <= now_ms:
        missed_days = (now_ms - instant_ms) // ONE_DAY_MS
        advanced = instant_ms + (missed_days + 1) * ONE_DAY_MS
    return advanced


class ReminderEngine:
    """Schedules, fires and re-arms daily deck reminders.

    Example:
        dispatcher = AsyncioDispatcher()
        engine = ReminderEngine(
            ScheduleStore(state_dir),
            dispatcher,
            ConsoleNotificationSink(),
            JsonDeckSnapshot(decks_file),
            timezone="Europe/Berlin",
        )
        dispatcher.bind(engine.on_wake)

        await engine.schedule_deck(DeckSchedule(42, 9, 30, "French"))
        await engine.resume()
    """

    def __init__(
        self,
        store: ScheduleStore,
        dispatcher: Dispatcher,
        sink: NotificationSink,
        snapshot: DeckSnapshot,
        *,
        timezone: str = "UTC",
        min_cards_due: int = 1,
        heartbeat_ms: int = HOUR_MS,
        retry_ms: int = 15 * MINUTE_MS,
        clock: Clock | None = None,
    ) -> None:
        ZoneInfo(timezone)
        self._store = store
        self._dispatcher = dispatcher
        self._sink = sink
        self._snapshot = snapshot
        self._timezone = timezone
        self._min_cards_due = min_cards_due
        self._heartbeat_ms = heartbeat_ms
        self._retry_ms = retry_ms
        self._clock = clock or _utc_now
        self._lock = asyncio.Lock()
        # Wake instant last armed and the index it was computed from
        self._armed_for_ms: int | None = None
        self._armed_index: TriggerIndex | None = None

    @classmethod
    def from_config(
        cls,
        config: "DeckbellConfig",
        *,
        dispatcher: Dispatcher,
        sink: NotificationSink,
        snapshot: DeckSnapshot,
        store: ScheduleStore | None = None,
        clock: Clock | None = None,
    ) -> "ReminderEngine":
        return cls(
            store or ScheduleStore(config.state_dir),
            dispatcher,
            sink,
            snapshot,
            timezone=config.timezone,
            min_cards_due=config.reminders.min_cards_due,
            heartbeat_ms=config.heartbeat_ms,
            retry_ms=config.retry_ms,
            clock=clock,
        )

    @property
    def store(self) -> ScheduleStore:
        return self._store

    @property
    def timezone(self) -> str:
        return self._timezone

    def now(self) -> datetime:
        return self._clock()

    def use_timezone(self, timezone: str) -> None:
        """Compute future instants in ``timezone`` without rebuilding the index.

        Only safe when the new zone has the same UTC offset as the old one.
        """
        ZoneInfo(timezone)
        self._timezone = timezone

    # ------------------------------------------------------------------
    # Schedule management
    # ------------------------------------------------------------------

    async def schedule_deck(self, schedule: DeckSchedule) -> FireDecision | None:
        """Persist a deck's reminder settings and place it in the index.

        A disabled schedule takes the deck out of the index instead.

        Raises:
            InvalidScheduleError: If hour, minute or threshold are out of range.
        """
        schedule.validate()
        async with self._lock:
            now = self.now()
            with self._store.locked():
                index, rebuilt = self._load_index(now)
                self._store.put_deck(schedule)
                if not schedule.enabled:
                    index.remove_deck(schedule.deck_id)
                    self._store.save_index(index)
                    decision = None
                else:
                    decision = self._place(
                        index,
                        schedule.deck_id,
                        schedule.scheduled_hour,
                        schedule.scheduled_minute,
                        now,
                    )
                    self._store.save_index(index)
            if rebuilt or (decision is not None and decision.must_reschedule):
                self._arm_next(index, now)
            return decision

    async def add_or_update(self, deck_id: int, hour: int, minute: int) -> FireDecision:
        """Place ``deck_id`` at its next ``hour:minute`` and re-arm if it is now first.

        Raises:
            InvalidScheduleError: If hour or minute are out of range.
        """
        DeckSchedule(deck_id, hour, minute).validate()
        async with self._lock:
            now = self.now()
            with self._store.locked():
                index, rebuilt = self._load_index(now)
                decision = self._place(index, deck_id, hour, minute, now)
                self._store.save_index(index)
            if rebuilt or decision.must_reschedule:
                self._arm_next(index, now)
            return decision

    async def remove(self, *deck_ids: int) -> int:
        """Take decks out of the index. Returns how many were pending.

        The armed wake-up is left alone: removing a deck never makes the
        next wake-up earlier, and an early wake with nothing due is harmless.
        """
        async with self._lock:
            with self._store.locked():
                index, _ = self._load_index(self.now())
                removed = self._remove_from(index, deck_ids)
                self._store.save_index(index)
            return removed

    async def disable_deck(self, *deck_ids: int) -> int:
        """Delete decks' reminder settings and their pending reminders."""
        async with self._lock:
            with self._store.locked():
                self._store.remove_decks(deck_ids)
                index, _ = self._load_index(self.now())
                removed = self._remove_from(index, deck_ids)
                self._store.save_index(index)
            return removed

    def cancel(self) -> None:
        """Cancel the pending wake-up without touching the index."""
        self._dispatcher.cancel()
        logger.info("wake_cancelled")

    def upcoming(self) -> list[tuple[datetime, list[int]]]:
        """Pending buckets as (local time, deck ids), earliest first."""
        tz = ZoneInfo(self._timezone)
        index = self._store.load_index() or TriggerIndex()
        return [
            (from_epoch_ms(instant_ms).astimezone(tz), sorted(deck_ids))
            for instant_ms, deck_ids in index.items()
        ]

    # ------------------------------------------------------------------
    # Dispatcher entry points
    # ------------------------------------------------------------------

    async def resume(self) -> int:
        """Re-arm from the stored index after a process start.

        Returns:
            The delay in milliseconds that was armed.
        """
        async with self._lock:
            now = self.now()
            with self._store.locked():
                index, rebuilt = self._load_index(now)
                if rebuilt:
                    self._store.save_index(index)
            return self._arm_next(index, now)

    async def sync(self) -> bool:
        """Pick up index changes written by other processes.

        One-shot commands save the index but cannot reach this process's
        dispatcher. When the stored index differs from the one the current
        wake-up was computed from and holds an instant before that wake-up,
        re-arm for it.

        Returns:
            True if the wake-up was re-armed.
        """
        async with self._lock:
            now = self.now()
            with self._store.locked():
                index, rebuilt = self._load_index(now)
                if rebuilt:
                    self._store.save_index(index)

            if not rebuilt and index == self._armed_index:
                return False
            earliest = index.earliest()
            if (
                not rebuilt
                and self._armed_for_ms is not None
                and (earliest is None or earliest >= self._armed_for_ms)
            ):
                self._armed_index = index.copy()
                return False

            logger.info(
                "trigger_index_changed_externally",
                extra={"trigger.at_ms": earliest, "wake.armed_ms": self._armed_for_ms},
            )
            self._arm_next(index, now)
            return True

    async def on_wake(self) -> WakeResult:
        """Handle one dispatcher wake-up.

        Fires reminders for due buckets, advances them by a day, evaluates the
        all-decks reminder and re-arms for the next instant. When the deck
        snapshot is unavailable nothing is fired or advanced and the slot is
        re-armed for a retry.

        Deck reminders are shown before the advanced index is saved, so a
        crash in between shows them again on the next wake rather than
        losing them.
        """
        async with self._lock:
            now = self.now()
            now_ms = to_epoch_ms(now)
            result = WakeResult()

            due_decks = await self._read_snapshot()

            with self._store.locked():
                index, rebuilt = self._load_index(now)
                schedules = {s.deck_id: s for s in self._store.get_decks()}
                due_ids: set[int] = set()
                if due_decks is not None and index:
                    for instant_ms, deck_ids in index.pop_due(now_ms):
                        next_ms = advance_past(instant_ms, now_ms)
                        for deck_id in deck_ids:
                            index.insert(deck_id, next_ms)
                        due_ids.update(deck_ids)
                        logger.debug(
                            "trigger_bucket_advanced",
                            extra={
                                "trigger.at_ms": instant_ms,
                                "trigger.next_ms": next_ms,
                                "trigger.decks": sorted(deck_ids),
                            },
                        )
                if due_ids:
                    self._fire_decks(result, due_ids, due_decks, schedules)
                if rebuilt or due_ids:
                    self._store.save_index(index)

            if due_decks is None:
                result.snapshot_ok = False
                delay_ms = max(self._delay_to_next(index, now_ms), self._retry_ms)
                self._arm(delay_ms, now_ms, index)
                result.next_delay_ms = delay_ms
                return result

            result.due_deck_ids = sorted(due_ids)
            result.aggregate_fired = self._fire_aggregate(due_decks)
            result.next_delay_ms = self._arm_next(index, now)

            logger.info(
                "wake_completed",
                extra={
                    "wake.due": len(result.due_deck_ids),
                    "wake.fired": len(result.fired_deck_ids),
                    "wake.aggregate": result.aggregate_fired,
                    "wake.next_delay_ms": result.next_delay_ms,
                },
            )
            return result

    async def recalibrate(self, timezone: str | None = None) -> TriggerIndex:
        """Rebuild the whole index, e.g. after the local timezone changed.

        Deck ids are taken from the current index before anything is mutated
        and folded one by one into a fresh index; decks whose settings are
        gone are dropped. The wake-up is always re-armed.

        Args:
            timezone: New IANA zone to compute instants in. Keeps the current
                zone when None.
        """
        if timezone is not None:
            ZoneInfo(timezone)
        async with self._lock:
            if timezone is not None and timezone != self._timezone:
                logger.info(
                    "timezone_changed",
                    extra={"timezone.old": self._timezone, "timezone.new": timezone},
                )
                self._timezone = timezone
            now = self.now()
            with self._store.locked():
                schedules = {s.deck_id: s for s in self._store.get_decks()}
                old_index = self._store.load_index()
                if old_index is None:
                    deck_ids = sorted(d for d, s in schedules.items() if s.enabled)
                else:
                    deck_ids = sorted(old_index.deck_ids())

                index = TriggerIndex()
                for deck_id in deck_ids:
                    schedule = schedules.get(deck_id)
                    if schedule is None or not schedule.enabled:
                        logger.debug(
                            "calibration_dropped_deck", extra={"deck.id": deck_id}
                        )
                        continue
                    self._place(
                        index,
                        deck_id,
                        schedule.scheduled_hour,
                        schedule.scheduled_minute,
                        now,
                    )
                self._store.save_index(index)
                self._store.set_timezone(self._timezone)

            logger.info(
                "trigger_index_recalibrated",
                extra={
                    "timezone": self._timezone,
                    "calibration.decks": len(index.deck_ids()),
                    "calibration.dropped": len(deck_ids) - len(index.deck_ids()),
                },
            )
            self._arm_next(index, now)
            return index

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load_index(self, now: datetime) -> tuple[TriggerIndex, bool]:
        """Load the index, rebuilding it from deck records when absent or corrupt.

        Returns:
            (index, rebuilt); ``rebuilt`` is True when deck records had to be
            placed again. Callers must persist and re-arm for a rebuilt index.
        """
        index = self._store.load_index()
        if index is not None:
            return index, False

        index = TriggerIndex()
        schedules = sorted(
            (s for s in self._store.get_decks() if s.enabled),
            key=lambda s: s.deck_id,
        )
        for schedule in schedules:
            self._place(
                index,
                schedule.deck_id,
                schedule.scheduled_hour,
                schedule.scheduled_minute,
                now,
            )
        if schedules:
            logger.info("trigger_index_rebuilt", extra={"index.decks": len(schedules)})
        return index, bool(schedules)

    def _place(
        self,
        index: TriggerIndex,
        deck_id: int,
        hour: int,
        minute: int,
        now: datetime,
    ) -> FireDecision:
        decision = compute_next_fire(
            hour, minute, index, now=now, timezone=self._timezone
        )
        previous = index.insert(deck_id, decision.instant_ms)
        logger.debug(
            "deck_trigger_placed",
            extra={
                "deck.id": deck_id,
                "trigger.at_ms": decision.instant_ms,
                "trigger.previous_ms": previous,
                "trigger.reschedule": decision.must_reschedule,
            },
        )
        return decision

    @staticmethod
    def _remove_from(index: TriggerIndex, deck_ids: Iterable[int]) -> int:
        removed = 0
        for deck_id in deck_ids:
            if index.remove_deck(deck_id):
                removed += 1
                logger.debug("deck_trigger_removed", extra={"deck.id": deck_id})
        return removed

    async def _read_snapshot(self) -> list[DueDeck] | None:
        try:
            return await asyncio.to_thread(self._snapshot.list_due_decks)
        except SnapshotUnavailableError as e:
            logger.warning(
                "deck_snapshot_unavailable", extra={"error.message": str(e)}
            )
        except Exception as e:
            logger.error(
                "deck_snapshot_failed",
                extra={"error.message": str(e)},
                exc_info=True,
            )
        return None

    def _fire_decks(
        self,
        result: WakeResult,
        due_ids: set[int],
        due_decks: list[DueDeck],
        schedules: dict[int, DeckSchedule],
    ) -> None:
        if not self._sink.notifications_enabled():
            logger.info("notifications_disabled", extra={"wake.due": len(due_ids)})
            result.skipped_deck_ids = sorted(due_ids)
            return

        by_id = {deck.deck_id: deck for deck in due_decks}
        for deck_id in sorted(due_ids):
            schedule = schedules.get(deck_id)
            deck = by_id.get(deck_id)
            if schedule is not None and not schedule.enabled:
                result.skipped_deck_ids.append(deck_id)
                continue
            if deck is None:
                # Deck deleted between scheduling and firing
                logger.info("deck_missing_from_snapshot", extra={"deck.id": deck_id})
                result.skipped_deck_ids.append(deck_id)
                continue
            threshold = max(1, schedule.min_cards_due if schedule else 0)
            if deck.counts.total < threshold:
                logger.debug(
                    "deck_below_threshold",
                    extra={
                        "deck.id": deck_id,
                        "deck.due": deck.counts.total,
                        "deck.min_cards_due": threshold,
                    },
                )
                result.skipped_deck_ids.append(deck_id)
                continue
            try:
                self._sink.show_deck_reminder(deck)
            except Exception as e:
                logger.error(
                    "deck_reminder_failed",
                    extra={"deck.id": deck_id, "error.message": str(e)},
                    exc_info=True,
                )
                result.skipped_deck_ids.append(deck_id)
                continue
            result.fired_deck_ids.append(deck_id)

    def _fire_aggregate(self, due_decks: list[DueDeck]) -> bool:
        total = DueCounts()
        eta_minutes = 0
        for deck in due_decks:
            total = total + deck.counts
            eta_minutes += deck.eta_minutes

        if total.total < self._min_cards_due:
            return False
        if not self._sink.notifications_enabled():
            return False
        try:
            self._sink.show_aggregate_reminder(total, eta_minutes)
        except Exception as e:
            logger.error(
                "aggregate_reminder_failed",
                extra={"error.message": str(e)},
                exc_info=True,
            )
            return False
        return True

    def _delay_to_next(self, index: TriggerIndex, now_ms: int) -> int:
        return max(0, index.next_fire(now_ms, self._heartbeat_ms) - now_ms)

    def _arm_next(self, index: TriggerIndex, now: datetime) -> int:
        now_ms = to_epoch_ms(now)
        delay_ms = self._delay_to_next(index, now_ms)
        self._arm(delay_ms, now_ms, index)
        return delay_ms

    def _arm(self, delay_ms: int, now_ms: int, index: TriggerIndex) -> None:
        self._dispatcher.arm(delay_ms, force=True)
        self._armed_for_ms = now_ms + delay_ms
        self._armed_index = index.copy()
        logger.info("wake_armed", extra={"wake.delay_ms": delay_ms})
