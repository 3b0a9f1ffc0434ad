"""Watchers: follow the local timezone and index changes made by other processes."""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from deckbell.config.paths import get_system_timezone
from deckbell.reminders.engine import ReminderEngine

logger = logging.getLogger(__name__)

# Daily samples cover a full year of DST transitions
_OFFSET_SAMPLE_DAYS = 366


class TimezoneChange(Enum):
    RECORDED = "recorded"
    UNCHANGED = "unchanged"
    SAME_OFFSET = "same_offset"
    RECALIBRATED = "recalibrated"


def same_offset(first: str, second: str, at: datetime) -> bool:
    """Whether two zones keep the same UTC offset for a year from ``at``.

    Zones that agree today but follow different daylight saving rules (or
    none) would place future reminders at different instants.
    """
    first_zone, second_zone = ZoneInfo(first), ZoneInfo(second)
    for day in range(_OFFSET_SAMPLE_DAYS + 1):
        instant = at + timedelta(days=day)
        if (
            instant.astimezone(first_zone).utcoffset()
            != instant.astimezone(second_zone).utcoffset()
        ):
            return False
    return True


class _PollingWatcher:
    """Runs ``check()`` every ``poll_interval`` seconds until stopped."""

    name = "watcher"

    def __init__(self, poll_interval: float):
        self._poll_interval = poll_interval
        self._running = False
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        logger.info(
            f"{self.name}_started",
            extra={"poll.interval": self._poll_interval},
        )
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                await self.check()
            except Exception as e:
                logger.error(
                    f"{self.name}_check_error", extra={"error.message": str(e)}
                )
            await asyncio.sleep(self._poll_interval)

    async def check(self):
        raise NotImplementedError


class TimezoneWatcher(_PollingWatcher):
    """Polls the system timezone and recalibrates the engine on a real change.

    The store remembers the zone the trigger index was computed in. A new
    zone with the same UTC offsets only updates that record; any offset
    difference rebuilds the index.

    Example:
        watcher = TimezoneWatcher(engine, poll_interval=60.0)
        await watcher.start()
    """

    name = "timezone_watcher"

    def __init__(
        self,
        engine: ReminderEngine,
        poll_interval: float = 60.0,
        timezone_source: Callable[[], str] = get_system_timezone,
        clock: Callable[[], datetime] | None = None,
    ):
        super().__init__(poll_interval)
        self._engine = engine
        self._store = engine.store
        self._timezone_source = timezone_source
        self._clock = clock or (lambda: datetime.now(UTC))

    async def check(self) -> TimezoneChange:
        """Compare the current zone with the stored one and react."""
        current = self._timezone_source()
        stored = self._store.get_timezone()

        if stored is None:
            self._store.set_timezone(current)
            logger.info("timezone_recorded", extra={"timezone": current})
            return TimezoneChange.RECORDED

        if stored == current:
            return TimezoneChange.UNCHANGED

        if same_offset(stored, current, self._clock()):
            self._store.set_timezone(current)
            self._engine.use_timezone(current)
            logger.info(
                "timezone_renamed",
                extra={"timezone.old": stored, "timezone.new": current},
            )
            return TimezoneChange.SAME_OFFSET

        await self._engine.recalibrate(timezone=current)
        return TimezoneChange.RECALIBRATED


class IndexWatcher(_PollingWatcher):
    """Polls the stored trigger index for changes made by one-shot commands.

    Example:
        watcher = IndexWatcher(engine, poll_interval=5.0)
        await watcher.start()
    """

    name = "index_watcher"

    def __init__(self, engine: ReminderEngine, poll_interval: float = 5.0):
        super().__init__(poll_interval)
        self._engine = engine

    async def check(self) -> bool:
        """Re-arm the engine if another process scheduled an earlier reminder."""
        return await self._engine.sync()
