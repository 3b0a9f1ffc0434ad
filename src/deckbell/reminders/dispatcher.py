"""Background dispatchers: the single wake-up slot shared by all decks.

``AsyncioDispatcher`` runs the wake callback in-process after a delay.
``RecordingDispatcher`` only remembers what was requested; one-shot CLI
commands use it, and the long-running service notices their index changes
through ``IndexWatcher``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from deckbell.reminders.types import MINUTE_MS

logger = logging.getLogger(__name__)

WakeCallback = Callable[[], Awaitable[Any]]

DEFAULT_RETRY_MS = 15 * MINUTE_MS


class AsyncioDispatcher:
    """One pending asyncio task that invokes the wake callback.

    ``arm(force=True)`` replaces any pending job; ``arm(force=False)`` keeps
    an existing one. If the callback raises without re-arming, the
    dispatcher re-arms itself after ``retry_ms`` so the wake is retried
    rather than lost.

    Example:
        dispatcher = AsyncioDispatcher()
        engine = ReminderEngine(store, dispatcher, sink, snapshot)
        dispatcher.bind(engine.on_wake)
        await engine.resume()
    """

    def __init__(
        self,
        callback: WakeCallback | None = None,
        retry_ms: int = DEFAULT_RETRY_MS,
    ) -> None:
        self._callback = callback
        self._retry_ms = retry_ms
        self._task: asyncio.Task | None = None
        self._armed_at: datetime | None = None
        self._fire_at: datetime | None = None

    def bind(self, callback: WakeCallback) -> None:
        """Set the callback invoked when the slot fires."""
        self._callback = callback

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def armed_at(self) -> datetime | None:
        return self._armed_at if self.pending else None

    @property
    def fire_at(self) -> datetime | None:
        """Wall-clock time the pending job is due, if any."""
        return self._fire_at if self.pending else None

    def arm(self, delay_ms: int, force: bool) -> bool:
        """Schedule the callback ``delay_ms`` from now.

        Returns:
            True if a job was (re)armed, False if an existing job was kept.
        """
        if self._callback is None:
            raise RuntimeError("dispatcher has no callback bound")

        if self.pending and not force:
            logger.debug("dispatcher_kept_pending", extra={"wake.delay_ms": delay_ms})
            return False

        self.cancel()
        delay_ms = max(0, delay_ms)
        now = datetime.now(UTC)
        self._armed_at = now
        self._fire_at = now + timedelta(milliseconds=delay_ms)
        self._task = asyncio.get_running_loop().create_task(
            self._run(delay_ms, self._callback)
        )
        logger.debug(
            "dispatcher_armed",
            extra={"wake.delay_ms": delay_ms, "wake.force": force},
        )
        return True

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug("dispatcher_cancelled")
        self._task = None
        self._armed_at = None
        self._fire_at = None

    async def aclose(self) -> None:
        """Cancel the pending job and wait for it to unwind."""
        task = self._task
        self.cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self, delay_ms: int, callback: WakeCallback) -> None:
        await asyncio.sleep(delay_ms / 1000)
        # Release the slot before the callback so it can re-arm freely
        self._task = None
        try:
            await callback()
        except Exception as e:
            logger.error(
                "wake_callback_failed",
                extra={"error.message": str(e)},
                exc_info=True,
            )
            if self._task is None:
                self.arm(self._retry_ms, force=True)


class RecordingDispatcher:
    """Dispatcher that records arm/cancel requests without running anything."""

    def __init__(self) -> None:
        self.arms: list[tuple[int, bool]] = []
        self.cancels = 0

    @property
    def last_delay_ms(self) -> int | None:
        return self.arms[-1][0] if self.arms else None

    def arm(self, delay_ms: int, force: bool) -> bool:
        self.arms.append((max(0, delay_ms), force))
        return True

    def cancel(self) -> None:
        self.cancels += 1
