"""Trigger-time calculation for a single deck."""

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from deckbell.reminders.index import TriggerIndex
from deckbell.reminders.types import ONE_DAY_MS, FireDecision, to_epoch_ms

logger = logging.getLogger(__name__)


def today_at(hour: int, minute: int, now: datetime, timezone: str) -> datetime:
    """Today's ``hour:minute`` in ``timezone``, relative to the aware ``now``."""
    local_now = now.astimezone(ZoneInfo(timezone))
    return local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)


def compute_next_fire(
    hour: int,
    minute: int,
    index: TriggerIndex,
    *,
    now: datetime,
    timezone: str,
) -> FireDecision:
    """Decide where a deck's daily reminder lands and whether to re-arm.

    - Today's slot already passed: tomorrow (+24h), no re-arm needed since it
      cannot be the earliest entry.
    - Empty index: today, re-arm (first entry).
    - Strictly earlier than the earliest entry: today, re-arm.
    - Otherwise (including a tie with the earliest entry): today, no re-arm;
      the armed wake-up already covers this instant.
    """
    now_ms = to_epoch_ms(now)
    candidate_ms = to_epoch_ms(today_at(hour, minute, now, timezone))

    if candidate_ms < now_ms:
        logger.debug(
            "trigger_passed_today",
            extra={"trigger.hour": hour, "trigger.minute": minute},
        )
        return FireDecision(candidate_ms + ONE_DAY_MS, must_reschedule=False)

    earliest = index.earliest()
    if earliest is None:
        logger.debug("trigger_first_entry", extra={"trigger.at_ms": candidate_ms})
        return FireDecision(candidate_ms, must_reschedule=True)

    if candidate_ms < earliest:
        logger.debug(
            "trigger_before_earliest",
            extra={"trigger.at_ms": candidate_ms, "trigger.earliest_ms": earliest},
        )
        return FireDecision(candidate_ms, must_reschedule=True)

    return FireDecision(candidate_ms, must_reschedule=False)
