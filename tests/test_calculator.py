"""Tests for trigger-time calculation."""

from datetime import UTC, datetime

import pytest

from deckbell.reminders import ONE_DAY_MS, TriggerIndex, compute_next_fire
from deckbell.reminders.calculator import today_at
from deckbell.reminders.types import to_epoch_ms
from tests.conftest import START, at


class TestTodayAt:
    """Tests for building today's candidate instant."""

    def test_zeroes_seconds(self):
        now = datetime(2026, 3, 10, 8, 15, 42, 123456, tzinfo=UTC)
        candidate = today_at(9, 30, now, "UTC")
        assert candidate == datetime(2026, 3, 10, 9, 30, tzinfo=UTC)

    def test_uses_local_date(self):
        # 02:00 UTC on the 10th is still the 9th in Los Angeles
        now = datetime(2026, 3, 10, 2, 0, tzinfo=UTC)
        candidate = today_at(21, 0, now, "America/Los_Angeles")
        assert candidate.day == 9
        assert to_epoch_ms(candidate) == at(4, 0, day=10)


class TestComputeNextFire:
    """Tests for the four placement rules."""

    @pytest.mark.parametrize("hour,minute", [(0, 0), (5, 59), (7, 59)])
    def test_past_slot_moves_to_tomorrow(self, hour, minute):
        index = TriggerIndex({at(9): [1]})
        decision = compute_next_fire(hour, minute, index, now=START, timezone="UTC")

        assert decision.instant_ms == at(hour, minute) + ONE_DAY_MS
        assert decision.must_reschedule is False

    def test_past_slot_with_empty_index_does_not_reschedule(self):
        decision = compute_next_fire(7, 0, TriggerIndex(), now=START, timezone="UTC")
        assert decision.must_reschedule is False

    def test_empty_index_reschedules(self):
        decision = compute_next_fire(9, 0, TriggerIndex(), now=START, timezone="UTC")
        assert decision.instant_ms == at(9)
        assert decision.must_reschedule is True

    def test_earlier_than_minimum_reschedules(self):
        index = TriggerIndex({at(10): [1]})
        decision = compute_next_fire(9, 0, index, now=START, timezone="UTC")
        assert decision.instant_ms == at(9)
        assert decision.must_reschedule is True

    def test_equal_to_minimum_does_not_reschedule(self):
        index = TriggerIndex({at(9): [1]})
        decision = compute_next_fire(9, 0, index, now=START, timezone="UTC")
        assert decision.instant_ms == at(9)
        assert decision.must_reschedule is False

    def test_later_than_minimum_does_not_reschedule(self):
        index = TriggerIndex({at(9): [1]})
        decision = compute_next_fire(11, 0, index, now=START, timezone="UTC")
        assert decision.must_reschedule is False

    def test_current_minute_counts_as_today(self):
        decision = compute_next_fire(8, 0, TriggerIndex(), now=START, timezone="UTC")
        assert decision.instant_ms == at(8)
        assert decision.must_reschedule is True

    def test_timezone_shifts_instant(self):
        # New York is UTC-4 once daylight saving time starts
        decision = compute_next_fire(
            9, 0, TriggerIndex(), now=START, timezone="America/New_York"
        )
        assert decision.instant_ms == at(13)
