"""Tests for reminder text and console rendering."""

import io

import pytest
from rich.console import Console

from deckbell.reminders import ConsoleNotificationSink, DueCounts, DueDeck
from deckbell.reminders.notifications import (
    AGGREGATE_REMINDER_TITLE,
    DECK_REMINDER_TITLE,
    aggregate_reminder_text,
    deck_reminder_text,
    format_eta,
)


class TestFormatEta:
    """Tests for study-time formatting."""

    @pytest.mark.parametrize(
        "minutes,expected",
        [
            (0, "less than a minute"),
            (1, "~1 minute"),
            (45, "~45 minutes"),
            (60, "~1h"),
            (135, "~2h 15m"),
        ],
    )
    def test_format(self, minutes, expected):
        assert format_eta(minutes) == expected


class TestReminderText:
    """Tests for notification titles and bodies."""

    def test_deck_reminder_uses_short_name(self):
        deck = DueDeck(1, "Lang::French::Verbs", DueCounts(new=2, review=3))
        title, body = deck_reminder_text(deck)

        assert title == DECK_REMINDER_TITLE
        assert body == "5 cards due in Verbs"

    def test_deck_reminder_singular(self):
        _, body = deck_reminder_text(DueDeck(1, "Kanji", DueCounts(review=1)))
        assert body == "1 card due in Kanji"

    def test_aggregate_text(self):
        title, body = aggregate_reminder_text(DueCounts(new=1, learn=2, review=3), 20)

        assert title == AGGREGATE_REMINDER_TITLE
        assert body == "6 cards due (1 new, 2 learning, 3 review), about ~20 minutes"

    def test_aggregate_text_without_eta(self):
        _, body = aggregate_reminder_text(DueCounts(review=4), 0)
        assert "about" not in body


class TestConsoleNotificationSink:
    """Tests for the terminal sink."""

    def _sink(self, enabled: bool = True) -> tuple[ConsoleNotificationSink, io.StringIO]:
        out = io.StringIO()
        console = Console(file=out, width=100, no_color=True)
        return ConsoleNotificationSink(console=console, enabled=enabled), out

    def test_enabled_flag(self):
        sink, _ = self._sink(enabled=False)
        assert sink.notifications_enabled() is False

    def test_prints_deck_reminder(self):
        sink, out = self._sink()
        sink.show_deck_reminder(DueDeck(1, "Lang::French", DueCounts(review=3)))

        text = out.getvalue()
        assert DECK_REMINDER_TITLE in text
        assert "3 cards due in French" in text

    def test_escapes_markup_in_deck_names(self):
        sink, out = self._sink()
        sink.show_deck_reminder(DueDeck(1, "[bold]Tricky", DueCounts(review=1)))
        assert "[bold]Tricky" in out.getvalue()

    def test_prints_aggregate_reminder(self):
        sink, out = self._sink()
        sink.show_aggregate_reminder(DueCounts(new=4), 5)
        assert "4 cards due" in out.getvalue()
