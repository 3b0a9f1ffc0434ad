"""Reminder text and console rendering."""

import logging

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from deckbell.reminders.types import DueCounts, DueDeck

logger = logging.getLogger(__name__)

DECK_REMINDER_TITLE = "Don't forget to study today"
AGGREGATE_REMINDER_TITLE = "Cards are waiting for review"


def format_eta(minutes: int) -> str:
    """Format an estimated study time in human-readable form."""
    if minutes < 1:
        return "less than a minute"
    if minutes < 60:
        return f"~{minutes} minute{'s' if minutes != 1 else ''}"
    hours, rest = divmod(minutes, 60)
    if rest == 0:
        return f"~{hours}h"
    return f"~{hours}h {rest}m"


def format_counts(counts: DueCounts) -> str:
    return f"{counts.new} new, {counts.learn} learning, {counts.review} review"


def deck_reminder_text(deck: DueDeck) -> tuple[str, str]:
    """Title and body for a single deck's reminder."""
    total = deck.counts.total
    noun = "card" if total == 1 else "cards"
    return DECK_REMINDER_TITLE, f"{total} {noun} due in {deck.short_name}"


def aggregate_reminder_text(counts: DueCounts, eta_minutes: int) -> tuple[str, str]:
    """Title and body for the all-decks reminder."""
    noun = "card" if counts.total == 1 else "cards"
    body = f"{counts.total} {noun} due ({format_counts(counts)})"
    if eta_minutes > 0:
        body += f", about {format_eta(eta_minutes)}"
    return AGGREGATE_REMINDER_TITLE, body


class ConsoleNotificationSink:
    """NotificationSink that prints reminders as Rich panels."""

    def __init__(self, console: Console | None = None, enabled: bool = True) -> None:
        self._console = console or Console()
        self._enabled = enabled

    def notifications_enabled(self) -> bool:
        return self._enabled

    def show_deck_reminder(self, deck: DueDeck) -> None:
        title, body = deck_reminder_text(deck)
        content = f"{escape(body)}\n[dim]{format_counts(deck.counts)}[/dim]"
        self._console.print(Panel(content, title=escape(title)))
        logger.info(
            "deck_reminder_shown",
            extra={"deck.id": deck.deck_id, "deck.due": deck.counts.total},
        )

    def show_aggregate_reminder(self, counts: DueCounts, eta_minutes: int) -> None:
        title, body = aggregate_reminder_text(counts, eta_minutes)
        self._console.print(Panel(escape(body), title=escape(title)))
        logger.info("aggregate_reminder_shown", extra={"deck.due": counts.total})
