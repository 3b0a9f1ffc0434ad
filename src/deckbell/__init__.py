"""Deckbell - daily study reminders for flashcard decks."""

__version__ = "0.1.0"
