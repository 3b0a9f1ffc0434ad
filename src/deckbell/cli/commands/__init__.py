"""CLI command modules."""

from deckbell.cli.commands import config, reminders, serve

__all__ = [
    "config",
    "reminders",
    "serve",
]
