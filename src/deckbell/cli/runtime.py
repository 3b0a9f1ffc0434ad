"""Shared runtime bootstrap helpers for CLI entrypoints."""

from pathlib import Path

import typer
from pydantic import ValidationError

from deckbell.cli.console import console, error
from deckbell.config import DeckbellConfig, load_config
from deckbell.reminders import (
    ConsoleNotificationSink,
    Dispatcher,
    JsonDeckSnapshot,
    RecordingDispatcher,
    ReminderEngine,
)


def load_config_or_exit(config_path: Path | None) -> DeckbellConfig:
    """Load configuration, printing a readable error and exiting on failure."""
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        error(str(e))
        raise typer.Exit(1) from None
    except ValidationError as e:
        error("Configuration validation failed:")
        for err in e.errors():
            loc = ".".join(str(x) for x in err["loc"])
            console.print(f"  [yellow]{loc}[/yellow]: {err['msg']}")
        raise typer.Exit(1) from None
    except ValueError as e:
        error(f"Error loading config: {e}")
        raise typer.Exit(1) from None


def build_engine(
    config: DeckbellConfig,
    dispatcher: Dispatcher | None = None,
) -> ReminderEngine:
    """Wire a ReminderEngine from config.

    One-shot commands pass no dispatcher and get a RecordingDispatcher: the
    running service re-arms for their changes through its ``IndexWatcher``.
    """
    return ReminderEngine.from_config(
        config,
        dispatcher=dispatcher or RecordingDispatcher(),
        sink=ConsoleNotificationSink(
            console=console, enabled=config.notifications.enabled
        ),
        snapshot=JsonDeckSnapshot(config.decks_file),
    )
