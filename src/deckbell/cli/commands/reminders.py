"""Deck reminder commands."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from deckbell.cli.console import (
    console,
    create_table,
    dim,
    error,
    format_countdown,
    format_delay_ms,
    success,
    warning,
)
from deckbell.cli.runtime import build_engine, load_config_or_exit

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration file",
    ),
]


def parse_time_of_day(value: str) -> tuple[int, int]:
    """Parse "HH:MM" (24-hour clock) into (hour, minute).

    Raises:
        ValueError: If the value is not a valid time of day.
    """
    hour_text, sep, minute_text = value.strip().partition(":")
    if not sep or not hour_text.isdigit() or not minute_text.isdigit():
        raise ValueError(f"Expected HH:MM, got {value!r}")
    hour, minute = int(hour_text), int(minute_text)
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Time out of range: {value!r}")
    return hour, minute


def register(app: typer.Typer) -> None:
    """Register the reminder commands."""

    @app.command("set")
    def set_reminder(
        deck_id: Annotated[int, typer.Argument(help="Deck ID")],
        at: Annotated[
            str,
            typer.Option("--at", "-a", help="Daily reminder time, HH:MM (24h)"),
        ],
        name: Annotated[
            str,
            typer.Option("--name", "-n", help="Deck name shown in listings"),
        ] = "",
        min_cards: Annotated[
            int,
            typer.Option(
                "--min-cards",
                "-m",
                min=0,
                help="Only remind when at least this many cards are due",
            ),
        ] = 0,
        config_path: ConfigOption = None,
    ) -> None:
        """Set a deck's daily reminder time.

        Examples:
            deckbell set 42 --at 09:30
            deckbell set 42 --at 21:00 --name "Lang::French" --min-cards 10
        """
        from deckbell.reminders import DeckSchedule

        try:
            hour, minute = parse_time_of_day(at)
        except ValueError as e:
            error(str(e))
            raise typer.Exit(1) from None

        config = load_config_or_exit(config_path)
        engine = build_engine(config)
        schedule = DeckSchedule(
            deck_id=deck_id,
            scheduled_hour=hour,
            scheduled_minute=minute,
            deck_name=name,
            min_cards_due=min_cards,
        )
        decision = asyncio.run(engine.schedule_deck(schedule))

        success(f"Reminder for deck {deck_id} set to {schedule.time_of_day}")
        if decision is not None:
            fire_at = _local_time(engine, decision.instant_ms)
            dim(
                f"Next reminder {fire_at:%Y-%m-%d %H:%M} {engine.timezone} "
                f"({format_countdown(fire_at, engine.now())})"
            )

    @app.command("off")
    def reminder_off(
        deck_ids: Annotated[list[int], typer.Argument(help="Deck IDs")],
        config_path: ConfigOption = None,
    ) -> None:
        """Turn off reminders for one or more decks."""
        config = load_config_or_exit(config_path)
        engine = build_engine(config)
        removed = asyncio.run(engine.disable_deck(*deck_ids))
        if removed == 0:
            warning("No pending reminders for the given decks")
        else:
            success(f"Turned off {removed} reminder(s)")

    @app.command("list")
    def reminder_list(config_path: ConfigOption = None) -> None:
        """List deck reminders and when they fire next."""
        config = load_config_or_exit(config_path)
        engine = build_engine(config)
        schedules = sorted(engine.store.get_decks(), key=lambda s: s.deck_id)

        if not schedules:
            warning("No deck reminders configured")
            return

        index = engine.store.load_index()
        now = engine.now()
        table = create_table(
            None,
            [
                ("Deck", "dim"),
                ("Name", ""),
                ("Time", "cyan"),
                ("Min cards", {"justify": "right"}),
                ("Next", ""),
            ],
        )
        for schedule in schedules:
            instant_ms = index.key_for(schedule.deck_id) if index else None
            if not schedule.enabled:
                next_display = "[dim]off[/dim]"
            elif instant_ms is None:
                next_display = "[dim]?[/dim]"
            else:
                next_display = format_countdown(_local_time(engine, instant_ms), now)
            table.add_row(
                str(schedule.deck_id),
                schedule.deck_name or "[dim]-[/dim]",
                schedule.time_of_day,
                str(schedule.min_cards_due),
                next_display,
            )

        console.print(table)
        dim(f"Total: {len(schedules)} deck(s), timezone {engine.timezone}")

    @app.command("wake")
    def wake(config_path: ConfigOption = None) -> None:
        """Run one wake cycle now: fire due reminders and advance them."""
        config = load_config_or_exit(config_path)
        engine = build_engine(config)
        result = asyncio.run(engine.on_wake())

        if not result.snapshot_ok:
            error(f"Deck snapshot unavailable: {config.decks_file}")
            dim(f"Retry in {format_delay_ms(result.next_delay_ms)}")
            raise typer.Exit(1)

        dim(
            f"Due: {len(result.due_deck_ids)}, shown: {len(result.fired_deck_ids)}, "
            f"next wake in {format_delay_ms(result.next_delay_ms)}"
        )

    @app.command("recalibrate")
    def recalibrate(
        timezone: Annotated[
            str | None,
            typer.Option(
                "--timezone",
                "-t",
                help="IANA timezone to recompute reminders in",
            ),
        ] = None,
        config_path: ConfigOption = None,
    ) -> None:
        """Recompute every pending reminder, e.g. after a timezone change."""
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        if timezone is not None:
            try:
                ZoneInfo(timezone)
            except (ZoneInfoNotFoundError, ValueError):
                error(f"Unknown timezone: {timezone}")
                raise typer.Exit(1) from None

        config = load_config_or_exit(config_path)
        engine = build_engine(config)
        index = asyncio.run(engine.recalibrate(timezone=timezone))
        success(
            f"Recalibrated {len(index.deck_ids())} reminder(s) in {engine.timezone}"
        )


def _local_time(engine, instant_ms: int):
    from zoneinfo import ZoneInfo

    from deckbell.reminders.types import from_epoch_ms

    return from_epoch_ms(instant_ms).astimezone(ZoneInfo(engine.timezone))
