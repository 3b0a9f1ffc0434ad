"""Server command for running the reminder service."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    """Register the serve command."""

    @app.command()
    def serve(
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
    ) -> None:
        """Run the reminder service in the foreground."""
        try:
            asyncio.run(_run_service(config))
        except KeyboardInterrupt:
            # Use print here since logging may not be configured yet
            print("\nService stopped")


async def _run_service(config_path: Path | None = None) -> None:
    """Run the reminder loop until SIGINT/SIGTERM."""
    import signal as signal_module

    from deckbell.logging import configure_logging

    configure_logging(use_rich=True, log_to_file=True)

    from deckbell.cli.console import console, dim
    from deckbell.cli.runtime import build_engine, load_config_or_exit
    from deckbell.observability import init_sentry
    from deckbell.reminders import AsyncioDispatcher, IndexWatcher, TimezoneWatcher

    config = load_config_or_exit(config_path)
    if init_sentry(config.sentry):
        dim("Sentry initialized")

    dispatcher = AsyncioDispatcher(retry_ms=config.retry_ms)
    engine = build_engine(config, dispatcher)
    dispatcher.bind(engine.on_wake)

    index_watcher = IndexWatcher(engine, poll_interval=config.reminders.sync_seconds)

    # An explicit timezone in config pins the zone; otherwise follow the system
    watcher: TimezoneWatcher | None = None
    if "timezone" not in config.model_fields_set:
        watcher = TimezoneWatcher(
            engine, poll_interval=config.timezone_watch.poll_interval
        )

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal_module.SIGTERM, signal_module.SIGINT):
        loop.add_signal_handler(sig, shutdown_event.set)

    try:
        stored = engine.store.get_timezone()
        if stored is not None and stored != engine.timezone:
            await engine.recalibrate()
        else:
            if stored is None:
                engine.store.set_timezone(engine.timezone)
            await engine.resume()

        await index_watcher.start()
        if watcher is not None:
            await watcher.start()

        console.print(
            f"[bold]Reminder service running[/bold] "
            f"(timezone {engine.timezone}, state {config.state_dir})"
        )
        logger.info(
            "reminder_service_started",
            extra={"timezone": engine.timezone, "file.path": str(config.state_dir)},
        )
        await shutdown_event.wait()
    finally:
        if watcher is not None:
            await watcher.stop()
        await index_watcher.stop()
        await dispatcher.aclose()
        logger.info("reminder_service_stopped")
