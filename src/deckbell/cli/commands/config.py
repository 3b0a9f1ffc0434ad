"""Configuration management commands."""

from pathlib import Path
from typing import Annotated

import click
import typer

from deckbell.cli.console import console, error, success


def register(app: typer.Typer) -> None:
    """Register the config command."""

    @app.command()
    def config(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: show, validate"),
        ] = None,
        path: Annotated[
            Path | None,
            typer.Option(
                "--path",
                "-p",
                help="Path to config file (default: $DECKBELL_HOME/config.toml)",
            ),
        ] = None,
    ) -> None:
        """Manage configuration."""
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        from pydantic import ValidationError
        from rich.syntax import Syntax
        from rich.table import Table

        from deckbell.config import load_config
        from deckbell.config.paths import get_config_path

        expanded_path = path.expanduser() if path else get_config_path()

        if action == "show":
            if not expanded_path.exists():
                error(f"Config file not found: {expanded_path}")
                raise typer.Exit(1)

            content = expanded_path.read_text()
            syntax = Syntax(content, "toml", theme="monokai", line_numbers=True)
            console.print(f"[bold]Config file: {expanded_path}[/bold]\n")
            console.print(syntax)

        elif action == "validate":
            if not expanded_path.exists():
                error(f"Config file not found: {expanded_path}")
                raise typer.Exit(1)

            try:
                config_obj = load_config(expanded_path)
            except ValidationError as e:
                error("Configuration validation failed:")
                console.print()
                for err in e.errors():
                    loc = ".".join(str(x) for x in err["loc"])
                    console.print(f"  [yellow]{loc}[/yellow]: {err['msg']}")
                raise typer.Exit(1) from None
            except Exception as e:
                error(f"Error loading config: {e}")
                raise typer.Exit(1) from None

            table = Table(title="Configuration Summary")
            table.add_column("Setting", style="cyan")
            table.add_column("Value", style="green")
            table.add_row("Timezone", config_obj.timezone)
            table.add_row("State", str(config_obj.state_dir))
            table.add_row("Deck snapshot", str(config_obj.decks_file))
            table.add_row("Min cards due", str(config_obj.reminders.min_cards_due))
            table.add_row(
                "Heartbeat", f"{config_obj.reminders.heartbeat_minutes} min"
            )
            table.add_row(
                "Notifications",
                "enabled"
                if config_obj.notifications.enabled
                else "[dim]disabled[/dim]",
            )
            table.add_row(
                "Sentry",
                "configured"
                if config_obj.sentry and config_obj.sentry.dsn
                else "[dim]not configured[/dim]",
            )

            success("Configuration is valid!")
            console.print()
            console.print(table)

        else:
            error(f"Unknown action: {action}")
            console.print("Valid actions: show, validate")
            raise typer.Exit(1)
