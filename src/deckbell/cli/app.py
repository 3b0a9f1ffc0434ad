"""Main CLI application."""

import typer

from deckbell.cli.commands import config, reminders, serve

app = typer.Typer(
    name="deckbell",
    help="Deckbell - daily study reminders for flashcard decks",
    no_args_is_help=True,
)

reminders.register(app)
serve.register(app)
config.register(app)


if __name__ == "__main__":
    app()
