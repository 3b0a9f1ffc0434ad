"""Due-deck snapshot read from a JSON file.

The file is produced by whatever owns the card collection and holds a list
of decks with their current due counts:

    [{"deck_id": 42, "name": "Lang::French", "new": 5, "learn": 0,
      "review": 12, "eta": 9}]
"""

import json
import logging
from pathlib import Path
from typing import Any

from deckbell.reminders.errors import SnapshotUnavailableError
from deckbell.reminders.types import DueCounts, DueDeck

logger = logging.getLogger(__name__)


class JsonDeckSnapshot:
    """DeckSnapshot backed by a JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def list_due_decks(self) -> list[DueDeck]:
        """Read all decks from the snapshot file.

        Raises:
            SnapshotUnavailableError: If the file is missing or not a list.
        """
        try:
            payload = json.loads(self._path.read_text())
        except (OSError, ValueError) as e:
            raise SnapshotUnavailableError(
                f"Deck snapshot unreadable: {self._path}"
            ) from e

        if isinstance(payload, dict):
            payload = payload.get("decks")
        if not isinstance(payload, list):
            raise SnapshotUnavailableError(
                f"Deck snapshot must be a list of decks: {self._path}"
            )

        decks: list[DueDeck] = []
        for item in payload:
            deck = _parse_deck(item)
            if deck is None:
                logger.warning(
                    "deck_snapshot_entry_skipped",
                    extra={"file.path": str(self._path)},
                )
                continue
            decks.append(deck)
        return decks


def _parse_deck(item: Any) -> DueDeck | None:
    if not isinstance(item, dict):
        return None
    try:
        return DueDeck(
            deck_id=int(item["deck_id"]),
            full_name=str(item.get("name", "")),
            counts=DueCounts(
                new=int(item.get("new", 0)),
                learn=int(item.get("learn", 0)),
                review=int(item.get("review", 0)),
            ),
            eta_minutes=int(item.get("eta", 0)),
        )
    except (KeyError, TypeError, ValueError):
        return None
