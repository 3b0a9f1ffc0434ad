"""File-backed schedule store.

Layout under ``state_dir``:
- decks.jsonl: one DeckSchedule record per line
- triggers.json: the serialized TriggerIndex
- state.json: small metadata (last seen timezone)

Writes are atomic (tempfile + fsync + os.replace). Read-modify-write
sequences hold ``locked()``, an exclusive fcntl lock shared across processes.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from deckbell.reminders.index import TriggerIndex
from deckbell.reminders.types import DeckSchedule

logger = logging.getLogger(__name__)

INDEX_FORMAT_VERSION = 1


class ScheduleStore:
    """Durable storage for deck schedules and the trigger index."""

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir
        self._lock_path = state_dir / ".reminders.lock"
        self._lock_depth = 0

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    @property
    def decks_path(self) -> Path:
        return self._state_dir / "decks.jsonl"

    @property
    def index_path(self) -> Path:
        return self._state_dir / "triggers.json"

    @property
    def state_path(self) -> Path:
        return self._state_dir / "state.json"

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the store's exclusive lock. Re-entrant within one instance."""
        if self._lock_depth:
            self._lock_depth += 1
            try:
                yield
            finally:
                self._lock_depth -= 1
            return

        self._state_dir.mkdir(parents=True, exist_ok=True)
        with self._lock_path.open("a+") as lockf:
            fcntl.flock(lockf.fileno(), fcntl.LOCK_EX)
            self._lock_depth = 1
            try:
                yield
            finally:
                self._lock_depth = 0
                fcntl.flock(lockf.fileno(), fcntl.LOCK_UN)

    # ------------------------------------------------------------------
    # Deck schedules
    # ------------------------------------------------------------------

    def get_decks(self) -> list[DeckSchedule]:
        return list(self._read_decks().values())

    def get_deck(self, deck_id: int) -> DeckSchedule | None:
        return self._read_decks().get(deck_id)

    def put_deck(self, schedule: DeckSchedule) -> None:
        with self.locked():
            decks = self._read_decks()
            decks[schedule.deck_id] = schedule
            self._write_decks(decks)

    def remove_decks(self, deck_ids: Iterable[int]) -> list[int]:
        """Delete deck records. Returns the ids that existed."""
        with self.locked():
            decks = self._read_decks()
            removed = [d for d in deck_ids if decks.pop(d, None) is not None]
            if removed:
                self._write_decks(decks)
            return removed

    # ------------------------------------------------------------------
    # Trigger index
    # ------------------------------------------------------------------

    def load_index(self) -> TriggerIndex | None:
        """Load the stored index.

        Returns None when no index was ever saved or the file is corrupt; the
        caller rebuilds from deck records in that case.
        """
        if not self.index_path.exists():
            return None
        try:
            payload = json.loads(self.index_path.read_text())
            return TriggerIndex.from_dict(payload["triggers"])
        except (OSError, KeyError, TypeError, ValueError) as e:
            logger.warning(
                "trigger_index_unreadable",
                extra={"file.path": str(self.index_path), "error.message": str(e)},
            )
            return None

    def save_index(self, index: TriggerIndex) -> None:
        _write_json_atomic(
            self.index_path,
            {
                "version": INDEX_FORMAT_VERSION,
                "updated_at": datetime.now(UTC).isoformat(),
                "triggers": index.to_dict(),
            },
        )

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def get_timezone(self) -> str | None:
        """Timezone the index was last computed in."""
        tz = self._read_state().get("timezone")
        return tz if isinstance(tz, str) and tz else None

    def set_timezone(self, timezone: str) -> None:
        with self.locked():
            state = self._read_state()
            state["timezone"] = timezone
            _write_json_atomic(self.state_path, state)

    def get_stats(self) -> dict[str, Any]:
        decks = self.get_decks()
        index = self.load_index() or TriggerIndex()
        return {
            "state_dir": str(self._state_dir),
            "decks": len(decks),
            "enabled": sum(1 for d in decks if d.enabled),
            "triggers": len(index),
            "pending": len(index.deck_ids()),
            "timezone": self.get_timezone(),
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_decks(self) -> dict[int, DeckSchedule]:
        decks: dict[int, DeckSchedule] = {}
        for record in _read_jsonl(self.decks_path):
            schedule = DeckSchedule.from_dict(record)
            if schedule is None:
                logger.warning(
                    "corrupt_deck_record",
                    extra={"file.path": str(self.decks_path)},
                )
                continue
            decks[schedule.deck_id] = schedule
        return decks

    def _write_decks(self, decks: dict[int, DeckSchedule]) -> None:
        _write_jsonl_atomic(
            self.decks_path, [decks[d].to_dict() for d in sorted(decks)]
        )

    def _read_state(self) -> dict[str, Any]:
        if not self.state_path.exists():
            return {}
        try:
            state = json.loads(self.state_path.read_text())
        except (OSError, ValueError):
            logger.warning(
                "state_metadata_read_failed", extra={"file.path": str(self.state_path)}
            )
            return {}
        return state if isinstance(state, dict) else {}


def _read_jsonl(path: Path) -> list[dict[str, Any]]:
    """Read JSONL file, skipping blank/corrupt lines."""
    if not path.exists():
        return []
    results: list[dict[str, Any]] = []
    with path.open() as f:
        for line_no, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                logger.warning(
                    "corrupt_jsonl_line",
                    extra={"file.line_no": line_no, "file.path": str(path)},
                )
                continue
            if isinstance(record, dict):
                results.append(record)
    return results


def _write_jsonl_atomic(path: Path, records: list[dict[str, Any]]) -> None:
    """Write JSONL atomically via tempfile + fsync + os.replace()."""
    _write_atomic(
        path,
        "".join(json.dumps(r, separators=(",", ":")) + "\n" for r in records),
    )


def _write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    _write_atomic(path, json.dumps(payload, indent=2, sort_keys=True) + "\n")


def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        Path(tmp).replace(path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
