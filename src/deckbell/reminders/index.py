"""Trigger index: sorted instant -> deck ids mapping shared by all decks.

Every deck with a pending reminder sits in exactly one bucket, keyed by the
epoch-millisecond instant at which it should be checked. Buckets are never
empty. All decks share one dispatcher slot, so the earliest key drives the
next wake-up.
"""

from collections.abc import Iterable, Iterator, Mapping
from typing import Any


class TriggerIndex:
    """Ordered mapping of trigger instant (epoch ms) to a set of deck ids.

    Mutate only through ``insert``, ``remove_deck`` and ``pop_due`` so the
    invariants hold: one bucket per deck, no empty buckets.
    """

    def __init__(self, buckets: Mapping[int, Iterable[int]] | None = None) -> None:
        self._buckets: dict[int, set[int]] = {}
        self._deck_keys: dict[int, int] = {}
        if buckets:
            for instant_ms in sorted(buckets):
                for deck_id in buckets[instant_ms]:
                    self.insert(deck_id, instant_ms)

    def __len__(self) -> int:
        return len(self._buckets)

    def __bool__(self) -> bool:
        return bool(self._buckets)

    def __contains__(self, deck_id: object) -> bool:
        return deck_id in self._deck_keys

    def __iter__(self) -> Iterator[tuple[int, frozenset[int]]]:
        return iter(self.items())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TriggerIndex):
            return NotImplemented
        return self._buckets == other._buckets

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}: {sorted(v)}" for k, v in self.items())
        return f"TriggerIndex({{{inner}}})"

    def items(self) -> list[tuple[int, frozenset[int]]]:
        """Buckets in ascending instant order."""
        return [(k, frozenset(self._buckets[k])) for k in sorted(self._buckets)]

    def deck_ids(self) -> set[int]:
        return set(self._deck_keys)

    def key_for(self, deck_id: int) -> int | None:
        """Instant at which ``deck_id`` is pending, or None."""
        return self._deck_keys.get(deck_id)

    def earliest(self) -> int | None:
        """Smallest pending instant, or None when empty."""
        return min(self._buckets) if self._buckets else None

    def insert(self, deck_id: int, instant_ms: int) -> int | None:
        """Place ``deck_id`` at ``instant_ms``, moving it out of any other bucket.

        Returns:
            The instant the deck was previously pending at, or None.
        """
        previous = self._deck_keys.get(deck_id)
        if previous == instant_ms:
            return previous
        if previous is not None:
            self._discard(deck_id, previous)
        self._buckets.setdefault(instant_ms, set()).add(deck_id)
        self._deck_keys[deck_id] = instant_ms
        return previous

    def remove_deck(self, deck_id: int) -> bool:
        """Drop ``deck_id`` from the index. Returns True if it was present."""
        previous = self._deck_keys.get(deck_id)
        if previous is None:
            return False
        self._discard(deck_id, previous)
        return True

    def pop_due(self, now_ms: int) -> list[tuple[int, frozenset[int]]]:
        """Remove and return all buckets with instant <= ``now_ms``, oldest first."""
        due_keys = sorted(k for k in self._buckets if k <= now_ms)
        popped: list[tuple[int, frozenset[int]]] = []
        for instant_ms in due_keys:
            deck_ids = self._buckets.pop(instant_ms)
            for deck_id in deck_ids:
                del self._deck_keys[deck_id]
            popped.append((instant_ms, frozenset(deck_ids)))
        return popped

    def next_fire(self, now_ms: int, cap_ms: int) -> int:
        """Next wake-up instant: the earliest key, but no later than now + cap.

        An empty index still yields ``now + cap`` so the heartbeat keeps
        running.
        """
        limit = now_ms + cap_ms
        earliest = self.earliest()
        if earliest is None:
            return limit
        return min(earliest, limit)

    def copy(self) -> "TriggerIndex":
        return TriggerIndex({k: set(v) for k, v in self._buckets.items()})

    def to_dict(self) -> dict[str, list[int]]:
        """Serialize with string keys (JSON object keys must be strings)."""
        return {str(k): sorted(v) for k, v in self.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TriggerIndex":
        """Parse a serialized index.

        Raises:
            ValueError: If keys or deck ids are not integers.
        """
        if not isinstance(data, Mapping):
            raise ValueError("trigger index must be a mapping")
        buckets: dict[int, list[int]] = {}
        for key, deck_ids in data.items():
            if not isinstance(deck_ids, list):
                raise ValueError(f"bucket {key!r} is not a list")
            buckets[int(key)] = [int(d) for d in deck_ids]
        return cls(buckets)

    def _discard(self, deck_id: int, instant_ms: int) -> None:
        bucket = self._buckets[instant_ms]
        bucket.discard(deck_id)
        if not bucket:
            del self._buckets[instant_ms]
        self._deck_keys.pop(deck_id, None)
