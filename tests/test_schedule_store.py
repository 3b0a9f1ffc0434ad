"""Tests for the file-backed schedule store."""

import json

from deckbell.reminders import DeckSchedule, ScheduleStore, TriggerIndex


class TestDeckRecords:
    """Tests for deck schedule persistence."""

    def test_put_and_get(self, store):
        store.put_deck(DeckSchedule(1, 9, 30, deck_name="French", min_cards_due=3))

        record = store.get_deck(1)
        assert record == DeckSchedule(1, 9, 30, deck_name="French", min_cards_due=3)

    def test_put_replaces_existing(self, store):
        store.put_deck(DeckSchedule(1, 9, 30))
        store.put_deck(DeckSchedule(1, 21, 0))

        assert [d.time_of_day for d in store.get_decks()] == ["21:00"]

    def test_get_missing(self, store):
        assert store.get_deck(99) is None
        assert store.get_decks() == []

    def test_remove_decks(self, store):
        store.put_deck(DeckSchedule(1, 9, 0))
        store.put_deck(DeckSchedule(2, 9, 0))

        removed = store.remove_decks([1, 3])

        assert removed == [1]
        assert [d.deck_id for d in store.get_decks()] == [2]

    def test_records_use_snake_case_keys(self, store):
        store.put_deck(DeckSchedule(7, 8, 15, deck_name="Kanji"))

        line = store.decks_path.read_text().strip()
        assert json.loads(line) == {
            "enabled": True,
            "deck_id": 7,
            "deck_name": "Kanji",
            "scheduled_hour": 8,
            "scheduled_minute": 15,
            "min_cards_due": 0,
        }

    def test_corrupt_lines_skipped(self, store):
        store.state_dir.mkdir(parents=True)
        store.decks_path.write_text(
            "not json\n"
            '{"deck_id": 1, "scheduled_hour": 9, "scheduled_minute": 0}\n'
            '{"deck_id": 2, "scheduled_hour": 25, "scheduled_minute": 0}\n'
            "\n"
            '{"deck_id": 3}\n'
        )

        assert [d.deck_id for d in store.get_decks()] == [1]


class TestTriggerIndexPersistence:
    """Tests for saving and loading the index."""

    def test_missing_index_is_none(self, store):
        assert store.load_index() is None

    def test_save_and_load(self, store):
        index = TriggerIndex({1000: [1, 2], 2000: [3]})
        store.save_index(index)

        assert store.load_index() == index

    def test_file_format(self, store):
        store.save_index(TriggerIndex({1000: [2, 1]}))

        payload = json.loads(store.index_path.read_text())
        assert payload["version"] == 1
        assert payload["triggers"] == {"1000": [1, 2]}
        assert "updated_at" in payload

    def test_corrupt_index_is_none(self, store):
        store.state_dir.mkdir(parents=True)
        store.index_path.write_text('{"triggers": {"soon": [1]}}')

        assert store.load_index() is None

    def test_no_temp_files_left(self, store):
        store.save_index(TriggerIndex({1000: [1]}))
        store.put_deck(DeckSchedule(1, 9, 0))

        assert not list(store.state_dir.glob("*.tmp"))


class TestMetadata:
    """Tests for timezone metadata and stats."""

    def test_timezone_roundtrip(self, store):
        assert store.get_timezone() is None
        store.set_timezone("Europe/Berlin")
        assert store.get_timezone() == "Europe/Berlin"

    def test_corrupt_state_file(self, store):
        store.state_dir.mkdir(parents=True)
        store.state_path.write_text("[")
        assert store.get_timezone() is None

    def test_stats(self, store):
        store.put_deck(DeckSchedule(1, 9, 0))
        store.put_deck(DeckSchedule(2, 9, 0, enabled=False))
        store.save_index(TriggerIndex({1000: [1]}))

        stats = store.get_stats()

        assert stats["decks"] == 2
        assert stats["enabled"] == 1
        assert stats["triggers"] == 1
        assert stats["pending"] == 1


class TestLocking:
    """Tests for the store lock."""

    def test_lock_is_reentrant(self, store):
        with store.locked():
            with store.locked():
                store.put_deck(DeckSchedule(1, 9, 0))
            store.save_index(TriggerIndex({1000: [1]}))

        assert store.get_deck(1) is not None

    def test_separate_instances_share_files(self, tmp_path):
        first = ScheduleStore(tmp_path / "state")
        second = ScheduleStore(tmp_path / "state")

        with first.locked():
            first.put_deck(DeckSchedule(1, 9, 0))

        assert second.get_deck(1) is not None
