"""Tests for CLI commands."""

import json

import pytest

from deckbell.cli.app import app
from deckbell.cli.commands.reminders import parse_time_of_day
from deckbell.cli.console import format_countdown, format_delay_ms
from deckbell.reminders import ScheduleStore, TriggerIndex
from tests.conftest import START


@pytest.fixture
def state_store(tmp_path) -> ScheduleStore:
    """Store at the state_dir used by config_file."""
    return ScheduleStore(tmp_path / "state")


@pytest.fixture
def decks_file(tmp_path):
    path = tmp_path / "decks.json"
    path.write_text(
        json.dumps([{"deck_id": 42, "name": "Lang::French", "review": 3, "eta": 4}])
    )
    return path


class TestParseTimeOfDay:
    """Tests for HH:MM parsing."""

    def test_valid(self):
        assert parse_time_of_day("09:30") == (9, 30)
        assert parse_time_of_day("7:05") == (7, 5)

    @pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "9", "9:-1"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_time_of_day(value)


class TestFormatting:
    """Tests for console formatting helpers."""

    def test_countdown(self):
        from datetime import timedelta

        assert format_countdown(START + timedelta(minutes=5), START) == "in 5m"
        assert format_countdown(START + timedelta(hours=2), START) == "in 2h"
        assert format_countdown(START + timedelta(days=1, hours=3), START) == "in 1d 3h"
        assert format_countdown(START, START) == "now"

    def test_delay(self):
        assert format_delay_ms(40_000) == "40s"
        assert format_delay_ms(90 * 60_000) == "1h 30m"


class TestSetCommand:
    """Tests for 'deckbell set'."""

    def test_set_creates_reminder(self, cli_runner, config_file, state_store):
        result = cli_runner.invoke(
            app,
            ["set", "42", "--at", "09:30", "--name", "French", "-c", str(config_file)],
        )

        assert result.exit_code == 0
        assert "Reminder for deck 42 set to 09:30" in result.stdout
        assert state_store.get_deck(42).deck_name == "French"
        assert 42 in state_store.load_index()

    def test_set_rejects_bad_time(self, cli_runner, config_file, state_store):
        result = cli_runner.invoke(
            app, ["set", "42", "--at", "25:00", "-c", str(config_file)]
        )

        assert result.exit_code == 1
        assert "out of range" in result.stdout
        assert state_store.get_deck(42) is None

    def test_set_with_threshold(self, cli_runner, config_file, state_store):
        result = cli_runner.invoke(
            app,
            ["set", "7", "--at", "21:00", "--min-cards", "10", "-c", str(config_file)],
        )

        assert result.exit_code == 0
        assert state_store.get_deck(7).min_cards_due == 10

    def test_missing_config_file(self, cli_runner, tmp_path):
        result = cli_runner.invoke(
            app, ["set", "1", "--at", "09:00", "-c", str(tmp_path / "missing.toml")]
        )
        assert result.exit_code == 1
        assert "not found" in result.stdout


class TestListAndOff:
    """Tests for 'deckbell list' and 'deckbell off'."""

    def test_list_empty(self, cli_runner, config_file):
        result = cli_runner.invoke(app, ["list", "-c", str(config_file)])
        assert result.exit_code == 0
        assert "No deck reminders configured" in result.stdout

    def test_list_shows_reminders(self, cli_runner, config_file):
        cli_runner.invoke(
            app, ["set", "42", "--at", "09:30", "--name", "French", "-c", str(config_file)]
        )

        result = cli_runner.invoke(app, ["list", "-c", str(config_file)])

        assert result.exit_code == 0
        assert "French" in result.stdout
        assert "09:30" in result.stdout
        assert "Total: 1 deck(s)" in result.stdout

    def test_off_removes_reminder(self, cli_runner, config_file, state_store):
        cli_runner.invoke(app, ["set", "42", "--at", "09:30", "-c", str(config_file)])

        result = cli_runner.invoke(app, ["off", "42", "-c", str(config_file)])

        assert result.exit_code == 0
        assert "Turned off 1 reminder(s)" in result.stdout
        assert state_store.get_deck(42) is None
        assert 42 not in state_store.load_index()

    def test_off_unknown_deck(self, cli_runner, config_file):
        result = cli_runner.invoke(app, ["off", "99", "-c", str(config_file)])
        assert result.exit_code == 0
        assert "No pending reminders" in result.stdout


class TestWakeCommand:
    """Tests for 'deckbell wake'."""

    def test_wake_shows_due_reminders(
        self, cli_runner, config_file, decks_file, state_store
    ):
        state_store.save_index(TriggerIndex({1000: [42]}))

        result = cli_runner.invoke(app, ["wake", "-c", str(config_file)])

        assert result.exit_code == 0
        assert "3 cards due in French" in result.stdout
        assert "Due: 1, shown: 1" in result.stdout
        assert state_store.load_index().key_for(42) > 1000

    def test_wake_without_snapshot(self, cli_runner, config_file, state_store):
        state_store.save_index(TriggerIndex({1000: [42]}))

        result = cli_runner.invoke(app, ["wake", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "Deck snapshot unavailable" in result.stdout
        assert state_store.load_index() == TriggerIndex({1000: [42]})


class TestRecalibrateCommand:
    """Tests for 'deckbell recalibrate'."""

    def test_recalibrate_with_timezone(self, cli_runner, config_file, state_store):
        cli_runner.invoke(app, ["set", "42", "--at", "09:30", "-c", str(config_file)])

        result = cli_runner.invoke(
            app, ["recalibrate", "--timezone", "Asia/Tokyo", "-c", str(config_file)]
        )

        assert result.exit_code == 0
        assert "Recalibrated 1 reminder(s) in Asia/Tokyo" in result.stdout
        assert state_store.get_timezone() == "Asia/Tokyo"

    def test_recalibrate_unknown_timezone(self, cli_runner, config_file):
        result = cli_runner.invoke(
            app, ["recalibrate", "--timezone", "Nowhere/City", "-c", str(config_file)]
        )
        assert result.exit_code == 1
        assert "Unknown timezone" in result.stdout


class TestConfigCommand:
    """Tests for 'deckbell config'."""

    def test_config_show_displays_content(self, cli_runner, config_file):
        result = cli_runner.invoke(app, ["config", "show", "--path", str(config_file)])
        assert result.exit_code == 0
        assert "min_cards_due" in result.stdout

    def test_config_show_missing_file(self, cli_runner, tmp_path):
        result = cli_runner.invoke(
            app, ["config", "show", "--path", str(tmp_path / "missing.toml")]
        )
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_config_validate_success(self, cli_runner, config_file):
        result = cli_runner.invoke(
            app, ["config", "validate", "--path", str(config_file)]
        )
        assert result.exit_code == 0
        assert "valid" in result.stdout.lower()

    def test_config_validate_invalid_config(self, cli_runner, tmp_path):
        invalid_config = tmp_path / "bad_config.toml"
        invalid_config.write_text('timezone = "Nowhere/City"\n')

        result = cli_runner.invoke(
            app, ["config", "validate", "--path", str(invalid_config)]
        )
        assert result.exit_code == 1
        assert "timezone" in result.stdout

    def test_config_unknown_action(self, cli_runner, config_file):
        result = cli_runner.invoke(app, ["config", "bogus", "--path", str(config_file)])
        assert result.exit_code == 1
