"""
Tests for the Typer command line interface.
"""

import pendulum
import pytest
import yaml
from typer.testing import CliRunner

from slotrouter import __version__
from slotrouter.cli.app import app

runner = CliRunner()


@pytest.fixture
def next_monday() -> str:
    return pendulum.now("UTC").next(pendulum.MONDAY).to_date_string()


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    data = {
        "defaults": {"timezone": "UTC"},
        "users": [
            {"id": 1, "name": "Alice", "email": "alice@example.com"},
            {"id": 2, "name": "Bob", "email": "bob@example.com"},
        ],
        "events": [
            {
                "id": 1,
                "name": "Intro call",
                "creator": 1,
                "routing_enabled": True,
                "routing_fallback": "round_robin",
                "routing_instructions": "Anyone will do",
                "assignees": [{"user": 1}, {"user": 2}],
            },
            {"id": 2, "name": "Solo", "creator": 2},
        ],
    }
    path = tmp_path / "slotrouter.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_slots(config_file, next_monday):
    result = runner.invoke(app, ["slots", "1", "--date", next_monday, "--config", str(config_file)])

    assert result.exit_code == 0, result.output
    assert f"31 slot(s) for 'Intro call' on {next_monday}" in result.output
    assert "09:00 - 09:30 (UTC)" in result.output


def test_slots_with_duration_and_timezone(config_file, next_monday):
    result = runner.invoke(app, [
        "slots", "1",
        "--date", next_monday,
        "--tz", "America/New_York",
        "--duration", "60",
        "--config", str(config_file),
    ])

    assert result.exit_code == 0, result.output
    assert "(America/New_York)" in result.output


def test_slots_on_weekend(config_file, next_monday):
    saturday = pendulum.parse(next_monday).subtract(days=2).to_date_string()

    result = runner.invoke(app, ["slots", "1", "--date", saturday, "--config", str(config_file)])

    assert result.exit_code == 0, result.output
    assert "No bookable slots" in result.output


def test_slots_invalid_date(config_file):
    result = runner.invoke(app, ["slots", "1", "--date", "someday", "--config", str(config_file)])

    assert result.exit_code == 1
    assert "Invalid date" in result.output


def test_unknown_event(config_file, next_monday):
    result = runner.invoke(app, ["slots", "9", "--date", next_monday, "--config", str(config_file)])

    assert result.exit_code == 1
    assert "Unknown event 9" in result.output


def test_missing_config(tmp_path):
    result = runner.invoke(app, ["slots", "1", "--config", str(tmp_path / "nope.yaml")])

    assert result.exit_code == 1
    assert "Config file not found" in result.output


def test_book_routes_to_host(config_file, next_monday):
    result = runner.invoke(app, [
        "book", "1",
        "--start", f"{next_monday}T10:00",
        "--name", "Dana",
        "--email", "dana@acme.io",
        "--field", "company=Acme",
        "--config", str(config_file),
    ])

    assert result.exit_code == 0, result.output
    assert "Booking 1 created" in result.output
    assert "Alice" in result.output
    assert "round_robin" in result.output


def test_book_outside_schedule(config_file, next_monday):
    result = runner.invoke(app, [
        "book", "1",
        "--start", f"{next_monday}T20:00",
        "--config", str(config_file),
    ])

    assert result.exit_code == 1
    assert "not available" in result.output


def test_route_dry_run(config_file, next_monday):
    result = runner.invoke(app, [
        "route", "1",
        "--start", f"{next_monday}T10:00",
        "--end", f"{next_monday}T11:00",
        "--config", str(config_file),
    ])

    assert result.exit_code == 0, result.output
    assert "Alice" in result.output


def test_route_requires_routing(config_file, next_monday):
    result = runner.invoke(app, [
        "route", "2",
        "--start", f"{next_monday}T10:00",
        "--config", str(config_file),
    ])

    assert result.exit_code == 1
    assert "Routing is not enabled" in result.output


def test_events(config_file):
    result = runner.invoke(app, ["events", "--config", str(config_file)])

    assert result.exit_code == 0, result.output
    assert "Intro call" in result.output
    assert "Solo" in result.output


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_configured_bookings_block_their_host(config_file, next_monday):
    data = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    data["bookings"] = [{
        "event": 2,
        "start": f"{next_monday}T10:00:00",
        "end": f"{next_monday}T10:30:00",
        "assigned_to": 1,
    }]
    config_file.write_text(yaml.safe_dump(data), encoding="utf-8")

    result = runner.invoke(app, [
        "route", "1",
        "--start", f"{next_monday}T10:00",
        "--config", str(config_file),
    ])

    assert result.exit_code == 0, result.output
    assert "Bob" in result.output
    assert "single_available" in result.output
