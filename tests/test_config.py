"""
Tests for YAML configuration loading.
"""

from datetime import time
from pathlib import Path

import pytest
import yaml

from slotrouter.config import AIRoutingConfig, AppConfig, BookingConfig, DefaultsConfig
from slotrouter.domain.models import AssigneeRole, AvailabilityType, RoutingFallback

EXAMPLE_CONFIG = Path(__file__).resolve().parent.parent / "slotrouter.example.yaml"


def _write(tmp_path, data) -> Path:
    path = tmp_path / "slotrouter.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def _minimal(**overrides):
    data = {
        "users": [
            {"id": 1, "name": "Alice", "email": "Alice@Example.com"},
            {"id": 2, "name": "Bob"},
        ],
        "events": [
            {"id": 7, "name": "Demo", "creator": 1, "assignees": [{"user": 2}]},
        ],
    }
    data.update(overrides)
    return data


def test_example_config_loads():
    config = AppConfig.load_from_yaml(EXAMPLE_CONFIG)
    events = config.build_events()

    intro = events[1]
    assert intro.config.routing_enabled
    assert intro.config.routing_fallback == RoutingFallback.ROUND_ROBIN
    assert intro.config.default_duration_minutes() == 30
    assert intro.schedule.for_weekday(0).breaks[0].start == time(12)
    assert intro.schedule.for_weekday(4).end == time(15)
    assert not intro.schedule.for_weekday(5).enabled
    assert [a.role for a in intro.assignees] == [AssigneeRole.CREATOR, AssigneeRole.HOST, AssigneeRole.MEMBER]

    assert events[2].config.availability_type == AvailabilityType.ALL_HOSTS_AVAILABLE

    bookings = config.build_bookings()
    assert len(bookings) == 1
    assert bookings[0].assigned_to.name == "Bob"


def test_minimal_config(tmp_path):
    config = AppConfig.load_from_yaml(_write(tmp_path, _minimal()))
    event = config.find_event(7)

    assert config.defaults.timezone == "UTC"
    assert config.log_level == "WARNING"
    assert event.creator.email == "alice@example.com"
    assert [u.name for u in event.host_pool()] == ["Bob"]
    assert event.schedule.enabled_weekdays() == [0, 1, 2, 3, 4]
    assert config.find_event(99) is None
    assert config.find_user(2).name == "Bob"


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="Config file not found"):
        AppConfig.load_from_yaml(tmp_path / "missing.yaml")


def test_invalid_yaml(tmp_path):
    path = tmp_path / "slotrouter.yaml"
    path.write_text("users: [\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid YAML"):
        AppConfig.load_from_yaml(path)


def test_root_must_be_mapping(tmp_path):
    path = tmp_path / "slotrouter.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="mapping at the root"):
        AppConfig.load_from_yaml(path)


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "slotrouter.yaml"
    path.write_text("", encoding="utf-8")

    config = AppConfig.load_from_yaml(path)

    assert config.events == []
    assert config.build_events() == {}


@pytest.mark.parametrize("data,message", [
    (_minimal(users=[{"id": 1, "name": "A"}, {"id": 1, "name": "B"}]), "Duplicate user id"),
    (_minimal(events=[{"id": 1, "name": "A"}, {"id": 1, "name": "B"}]), "Duplicate event id"),
    (_minimal(events=[{"id": 1, "name": "A", "assignees": [{"user": 5}]}]), "unknown user"),
    (_minimal(bookings=[{"event": 3, "start": "2024-11-25T10:00:00Z", "end": "2024-11-25T10:30:00Z"}]),
     "unknown event"),
    (_minimal(log_level="chatty"), "Unknown log level"),
])
def test_invalid_references(data, message):
    with pytest.raises(ValueError, match=message):
        AppConfig(**data)


def test_log_level_is_uppercased():
    assert AppConfig(log_level="debug").log_level == "DEBUG"


def test_defaults_validation():
    with pytest.raises(ValueError):
        DefaultsConfig(duration_minutes=0)
    with pytest.raises(ValueError):
        DefaultsConfig(timezone="Atlantis/Capital")


def test_event_rejects_negative_buffer():
    with pytest.raises(ValueError):
        AppConfig(**_minimal(events=[{"id": 1, "name": "A", "buffer_minutes": -5}]))


def test_malformed_schedule_is_normalized():
    config = AppConfig(**_minimal(events=[{
        "id": 1,
        "name": "A",
        "schedule": {"monday": {"enabled": True, "start_time": "late", "end_time": "12:00"}, "noday": {}},
    }]))

    monday = config.find_event(1).schedule.for_weekday(0)

    assert (monday.start, monday.end) == (time(9), time(12))


class TestBookingConfig:
    def test_to_booking_converts_to_utc(self):
        booking = BookingConfig(
            event=1,
            start="2024-11-25T10:00:00+01:00",
            end="2024-11-25T10:30:00+01:00",
            cancelled=True,
        ).to_booking({})

        assert booking.start.to_datetime_string() == "2024-11-25 09:00:00"
        assert booking.start.timezone_name == "UTC"
        assert booking.status == "cancelled"
        assert not booking.is_active()

    def test_end_before_start(self):
        with pytest.raises(ValueError, match="must be after start"):
            BookingConfig(event=1, start="2024-11-25T10:00:00Z", end="2024-11-25T09:00:00Z")

    def test_invalid_timestamp(self):
        with pytest.raises(ValueError):
            BookingConfig(event=1, start="next week", end="2024-11-25T09:00:00Z")


class TestAIRoutingConfig:
    def test_environment_key(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

        assert AIRoutingConfig().resolve_api_key() == "sk-env"
        assert AIRoutingConfig().is_configured()

    def test_not_configured(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        assert not AIRoutingConfig().is_configured()

    def test_limits(self):
        with pytest.raises(ValueError):
            AIRoutingConfig(temperature=3)
        with pytest.raises(ValueError):
            AIRoutingConfig(timeout_seconds=0)
