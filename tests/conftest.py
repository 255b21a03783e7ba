"""
Shared fixtures for the test suite.
"""

from datetime import time
from typing import List

import pendulum
import pytest

from slotrouter.adapters.in_memory import InMemoryAvailabilityOracle, InMemoryBookingStore
from slotrouter.domain.models import (
    Assignee,
    AssigneeRole,
    DaySchedule,
    Event,
    EventConfig,
    User,
    WeeklySchedule,
)
from slotrouter.domain.schedule import default_schedule

MONDAY = "2024-11-25"


@pytest.fixture
def alice() -> User:
    return User(id=1, name="Alice", email="alice@example.com")


@pytest.fixture
def bob() -> User:
    return User(id=2, name="Bob", email="bob@example.com")


@pytest.fixture
def carol() -> User:
    return User(id=3, name="Carol", email="carol@example.com")


@pytest.fixture
def hosts(alice, bob, carol) -> List[User]:
    return [alice, bob, carol]


@pytest.fixture
def fixed_now():
    """A reference time well before the test dates."""
    return pendulum.datetime(2024, 11, 1, 8, 0, tz="UTC")


@pytest.fixture
def store(fixed_now) -> InMemoryBookingStore:
    ticks = iter(range(1, 100000))
    return InMemoryBookingStore(clock=lambda: fixed_now.add(seconds=next(ticks)))


@pytest.fixture
def oracle() -> InMemoryAvailabilityOracle:
    return InMemoryAvailabilityOracle()


@pytest.fixture
def make_event(alice):
    """Factory for events on the default Mon-Fri 09:00-17:00 UTC schedule."""
    def _make(assignees=None, creator=alice, schedule=None, **config) -> Event:
        return Event(
            id=config.pop("event_id", 1),
            name=config.pop("name", "Intro call"),
            schedule=schedule or default_schedule(),
            config=EventConfig(**config),
            creator=creator,
            assignees=[
                a if isinstance(a, Assignee) else Assignee(user=a, role=AssigneeRole.HOST)
                for a in (assignees or [])
            ],
        )
    return _make


def overnight_schedule() -> WeeklySchedule:
    """Every day open 22:00 - 06:00 (crossing midnight)."""
    day = DaySchedule(enabled=True, start=time(22, 0), end=time(6, 0))
    return WeeklySchedule(days=tuple(day for _ in range(7)))


def utc(value: str):
    return pendulum.parse(value, tz="UTC")
