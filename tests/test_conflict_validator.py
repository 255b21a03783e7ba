"""
Tests for the commit-time SlotConflictValidator.
"""

import pytest

from conftest import overnight_schedule, utc
from slotrouter.domain.exceptions import InvalidRequestError
from slotrouter.domain.models import AvailabilityType, Booking
from slotrouter.services.conflict_validator import SlotConflictValidator


@pytest.fixture
def validator(store, oracle):
    return SlotConflictValidator(repository=store, oracle=oracle)


def _check(validator, event, start, end, **kwargs):
    return validator.is_slot_available(event, utc(start), utc(end), **kwargs)


def test_free_slot_inside_schedule(validator, make_event, hosts):
    assert _check(validator, make_event(assignees=hosts), "2024-11-25 09:00", "2024-11-25 09:30")


def test_outside_schedule(validator, make_event):
    event = make_event()

    assert not _check(validator, event, "2024-11-25 16:45", "2024-11-25 17:15")
    assert not _check(validator, event, "2024-11-24 10:00", "2024-11-24 10:30")


def test_start_must_be_before_end(validator, make_event):
    with pytest.raises(InvalidRequestError):
        _check(validator, make_event(), "2024-11-25 10:00", "2024-11-25 10:00")


def test_overlapping_booking_is_rejected(validator, store, make_event):
    store.add(Booking(event_id=1, start=utc("2024-11-25 10:00"), end=utc("2024-11-25 10:30")))
    event = make_event()

    assert not _check(validator, event, "2024-11-25 10:15", "2024-11-25 10:45")
    assert _check(validator, event, "2024-11-25 10:30", "2024-11-25 11:00")


def test_buffer_is_not_applied_at_commit_time(validator, store, make_event):
    store.add(Booking(event_id=1, start=utc("2024-11-25 10:00"), end=utc("2024-11-25 10:30")))
    event = make_event(buffer_minutes=30)

    # Discovery would hide this slot, the commit-time check accepts it
    assert _check(validator, event, "2024-11-25 10:30", "2024-11-25 11:00")


def test_cancelled_booking_does_not_conflict(validator, store, make_event):
    store.add(Booking(
        event_id=1,
        start=utc("2024-11-25 10:00"),
        end=utc("2024-11-25 10:30"),
        cancelled=True,
    ))

    assert _check(validator, make_event(), "2024-11-25 10:00", "2024-11-25 10:30")


def test_rescheduled_booking_is_excluded(validator, store, make_event):
    booking = store.add(Booking(event_id=1, start=utc("2024-11-25 10:00"), end=utc("2024-11-25 10:30")))
    event = make_event()

    assert not _check(validator, event, "2024-11-25 10:15", "2024-11-25 10:45")
    assert _check(validator, event, "2024-11-25 10:15", "2024-11-25 10:45", exclude_booking_id=booking.id)


def test_one_host_available(validator, oracle, make_event, alice, bob):
    event = make_event(assignees=[alice, bob])
    oracle.add_block(alice, utc("2024-11-25 10:00"), utc("2024-11-25 11:00"))

    assert _check(validator, event, "2024-11-25 10:00", "2024-11-25 10:30")

    oracle.add_block(bob, utc("2024-11-25 10:00"), utc("2024-11-25 11:00"))

    assert not _check(validator, event, "2024-11-25 10:00", "2024-11-25 10:30")


def test_all_hosts_available(validator, oracle, make_event, alice, bob):
    event = make_event(assignees=[alice, bob], availability_type=AvailabilityType.ALL_HOSTS_AVAILABLE)
    oracle.add_block(bob, utc("2024-11-25 10:00"), utc("2024-11-25 11:00"))

    assert not _check(validator, event, "2024-11-25 10:00", "2024-11-25 10:30")
    assert _check(validator, event, "2024-11-25 11:00", "2024-11-25 11:30")


def test_creator_is_checked_without_assignees(validator, oracle, make_event, alice):
    oracle.add_block(alice, utc("2024-11-25 10:00"), utc("2024-11-25 11:00"))
    event = make_event(assignees=[])

    assert not _check(validator, event, "2024-11-25 10:00", "2024-11-25 10:30")


def test_no_hosts_and_no_creator(validator, make_event):
    event = make_event(assignees=[], creator=None)

    assert _check(validator, event, "2024-11-25 10:00", "2024-11-25 10:30")


def test_overnight_window(validator, make_event):
    event = make_event(schedule=overnight_schedule())

    assert _check(validator, event, "2024-11-25 23:30", "2024-11-26 00:30")
    assert _check(validator, event, "2024-11-26 05:00", "2024-11-26 06:00")
    assert not _check(validator, event, "2024-11-26 12:00", "2024-11-26 12:30")
