"""
Application service answering slot queries for an event.

The service fetches existing bookings through the repository, delegates
the slot walk to the domain-level ``SlotCalculator`` and then narrows the
result with the host availability filter.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, List, Optional, Sequence, Union

import pendulum
from pendulum import DateTime

from ..domain.exceptions import InvalidRequestError
from ..domain.models import AvailabilityType, CandidateSlot, Event, User
from ..domain.slot_calculator import SlotCalculator, normalize_timezone
from .protocols import AvailabilityOracleProtocol, BookingRepositoryProtocol

logger = logging.getLogger(__name__)


def parse_requested_date(value: Union[date, str]) -> date:
    """
    Accept a date, a datetime or a ``YYYY-MM-DD`` string.

    Raises:
        InvalidRequestError: If the string is not a valid calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    try:
        parsed = pendulum.from_format(str(value).strip(), "YYYY-MM-DD")
    except ValueError as exc:
        raise InvalidRequestError(f"Invalid date '{value}', expected YYYY-MM-DD") from exc

    return parsed.date()


class SlotFinderService:
    """
    Orchestrates booking lookup, slot generation and host filtering.
    """

    def __init__(
        self,
        repository: BookingRepositoryProtocol,
        oracle: AvailabilityOracleProtocol,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._repository = repository
        self._oracle = oracle
        self._clock = clock or pendulum.now

    def find_slots(
        self,
        event: Event,
        requested_date: Union[date, str],
        *,
        duration_minutes: Optional[int] = None,
        timezone: Optional[str] = None,
        buffer_minutes: Optional[int] = None,
    ) -> List[CandidateSlot]:
        """
        Return bookable slots of ``event`` starting on ``requested_date`` in ``timezone``.

        Optional inputs degrade to defaults: the event's first duration (or 30
        minutes), the event's buffer, and UTC for unknown timezones.
        """
        target = parse_requested_date(requested_date)
        tz = normalize_timezone(timezone)

        if duration_minutes is None or duration_minutes <= 0:
            duration_minutes = event.config.default_duration_minutes()
        if buffer_minutes is None:
            buffer_minutes = event.config.buffer_minutes
        buffer_minutes = max(buffer_minutes or 0, 0)

        calculator = SlotCalculator(schedule=event.schedule)
        scan_days = calculator.scan_days(target, tz)
        existing = self._repository.bookings_starting_between(
            event.id,
            scan_days[0],
            scan_days[-1].add(days=2),
        )

        slots = calculator.generate_slots(
            requested_date=target,
            duration_minutes=duration_minutes,
            client_timezone=tz,
            buffer_minutes=buffer_minutes,
            bookings=[booking.time_range() for booking in existing],
            advance_notice_minutes=event.config.advance_notice_minutes,
            now=self._clock(),
        )

        if not slots:
            return []

        filtered = self.filter_by_hosts(slots, event.host_pool(), event.config.availability_type)
        logger.debug(
            "Event %s on %s: %d slot(s) after host filter (%d before)",
            event.id, target.isoformat(), len(filtered), len(slots),
        )
        return filtered

    def filter_by_hosts(
        self,
        slots: Sequence[CandidateSlot],
        hosts: Sequence[User],
        availability_type: AvailabilityType,
    ) -> List[CandidateSlot]:
        """
        Keep slots satisfying the availability policy.

        Without hosts there is nothing to check and all slots are kept.
        """
        if not hosts:
            return list(slots)

        if availability_type == AvailabilityType.ONE_HOST_AVAILABLE:
            return [
                slot for slot in slots
                if any(self._oracle.is_available(host, slot.start_utc, slot.end_utc) for host in hosts)
            ]

        return [
            slot for slot in slots
            if all(self._oracle.is_available(host, slot.start_utc, slot.end_utc) for host in hosts)
        ]
