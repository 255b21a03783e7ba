"""
Commit-time slot validation.

This is the authoritative check run right before a booking is persisted.
Unlike slot discovery it does not apply the event's buffer time: only true
overlaps with existing bookings are rejected.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..domain.exceptions import InvalidRequestError
from ..domain.models import AvailabilityType, Event, TimeRange
from ..domain.slot_calculator import SlotCalculator, to_utc
from .protocols import AvailabilityOracleProtocol, BookingRepositoryProtocol

logger = logging.getLogger(__name__)


class SlotConflictValidator:
    """
    Re-validates one requested interval against schedule, bookings and hosts.
    """

    def __init__(
        self,
        repository: BookingRepositoryProtocol,
        oracle: AvailabilityOracleProtocol,
    ) -> None:
        self._repository = repository
        self._oracle = oracle

    def is_slot_available(
        self,
        event: Event,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> bool:
        """
        Check whether ``[start, end)`` can be booked for ``event``.

        Args:
            event: Event being booked
            start: Requested start
            end: Requested end
            exclude_booking_id: Booking being rescheduled, ignored in the overlap and
                host checks

        Returns:
            False if the interval is outside the schedule, overlaps a break or
            another booking, or the required hosts are not free
        """
        start_utc = to_utc(start)
        end_utc = to_utc(end)
        if start_utc >= end_utc:
            raise InvalidRequestError(f"Start time {start_utc} must be before end time {end_utc}")
        requested = TimeRange(start=start_utc, end=end_utc)

        if not SlotCalculator(schedule=event.schedule).fits_schedule(start_utc, end_utc):
            logger.debug("Event %s: %s is outside the schedule", event.id, requested)
            return False

        for booking in self._repository.active_bookings_for_event(event.id):
            if exclude_booking_id is not None and booking.id == exclude_booking_id:
                continue
            if requested.overlaps(booking.time_range()):
                logger.debug("Event %s: %s overlaps booking %s", event.id, requested, booking.id)
                return False

        hosts = event.hosts_or_creator()
        if not hosts:
            # No hosts and no creator: nothing left to check
            return True

        def free(host) -> bool:
            return self._oracle.is_available(host, start_utc, end_utc, exclude_id=exclude_booking_id)

        if event.config.availability_type == AvailabilityType.ONE_HOST_AVAILABLE:
            return any(free(host) for host in hosts)

        return all(free(host) for host in hosts)
