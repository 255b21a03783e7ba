"""
Booking lifecycle glue: validate, route, persist, keep host calendars in step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping, Optional

from ..domain.exceptions import BookingNotFoundError, InvalidRequestError, SlotUnavailableError
from ..domain.models import Booking, Event, RoutingDecision, User
from ..domain.slot_calculator import to_utc
from .conflict_validator import SlotConflictValidator
from .protocols import AvailabilitySyncProtocol, BookingRepositoryProtocol
from .routing import RoutingEngine

logger = logging.getLogger(__name__)


@dataclass
class BookingOutcome:
    """A persisted booking and the routing decision that produced its host."""
    booking: Booking
    decision: Optional[RoutingDecision] = None


class BookingOrchestrator:
    """
    Runs the commit-time check and routing before a booking is persisted.

    When an availability sync is given, every persisted booking blocks its
    hosts there, moves with the booking and is released on cancellation.

    The check-then-persist sequence is not atomic: the repository must enforce
    that no two active bookings of the same host overlap.
    """

    def __init__(
        self,
        validator: SlotConflictValidator,
        routing_engine: RoutingEngine,
        repository: BookingRepositoryProtocol,
        availability_sync: Optional[AvailabilitySyncProtocol] = None,
    ) -> None:
        self._validator = validator
        self._routing_engine = routing_engine
        self._repository = repository
        self._availability_sync = availability_sync

    def create_booking(
        self,
        event: Event,
        start: datetime,
        end: datetime,
        form_data: Optional[Mapping[str, Any]] = None,
    ) -> BookingOutcome:
        """
        Validate the slot, route it when routing is enabled and persist the booking.

        Raises:
            InvalidRequestError: If start is not before end
            SlotUnavailableError: If the slot fails the commit-time check
            NoHostAvailableError: If routing finds no free host
        """
        start_utc, end_utc = self._checked_range(start, end)

        if not self._validator.is_slot_available(event, start_utc, end_utc):
            raise SlotUnavailableError("The selected time slot is not available")

        booking = Booking(
            event_id=event.id,
            start=start_utc,
            end=end_utc,
            form_data=dict(form_data or {}),
        )

        decision: Optional[RoutingDecision] = None
        if event.config.routing_enabled:
            decision = self._routing_engine.route(event, start_utc, end_utc, form_data)
            booking.assigned_to = decision.host

        booking = self._repository.add(booking)
        logger.info(
            "Created booking %s for event %s at %s",
            booking.id, event.id, booking.start.to_iso8601_string(),
        )

        if self._availability_sync is not None:
            self._availability_sync.record_booking(
                booking,
                self.blocked_hosts(event, booking),
                buffer_minutes=event.config.buffer_minutes,
            )

        return BookingOutcome(booking=booking, decision=decision)

    def reschedule_booking(self, event: Event, booking_id: int, start: datetime, end: datetime) -> Booking:
        """
        Move a booking, re-running the commit-time check without the booking itself.

        The assigned host is kept; routing is not repeated.

        Raises:
            BookingNotFoundError: If the booking does not exist
            InvalidRequestError: If the booking belongs to another event, is
                cancelled, or start is not before end
            SlotUnavailableError: If the new slot fails the commit-time check
        """
        booking = self._require(booking_id)
        if booking.event_id != event.id:
            raise InvalidRequestError(f"Booking {booking_id} does not belong to event {event.id}")
        if not booking.is_active():
            raise InvalidRequestError(f"Booking {booking_id} is cancelled")

        start_utc, end_utc = self._checked_range(start, end)

        if not self._validator.is_slot_available(event, start_utc, end_utc, exclude_booking_id=booking.id):
            raise SlotUnavailableError("The selected time slot is not available")

        booking.start = start_utc
        booking.end = end_utc
        booking = self._repository.save(booking)

        if self._availability_sync is not None:
            self._availability_sync.move_booking(booking)
        return booking

    def cancel_booking(self, booking_id: int) -> Booking:
        """Mark a booking cancelled and release its host blocks. Routing is not re-invoked."""
        booking = self._require(booking_id)
        booking.cancelled = True
        booking.status = "cancelled"
        booking = self._repository.save(booking)

        if self._availability_sync is not None:
            self._availability_sync.release_booking(booking.id)
        return booking

    @staticmethod
    def blocked_hosts(event: Event, booking: Booking) -> List[User]:
        """
        Users a booking occupies: the routed host, otherwise every host of
        the event, otherwise its creator.
        """
        if booking.assigned_to is not None:
            return [booking.assigned_to]
        return event.hosts_or_creator()

    def _require(self, booking_id: int) -> Booking:
        booking = self._repository.get(booking_id)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return booking

    @staticmethod
    def _checked_range(start: datetime, end: datetime):
        start_utc = to_utc(start)
        end_utc = to_utc(end)
        if start_utc >= end_utc:
            raise InvalidRequestError("End time must be after start time")
        return start_utc, end_utc
