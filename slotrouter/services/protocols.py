"""
Protocols describing the external collaborators the services depend on.

Dependency inversion toward these protocols keeps persistence and calendar
lookups out of the engine and makes them easy to stub in tests.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence

from pendulum import DateTime

from ..domain.models import Booking, User


class AvailabilityOracleProtocol(Protocol):
    """Answers whether a user is free during an interval."""

    def is_available(
        self,
        user: User,
        start: DateTime,
        end: DateTime,
        exclude_id: Optional[int] = None,
    ) -> bool:
        """
        Return True if ``user`` has no blocking entry between ``start`` and ``end``.

        Entries created for the booking ``exclude_id`` are ignored.
        """


class BookingRepositoryProtocol(Protocol):
    """Booking persistence needed by slot generation, validation and routing."""

    def bookings_starting_between(self, event_id: int, start: DateTime, end: DateTime) -> List[Booking]:
        """Non-cancelled bookings of an event with ``start <= booking.start < end``."""

    def active_bookings_for_event(self, event_id: int) -> List[Booking]:
        """All non-cancelled bookings of an event."""

    def last_assigned_at(self, user_id: int) -> Optional[DateTime]:
        """Creation time of the newest booking assigned to the user."""

    def count_assigned_between(self, user_id: int, start: DateTime, end: DateTime) -> int:
        """Number of bookings assigned to the user starting in the window, cancelled ones included."""

    def get(self, booking_id: int) -> Optional[Booking]:
        """Return a booking by id."""

    def add(self, booking: Booking) -> Booking:
        """Persist a new booking and return it with id and creation time set."""

    def save(self, booking: Booking) -> Booking:
        """Persist changes to an existing booking."""


class AvailabilitySyncProtocol(Protocol):
    """Mirrors the booking lifecycle into the hosts' busy entries."""

    def record_booking(self, booking: Booking, hosts: Sequence[User], buffer_minutes: int = 0) -> Any:
        """Block ``booking``'s interval for each of ``hosts``."""

    def move_booking(self, booking: Booking) -> Any:
        """Move the entries of ``booking`` to its current start and end."""

    def release_booking(self, booking_id: int) -> Any:
        """Cancel every entry created for the booking."""


class AIDecisionClientProtocol(Protocol):
    """Chat-completion style service that picks a host for a prompt."""

    def choose(self, prompt: str) -> Dict[str, Any]:
        """
        Return the decoded ``{"assignee_id": ..., "reason": ...}`` answer.

        Raises:
            AIRoutingError: On any transport, status or decoding failure
        """
