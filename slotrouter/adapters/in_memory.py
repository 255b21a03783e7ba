"""
In-memory booking store and availability oracle.

Used by the CLI (seeded from the YAML config) and by tests, without requiring
a database or calendar provider.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import pendulum
from pendulum import DateTime

from ..domain.models import Booking, User
from ..domain.slot_calculator import to_utc

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"


class InMemoryBookingStore:
    """
    Booking repository kept in a dict.

    Creation timestamps come from ``clock`` so tests can control ordering.
    """

    def __init__(
        self,
        bookings: Optional[Iterable[Booking]] = None,
        clock: Optional[Callable[[], DateTime]] = None,
    ):
        self._clock = clock or pendulum.now
        self._bookings: Dict[int, Booking] = {}
        self._ids = itertools.count(1)

        for booking in bookings or []:
            self.add(booking)

    def all(self) -> List[Booking]:
        return list(self._bookings.values())

    def get(self, booking_id: int) -> Optional[Booking]:
        return self._bookings.get(booking_id)

    def add(self, booking: Booking) -> Booking:
        if booking.id is None:
            booking.id = next(self._ids)
            while booking.id in self._bookings:
                booking.id = next(self._ids)
        elif booking.id in self._bookings:
            raise ValueError(f"Booking {booking.id} already exists")

        if booking.created is None:
            booking.created = self._clock()

        self._bookings[booking.id] = booking
        return booking

    def save(self, booking: Booking) -> Booking:
        if booking.id not in self._bookings:
            raise KeyError(f"Booking {booking.id} is not stored")
        self._bookings[booking.id] = booking
        return booking

    def bookings_starting_between(self, event_id: int, start: DateTime, end: DateTime) -> List[Booking]:
        return [
            b for b in self._bookings.values()
            if b.event_id == event_id and b.is_active() and start <= b.start < end
        ]

    def active_bookings_for_event(self, event_id: int) -> List[Booking]:
        return [b for b in self._bookings.values() if b.event_id == event_id and b.is_active()]

    def last_assigned_at(self, user_id: int) -> Optional[DateTime]:
        # Any booking ever assigned counts, cancelled ones included
        created = [
            b.created for b in self._bookings.values()
            if b.assigned_to is not None and b.assigned_to.id == user_id and b.created is not None
        ]
        return max(created) if created else None

    def count_assigned_between(self, user_id: int, start: DateTime, end: DateTime) -> int:
        # Cancelled bookings still count toward the host's load
        return sum(
            1 for b in self._bookings.values()
            if b.assigned_to is not None
            and b.assigned_to.id == user_id
            and start <= b.start < end
        )


@dataclass(frozen=True)
class BusyBlock:
    """A period during which a user is busy, with optional buffer on both sides."""
    id: int
    user_id: int
    start: DateTime
    end: DateTime
    buffer_minutes: int = 0
    status: str = "confirmed"
    source: str = "internal"
    booking_id: Optional[int] = None

    def blocks(self, start: DateTime, end: DateTime) -> bool:
        blocked_start = self.start.subtract(minutes=self.buffer_minutes)
        blocked_end = self.end.add(minutes=self.buffer_minutes)
        return start < blocked_end and end > blocked_start


class InMemoryAvailabilityOracle:
    """
    Availability oracle over per-user busy blocks.

    Blocks come from internal bookings or synced external calendars. The
    buffer of a block applies before and after it. Blocks created for a
    booking carry its id, which is what ``exclude_id`` matches.
    """

    def __init__(self, blocks: Optional[Iterable[BusyBlock]] = None):
        self._blocks: Dict[int, BusyBlock] = {}
        self._ids = itertools.count(1)
        for block in blocks or []:
            self._blocks[block.id] = block

    def add_block(
        self,
        user: User,
        start: DateTime,
        end: DateTime,
        *,
        buffer_minutes: int = 0,
        source: str = "internal",
        booking_id: Optional[int] = None,
    ) -> BusyBlock:
        start_utc, end_utc = to_utc(start), to_utc(end)
        if start_utc >= end_utc:
            raise ValueError("End time must be after start time")

        block_id = next(self._ids)
        while block_id in self._blocks:
            block_id = next(self._ids)

        block = BusyBlock(
            id=block_id,
            user_id=user.id,
            start=start_utc,
            end=end_utc,
            buffer_minutes=buffer_minutes,
            source=source,
            booking_id=booking_id,
        )
        self._blocks[block.id] = block
        return block

    def record_booking(self, booking: Booking, hosts: Sequence[User], buffer_minutes: int = 0) -> List[BusyBlock]:
        """Block the booking's interval for each host, tagged with the booking id."""
        return [
            self.add_block(
                host,
                booking.start,
                booking.end,
                buffer_minutes=buffer_minutes,
                booking_id=booking.id,
            )
            for host in hosts
        ]

    def move_booking(self, booking: Booking) -> List[BusyBlock]:
        """Move the active blocks of ``booking`` to its current interval."""
        moved: List[BusyBlock] = []
        for block in self._booking_blocks(booking.id):
            updated = replace(block, start=to_utc(booking.start), end=to_utc(booking.end))
            self._blocks[block.id] = updated
            moved.append(updated)
        return moved

    def release_booking(self, booking_id: int) -> None:
        for block in self._booking_blocks(booking_id):
            self._blocks[block.id] = replace(block, status=CANCELLED)

    def _booking_blocks(self, booking_id: Optional[int]) -> List[BusyBlock]:
        return [
            b for b in self._blocks.values()
            if booking_id is not None and b.booking_id == booking_id and b.status != CANCELLED
        ]

    def cancel_block(self, block_id: int) -> None:
        block = self._blocks.get(block_id)
        if block is None:
            raise KeyError(f"Busy block {block_id} not found")
        self._blocks[block_id] = replace(block, status=CANCELLED)

    def blocks_for(self, user: User) -> List[BusyBlock]:
        return [b for b in self._blocks.values() if b.user_id == user.id]

    def is_available(
        self,
        user: User,
        start: DateTime,
        end: DateTime,
        exclude_id: Optional[int] = None,
    ) -> bool:
        start_utc, end_utc = to_utc(start), to_utc(end)

        for block in self.blocks_for(user):
            if block.status == CANCELLED:
                continue
            if exclude_id is not None and block.booking_id == exclude_id:
                continue
            if block.blocks(start_utc, end_utc):
                logger.debug("User %s busy %s - %s (block %s)", user.id, start_utc, end_utc, block.id)
                return False

        return True
