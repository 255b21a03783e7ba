"""
Core business logic for generating bookable slots from a weekly schedule.

This is pure domain logic without any external dependencies (no database,
no API calls). Existing bookings are handed in by the service layer.
"""

import logging
from datetime import date, datetime, time
from typing import Iterable, List, Optional, Sequence, Tuple

import pendulum
from pendulum import DateTime

from .exceptions import InvalidRequestError
from .models import SLOT_INCREMENT_MINUTES, CandidateSlot, TimeRange, WeeklySchedule

logger = logging.getLogger(__name__)

UTC = "UTC"


def normalize_timezone(name: Optional[str]) -> str:
    """Return ``name`` if it is a known IANA zone, otherwise ``"UTC"``."""
    if not name:
        return UTC

    try:
        pendulum.timezone(name)
    except (ValueError, KeyError):
        logger.debug("Unknown timezone %r, falling back to UTC", name)
        return UTC

    return name


def to_utc(value: datetime) -> DateTime:
    """Convert any datetime to a UTC pendulum DateTime. Naive values are taken as UTC."""
    return pendulum.instance(value).in_timezone(UTC)


class SlotCalculator:
    """
    Generates candidate slots for one client-local date.

    Algorithm:
    1. Scan the three UTC days that can overlap the requested client day
    2. Build the schedule window of each enabled UTC day (midnight-crossing aware)
    3. Walk the window on a 15-minute grid
    4. Drop candidates hitting a break or an existing booking plus buffer
    5. Keep candidates whose client-local start falls on the requested date
    6. Drop candidates inside the advance notice period
    """

    def __init__(self, schedule: WeeklySchedule):
        self.schedule = schedule

    def generate_slots(
        self,
        *,
        requested_date: date,
        duration_minutes: int,
        client_timezone: Optional[str] = None,
        buffer_minutes: Optional[int] = 0,
        bookings: Iterable[TimeRange] = (),
        advance_notice_minutes: Optional[int] = 0,
        now: Optional[DateTime] = None,
    ) -> List[CandidateSlot]:
        """
        Find all candidate slots starting on ``requested_date`` in the client timezone.

        Args:
            requested_date: Client-local calendar date
            duration_minutes: Length of each slot
            client_timezone: IANA zone of the client, invalid values mean UTC
            buffer_minutes: Gap required after an existing booking ends
            bookings: Existing non-cancelled bookings around the scanned days
            advance_notice_minutes: Minimum lead time before a slot may start
            now: Reference time for the advance notice filter

        Returns:
            Slots in scan order
        """
        if duration_minutes is None or duration_minutes <= 0:
            raise InvalidRequestError(f"Duration must be positive, got {duration_minutes}")

        tz = normalize_timezone(client_timezone)
        buffer_minutes = buffer_minutes or 0
        advance_notice_minutes = advance_notice_minutes or 0
        target = date(requested_date.year, requested_date.month, requested_date.day)
        booked = list(bookings)

        slots: List[CandidateSlot] = []

        for utc_day in self.scan_days(target, tz):
            window = self.schedule_window(utc_day)
            if window is None:
                logger.debug("Skipping %s: weekday disabled or empty", utc_day.to_date_string())
                continue

            span, breaks = window
            busy = self._busy_ranges(
                booked,
                utc_day,
                crosses_midnight=self.schedule.for_weekday(utc_day.weekday()).crosses_midnight(),
                buffer_minutes=buffer_minutes,
            )

            slots.extend(
                self._walk_window(
                    span=span,
                    breaks=breaks,
                    busy=busy,
                    duration_minutes=duration_minutes,
                    tz=tz,
                    target=target,
                )
            )

        reference = (now or pendulum.now(tz)).in_timezone(tz)
        earliest = reference.add(minutes=advance_notice_minutes)
        result = [slot for slot in slots if slot.start_client >= earliest]

        logger.debug(
            "Generated %d slot(s) for %s in %s (%d before advance notice filter)",
            len(result), target.isoformat(), tz, len(slots),
        )
        return result

    def scan_days(self, requested_date: date, client_timezone: str) -> List[DateTime]:
        """
        UTC days that may contribute slots to the requested client day: the UTC
        day containing client midnight, plus the day before and the day after.
        """
        client_midnight = pendulum.datetime(
            requested_date.year,
            requested_date.month,
            requested_date.day,
            tz=client_timezone,
        )
        first = client_midnight.in_timezone(UTC).start_of("day").subtract(days=1)
        return [first.add(days=offset) for offset in range(3)]

    def schedule_window(self, utc_day: DateTime) -> Optional[Tuple[TimeRange, List[TimeRange]]]:
        """
        Absolute schedule window and breaks for one UTC calendar day.

        Returns None if the weekday is disabled or the window is empty.
        """
        day = self.schedule.for_weekday(utc_day.weekday())
        if not day.enabled:
            return None

        start = self._at(utc_day, day.start)
        end = self._at(utc_day, day.end)
        if day.crosses_midnight():
            end = end.add(days=1)

        if start >= end:
            return None

        breaks: List[TimeRange] = []
        for interval in day.breaks:
            break_start = self._at(utc_day, interval.start)
            break_end = self._at(utc_day, interval.end)
            if interval.crosses_midnight():
                break_end = break_end.add(days=1)
            if break_start < break_end:
                breaks.append(TimeRange(start=break_start, end=break_end))

        return TimeRange(start=start, end=end), breaks

    def fits_schedule(self, start: datetime, end: datetime) -> bool:
        """
        Check that one fixed interval lies inside a schedule window and
        overlaps none of its breaks.

        The window may belong to the interval's own UTC day or, for windows
        crossing midnight, to the previous day.
        """
        requested = TimeRange(start=to_utc(start), end=to_utc(end))
        own_day = requested.start.start_of("day")

        for utc_day in (own_day.subtract(days=1), own_day):
            window = self.schedule_window(utc_day)
            if window is None:
                continue

            span, breaks = window
            if not span.contains(requested):
                continue
            if any(b.overlaps(requested) for b in breaks):
                continue
            return True

        return False

    @staticmethod
    def _at(utc_day: DateTime, moment: time) -> DateTime:
        return utc_day.set(
            hour=moment.hour,
            minute=moment.minute,
            second=moment.second,
            microsecond=0,
        )

    @staticmethod
    def _busy_ranges(
        bookings: Sequence[TimeRange],
        utc_day: DateTime,
        *,
        crosses_midnight: bool,
        buffer_minutes: int,
    ) -> List[Tuple[DateTime, DateTime]]:
        """
        Busy periods from bookings starting on ``utc_day`` (and the next day
        when the schedule crosses midnight). The buffer extends each booking
        after its end only.
        """
        lookup_end = utc_day.add(days=2 if crosses_midnight else 1)
        busy: List[Tuple[DateTime, DateTime]] = []

        for booking in bookings:
            start = to_utc(booking.start)
            if utc_day <= start < lookup_end:
                busy.append((start, to_utc(booking.end).add(minutes=buffer_minutes)))

        return busy

    @staticmethod
    def _walk_window(
        *,
        span: TimeRange,
        breaks: Sequence[TimeRange],
        busy: Sequence[Tuple[DateTime, DateTime]],
        duration_minutes: int,
        tz: str,
        target: date,
    ) -> List[CandidateSlot]:
        slots: List[CandidateSlot] = []
        slot_start = span.start

        while slot_start < span.end:
            slot_end = slot_start.add(minutes=duration_minutes)
            if slot_end > span.end:
                break

            blocked = any(slot_start < b.end and slot_end > b.start for b in breaks)
            if not blocked:
                blocked = any(
                    slot_start < busy_until and slot_end > busy_start
                    for busy_start, busy_until in busy
                )

            if not blocked:
                start_client = slot_start.in_timezone(tz)
                # Slots are listed under the client day they start on
                if start_client.date() == target:
                    slots.append(
                        CandidateSlot(
                            start_utc=slot_start,
                            end_utc=slot_end,
                            start_client=start_client,
                            end_client=slot_end.in_timezone(tz),
                            timezone=tz,
                        )
                    )

            slot_start = slot_start.add(minutes=SLOT_INCREMENT_MINUTES)

        return slots
