"""
Domain models for schedules, events, bookings and routing decisions.
"""

from dataclasses import dataclass, field
from datetime import time
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pendulum import DateTime


WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

SLOT_INCREMENT_MINUTES = 15
DEFAULT_DURATION_MINUTES = 30


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Half-open overlap test."""
        return self.start < other.end and self.end > other.start

    def contains(self, other: "TimeRange") -> bool:
        """Check if ``other`` lies completely inside this range."""
        return self.start <= other.start and other.end <= self.end

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        start = max(self.start, other.start)
        end = min(self.end, other.end)

        return TimeRange(start=start, end=end)

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class BreakInterval:
    """A pause inside a working day, expressed as times of day."""
    start: time
    end: time

    def crosses_midnight(self) -> bool:
        return self.start > self.end


@dataclass(frozen=True)
class DaySchedule:
    """
    Availability template for one weekday.

    A window whose start is later than its end runs into the following
    calendar day (e.g. 22:00 - 06:00).
    """
    enabled: bool
    start: time
    end: time
    breaks: Tuple[BreakInterval, ...] = ()

    def crosses_midnight(self) -> bool:
        return self.start > self.end

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "start_time": self.start.strftime("%H:%M:%S"),
            "end_time": self.end.strftime("%H:%M:%S"),
            "breaks": [
                {
                    "start_time": b.start.strftime("%H:%M:%S"),
                    "end_time": b.end.strftime("%H:%M:%S"),
                }
                for b in self.breaks
            ],
        }


@dataclass(frozen=True)
class WeeklySchedule:
    """
    Seven day records indexed Monday=0 .. Sunday=6.
    """
    days: Tuple[DaySchedule, ...]

    def __post_init__(self):
        if len(self.days) != 7:
            raise ValueError(f"A weekly schedule needs exactly 7 days, got {len(self.days)}")

    def for_weekday(self, weekday: int) -> DaySchedule:
        """Return the day record for a weekday number (0=Monday, 6=Sunday)."""
        return self.days[weekday]

    def enabled_weekdays(self) -> List[int]:
        return [idx for idx, day in enumerate(self.days) if day.enabled]

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Weekday-name keyed mapping with ``HH:MM:SS`` strings."""
        return {name: day.to_dict() for name, day in zip(WEEKDAY_NAMES, self.days)}


class AvailabilityType(str, Enum):
    ONE_HOST_AVAILABLE = "one_host_available"
    ALL_HOSTS_AVAILABLE = "all_hosts_available"


class RoutingFallback(str, Enum):
    ROUND_ROBIN = "round_robin"
    LEAST_BUSY = "least_busy"
    RANDOM = "random"


class RoutingMethod(str, Enum):
    DISABLED = "disabled"
    CREATOR_FALLBACK = "creator_fallback"
    SINGLE_AVAILABLE = "single_available"
    AI_ROUTING = "ai_routing"
    LEAST_BUSY_FALLBACK = "least_busy_fallback"
    ROUND_ROBIN = "round_robin"
    RANDOM = "random"


class AssigneeRole(str, Enum):
    CREATOR = "creator"
    ADMIN = "admin"
    HOST = "host"
    MEMBER = "member"


# Every assignee role is allowed to host.
HOST_ROLES = frozenset(AssigneeRole)


@dataclass(frozen=True)
class User:
    """A person who can own events or host bookings."""
    id: int
    name: str
    email: str = ""


@dataclass(frozen=True)
class Assignee:
    """A user attached to an event with a role."""
    user: User
    role: AssigneeRole = AssigneeRole.HOST


@dataclass(frozen=True)
class DurationOption:
    minutes: int
    label: str = ""


@dataclass
class EventConfig:
    """
    Booking rules of an event. Read-only to the engine.
    """
    durations: List[DurationOption] = field(default_factory=list)
    buffer_minutes: int = 0
    advance_notice_minutes: int = 0
    availability_type: AvailabilityType = AvailabilityType.ONE_HOST_AVAILABLE
    routing_enabled: bool = False
    routing_instructions: Optional[str] = None
    routing_fallback: RoutingFallback = RoutingFallback.ROUND_ROBIN

    def default_duration_minutes(self) -> int:
        """First configured duration, or 30 minutes when none is set."""
        if self.durations:
            return self.durations[0].minutes
        return DEFAULT_DURATION_MINUTES


@dataclass
class Event:
    """
    A bookable event: its weekly schedule, rules and host assignments.
    """
    id: int
    name: str
    schedule: WeeklySchedule
    config: EventConfig = field(default_factory=EventConfig)
    creator: Optional[User] = None
    assignees: List[Assignee] = field(default_factory=list)

    def host_pool(self) -> List[User]:
        """Users of all assignees whose role may host, in assignment order."""
        return [a.user for a in self.assignees if a.role in HOST_ROLES]

    def hosts_or_creator(self) -> List[User]:
        """Host pool, or the creator alone when nobody is assigned."""
        hosts = self.host_pool()
        if not hosts and self.creator is not None:
            return [self.creator]
        return hosts


@dataclass
class Booking:
    """
    A reserved interval for an event. Owned by the persistence layer;
    the engine only writes ``assigned_to``.
    """
    event_id: int
    start: DateTime
    end: DateTime
    id: Optional[int] = None
    assigned_to: Optional[User] = None
    cancelled: bool = False
    status: str = "confirmed"
    created: Optional[DateTime] = None
    form_data: Dict[str, Any] = field(default_factory=dict)

    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    def is_active(self) -> bool:
        return not self.cancelled


@dataclass(frozen=True)
class CandidateSlot:
    """
    A bookable interval offered to a client, in UTC and in the client's timezone.
    """
    start_utc: DateTime
    end_utc: DateTime
    start_client: DateTime
    end_client: DateTime
    timezone: str

    def duration_minutes(self) -> int:
        return int((self.end_utc - self.start_utc).total_seconds() / 60)

    def to_dict(self) -> Dict[str, str]:
        return {
            "start": self.start_utc.to_datetime_string(),
            "end": self.end_utc.to_datetime_string(),
            "start_client": self.start_client.to_datetime_string(),
            "end_client": self.end_client.to_datetime_string(),
            "timezone": self.timezone,
        }

    def format_display(self) -> str:
        """Format: Monday, 2024-11-25 | 09:00 - 09:30 (Europe/Berlin)"""
        start = self.start_client
        weekday = WEEKDAY_NAMES[start.weekday()].capitalize()
        return (
            f"{weekday}, {start.format('YYYY-MM-DD')} | "
            f"{start.format('HH:mm')} - {self.end_client.format('HH:mm')} ({self.timezone})"
        )


@dataclass(frozen=True)
class RoutingDecision:
    """Outcome of routing one booking."""
    host: Optional[User]
    method: RoutingMethod
    reason: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None

    def to_result(self) -> Dict[str, Any]:
        return {
            "assigned_to": self.host.id if self.host else None,
            "assigned_name": self.host.name if self.host else None,
            "routing_method": self.method.value,
        }
