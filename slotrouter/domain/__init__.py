"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    Assignee,
    AssigneeRole,
    AvailabilityType,
    Booking,
    BreakInterval,
    CandidateSlot,
    DaySchedule,
    DurationOption,
    Event,
    EventConfig,
    RoutingDecision,
    RoutingFallback,
    RoutingMethod,
    TimeRange,
    User,
    WeeklySchedule,
)
from .schedule import default_schedule, normalize_schedule, parse_time_of_day
from .slot_calculator import SlotCalculator, normalize_timezone, to_utc

__all__ = [
    "Assignee",
    "AssigneeRole",
    "AvailabilityType",
    "Booking",
    "BreakInterval",
    "CandidateSlot",
    "DaySchedule",
    "DurationOption",
    "Event",
    "EventConfig",
    "RoutingDecision",
    "RoutingFallback",
    "RoutingMethod",
    "TimeRange",
    "User",
    "WeeklySchedule",
    "SlotCalculator",
    "default_schedule",
    "normalize_schedule",
    "normalize_timezone",
    "parse_time_of_day",
    "to_utc",
]
