"""
Weekly schedule normalization.

Raw schedule payloads are weekday-keyed mappings such as::

    {
        "monday": {
            "enabled": True,
            "start_time": "09:00:00",
            "end_time": "17:00:00",
            "breaks": [{"start_time": "12:00", "end_time": "13:00"}],
        },
    }

Normalization never raises on malformed day data. Each bad field falls back
to its default on its own, so one broken value does not discard the rest of
the update.
"""

import logging
from datetime import time
from typing import Any, Dict, List, Mapping, Optional

import pendulum

from .models import WEEKDAY_NAMES, BreakInterval, DaySchedule, WeeklySchedule

logger = logging.getLogger(__name__)

DEFAULT_START = time(9, 0)
DEFAULT_END = time(17, 0)

_TIME_FORMATS = ("HH:mm:ss", "HH:mm", "H:mm:ss", "H:mm", "h:mm A", "h:mmA", "h A", "hA")
_TRUE_STRINGS = {"1", "true", "yes", "on"}


def default_day(weekday: int) -> DaySchedule:
    """Mon-Fri enabled, weekends disabled, 09:00-17:00 without breaks."""
    return DaySchedule(enabled=weekday < 5, start=DEFAULT_START, end=DEFAULT_END)


def default_schedule() -> WeeklySchedule:
    return WeeklySchedule(days=tuple(default_day(i) for i in range(7)))


def parse_time_of_day(value: Any) -> Optional[time]:
    """
    Parse a time of day from a ``time``, an ``HH:MM[:SS]`` or a ``9:30 am`` string.

    Returns None when the value cannot be interpreted.
    """
    if isinstance(value, time):
        return value.replace(microsecond=0, tzinfo=None)

    if not isinstance(value, str) or not value.strip():
        return None

    # Upper-cased so "9:30 am" matches the meridiem token
    text = value.strip().upper()
    for fmt in _TIME_FORMATS:
        try:
            parsed = pendulum.from_format(text, fmt)
        except ValueError:
            continue
        return time(parsed.hour, parsed.minute, parsed.second)

    return None


def _coerce_enabled(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _normalize_breaks(raw_breaks: Any, day_start: time, day_end: time) -> List[BreakInterval]:
    breaks: List[BreakInterval] = []

    for raw_break in raw_breaks:
        if not isinstance(raw_break, Mapping):
            continue

        start = parse_time_of_day(raw_break.get("start_time"))
        end = parse_time_of_day(raw_break.get("end_time"))

        if start is None or end is None:
            logger.debug("Dropping break with unparsable bounds: %r", raw_break)
            continue

        if start >= end:
            logger.debug("Dropping break that does not end after it starts: %r", raw_break)
            continue

        if start < day_start or end > day_end:
            logger.debug("Dropping break outside the working day: %r", raw_break)
            continue

        breaks.append(BreakInterval(start=start, end=end))

    return breaks


def _normalize_day(weekday: int, day_data: Mapping[str, Any]) -> DaySchedule:
    default = default_day(weekday)

    enabled = default.enabled
    if day_data.get("enabled") is not None:
        enabled = _coerce_enabled(day_data["enabled"])

    start = parse_time_of_day(day_data.get("start_time")) or default.start
    end = parse_time_of_day(day_data.get("end_time")) or default.end

    if start >= end:
        logger.debug(
            "Resetting %s to %s-%s: start %s is not before end %s",
            WEEKDAY_NAMES[weekday], DEFAULT_START, DEFAULT_END, start, end,
        )
        start, end = DEFAULT_START, DEFAULT_END

    breaks: List[BreakInterval] = []
    raw_breaks = day_data.get("breaks")
    if raw_breaks and isinstance(raw_breaks, list):
        breaks = _normalize_breaks(raw_breaks, start, end)

    return DaySchedule(enabled=enabled, start=start, end=end, breaks=tuple(breaks))


def normalize_schedule(raw: Optional[Mapping[str, Any]]) -> WeeklySchedule:
    """
    Build a fully populated ``WeeklySchedule`` from a raw weekday mapping.

    Unknown weekday keys and non-mapping day payloads are ignored, missing days
    take their defaults. An empty or missing payload yields the default schedule.
    """
    if isinstance(raw, WeeklySchedule):
        return raw

    days: Dict[int, DaySchedule] = {i: default_day(i) for i in range(7)}

    if not raw:
        return WeeklySchedule(days=tuple(days[i] for i in range(7)))

    for key, day_data in raw.items():
        name = str(key).strip().lower()
        if name not in WEEKDAY_NAMES:
            logger.debug("Ignoring unknown weekday key %r", key)
            continue
        if not isinstance(day_data, Mapping):
            continue

        weekday = WEEKDAY_NAMES.index(name)
        days[weekday] = _normalize_day(weekday, day_data)

    return WeeklySchedule(days=tuple(days[i] for i in range(7)))
