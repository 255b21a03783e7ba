"""
Domain-specific exception hierarchy for the scheduling engine.
"""


class SchedulingError(Exception):
    """Base class for all application-level errors."""


class InvalidRequestError(SchedulingError):
    """Raised when a request carries an invalid time range, date or timezone."""


class SlotUnavailableError(SchedulingError):
    """Raised when the requested slot fails the commit-time availability check."""


class NoHostAvailableError(SchedulingError):
    """Raised when routing finds no host free at the requested time."""


class AIRoutingError(SchedulingError):
    """Raised by the AI decision client; always recovered by the routing engine."""


class BookingNotFoundError(SchedulingError):
    """Raised when a booking id cannot be resolved."""
