"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_orchestrator import BookingOrchestrator, BookingOutcome
from .conflict_validator import SlotConflictValidator
from .protocols import (
    AIDecisionClientProtocol,
    AvailabilityOracleProtocol,
    AvailabilitySyncProtocol,
    BookingRepositoryProtocol,
)
from .routing import RoutingEngine
from .slot_finder import SlotFinderService, parse_requested_date

__all__ = [
    "AIDecisionClientProtocol",
    "AvailabilityOracleProtocol",
    "AvailabilitySyncProtocol",
    "BookingOrchestrator",
    "BookingOutcome",
    "BookingRepositoryProtocol",
    "RoutingEngine",
    "SlotConflictValidator",
    "SlotFinderService",
    "parse_requested_date",
]
