"""
Adapters layer - OpenAI routing client and in-memory collaborators.
"""

from .in_memory import BusyBlock, InMemoryAvailabilityOracle, InMemoryBookingStore
from .openai_client import OpenAIRoutingClient, parse_decision_content

__all__ = [
    "BusyBlock",
    "InMemoryAvailabilityOracle",
    "InMemoryBookingStore",
    "OpenAIRoutingClient",
    "parse_decision_content",
]
