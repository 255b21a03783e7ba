"""
slotrouter - bookable slot generation and host routing for scheduled meetings.
"""

__version__ = "0.1.0"
