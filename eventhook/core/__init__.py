"""Core modules for eventhook."""

from .bus import ALL_EVENTS, Event, EventBus
from .duration import parse_duration

__all__ = [
    "ALL_EVENTS",
    "Event",
    "EventBus",
    "parse_duration",
]
