"""
Messaging module - the in-process event bus.

Usage:
    from fireboom.messaging import Channel, Event, EventBus

    bus = EventBus()
    bus.subscribe(Channel.OPERATION, Event.DELETE, lambda path: path)
    bus.publish(Channel.OPERATION, Event.DELETE, "users/list")
"""

from __future__ import annotations

from .bus import DATA_EVENTS, BreakData, Channel, Event, EventBus

__all__ = [
    "BreakData",
    "Channel",
    "DATA_EVENTS",
    "Event",
    "EventBus",
]
