"""
Event system for the shared table.
"""

from sharedtable.events.emitter import (
    EventBus,
    EventEmitter,
    EventPriority,
    TableEventType,
)

__all__ = ["EventEmitter", "EventBus", "EventPriority", "TableEventType"]
