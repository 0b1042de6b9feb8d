"""
Structured game event logging.

The engine never writes to a global logger directly from its rules code;
an EventSink is passed into the TurnManager and receives one event per
state change or rejection.
"""

import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class EventCategory(Enum):
    ACTION = "ACTION"
    COMBAT = "COMBAT"
    DEPLOYMENT = "DEPLOYMENT"
    MOVEMENT = "MOVEMENT"
    STATE_CHANGE = "STATE_CHANGE"
    ERROR = "ERROR"
    VALIDATION = "VALIDATION"
    AI = "AI"
    DEBUG = "DEBUG"


@dataclass
class GameEvent:
    """A single logged event."""
    category: EventCategory
    message: str
    payload: Optional[dict] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "category": self.category.value,
            "message": self.message,
            "payload": self.payload,
        }


class EventSink(ABC):
    """Receiver for game events."""

    @abstractmethod
    def emit(self, category: EventCategory, message: str, payload: Optional[dict] = None):
        """Record one event."""
        pass


class LoggingEventSink(EventSink):
    """Forwards events to the stdlib logging system."""

    LEVELS = {
        EventCategory.ERROR: logging.ERROR,
        EventCategory.VALIDATION: logging.WARNING,
        EventCategory.DEBUG: logging.DEBUG,
    }

    def __init__(self, target: Optional[logging.Logger] = None):
        self.logger = target or logger

    def emit(self, category: EventCategory, message: str, payload: Optional[dict] = None):
        level = self.LEVELS.get(category, logging.INFO)
        if payload:
            self.logger.log(level, f"[{category.value}] {message} {payload}")
        else:
            self.logger.log(level, f"[{category.value}] {message}")


class MemoryEventSink(EventSink):
    """Keeps the most recent events in memory, optionally forwarding them."""

    MAX_EVENTS = 1000

    def __init__(self, forward_to: Optional[EventSink] = None, max_events: int = MAX_EVENTS):
        self.events: deque[GameEvent] = deque(maxlen=max_events)
        self.forward_to = forward_to

    def emit(self, category: EventCategory, message: str, payload: Optional[dict] = None):
        self.events.append(GameEvent(category=category, message=message, payload=payload))
        if self.forward_to:
            self.forward_to.emit(category, message, payload)

    def recent(self, count: int = 50) -> list[GameEvent]:
        """Get the last `count` events, oldest first."""
        if count <= 0:
            return []
        return list(self.events)[-count:]

    def by_category(self, category: EventCategory) -> list[GameEvent]:
        return [e for e in self.events if e.category == category]

    def clear(self):
        self.events.clear()

