import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from loguru import logger
from pydantic import BaseModel, Field


class BuddyEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    event_type: str
    cycle_id: str | None = None
    payload: Dict[str, Any]


class EventBus:
    """A lightweight, synchronous event bus for observing the agent loop."""

    def __init__(self):
        self._subscribers: List[Callable[[BuddyEvent], None]] = []

    def subscribe(self, callback: Callable[[BuddyEvent], None]) -> None:
        """Register a callback to be executed when an event is emitted."""
        self._subscribers.append(callback)

    def emit(self, event_type: str, payload: Dict[str, Any], cycle_id: str | None = None) -> BuddyEvent:
        """Construct and broadcast a BuddyEvent to all subscribers."""
        event = BuddyEvent(event_type=event_type, cycle_id=cycle_id, payload=payload)

        for subscriber in self._subscribers:
            try:
                subscriber(event)
            except Exception as e:
                # A broken observer must never stop the loop
                logger.warning(f"[EVENTS] Subscriber failed on {event_type}: {e}")
        return event
