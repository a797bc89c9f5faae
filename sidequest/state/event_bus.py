"""
Event bus for SideQuest state changes.

The journey tracker, location monitor and session manager publish here;
whatever renders or persists their snapshots subscribes.

    bus = EventBus()
    bus.on(EventType.JOURNEY_UPDATED, lambda e: redraw(e.data["stats"]))
    bus.emit(EventType.JOURNEY_UPDATED, campaign_id="c1", stats=snapshot)

Each component owns its own bus unless one is injected, so listeners never
leak across campaigns.
"""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    # Journey tracker
    JOURNEY_STARTED = "journey.started"
    JOURNEY_UPDATED = "journey.updated"
    QUEST_COMPLETED = "journey.quest_completed"
    JOURNEY_FINALIZED = "journey.finalized"
    JOURNEY_RESTORED = "journey.restored"

    # Location monitor
    LOCATION_FIX = "location.fix"
    LOCATION_ERROR = "location.error"

    # Session context manager
    CONTEXT_CREATED = "context.created"
    CONTEXT_LOADED = "context.loaded"
    ATTEMPT_STARTED = "attempt.started"
    ATTEMPT_RECORDED = "attempt.recorded"
    CONTEXT_RESET = "context.reset"


JOURNEY_EVENTS = (
    EventType.JOURNEY_STARTED,
    EventType.JOURNEY_UPDATED,
    EventType.QUEST_COMPLETED,
    EventType.JOURNEY_FINALIZED,
    EventType.JOURNEY_RESTORED,
)


@dataclass
class SessionEvent:
    """One published event. `data` holds the keyword payload given to emit()."""

    type: EventType
    data: dict = field(default_factory=dict)
    campaign_id: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"[{self.type.value}] {self.data}"


EventHandler = Callable[[SessionEvent], None]


class EventBus:
    """
    Synchronous publish/subscribe.

    Handlers run inside emit(), in the order they subscribed. A handler that
    raises is logged and skipped; the rest still run and emit() still returns.
    The last `history_limit` events are kept for inspection.
    """

    def __init__(self, history_limit: int = 100):
        self.history_limit = history_limit
        self._handlers: defaultdict[EventType, list[EventHandler]] = defaultdict(list)
        self._recent: deque[SessionEvent] = deque(maxlen=history_limit)

    def on(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe handler to event_type. Subscribing twice is a no-op."""
        handlers = self._handlers[event_type]
        if handler not in handlers:
            handlers.append(handler)

    def off(self, event_type: EventType, handler: EventHandler) -> None:
        """Unsubscribe handler; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def emit(self, event_type: EventType, campaign_id: str = "", **data) -> SessionEvent:
        """Publish an event built from the keyword payload and return it."""
        event = SessionEvent(type=event_type, data=data, campaign_id=campaign_id)
        self._recent.append(event)

        # Snapshot: a handler may unsubscribe itself while we iterate
        for handler in tuple(self._handlers.get(event_type, ())):
            try:
                handler(event)
            except Exception:
                logger.exception(f"{event_type.value} handler {handler!r} failed")

        return event

    def clear(self) -> None:
        """Drop every subscription."""
        self._handlers.clear()

    def get_history(self, event_type: EventType | None = None) -> list[SessionEvent]:
        """Recent events, oldest first, optionally of one type."""
        return [e for e in self._recent if event_type is None or e.type == event_type]

    def listener_count(self, event_type: EventType) -> int:
        return len(self._handlers.get(event_type, ()))
