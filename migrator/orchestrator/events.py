"""
Typed event channel for migration runs

Every state change in a run is published as an Event whose kind comes from a
closed enum. Components subscribe through the channel owned by the workflow
context; delivery is synchronous and in subscription order, so a handler
always observes state after the mutation that produced the event.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple

from migrator.utils.logging_config import log_agent


class EventKind(str, Enum):
    """All events a migration run can publish."""

    # Workflow context
    PHASE_START = "phase:start"
    PHASE_COMPLETE = "phase:complete"
    PHASE_FAILED = "phase:failed"
    PHASE_SKIPPED = "phase:skipped"
    PROGRESS_UPDATE = "progress:update"
    ERROR_ADD = "error:add"
    WARNING_ADD = "warning:add"
    RESULT_RECORD = "result:record"
    PROJECT_UPDATED = "project:updated"
    FILE_STATUS = "file:status"
    AI_CALL_RECORDED = "ai:call-recorded"
    STATS_UPDATED = "stats:updated"

    # Run lifecycle
    RUN_START = "run:start"
    RUN_COMPLETE = "run:complete"
    RUN_FAILED = "run:failed"
    RUN_STATE_CHANGED = "run:state"
    RUN_PAUSED = "run:paused"
    RUN_RESUMED = "run:resumed"

    # Tools
    TOOL_REGISTERED = "tool:registered"
    TOOL_REMOVED = "tool:removed"
    TOOL_EXECUTED = "tool:executed"
    TOOL_ERROR = "tool:error"

    # AI service
    AI_CALL = "ai:call"
    AI_SUCCESS = "ai:success"
    AI_ERROR = "ai:error"

    # Components
    COMPONENT_STATUS = "component:status"
    COMPONENT_PROGRESS = "component:progress"


@dataclass
class Event:
    """A published event: its kind, payload and publish time."""

    kind: EventKind
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


EventHandler = Callable[[Event], None]
Unsubscribe = Callable[[], None]


class EventChannel:
    """
    In-process synchronous event channel.

    A failing handler is logged and skipped; it never stops delivery to the
    remaining handlers and never propagates to the publisher.
    """

    def __init__(self, name: str = "context"):
        self.name = name
        self._subscribers: List[Tuple[object, EventHandler]] = []
        self._all = object()

    def subscribe(self, kind: EventKind, handler: EventHandler) -> Unsubscribe:
        """
        Subscribe a handler to one event kind.

        Args:
            kind: Event kind to listen for
            handler: Callable receiving the Event

        Returns:
            Callable that removes this subscription
        """
        kind = EventKind(kind)
        return self._add((kind, handler))

    def subscribe_all(self, handler: EventHandler) -> Unsubscribe:
        """Subscribe a handler to every event kind."""
        return self._add((self._all, handler))

    def _add(self, entry: Tuple[object, EventHandler]) -> Unsubscribe:
        self._subscribers.append(entry)

        def unsubscribe():
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, kind: EventKind, **payload) -> Event:
        """
        Publish an event to every matching subscriber.

        Args:
            kind: Event kind
            **payload: Event payload

        Returns:
            The published Event
        """
        event = Event(kind=EventKind(kind), payload=payload)
        # Snapshot so handlers may unsubscribe during delivery
        for key, handler in list(self._subscribers):
            if key is not self._all and key != event.kind:
                continue
            try:
                handler(event)
            except Exception as e:
                log_agent(
                    f"[EVENTS:{self.name}] Handler {getattr(handler, '__name__', handler)!r} "
                    f"failed on {event.kind.value}: {e}",
                    "ERROR",
                )
        return event

    def subscriber_count(self, kind: EventKind = None) -> int:
        if kind is None:
            return len(self._subscribers)
        kind = EventKind(kind)
        return sum(1 for key, _ in self._subscribers if key == kind or key is self._all)

    def clear(self):
        self._subscribers.clear()
