"""
Async event bus between the conversation controller and rendering surfaces.
Uses asyncio.Queue with typed events and pub/sub pattern.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Callable, Coroutine, FrozenSet, List, Tuple

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Event Types
# ---------------------------------------------------------------------------

class EventType(Enum):
    """All event types flowing through the system."""
    TURN_APPENDED = auto()       # A user, assistant or error turn was added
    REVEAL_TICK = auto()         # One more line of an assistant turn is visible
    REVEAL_DONE = auto()         # Reveal finished or was preempted
    STATUS_CHANGED = auto()      # in-flight flag or draft prompt changed
    COPIED_CHANGED = auto()      # Transient "copied" flag toggled
    CONVERSATION_RESET = auto()  # Conversation and animation state cleared


@dataclass
class Event:
    """Base event structure."""
    type: EventType
    data: Any
    timestamp: datetime = field(default_factory=datetime.now)
    source: str = ""
    seq: int = 0  # Publisher's state version after this change; 0 = unversioned


# ---------------------------------------------------------------------------
# Convenience Event Constructors
# ---------------------------------------------------------------------------

def turn_event(turn) -> Event:
    """Create a turn-appended event."""
    return Event(
        type=EventType.TURN_APPENDED,
        data={"turn": turn},
        source="controller"
    )


def reveal_event(turn_id: str, visible: int, total: int, done: bool = False) -> Event:
    """Create a reveal progress event."""
    return Event(
        type=EventType.REVEAL_DONE if done else EventType.REVEAL_TICK,
        data={"turn_id": turn_id, "visible": visible, "total": total},
        source="animation"
    )


def status_event(in_flight: bool, prompt: str) -> Event:
    """Create a controller status event."""
    return Event(
        type=EventType.STATUS_CHANGED,
        data={"in_flight": in_flight, "prompt": prompt},
        source="controller"
    )


def copied_event(copied: bool) -> Event:
    """Create a copied-flag event."""
    return Event(
        type=EventType.COPIED_CHANGED,
        data={"copied": copied},
        source="controller"
    )


def reset_event() -> Event:
    """Create a conversation reset event."""
    return Event(
        type=EventType.CONVERSATION_RESET,
        data={},
        source="controller"
    )


# ---------------------------------------------------------------------------
# Event Bus
# ---------------------------------------------------------------------------

# Type alias for subscriber callbacks
Subscriber = Callable[[Event], Coroutine[Any, Any, None]]


class EventBus:
    """
    Async publish/subscribe event bus.

    The controller publishes state changes; rendering surfaces receive them
    asynchronously. Each subscriber gets its own queue to avoid blocking, so
    a subscriber sees its events in publish order.
    """

    def __init__(self, maxsize: int = 1024):
        self._subscribers: List[Tuple[asyncio.Queue, Subscriber, FrozenSet[EventType]]] = []
        self._maxsize = maxsize
        self._running = False
        self._tasks: List[asyncio.Task] = []

    def subscribe(self, handler: Subscriber, *event_types: EventType) -> None:
        """
        Register an async handler for the given event types.
        With no types the handler receives every event.
        """
        q: asyncio.Queue = asyncio.Queue(maxsize=self._maxsize)
        self._subscribers.append((q, handler, frozenset(event_types)))
        logger.debug(
            "Subscriber registered for %s",
            ", ".join(t.name for t in event_types) or "*",
        )

    async def publish(self, event: Event) -> None:
        """Publish an event to all subscribers of its type."""
        for q, _, types in self._subscribers:
            if types and event.type not in types:
                continue
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    "Queue full for %s subscriber, dropping event", event.type.name
                )

    async def start(self) -> None:
        """Start dispatcher loops for all registered subscribers."""
        self._running = True
        for q, handler, types in self._subscribers:
            name = ",".join(t.name for t in types) or "*"
            task = asyncio.create_task(self._dispatch_loop(q, handler, name))
            self._tasks.append(task)
        logger.info("EventBus started with %d dispatch loops", len(self._tasks))

    async def stop(self) -> None:
        """Stop all dispatcher loops."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("EventBus stopped")

    async def _dispatch_loop(
        self, queue: asyncio.Queue, handler: Subscriber, name: str
    ) -> None:
        """Continuously dispatch events from a queue to its handler."""
        while self._running:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=1.0)
                try:
                    await handler(event)
                except Exception:
                    logger.exception("Error in handler for %s", name)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
