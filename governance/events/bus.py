"""Async event bus for in-process pub/sub.

Lifecycle transitions and vote ingestion publish events here after their
database write has committed. Subscribers (notifications, projections)
never affect the outcome of the operation that emitted the event.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from governance.events.base import Event
from governance.events.store import EventStore

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Event)
EventHandler = Callable[[Event], None] | Callable[[Event], Awaitable[None]]


class EventBus:
    """Async event bus with optional persistence to an EventStore."""

    def __init__(self, store: EventStore | None = None):
        """Initialize event bus.

        Args:
            store: Optional EventStore; when set, every event is persisted
        """
        self._subscribers: dict[type[Event], list[EventHandler]] = {}
        self._store = store

    def subscribe(
        self,
        event_type: type[T],
        handler: Callable[[T], None] | Callable[[T], Awaitable[None]],
    ) -> None:
        """Subscribe a handler to an event type.

        Args:
            event_type: The event class to subscribe to
            handler: Function to call when event is published
        """
        self._subscribers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type.__name__}")

    async def publish(self, event: Event) -> None:
        """Persist an event (if a store is configured) and notify subscribers.

        Handler errors are logged and do not propagate. Store errors do.

        Args:
            event: The event to publish
        """
        handlers = self._subscribers.get(type(event), [])
        logger.debug(f"Publishing {event.event_type} to {len(handlers)} handler(s)")

        if self._store:
            await self._store.append(event)

        tasks = []
        for handler in handlers:
            if asyncio.iscoroutinefunction(handler):
                tasks.append(handler(event))
            else:
                tasks.append(asyncio.to_thread(handler, event))

        if tasks:
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Handler error for {event.event_type}: {result}")

    def subscriber_count(self, event_type: type[Event]) -> int:
        """Get number of subscribers for an event type."""
        return len(self._subscribers.get(event_type, []))
