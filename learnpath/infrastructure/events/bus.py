# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory event bus for progression side effects.

Publishers emit events by dotted topic; subscribers register for an exact
topic or an fnmatch-style pattern ("progression.*"). Handlers run
concurrently and a failing handler never affects the publisher or the
other handlers: the engine has already committed by the time it
publishes.

Example:
    bus = get_event_bus()
    bus.subscribe(EventPatterns.ALL_PROGRESSION, on_progress)
    await bus.publish(EventTypes.Progression.LESSON_COMPLETED, {"node_id": "n-1"})
"""

import asyncio
import fnmatch
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable
from uuid import uuid4

from learnpath.utils.datetime import utc_now

logger = logging.getLogger(__name__)

EventHandler = Callable[["EventData"], Awaitable[None]]


def _is_pattern(topic: str) -> bool:
    return "*" in topic or "?" in topic


@dataclass
class EventData:
    """Envelope handed to subscribers.

    Attributes:
        event_type: Dotted topic.
        payload: Event payload.
        event_id: Unique event identifier.
        timestamp: Publication time (UTC).
    """

    event_type: str
    payload: dict[str, Any]
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }


class EventBus:
    """In-memory async pub/sub with wildcard subscriptions.

    Designed for single-process async use; cross-process fan-out belongs
    to whatever sink subscribes here.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._pattern_handlers: dict[str, list[EventHandler]] = {}
        self._event_count = 0

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe a handler to a topic or pattern.

        Args:
            event_type: Topic or pattern with wildcards.
            handler: Async callable receiving the EventData.
        """
        registry = self._pattern_handlers if _is_pattern(event_type) else self._handlers
        registry.setdefault(event_type, []).append(handler)
        logger.debug("Subscribed handler to: %s", event_type)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """Remove a handler.

        Args:
            event_type: Topic or pattern used at subscription time.
            handler: The handler to remove.

        Returns:
            True if the handler was found and removed.
        """
        registry = self._pattern_handlers if _is_pattern(event_type) else self._handlers
        handlers = registry.get(event_type)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del registry[event_type]
        return True

    def _matching_handlers(self, event_type: str) -> list[EventHandler]:
        matched = list(self._handlers.get(event_type, []))
        for pattern, handlers in self._pattern_handlers.items():
            if fnmatch.fnmatch(event_type, pattern):
                matched.extend(handlers)
        return matched

    async def publish(self, event_type: str, payload: dict[str, Any]) -> EventData:
        """Publish an event to every matching subscriber.

        Args:
            event_type: Dotted topic.
            payload: Event payload.

        Returns:
            The published EventData.
        """
        event = EventData(event_type=event_type, payload=payload)
        self._event_count += 1

        handlers = self._matching_handlers(event_type)
        if not handlers:
            logger.debug("No handlers for event: %s", event_type)
            return event

        async def safe_call(handler: EventHandler) -> None:
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "Handler error for event %s: %s",
                    event_type,
                    str(e),
                    exc_info=True,
                )

        await asyncio.gather(*(safe_call(h) for h in handlers))
        return event

    def clear(self) -> None:
        """Remove all subscriptions."""
        self._handlers.clear()
        self._pattern_handlers.clear()

    def get_stats(self) -> dict[str, Any]:
        """Get subscription and publication counts."""
        return {
            "exact_subscriptions": len(self._handlers),
            "pattern_subscriptions": len(self._pattern_handlers),
            "total_handlers": sum(len(h) for h in self._handlers.values())
            + sum(len(h) for h in self._pattern_handlers.values()),
            "events_published": self._event_count,
        }


_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the process-wide event bus."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Drop the process-wide event bus (tests)."""
    global _event_bus
    if _event_bus is not None:
        _event_bus.clear()
    _event_bus = None
