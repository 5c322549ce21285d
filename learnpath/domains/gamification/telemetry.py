# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Capped telemetry log of progression side effects.

The log keeps the most recent events, newest first, and forwards each one
to the event bus under its dotted topic. It is an observability aid, not
a source of truth: nothing is replayed from it.
"""

import logging
from collections import deque
from typing import Any

from learnpath.domains.gamification.models import TelemetryEvent, TelemetryEventType
from learnpath.infrastructure.events import EventBus, EventRegistry, get_event_bus

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 100


class TelemetryLog:
    """Bounded, newest-first event log.

    Attributes:
        max_events: Capacity of the log.
    """

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS, bus: EventBus | None = None) -> None:
        self.max_events = max_events
        self._events: deque[TelemetryEvent] = deque(maxlen=max_events)
        self._bus = bus

    def __len__(self) -> int:
        return len(self._events)

    def record(
        self,
        event_type: TelemetryEventType,
        student_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> TelemetryEvent:
        """Append an event, evicting the oldest when full."""
        event = TelemetryEvent(type=event_type, student_id=student_id, metadata=metadata or {})
        self._events.appendleft(event)
        logger.debug("Telemetry %s for %s: %s", event_type.value, student_id, event.metadata)
        return event

    async def publish(self, event: TelemetryEvent) -> None:
        """Forward a recorded event to the event bus."""
        bus = self._bus if self._bus is not None else get_event_bus()
        await bus.publish(
            EventRegistry.topic_for(event.type.value),
            {
                "event_id": event.event_id,
                "student_id": event.student_id,
                "timestamp": event.timestamp.isoformat(),
                **event.metadata,
            },
        )

    async def emit(
        self,
        event_type: TelemetryEventType,
        student_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> TelemetryEvent:
        """Record an event and publish it."""
        event = self.record(event_type, student_id, metadata)
        await self.publish(event)
        return event

    def recent(
        self,
        limit: int | None = None,
        student_id: str | None = None,
    ) -> list[TelemetryEvent]:
        """Get events newest first, optionally for one learner."""
        events = [e for e in self._events if student_id is None or e.student_id == student_id]
        return events if limit is None else events[:limit]

    def clear(self) -> None:
        self._events.clear()


_telemetry_log: TelemetryLog | None = None


def get_telemetry_log() -> TelemetryLog:
    """Get the process-wide telemetry log sized from settings."""
    global _telemetry_log
    if _telemetry_log is None:
        from learnpath.core.config.settings import get_settings

        _telemetry_log = TelemetryLog(get_settings().gamification.telemetry_max_events)
    return _telemetry_log


def reset_telemetry_log() -> None:
    """Drop the process-wide telemetry log (tests)."""
    global _telemetry_log
    _telemetry_log = None
