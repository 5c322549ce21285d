# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event infrastructure: in-memory bus and topic constants."""

from learnpath.infrastructure.events.bus import (
    EventBus,
    EventData,
    EventHandler,
    get_event_bus,
    reset_event_bus,
)
from learnpath.infrastructure.events.types import (
    EventCategory,
    EventPatterns,
    EventRegistry,
    EventTypes,
)

__all__ = [
    "EventBus",
    "EventData",
    "EventHandler",
    "get_event_bus",
    "reset_event_bus",
    "EventTypes",
    "EventPatterns",
    "EventCategory",
    "EventRegistry",
]
