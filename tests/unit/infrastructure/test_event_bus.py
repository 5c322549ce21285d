# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the in-memory event bus."""

import pytest

from learnpath.infrastructure.events import (
    EventBus,
    EventCategory,
    EventData,
    EventPatterns,
    EventRegistry,
    EventTypes,
)


class TestEventBus:
    """Tests for EventBus."""

    @pytest.mark.asyncio
    async def test_exact_subscription(self, event_bus: EventBus):
        received: list[EventData] = []

        async def handler(event: EventData) -> None:
            received.append(event)

        event_bus.subscribe(EventTypes.Paths.CREATED, handler)

        await event_bus.publish(EventTypes.Paths.CREATED, {"path_id": "P-1"})
        await event_bus.publish(EventTypes.Paths.DELETED, {"path_id": "P-1"})

        assert len(received) == 1
        assert received[0].payload == {"path_id": "P-1"}

    @pytest.mark.asyncio
    async def test_pattern_subscription(self, event_bus: EventBus):
        received: list[str] = []

        async def handler(event: EventData) -> None:
            received.append(event.event_type)

        event_bus.subscribe(EventPatterns.ALL_PROGRESSION, handler)

        await event_bus.publish(EventTypes.Progression.LESSON_COMPLETED, {})
        await event_bus.publish(EventTypes.Progression.SKILL_UNLOCKED, {})
        await event_bus.publish(EventTypes.Gamification.LEVEL_UP, {})

        assert received == [
            EventTypes.Progression.LESSON_COMPLETED,
            EventTypes.Progression.SKILL_UNLOCKED,
        ]

    @pytest.mark.asyncio
    async def test_failing_handler_isolated(self, event_bus: EventBus):
        received: list[EventData] = []

        async def broken(event: EventData) -> None:
            raise RuntimeError("sink down")

        async def healthy(event: EventData) -> None:
            received.append(event)

        event_bus.subscribe(EventTypes.Paths.UPDATED, broken)
        event_bus.subscribe(EventTypes.Paths.UPDATED, healthy)

        await event_bus.publish(EventTypes.Paths.UPDATED, {})

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self, event_bus: EventBus):
        async def handler(event: EventData) -> None:
            pass

        event_bus.subscribe(EventTypes.Paths.CREATED, handler)

        assert event_bus.unsubscribe(EventTypes.Paths.CREATED, handler) is True
        assert event_bus.unsubscribe(EventTypes.Paths.CREATED, handler) is False

    @pytest.mark.asyncio
    async def test_stats(self, event_bus: EventBus):
        async def handler(event: EventData) -> None:
            pass

        event_bus.subscribe(EventTypes.Paths.CREATED, handler)
        event_bus.subscribe(EventPatterns.ALL, handler)
        await event_bus.publish(EventTypes.Paths.CREATED, {})

        stats = event_bus.get_stats()
        assert stats["exact_subscriptions"] == 1
        assert stats["pattern_subscriptions"] == 1
        assert stats["total_handlers"] == 2
        assert stats["events_published"] == 1

    def test_event_data_to_dict(self):
        event = EventData(event_type="paths.path.created", payload={"path_id": "P"})

        data = event.to_dict()

        assert data["event_type"] == "paths.path.created"
        assert data["payload"] == {"path_id": "P"}
        assert "timestamp" in data


class TestEventRegistry:
    """Tests for EventRegistry."""

    def test_topic_for_telemetry_type(self):
        assert EventRegistry.topic_for("lesson_completed") == (
            EventTypes.Progression.LESSON_COMPLETED
        )
        assert EventRegistry.topic_for("reward_claimed") == EventTypes.Gamification.REWARD_CLAIMED

    def test_unknown_telemetry_type(self):
        with pytest.raises(KeyError):
            EventRegistry.topic_for("nope")

    def test_categories(self):
        assert EventRegistry.get_category(EventTypes.Paths.CREATED) == EventCategory.CONTENT
        assert EventRegistry.get_category(EventTypes.Gamification.LEVEL_UP) == (
            EventCategory.REWARD
        )
        assert EventRegistry.get_category("unknown") is None
