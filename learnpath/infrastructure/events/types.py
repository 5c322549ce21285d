# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Centralized event type definitions for learnpath.

Event bus topics use dotted names so pattern subscribers ("progression.*")
keep working when new events are added. Telemetry records keep the short
snake_case names (``lesson_completed``); ``EventRegistry.topic_for`` maps
one to the other.
"""


class EventTypes:
    """All event types organized by domain."""

    class Progression:
        """Progression state machine events."""

        LESSON_COMPLETED = "progression.lesson.completed"
        LESSON_UNLOCKED = "progression.lesson.unlocked"
        SKILL_UNLOCKED = "progression.skill.unlocked"
        UNIT_PROGRESSED = "progression.unit.progressed"

    class Gamification:
        """Gamification ledger events."""

        REWARD_CLAIMED = "gamification.reward.claimed"
        DAILY_GOAL_CLAIMED = "gamification.daily_goal.claimed"
        LEVEL_UP = "gamification.level.up"

    class Paths:
        """Learning path lifecycle events."""

        CREATED = "paths.path.created"
        UPDATED = "paths.path.updated"
        DELETED = "paths.path.deleted"
        GENERATED = "paths.templates.generated"


class EventPatterns:
    """Wildcard patterns for subscribing to multiple events."""

    ALL_PROGRESSION = "progression.*"
    ALL_GAMIFICATION = "gamification.*"
    ALL_PATHS = "paths.*"

    ALL = "*"


class EventCategory:
    """Event categories for analytics processing."""

    PROGRESS = "progress"
    REWARD = "reward"
    CONTENT = "content"


class EventRegistry:
    """Registry for event metadata and categorization."""

    _telemetry_topics: dict[str, str] = {
        "lesson_completed": EventTypes.Progression.LESSON_COMPLETED,
        "lesson_unlocked": EventTypes.Progression.LESSON_UNLOCKED,
        "skill_unlocked": EventTypes.Progression.SKILL_UNLOCKED,
        "unit_progressed": EventTypes.Progression.UNIT_PROGRESSED,
        "reward_claimed": EventTypes.Gamification.REWARD_CLAIMED,
        "daily_goal_claimed": EventTypes.Gamification.DAILY_GOAL_CLAIMED,
    }

    _category_map: dict[str, str] = {
        EventTypes.Progression.LESSON_COMPLETED: EventCategory.PROGRESS,
        EventTypes.Progression.LESSON_UNLOCKED: EventCategory.PROGRESS,
        EventTypes.Progression.SKILL_UNLOCKED: EventCategory.PROGRESS,
        EventTypes.Progression.UNIT_PROGRESSED: EventCategory.PROGRESS,
        EventTypes.Gamification.REWARD_CLAIMED: EventCategory.REWARD,
        EventTypes.Gamification.DAILY_GOAL_CLAIMED: EventCategory.REWARD,
        EventTypes.Gamification.LEVEL_UP: EventCategory.REWARD,
        EventTypes.Paths.CREATED: EventCategory.CONTENT,
        EventTypes.Paths.UPDATED: EventCategory.CONTENT,
        EventTypes.Paths.DELETED: EventCategory.CONTENT,
        EventTypes.Paths.GENERATED: EventCategory.CONTENT,
    }

    @classmethod
    def topic_for(cls, telemetry_type: str) -> str:
        """Get the bus topic for a telemetry event type.

        Args:
            telemetry_type: Telemetry type such as ``lesson_completed``.

        Returns:
            Dotted bus topic.

        Raises:
            KeyError: If the telemetry type is unknown.
        """
        return cls._telemetry_topics[telemetry_type]

    @classmethod
    def get_category(cls, event_type: str) -> str | None:
        """Get analytics category for an event type.

        Args:
            event_type: Event type string.

        Returns:
            Category string or None if not categorized.
        """
        return cls._category_map.get(event_type)
