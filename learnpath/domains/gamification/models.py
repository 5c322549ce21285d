# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Gamification models: learner profile and telemetry events."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from learnpath.utils.datetime import utc_now


class Profile(BaseModel):
    """Gamification profile of one learner.

    ``xp`` is the lifetime total; ``xp_in_level`` counts towards the next
    level and always stays below ``xp_for_next_level``.
    """

    model_config = ConfigDict(from_attributes=True, validate_assignment=True)

    user_id: str
    display_name: str = ""
    xp: int = Field(default=0, ge=0)
    xp_in_level: int = Field(default=0, ge=0)
    xp_for_next_level: int = Field(default=100, gt=0)
    level: int = Field(default=1, ge=1)
    streak: int = Field(default=0, ge=0)
    best_streak: int = Field(default=0, ge=0)
    gems: int = Field(default=0, ge=0)
    daily_goal_xp: int = Field(default=50, gt=0)
    daily_goal_progress: int = Field(default=0, ge=0)
    daily_goal_met: bool = False
    daily_goal_claimed: bool = False
    last_lesson_id: str | None = None
    last_completed_at: datetime | None = None


class TelemetryEventType(str, Enum):
    """Kinds of progression side effects reported to telemetry."""

    LESSON_COMPLETED = "lesson_completed"
    LESSON_UNLOCKED = "lesson_unlocked"
    SKILL_UNLOCKED = "skill_unlocked"
    UNIT_PROGRESSED = "unit_progressed"
    REWARD_CLAIMED = "reward_claimed"
    DAILY_GOAL_CLAIMED = "daily_goal_claimed"


class TelemetryEvent(BaseModel):
    """One entry of the capped telemetry log."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    type: TelemetryEventType
    student_id: str
    timestamp: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict)
