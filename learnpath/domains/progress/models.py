# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Per-learner progress models.

Progress models are mutable with assignment validation so store mutators
can edit a working copy and have bad values rejected before anything is
written.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from learnpath.domains.curriculum.models import NodeStatus, SkillStatus, UnitStatus


class Progress(BaseModel):
    """Progress of one learner on one node."""

    model_config = ConfigDict(from_attributes=True, validate_assignment=True)

    user_id: str
    node_id: str
    status: NodeStatus = NodeStatus.LOCKED
    stars: int = Field(default=0, ge=0, le=3)
    attempts: int = Field(default=0, ge=0)
    best_score: int = Field(default=0, ge=0, le=100)
    xp_earned: int = Field(default=0, ge=0)
    completed_at: datetime | None = None
    lesson_viewed: bool = False
    lesson_viewed_at: datetime | None = None
    lesson_time_spent: int = Field(default=0, ge=0, description="Minutes spent on the lesson")


class SkillProgress(BaseModel):
    """Per-learner state of a skill. Missing rows read as locked."""

    model_config = ConfigDict(from_attributes=True, validate_assignment=True)

    user_id: str
    skill_id: str
    unlocked: bool = False
    status: SkillStatus = SkillStatus.LOCKED
    mastery: int = Field(default=0, ge=0, le=100)


class UnitProgress(BaseModel):
    """Per-learner state of a unit. Missing rows read as upcoming."""

    model_config = ConfigDict(from_attributes=True, validate_assignment=True)

    user_id: str
    unit_id: str
    status: UnitStatus = UnitStatus.UPCOMING
    reward_claimed: bool = False
