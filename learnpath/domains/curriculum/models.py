# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Curriculum models: nodes, skills, units and the status enums.

Nodes form an arena addressed by ``node_id``. Two independent indices sit
on top of it: the unit -> skill -> node containment used by cascading
unlocks, and the ordered ``node_ids`` list of a learning path.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Difficulty(str, Enum):
    """Difficulty of a node, or the shared difficulty of a path.

    MIXED only appears on paths whose nodes disagree.
    """

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"
    MIXED = "Mixed"


class NodeStatus(str, Enum):
    """Status of a learner's progress on a node.

    Lesson play moves LOCKED -> AVAILABLE -> MASTERED. Quiz play moves a
    node through IN_PROGRESS to COMPLETED. Path reports collapse the set
    to locked/current/in-progress/completed (see ``reporting_status``).
    """

    LOCKED = "locked"
    AVAILABLE = "available"
    CURRENT = "current"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    MASTERED = "mastered"

    @property
    def is_terminal(self) -> bool:
        """Whether the node is finished and must never be re-rewarded."""
        return self in (NodeStatus.COMPLETED, NodeStatus.MASTERED)

    @property
    def is_reachable(self) -> bool:
        """Whether the learner may work on the node."""
        return self is not NodeStatus.LOCKED

    def reporting_status(self) -> "NodeStatus":
        """Collapse to the four statuses used by path reports."""
        if self is NodeStatus.MASTERED:
            return NodeStatus.COMPLETED
        if self is NodeStatus.AVAILABLE:
            return NodeStatus.CURRENT
        return self


class SkillStatus(str, Enum):
    """Per-learner status of a skill."""

    LOCKED = "locked"
    CURRENT = "current"
    COMPLETED = "completed"


class UnitStatus(str, Enum):
    """Per-learner status of a unit."""

    UPCOMING = "upcoming"
    CURRENT = "current"
    COMPLETED = "completed"


class Node(BaseModel):
    """An atomic learning unit, immutable from the engine's point of view."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    node_id: str
    title: str
    description: str = ""
    skill_id: str | None = None
    prerequisites: list[str] = Field(default_factory=list)

    xp_reward: int = Field(default=50, ge=0)
    gems_reward: int = Field(default=5, ge=0)
    streak_reward: int = Field(default=0, ge=0)
    is_checkpoint: bool = False
    difficulty: Difficulty = Difficulty.MEDIUM
    estimated_minutes: int = Field(default=60, ge=0)
    quiz_count: int = Field(default=10, ge=0)
    order_index: int = 0
    requires_lesson_view: bool = False
    minimum_level: int = Field(default=1, ge=1)

    grade_level: str | None = None
    class_number: int | None = None
    semester: int | None = None
    subject: str | None = None
    major: str | None = None
    curriculum: str | None = None
    learning_outcomes: list[str] = Field(default_factory=list)
    kompetensi_dasar: list[str] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("difficulty")
    @classmethod
    def reject_mixed(cls, value: Difficulty) -> Difficulty:
        if value is Difficulty.MIXED:
            raise ValueError("Mixed difficulty is only valid for paths")
        return value


class Skill(BaseModel):
    """An ordered group of nodes inside a unit."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    skill_id: str
    unit_id: str
    title: str
    order_index: int = 0


class UnitReward(BaseModel):
    """One-time reward granted when a unit is completed."""

    model_config = ConfigDict(frozen=True)

    reward_type: str = Field(description="Reward kind, e.g. 'badge' or 'chest'")
    reward_label: str = Field(description="Display label of the reward")
    reward_xp: int = Field(default=0, ge=0, description="XP granted with the reward")


class Unit(BaseModel):
    """An ordered group of skills."""

    model_config = ConfigDict(frozen=True)

    unit_id: str
    title: str
    order_index: int = 0
    reward: UnitReward | None = None
