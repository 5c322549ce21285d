# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Result schemas of the progression state machine."""

from pydantic import BaseModel, Field

from learnpath.domains.curriculum.models import NodeStatus, SkillStatus, UnitStatus
from learnpath.domains.gamification.models import Profile


class CompletionResult(BaseModel):
    """Outcome of completing a node.

    A replayed completion reports ``already_completed=True`` with zero
    rewards and empty unlock lists.
    """

    node_id: str
    status: NodeStatus
    already_completed: bool = False
    xp_earned: int = 0
    streak_increment: int = 0
    gems_earned: int = 0
    levels_gained: int = 0
    reward_xp: int = Field(default=0, description="XP from unit rewards granted by the cascade")
    unlocked_lessons: list[str] = Field(default_factory=list)
    unlocked_skills: list[str] = Field(default_factory=list)
    unlocked_units: list[str] = Field(default_factory=list)
    completed_units: list[str] = Field(default_factory=list)
    profile: Profile
    node_statuses: dict[str, NodeStatus] = Field(
        default_factory=dict,
        description="Status of every node in the skill tree after the call",
    )


class QuizResult(BaseModel):
    """Outcome of a quiz submission."""

    node_id: str
    score: int
    stars: int
    passed: bool
    best_score: int
    best_stars: int
    attempts: int
    status: NodeStatus
    completion: CompletionResult | None = Field(
        default=None,
        description="Set when this submission completed the node for the first time",
    )


class PrerequisiteCheck(BaseModel):
    """Whether a learner may start a node."""

    node_id: str
    met: bool
    completed: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)
    required_level: int = 1
    current_level: int = 1

    @property
    def level_ok(self) -> bool:
        return self.current_level >= self.required_level

    @property
    def can_start(self) -> bool:
        return self.met and self.level_ok


class LessonSnapshot(BaseModel):
    node_id: str
    title: str
    status: NodeStatus
    stars: int = 0


class SkillSnapshot(BaseModel):
    skill_id: str
    title: str
    status: SkillStatus
    unlocked: bool
    mastery: int
    lessons: list[LessonSnapshot] = Field(default_factory=list)


class UnitSnapshot(BaseModel):
    unit_id: str
    title: str
    status: UnitStatus
    reward_claimed: bool
    progress_percent: float
    skills: list[SkillSnapshot] = Field(default_factory=list)


class SkillTreeProgress(BaseModel):
    """A learner's view of the whole skill tree."""

    user_id: str
    units: list[UnitSnapshot] = Field(default_factory=list)
    profile: Profile | None = None
