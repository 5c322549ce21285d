# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progression domain: lesson/quiz state machine and cascading unlocks."""

from learnpath.domains.progression.cascade import (
    CascadeEvent,
    CascadeOutcome,
    GrantedReward,
    cascade_completion,
    skill_mastery,
)
from learnpath.domains.progression.schemas import (
    CompletionResult,
    LessonSnapshot,
    PrerequisiteCheck,
    QuizResult,
    SkillSnapshot,
    SkillTreeProgress,
    UnitSnapshot,
)
from learnpath.domains.progression.service import (
    InvalidScoreError,
    LessonNotViewedError,
    LevelRequirementError,
    NodeLockedError,
    PrerequisitesNotMetError,
    ProgressionService,
    stars_for_score,
)

__all__ = [
    # Service
    "ProgressionService",
    "stars_for_score",
    # Cascade
    "cascade_completion",
    "skill_mastery",
    "CascadeEvent",
    "CascadeOutcome",
    "GrantedReward",
    # Schemas
    "CompletionResult",
    "QuizResult",
    "PrerequisiteCheck",
    "SkillTreeProgress",
    "UnitSnapshot",
    "SkillSnapshot",
    "LessonSnapshot",
    # Errors
    "NodeLockedError",
    "PrerequisitesNotMetError",
    "LessonNotViewedError",
    "LevelRequirementError",
    "InvalidScoreError",
]
