# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic schemas for learning paths.

Request-style models (PathCreate, PathUpdate, PathFilters) carry caller
input; LearningPath mirrors a stored path including its derived fields.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from learnpath.domains.curriculum.models import Difficulty, NodeStatus


class PathCreate(BaseModel):
    """Input for creating a path. Derived fields are computed, never accepted."""

    path_id: str = Field(min_length=1, max_length=128)
    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    grade_level: str | None = None
    class_number: int | None = Field(default=None, ge=1, le=12)
    semester: int | None = Field(default=None, ge=1, le=2)
    subject: str | None = None
    major: str | None = None
    curriculum: str | None = None
    node_ids: list[str]
    learning_outcomes: list[str] = Field(default_factory=list)
    kompetensi_dasar: list[str] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    school_id: str | None = None
    created_by: str | None = None
    is_template: bool = False
    is_public: bool = False
    is_active: bool = True

    @field_validator("path_id")
    @classmethod
    def normalize_path_id(cls, value: str) -> str:
        return value.strip().upper()


class PathUpdate(BaseModel):
    """Partial update of a path. Unset fields are left alone."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    grade_level: str | None = None
    class_number: int | None = Field(default=None, ge=1, le=12)
    semester: int | None = Field(default=None, ge=1, le=2)
    subject: str | None = None
    major: str | None = None
    curriculum: str | None = None
    node_ids: list[str] | None = None
    learning_outcomes: list[str] | None = None
    kompetensi_dasar: list[str] | None = None
    prerequisites: list[str] | None = None
    tags: list[str] | None = None
    school_id: str | None = None
    is_public: bool | None = None
    is_active: bool | None = None


class PathFilters(BaseModel):
    """Filters for path listings. None means "any"."""

    grade_level: str | None = None
    class_number: int | None = None
    semester: int | None = None
    subject: str | None = None
    major: str | None = None
    curriculum: str | None = None
    school_id: str | None = None
    is_template: bool | None = None
    is_public: bool | None = None
    is_active: bool | None = True
    tag: str | None = None


class LearningPath(BaseModel):
    """A stored learning path."""

    model_config = ConfigDict(from_attributes=True)

    path_id: str
    name: str
    description: str = ""
    grade_level: str | None = None
    class_number: int | None = None
    semester: int | None = None
    subject: str | None = None
    major: str | None = None
    curriculum: str | None = None
    node_ids: list[str] = Field(default_factory=list)
    total_nodes: int = 0
    total_xp: int = 0
    total_quizzes: int = 0
    estimated_hours: float = 0.0
    checkpoint_count: int = 0
    difficulty: Difficulty = Difficulty.MIXED
    learning_outcomes: list[str] = Field(default_factory=list)
    kompetensi_dasar: list[str] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    school_id: str | None = None
    created_by: str | None = None
    is_template: bool = False
    is_public: bool = False
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_protected(self) -> bool:
        """Public templates cannot be deleted."""
        return self.is_template and self.is_public


class NodeProgressEntry(BaseModel):
    """One node of a path report."""

    node_id: str
    title: str | None = None
    status: NodeStatus = NodeStatus.LOCKED
    stars: int = 0
    best_score: int = 0
    xp_earned: int = 0
    completed_at: datetime | None = None


class PathProgressReport(BaseModel):
    """A learner's progress over one path."""

    path_id: str
    user_id: str
    total_nodes: int
    completed_nodes: int
    in_progress_nodes: int
    locked_nodes: int
    completion_percent: float
    xp_earned: int
    xp_available: int
    stars_earned: int
    max_stars: int
    star_percent: float
    nodes: list[NodeProgressEntry] = Field(default_factory=list)


class GenerationSummary(BaseModel):
    """Result of a template generation run."""

    created: list[str] = Field(default_factory=list, description="Ids of created paths")
    skipped: list[str] = Field(default_factory=list, description="Group keys already covered")
    total_nodes: int = Field(default=0, description="Active nodes scanned")
    ungrouped_nodes: list[str] = Field(
        default_factory=list,
        description="Active nodes lacking grade, class, semester or subject",
    )

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)
