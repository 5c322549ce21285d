# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Curriculum tables: units, skills, nodes and learning paths.

Units contain ordered skills, skills contain ordered nodes. Paths keep
their own ordered list of node ids and are independent of that
containment.
"""

from typing import Any

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from learnpath.infrastructure.database.models.base import Base, JSONList, TimestampMixin


class UnitRecord(Base, TimestampMixin):
    """A top-level group of skills with an optional completion reward."""

    __tablename__ = "units"

    unit_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    reward_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    reward_label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reward_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class SkillRecord(Base, TimestampMixin):
    """An ordered group of nodes inside a unit."""

    __tablename__ = "skills"

    skill_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    unit_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("units.unit_id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class NodeRecord(Base, TimestampMixin):
    """An atomic learning unit (lesson plus quizzes)."""

    __tablename__ = "nodes"

    node_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    skill_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("skills.skill_id", ondelete="SET NULL"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    prerequisites: Mapped[list[str]] = mapped_column(JSONList, nullable=False, default=list)

    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    gems_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    streak_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_checkpoint: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False, default="Medium")
    estimated_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    quiz_count: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    requires_lesson_view: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    minimum_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    grade_level: Mapped[str | None] = mapped_column(String(8), nullable=True, index=True)
    class_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    semester: Mapped[int | None] = mapped_column(Integer, nullable=True)
    subject: Mapped[str | None] = mapped_column(String(128), nullable=True)
    major: Mapped[str | None] = mapped_column(String(64), nullable=True)
    curriculum: Mapped[str | None] = mapped_column(String(64), nullable=True)
    learning_outcomes: Mapped[list[str]] = mapped_column(JSONList, nullable=False, default=list)
    kompetensi_dasar: Mapped[list[str]] = mapped_column(JSONList, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class PathRecord(Base, TimestampMixin):
    """A named, ordered curriculum over nodes with cached aggregates."""

    __tablename__ = "paths"

    path_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    grade_level: Mapped[str | None] = mapped_column(String(8), nullable=True, index=True)
    class_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    semester: Mapped[int | None] = mapped_column(Integer, nullable=True)
    subject: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    major: Mapped[str | None] = mapped_column(String(64), nullable=True)
    curriculum: Mapped[str | None] = mapped_column(String(64), nullable=True)

    node_ids: Mapped[list[str]] = mapped_column(JSONList, nullable=False, default=list)
    total_nodes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_quizzes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    estimated_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    checkpoint_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False, default="Mixed")

    learning_outcomes: Mapped[list[str]] = mapped_column(JSONList, nullable=False, default=list)
    kompetensi_dasar: Mapped[list[str]] = mapped_column(JSONList, nullable=False, default=list)
    prerequisites: Mapped[list[str]] = mapped_column(JSONList, nullable=False, default=list)
    tags: Mapped[list[str]] = mapped_column(JSONList, nullable=False, default=list)

    school_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_template: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def aggregate_columns(self) -> dict[str, Any]:
        """Get the derived columns as a dict."""
        return {
            "total_nodes": self.total_nodes,
            "total_xp": self.total_xp,
            "total_quizzes": self.total_quizzes,
            "estimated_hours": self.estimated_hours,
            "checkpoint_count": self.checkpoint_count,
            "difficulty": self.difficulty,
        }
