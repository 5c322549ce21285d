# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Per-learner state: node progress, skill/unit state and profiles."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from learnpath.infrastructure.database.models.base import Base, TimestampMixin


class ProgressRecord(Base, TimestampMixin):
    """Progress of one learner on one node."""

    __tablename__ = "user_progress"
    __table_args__ = (UniqueConstraint("user_id", "node_id", name="uq_user_progress_user_node"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    node_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="locked")
    stars: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    lesson_viewed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    lesson_viewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    lesson_time_spent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class SkillProgressRecord(Base, TimestampMixin):
    """Per-learner state of a skill."""

    __tablename__ = "skill_progress"
    __table_args__ = (UniqueConstraint("user_id", "skill_id", name="uq_skill_progress_user_skill"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    skill_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unlocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="locked")
    mastery: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class UnitProgressRecord(Base, TimestampMixin):
    """Per-learner state of a unit."""

    __tablename__ = "unit_progress"
    __table_args__ = (UniqueConstraint("user_id", "unit_id", name="uq_unit_progress_user_unit"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    unit_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="upcoming")
    reward_claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class ProfileRecord(Base, TimestampMixin):
    """Gamification profile of one learner."""

    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_in_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_for_next_level: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gems: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    daily_goal_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    daily_goal_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    daily_goal_met: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    daily_goal_claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_lesson_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
