# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for database models and the connection helpers.

Tests model definitions and round trips through an in-memory SQLite
database.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.core.config.settings import Settings
from learnpath.infrastructure.database.connection import (
    DatabaseError,
    check_database_connection,
    close_database,
    get_engine,
    get_session,
    init_database,
)
from learnpath.infrastructure.database.models import (
    Base,
    NodeRecord,
    PathRecord,
    ProfileRecord,
    ProgressRecord,
    TimestampMixin,
)


class TestBase:
    """Test base model functionality."""

    def test_base_inherits_declarative_base(self):
        """Verify Base is a declarative base."""
        assert hasattr(Base, "metadata")
        assert hasattr(Base, "registry")

    def test_timestamp_mixin_has_created_at(self):
        """Verify TimestampMixin has created_at field."""
        assert hasattr(TimestampMixin, "created_at")
        assert hasattr(TimestampMixin, "updated_at")

    def test_all_tables_registered(self):
        assert set(Base.metadata.tables) >= {
            "units",
            "skills",
            "nodes",
            "paths",
            "user_progress",
            "skill_progress",
            "unit_progress",
            "profiles",
        }


class TestRecords:
    """Round trips through SQLite."""

    @pytest.mark.asyncio
    async def test_node_json_lists(self, db_session: AsyncSession, make_node):
        db_session.add(make_node("N1", prerequisites=["N0"], learning_outcomes=["Count to 10"]))
        await db_session.commit()

        record = await db_session.get(NodeRecord, "N1")

        assert record.prerequisites == ["N0"]
        assert record.learning_outcomes == ["Count to 10"]
        assert record.created_at is not None

    @pytest.mark.asyncio
    async def test_progress_unique_per_user_and_node(self, db_session: AsyncSession):
        db_session.add(ProgressRecord(user_id="u", node_id="N1"))
        await db_session.commit()

        db_session.add(ProgressRecord(user_id="u", node_id="N1"))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_profile_defaults(self, db_session: AsyncSession):
        db_session.add(ProfileRecord(user_id="u"))
        await db_session.commit()

        record = (
            await db_session.execute(select(ProfileRecord).where(ProfileRecord.user_id == "u"))
        ).scalar_one()

        assert record.level == 1
        assert record.xp_for_next_level == 100
        assert record.daily_goal_xp == 50

    def test_path_aggregate_columns(self):
        record = PathRecord(
            path_id="P",
            name="P",
            total_nodes=2,
            total_xp=80,
            total_quizzes=20,
            estimated_hours=2.0,
            checkpoint_count=1,
            difficulty="Easy",
        )

        assert record.aggregate_columns() == {
            "total_nodes": 2,
            "total_xp": 80,
            "total_quizzes": 20,
            "estimated_hours": 2.0,
            "checkpoint_count": 1,
            "difficulty": "Easy",
        }


class TestConnection:
    """Tests for the module-level engine helpers."""

    def test_engine_before_init(self):
        with pytest.raises(DatabaseError):
            get_engine()

    @pytest.mark.asyncio
    async def test_lifecycle(self, settings: Settings):
        await init_database(settings)
        try:
            assert await check_database_connection() is True
            async with get_session() as session:
                assert isinstance(session, AsyncSession)
        finally:
            await close_database()

        assert await check_database_connection() is False
