# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across the unit tests:
- Settings and isolated process-wide singletons
- An in-memory SQLite database with the full schema
- A file-backed database for tests running several sessions at once
- Factories for seeding units, skills and nodes
"""

from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from learnpath.core.config.settings import Settings, clear_settings_cache
from learnpath.domains.gamification.telemetry import TelemetryLog, reset_telemetry_log
from learnpath.infrastructure.database.connection import create_engine_for_url, create_schema
from learnpath.infrastructure.database.models import (
    Base,
    NodeRecord,
    SkillRecord,
    UnitRecord,
)
from learnpath.infrastructure.events import EventBus, reset_event_bus
from learnpath.infrastructure.locks import KeyedLockRegistry, reset_lock_registry

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (requires services)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Settings and Singletons
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Provide test settings with defaults and an in-memory database."""
    return Settings(
        environment="test",
        debug=True,
        database={"url": TEST_DATABASE_URL},
    )


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Isolate process-wide registries between tests."""
    yield
    clear_settings_cache()
    reset_event_bus()
    reset_lock_registry()
    reset_telemetry_log()


@pytest.fixture
def lock_registry() -> KeyedLockRegistry:
    return KeyedLockRegistry()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def telemetry(event_bus: EventBus) -> TelemetryLog:
    return TelemetryLog(max_events=100, bus=event_bus)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory engine with every table created."""
    engine = create_engine_for_url(TEST_DATABASE_URL)
    await create_schema(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a session bound to the in-memory engine."""
    session_factory = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(
    tmp_path: Path,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Provide a session factory over a file database.

    Each session gets its own connection, so concurrent services see
    each other's commits only.
    """
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'learnpath.db'}")
    await create_schema(engine)

    yield async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    await engine.dispose()


# =============================================================================
# Curriculum Factories
# =============================================================================


@pytest.fixture
def make_unit() -> Callable[..., UnitRecord]:
    """Build unit rows; pass reward_type to attach a completion reward."""

    def factory(unit_id: str, order_index: int = 0, **overrides: Any) -> UnitRecord:
        fields: dict[str, Any] = {
            "unit_id": unit_id,
            "title": f"Unit {unit_id}",
            "order_index": order_index,
            "reward_xp": 0,
        }
        fields.update(overrides)
        return UnitRecord(**fields)

    return factory


@pytest.fixture
def make_skill() -> Callable[..., SkillRecord]:
    def factory(skill_id: str, unit_id: str, order_index: int = 0) -> SkillRecord:
        return SkillRecord(
            skill_id=skill_id,
            unit_id=unit_id,
            title=f"Skill {skill_id}",
            order_index=order_index,
        )

    return factory


@pytest.fixture
def make_node() -> Callable[..., NodeRecord]:
    """Build node rows with explicit defaults for every reward field."""

    def factory(node_id: str, **overrides: Any) -> NodeRecord:
        fields: dict[str, Any] = {
            "node_id": node_id,
            "title": f"Lesson {node_id}",
            "description": "",
            "prerequisites": [],
            "xp_reward": 50,
            "gems_reward": 5,
            "streak_reward": 0,
            "is_checkpoint": False,
            "difficulty": "Medium",
            "estimated_minutes": 60,
            "quiz_count": 10,
            "order_index": 0,
            "requires_lesson_view": False,
            "minimum_level": 1,
            "learning_outcomes": [],
            "kompetensi_dasar": [],
            "is_active": True,
        }
        fields.update(overrides)
        return NodeRecord(**fields)

    return factory


@pytest.fixture
def seed(db_session: AsyncSession) -> Callable[..., Awaitable[None]]:
    """Add rows and commit them."""

    async def add(*records: Any) -> None:
        db_session.add_all(records)
        await db_session.commit()

    return add


async def seed_skill_tree(
    add: Callable[..., Awaitable[None]],
    make_unit: Callable[..., UnitRecord],
    make_skill: Callable[..., SkillRecord],
    make_node: Callable[..., NodeRecord],
) -> None:
    """Seed a two-unit tree through ``add``.

    U1 (badge reward, 20 XP)
        S1: N1, N2
        S2: N3
    U2
        S3: N4
    X1 has no skill and requires N1 and N2.
    """
    await add(
        make_unit("U1", 0, reward_type="badge", reward_label="Explorer", reward_xp=20),
        make_unit("U2", 1),
    )
    await add(
        make_skill("S1", "U1", 0),
        make_skill("S2", "U1", 1),
        make_skill("S3", "U2", 0),
    )
    await add(
        make_node("N1", skill_id="S1", order_index=0),
        make_node("N2", skill_id="S1", order_index=1),
        make_node("N3", skill_id="S2", order_index=0),
        make_node("N4", skill_id="S3", order_index=0),
        make_node("X1", prerequisites=["N1", "N2"]),
    )


@pytest_asyncio.fixture
async def skill_tree(
    seed: Callable[..., Awaitable[None]],
    make_unit: Callable[..., UnitRecord],
    make_skill: Callable[..., SkillRecord],
    make_node: Callable[..., NodeRecord],
) -> None:
    """Seed the two-unit tree into the in-memory database."""
    await seed_skill_tree(seed, make_unit, make_skill, make_node)


@pytest.fixture
def tree_seeder(
    make_unit: Callable[..., UnitRecord],
    make_skill: Callable[..., SkillRecord],
    make_node: Callable[..., NodeRecord],
) -> Callable[[Callable[..., Awaitable[None]]], Awaitable[None]]:
    """Seed the two-unit tree through any add-and-commit callable."""

    async def seed_into(add: Callable[..., Awaitable[None]]) -> None:
        await seed_skill_tree(add, make_unit, make_skill, make_node)

    return seed_into


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def sample_student_id() -> str:
    """Provide a sample student ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440001"
