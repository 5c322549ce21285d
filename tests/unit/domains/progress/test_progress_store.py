# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the progress store and node store lookups."""

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.domains.curriculum.models import NodeStatus, SkillStatus, UnitStatus
from learnpath.domains.curriculum.store import NodeNotFoundError, NodeStore
from learnpath.domains.progress.models import Progress, SkillProgress, UnitProgress
from learnpath.domains.progress.store import ProgressNotFoundError, ProgressStore
from learnpath.infrastructure.locks import KeyedLockRegistry

USER = "student-1"


@pytest.fixture
def store(db_session: AsyncSession, lock_registry: KeyedLockRegistry) -> ProgressStore:
    return ProgressStore(db_session, lock_registry)


class TestUpsertProgress:
    """Tests for ProgressStore.upsert_progress."""

    @pytest.mark.asyncio
    async def test_creates_locked_record_then_mutates(self, store: ProgressStore):
        def start(progress: Progress) -> None:
            assert progress.status is NodeStatus.LOCKED
            progress.status = NodeStatus.IN_PROGRESS
            progress.attempts += 1

        progress = await store.upsert_progress(USER, "N1", start)

        assert progress.status is NodeStatus.IN_PROGRESS
        stored = await store.get_progress(USER, "N1")
        assert stored.status is NodeStatus.IN_PROGRESS
        assert stored.attempts == 1

    @pytest.mark.asyncio
    async def test_updates_existing_record(self, store: ProgressStore):
        def bump(progress: Progress) -> None:
            progress.attempts += 1

        await store.upsert_progress(USER, "N1", bump)
        await store.upsert_progress(USER, "N1", bump)

        assert (await store.get_progress(USER, "N1")).attempts == 2
        assert len(await store.list_progress_for_nodes(USER, ["N1"])) == 1

    @pytest.mark.asyncio
    async def test_failed_mutator_writes_nothing(self, store: ProgressStore):
        def bad(progress: Progress) -> None:
            progress.stars = 4

        with pytest.raises(PydanticValidationError):
            await store.upsert_progress(USER, "N1", bad)

        assert await store.find_progress(USER, "N1") is None

    @pytest.mark.asyncio
    async def test_lock_released(self, store: ProgressStore, lock_registry: KeyedLockRegistry):
        await store.upsert_progress(USER, "N1", lambda p: None)

        assert len(lock_registry) == 0


class TestProgressQueries:
    """Tests for progress reads."""

    @pytest.mark.asyncio
    async def test_get_missing_raises(self, store: ProgressStore):
        with pytest.raises(ProgressNotFoundError):
            await store.get_progress(USER, "N1")

    @pytest.mark.asyncio
    async def test_progress_map_fills_placeholders(self, store: ProgressStore):
        def view(progress: Progress) -> None:
            progress.lesson_viewed = True

        await store.upsert_progress(USER, "N1", view)

        by_node = await store.progress_map(USER, ["N1", "N2"])

        assert by_node["N1"].lesson_viewed is True
        assert by_node["N2"].status is NodeStatus.LOCKED
        assert await store.find_progress(USER, "N2") is None

    @pytest.mark.asyncio
    async def test_progress_is_per_user(self, store: ProgressStore):
        await store.upsert_progress("other", "N1", lambda p: None)

        assert await store.find_progress(USER, "N1") is None


class TestSkillAndUnitStates:
    """Tests for skill and unit state rows."""

    @pytest.mark.asyncio
    async def test_defaults_for_missing_rows(self, store: ProgressStore):
        skills = await store.get_skill_states(USER, ["S1"])
        units = await store.get_unit_states(USER, ["U1"])

        assert skills["S1"].status is SkillStatus.LOCKED
        assert skills["S1"].unlocked is False
        assert units["U1"].status is UnitStatus.UPCOMING

    @pytest.mark.asyncio
    async def test_upsert_and_read_back(self, store: ProgressStore):
        await store.upsert_skill_state(
            SkillProgress(user_id=USER, skill_id="S1", unlocked=True,
                          status=SkillStatus.CURRENT, mastery=50)
        )
        await store.upsert_unit_state(
            UnitProgress(user_id=USER, unit_id="U1", status=UnitStatus.COMPLETED,
                         reward_claimed=True)
        )
        await store.upsert_skill_state(
            SkillProgress(user_id=USER, skill_id="S1", unlocked=True,
                          status=SkillStatus.COMPLETED, mastery=100)
        )

        skill = (await store.get_skill_states(USER, ["S1"]))["S1"]
        unit = (await store.get_unit_states(USER, ["U1"]))["U1"]
        assert skill.status is SkillStatus.COMPLETED
        assert skill.mastery == 100
        assert unit.status is UnitStatus.COMPLETED
        assert unit.reward_claimed is True


class TestNodeStore:
    """Tests for NodeStore lookups over the seeded tree."""

    @pytest.mark.asyncio
    async def test_get_node(self, db_session: AsyncSession, skill_tree):
        node = await NodeStore(db_session).get_node("N1")

        assert node.skill_id == "S1"
        assert node.xp_reward == 50

    @pytest.mark.asyncio
    async def test_get_missing_node(self, db_session: AsyncSession, skill_tree):
        with pytest.raises(NodeNotFoundError):
            await NodeStore(db_session).get_node("NOPE")

    @pytest.mark.asyncio
    async def test_resolve_ordered(self, db_session: AsyncSession, skill_tree):
        nodes, missing = await NodeStore(db_session).resolve_ordered(["N3", "Z9", "N1", "Z1"])

        assert [n.node_id for n in nodes] == ["N3", "N1"]
        assert missing == ["Z9", "Z1"]

    @pytest.mark.asyncio
    async def test_find_dependents(self, db_session: AsyncSession, skill_tree):
        dependents = await NodeStore(db_session).find_dependents("N2")

        assert [n.node_id for n in dependents] == ["X1"]

    @pytest.mark.asyncio
    async def test_load_tree(self, db_session: AsyncSession, skill_tree):
        tree = await NodeStore(db_session).load_tree()

        assert [u.unit_id for u in tree.units] == ["U1", "U2"]
        assert tree.skill_ids() == ["S1", "S2", "S3"]
        assert tree.nodes_in_skill("S1") == ["N1", "N2"]
        assert "X1" not in tree.nodes
        assert tree.next_node_in_skill("N1") == "N2"
        assert tree.next_node_in_skill("N2") is None
        assert tree.next_skill("S1").skill_id == "S2"
        assert tree.next_skill("S2") is None
        assert tree.next_unit("U1").unit_id == "U2"
        assert tree.get_unit("U1").reward.reward_xp == 20
        assert tree.get_unit("U2").reward is None
