# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progress store: per-(user, node) records and skill/unit state rows.

Writes go through ``upsert_*`` methods. Each one holds the row's lock key,
reads the row with SELECT ... FOR UPDATE, applies the change to a
validated working copy and only then touches the ORM row. The store
flushes but never commits; the calling service owns the transaction.

Example:
    >>> store = ProgressStore(db)
    >>> def start(progress):
    ...     progress.status = NodeStatus.IN_PROGRESS
    ...     progress.attempts += 1
    >>> await store.upsert_progress("user-1", "N-1", start)
"""

import logging
from enum import Enum
from typing import Callable, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.core.errors import NotFoundError
from learnpath.domains.progress.models import Progress, SkillProgress, UnitProgress
from learnpath.infrastructure.database.models import (
    ProgressRecord,
    SkillProgressRecord,
    UnitProgressRecord,
)
from learnpath.infrastructure.locks import KeyedLockRegistry, get_lock_registry, progress_key

logger = logging.getLogger(__name__)

ProgressMutator = Callable[[Progress], None]


class ProgressNotFoundError(NotFoundError):
    """Raised when a learner has no progress record for a node."""

    pass


def _copy_onto(record: object, model: Progress | SkillProgress | UnitProgress) -> None:
    for name, value in model.model_dump().items():
        setattr(record, name, value.value if isinstance(value, Enum) else value)


class ProgressStore:
    """Per-learner progress persistence.

    Attributes:
        _db: Async database session.
        _locks: Lock registry serializing writes per key.
    """

    def __init__(self, db: AsyncSession, locks: KeyedLockRegistry | None = None) -> None:
        self._db = db
        self._locks = locks if locks is not None else get_lock_registry()

    async def _load_progress(
        self, user_id: str, node_id: str, lock: bool = False
    ) -> ProgressRecord | None:
        stmt = select(ProgressRecord).where(
            ProgressRecord.user_id == user_id,
            ProgressRecord.node_id == node_id,
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_progress(
        self, user_id: str, node_id: str, for_update: bool = False
    ) -> Progress | None:
        """Get a progress record, or None if the learner never touched the node."""
        record = await self._load_progress(user_id, node_id, lock=for_update)
        return Progress.model_validate(record) if record else None

    async def get_progress(self, user_id: str, node_id: str) -> Progress:
        """Get a progress record.

        Raises:
            ProgressNotFoundError: If no record exists.
        """
        progress = await self.find_progress(user_id, node_id)
        if progress is None:
            raise ProgressNotFoundError(
                f"No progress for user {user_id} on node {node_id}",
                user_id=user_id,
                node_id=node_id,
            )
        return progress

    async def upsert_progress(
        self,
        user_id: str,
        node_id: str,
        mutator: ProgressMutator,
    ) -> Progress:
        """Create or update a progress record atomically.

        A missing record starts as ``locked``. The mutator edits a working
        copy in place; if it raises, nothing is written and the exception
        propagates.

        Args:
            user_id: Learner id.
            node_id: Node id.
            mutator: Callable editing the working copy.

        Returns:
            The stored progress.
        """
        async with self._locks.hold(progress_key(user_id, node_id)):
            record = await self._load_progress(user_id, node_id, lock=True)
            if record is None:
                working = Progress(user_id=user_id, node_id=node_id)
            else:
                working = Progress.model_validate(record)

            mutator(working)

            if record is None:
                record = ProgressRecord(user_id=user_id, node_id=node_id)
                self._db.add(record)
            _copy_onto(record, working)
            await self._db.flush()

        return working

    async def list_progress_for_nodes(
        self, user_id: str, node_ids: Iterable[str]
    ) -> list[Progress]:
        """List existing progress records of a learner for the given nodes."""
        ids = list(dict.fromkeys(node_ids))
        if not ids:
            return []
        result = await self._db.execute(
            select(ProgressRecord).where(
                ProgressRecord.user_id == user_id,
                ProgressRecord.node_id.in_(ids),
            )
        )
        return [Progress.model_validate(r) for r in result.scalars().all()]

    async def progress_map(self, user_id: str, node_ids: Iterable[str]) -> dict[str, Progress]:
        """Map node id to progress for every requested node.

        Nodes without a record get an unsaved ``locked`` placeholder.
        """
        ids = list(dict.fromkeys(node_ids))
        existing = {p.node_id: p for p in await self.list_progress_for_nodes(user_id, ids)}
        return {
            node_id: existing.get(node_id) or Progress(user_id=user_id, node_id=node_id)
            for node_id in ids
        }

    async def get_skill_states(
        self, user_id: str, skill_ids: Iterable[str]
    ) -> dict[str, SkillProgress]:
        """Get skill states, defaulting missing rows to locked."""
        ids = list(dict.fromkeys(skill_ids))
        states = {skill_id: SkillProgress(user_id=user_id, skill_id=skill_id) for skill_id in ids}
        if ids:
            result = await self._db.execute(
                select(SkillProgressRecord).where(
                    SkillProgressRecord.user_id == user_id,
                    SkillProgressRecord.skill_id.in_(ids),
                )
            )
            for record in result.scalars().all():
                states[record.skill_id] = SkillProgress.model_validate(record)
        return states

    async def get_unit_states(
        self, user_id: str, unit_ids: Iterable[str]
    ) -> dict[str, UnitProgress]:
        """Get unit states, defaulting missing rows to upcoming."""
        ids = list(dict.fromkeys(unit_ids))
        states = {unit_id: UnitProgress(user_id=user_id, unit_id=unit_id) for unit_id in ids}
        if ids:
            result = await self._db.execute(
                select(UnitProgressRecord).where(
                    UnitProgressRecord.user_id == user_id,
                    UnitProgressRecord.unit_id.in_(ids),
                )
            )
            for record in result.scalars().all():
                states[record.unit_id] = UnitProgress.model_validate(record)
        return states

    async def upsert_skill_state(self, state: SkillProgress) -> SkillProgress:
        """Write a skill state row."""
        result = await self._db.execute(
            select(SkillProgressRecord)
            .where(
                SkillProgressRecord.user_id == state.user_id,
                SkillProgressRecord.skill_id == state.skill_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        if record is None:
            record = SkillProgressRecord(user_id=state.user_id, skill_id=state.skill_id)
            self._db.add(record)
        _copy_onto(record, state)
        await self._db.flush()
        return state

    async def upsert_unit_state(self, state: UnitProgress) -> UnitProgress:
        """Write a unit state row."""
        result = await self._db.execute(
            select(UnitProgressRecord)
            .where(
                UnitProgressRecord.user_id == state.user_id,
                UnitProgressRecord.unit_id == state.unit_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        if record is None:
            record = UnitProgressRecord(user_id=state.user_id, unit_id=state.unit_id)
            self._db.add(record)
        _copy_onto(record, state)
        await self._db.flush()
        return state
