# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learning path service.

This module provides the PathService class for:
- Path CRUD with derived fields recomputed on every node list write
- Adding, removing and reordering nodes
- Cloning templates into school or teacher copies
- Listing templates and school paths
- Per-learner progress reports over a path

Node list writes resolve every id first. If any id is unknown nothing is
written and the error lists the offending ids. The node list and the
derived fields are stored together while the path's lock is held.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.core.config.settings import Settings, get_settings
from learnpath.core.errors import (
    InvalidReferenceError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from learnpath.domains.curriculum.models import Node, NodeStatus
from learnpath.domains.curriculum.store import NodeStore
from learnpath.domains.paths.aggregator import aggregate_nodes
from learnpath.domains.paths.schemas import (
    LearningPath,
    NodeProgressEntry,
    PathCreate,
    PathFilters,
    PathProgressReport,
    PathUpdate,
)
from learnpath.domains.progress.store import ProgressStore
from learnpath.infrastructure.database.models import PathRecord
from learnpath.infrastructure.events import EventBus, EventTypes, get_event_bus
from learnpath.infrastructure.locks import KeyedLockRegistry, get_lock_registry, path_key
from learnpath.utils.rounding import percent

logger = logging.getLogger(__name__)

# (stored path id, current node ids) -> new node ids
NodeListEdit = Callable[[str, list[str]], list[str]]

# fields a clone never inherits from its source
_CLONE_OVERRIDES = {"path_id", "name", "created_by", "school_id", "is_template", "is_public"}


class PathNotFoundError(NotFoundError):
    """Raised when a path does not exist."""

    pass


class InvalidNodeReferenceError(InvalidReferenceError):
    """Raised when a path write names unknown node ids.

    Attributes:
        invalid_ids: The ids that did not resolve, in request order.
    """

    def __init__(self, invalid_ids: list[str]) -> None:
        super().__init__(
            f"Unknown node ids: {', '.join(invalid_ids)}",
            invalid_ids=invalid_ids,
        )
        self.invalid_ids = invalid_ids


class PathValidationError(ValidationError):
    """Raised when a path write is structurally invalid."""

    pass


class ProtectedPathError(ValidationError):
    """Raised when deleting a public template."""

    pass


class PathService:
    """Service for learning path management.

    Attributes:
        db: Async database session.
        settings: Application settings.
        nodes: Node lookups.
        progress: Progress lookups for reports.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings | None = None,
        locks: KeyedLockRegistry | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self._locks = locks if locks is not None else get_lock_registry()
        self._bus = bus if bus is not None else get_event_bus()
        self.nodes = NodeStore(db)
        self.progress = ProgressStore(db, self._locks)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _get_record(self, path_id: str, for_update: bool = False) -> PathRecord:
        stmt = select(PathRecord).where(PathRecord.path_id == path_id.upper())
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        record = (await self.db.execute(stmt)).scalar_one_or_none()
        if record is None:
            raise PathNotFoundError(f"Path not found: {path_id}", path_id=path_id)
        return record

    def _check_size(self, node_ids: Sequence[str]) -> None:
        max_nodes = self.settings.paths.max_nodes
        if not 1 <= len(node_ids) <= max_nodes:
            raise PathValidationError(
                f"A path needs between 1 and {max_nodes} nodes, got {len(node_ids)}",
                count=len(node_ids),
            )

    async def _resolve(self, node_ids: list[str]) -> list[Node]:
        self._check_size(node_ids)
        nodes, missing = await self.nodes.resolve_ordered(node_ids)
        if missing:
            raise InvalidNodeReferenceError(missing)
        return nodes

    @staticmethod
    def _apply_nodes(record: PathRecord, nodes: list[Node]) -> None:
        aggregate = aggregate_nodes(nodes)
        record.node_ids = [node.node_id for node in nodes]
        record.total_nodes = aggregate.total_nodes
        record.total_xp = aggregate.total_xp
        record.total_quizzes = aggregate.total_quizzes
        record.estimated_hours = aggregate.estimated_hours
        record.checkpoint_count = aggregate.checkpoint_count
        record.difficulty = aggregate.difficulty.value

    @asynccontextmanager
    async def _transaction(self, path_id: str) -> AsyncIterator[None]:
        """Hold the path lock, commit on success and roll back on any error."""
        async with self._locks.hold(path_key(path_id)):
            try:
                yield
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

    async def _edit_nodes(self, path_id: str, edit: NodeListEdit) -> LearningPath:
        """Read, edit and store the node list under one lock and transaction.

        ``edit`` receives the stored path id and a copy of its node ids and
        returns the new list; it may raise to abort without writing.
        """
        async with self._transaction(path_id):
            record = await self._get_record(path_id, for_update=True)
            node_ids = edit(record.path_id, list(record.node_ids))
            self._apply_nodes(record, await self._resolve(node_ids))
            await self.db.flush()
            path = LearningPath.model_validate(record)

        await self._bus.publish(
            EventTypes.Paths.UPDATED,
            {"path_id": path.path_id, "node_ids": path.node_ids},
        )
        return path

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create_path(self, data: PathCreate) -> LearningPath:
        """Create a path and compute its derived fields.

        Raises:
            PathValidationError: If the id is taken or the size is out of range.
            InvalidNodeReferenceError: If any node id is unknown.
        """
        async with self._transaction(data.path_id):
            if await self.db.get(PathRecord, data.path_id) is not None:
                raise PathValidationError(
                    f"Path id already exists: {data.path_id}",
                    path_id=data.path_id,
                )
            nodes = await self._resolve(data.node_ids)
            record = PathRecord(**data.model_dump(exclude={"node_ids"}))
            self._apply_nodes(record, nodes)
            self.db.add(record)
            await self.db.flush()
            path = LearningPath.model_validate(record)

        logger.info("Created path %s with %d nodes", path.path_id, path.total_nodes)
        await self._bus.publish(EventTypes.Paths.CREATED, {"path_id": path.path_id})
        return path

    async def get_path(self, path_id: str) -> LearningPath:
        """Get a path by id (case-insensitive).

        Raises:
            PathNotFoundError: If the path does not exist.
        """
        return LearningPath.model_validate(await self._get_record(path_id))

    async def update_path(self, path_id: str, data: PathUpdate) -> LearningPath:
        """Apply a partial update; a new node list recomputes derived fields.

        Raises:
            PathNotFoundError: If the path does not exist.
            PathValidationError: If the new node list has a bad size.
            InvalidNodeReferenceError: If the new node list names unknown ids.
        """
        changes = data.model_dump(exclude_unset=True)
        node_ids = changes.pop("node_ids", None)

        async with self._transaction(path_id):
            record = await self._get_record(path_id, for_update=True)
            if node_ids is not None:
                self._apply_nodes(record, await self._resolve(node_ids))
            for name, value in changes.items():
                setattr(record, name, value)
            await self.db.flush()
            path = LearningPath.model_validate(record)

        logger.info("Updated path %s: %s", path.path_id, sorted(data.model_fields_set))
        await self._bus.publish(EventTypes.Paths.UPDATED, {"path_id": path.path_id})
        return path

    async def replace_nodes(self, path_id: str, node_ids: list[str]) -> LearningPath:
        """Replace the whole node list."""
        return await self._edit_nodes(path_id, lambda stored_id, current: list(node_ids))

    async def add_node(
        self, path_id: str, node_id: str, position: int | None = None
    ) -> LearningPath:
        """Insert a node, at the end unless a position is given.

        Raises:
            PathValidationError: If the node is already on the path.
        """

        def insert(stored_id: str, current: list[str]) -> list[str]:
            if node_id in current:
                raise PathValidationError(
                    f"Node {node_id} is already on path {stored_id}",
                    path_id=stored_id,
                    node_id=node_id,
                )
            current.insert(len(current) if position is None else position, node_id)
            return current

        return await self._edit_nodes(path_id, insert)

    async def remove_node(self, path_id: str, node_id: str) -> LearningPath:
        """Remove a node from the path.

        Raises:
            PathValidationError: If the node is not on the path or it is
                the last one.
        """

        def remove(stored_id: str, current: list[str]) -> list[str]:
            if node_id not in current:
                raise PathValidationError(
                    f"Node {node_id} is not on path {stored_id}",
                    path_id=stored_id,
                    node_id=node_id,
                )
            return [n for n in current if n != node_id]

        return await self._edit_nodes(path_id, remove)

    async def reorder_nodes(self, path_id: str, node_ids: list[str]) -> LearningPath:
        """Replace the node order.

        The new list must have the same length as the current one. With
        ``paths.strict_reorder`` (the default) it must also contain exactly
        the current ids.

        Raises:
            PathValidationError: If the list does not match the current one.
        """
        strict = self.settings.paths.strict_reorder

        def reorder(stored_id: str, current: list[str]) -> list[str]:
            if len(node_ids) != len(current):
                raise PathValidationError(
                    "Reorder must keep the number of nodes",
                    expected=len(current),
                    got=len(node_ids),
                )
            if strict and sorted(node_ids) != sorted(current):
                raise PathValidationError(
                    "Reorder must be a permutation of the current nodes",
                    added=sorted(set(node_ids) - set(current)),
                    removed=sorted(set(current) - set(node_ids)),
                )
            return list(node_ids)

        return await self._edit_nodes(path_id, reorder)

    async def clone_path(
        self,
        path_id: str,
        new_path_id: str,
        new_name: str | None = None,
        created_by: str | None = None,
        school_id: str | None = None,
    ) -> LearningPath:
        """Copy a path under a new id as a private, non-template path.

        Raises:
            PathNotFoundError: If the source does not exist.
            PathValidationError: If the new id is taken.
        """
        source = await self.get_path(path_id)
        copied = source.model_dump(include=set(PathCreate.model_fields) - _CLONE_OVERRIDES)
        data = PathCreate(
            **copied,
            path_id=new_path_id,
            name=new_name or f"{source.name} (Copy)",
            created_by=created_by,
            school_id=school_id if school_id is not None else source.school_id,
            is_template=False,
            is_public=False,
        )

        path = await self.create_path(data)
        logger.info("Cloned path %s into %s", source.path_id, path.path_id)
        return path

    async def delete_path(self, path_id: str) -> None:
        """Delete a path.

        Raises:
            PathNotFoundError: If the path does not exist.
            ProtectedPathError: If the path is a public template.
        """
        async with self._transaction(path_id):
            record = await self._get_record(path_id, for_update=True)
            if record.is_template and record.is_public:
                raise ProtectedPathError(
                    f"Public template paths cannot be deleted: {record.path_id}",
                    path_id=record.path_id,
                )
            deleted_id = record.path_id
            await self.db.delete(record)
            await self.db.flush()

        logger.info("Deleted path %s", deleted_id)
        await self._bus.publish(EventTypes.Paths.DELETED, {"path_id": deleted_id})

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_paths(
        self,
        filters: PathFilters | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[LearningPath]:
        """List paths matching the filters, ordered by coordinates and name."""
        filters = filters or PathFilters()
        stmt = select(PathRecord)
        criteria: dict[str, Any] = filters.model_dump(exclude={"tag"}, exclude_none=True)
        for name, value in criteria.items():
            stmt = stmt.where(getattr(PathRecord, name) == value)
        stmt = stmt.order_by(
            PathRecord.grade_level,
            PathRecord.class_number,
            PathRecord.semester,
            PathRecord.name,
        )

        records = (await self.db.execute(stmt)).scalars().all()
        paths = [LearningPath.model_validate(r) for r in records]
        if filters.tag is not None:
            paths = [p for p in paths if filters.tag in p.tags]
        end = None if limit is None else offset + limit
        return paths[offset:end]

    async def list_templates(self, filters: PathFilters | None = None) -> list[LearningPath]:
        """List public template paths."""
        filters = (filters or PathFilters()).model_copy(
            update={"is_template": True, "is_public": True}
        )
        return await self.list_paths(filters)

    async def list_school_paths(
        self, school_id: str, include_templates: bool = True
    ) -> list[LearningPath]:
        """List a school's own paths, plus public templates if requested."""
        condition = PathRecord.school_id == school_id
        if include_templates:
            condition = or_(
                condition,
                (PathRecord.is_template.is_(True)) & (PathRecord.is_public.is_(True)),
            )
        stmt = (
            select(PathRecord)
            .where(condition, PathRecord.is_active.is_(True))
            .order_by(PathRecord.is_template, PathRecord.name)
        )
        records = (await self.db.execute(stmt)).scalars().all()
        return [LearningPath.model_validate(r) for r in records]

    async def get_path_nodes(self, path_id: str) -> list[Node]:
        """Get the path's nodes in path order, skipping ids that no longer resolve."""
        path = await self.get_path(path_id)
        nodes, missing = await self.nodes.resolve_ordered(path.node_ids)
        if missing:
            logger.warning("Path %s references missing nodes: %s", path.path_id, missing)
        return nodes

    # =========================================================================
    # Reporting
    # =========================================================================

    async def get_path_progress(self, path_id: str, user_id: str) -> PathProgressReport:
        """Report a learner's progress over a path.

        Entries carry the reporting status: mastered shows as completed and
        available as current. The summary counts completed and in-progress
        nodes; every other node, available ones included, is counted as
        locked.

        Raises:
            PathNotFoundError: If the path does not exist.
            InvariantViolationError: If the counts do not add up.
        """
        path = await self.get_path(path_id)
        by_node = await self.progress.progress_map(user_id, path.node_ids)
        nodes = await self.nodes.get_nodes_by_ids(path.node_ids)
        titles = {node.node_id: node.title for node in nodes}

        entries: list[NodeProgressEntry] = []
        completed = in_progress = xp_earned = stars = 0
        for node_id in path.node_ids:
            progress = by_node[node_id]
            status = progress.status.reporting_status()
            if status is NodeStatus.COMPLETED:
                completed += 1
            elif status is NodeStatus.IN_PROGRESS:
                in_progress += 1
            xp_earned += progress.xp_earned
            stars += progress.stars
            entries.append(
                NodeProgressEntry(
                    node_id=node_id,
                    title=titles.get(node_id),
                    status=status,
                    stars=progress.stars,
                    best_score=progress.best_score,
                    xp_earned=progress.xp_earned,
                    completed_at=progress.completed_at,
                )
            )

        total = path.total_nodes
        locked = total - completed - in_progress
        if locked < 0:
            logger.error(
                "Negative locked count on path %s for %s: total=%d completed=%d in_progress=%d",
                path.path_id,
                user_id,
                total,
                completed,
                in_progress,
            )
            raise InvariantViolationError(
                "Locked node count would be negative",
                path_id=path.path_id,
                user_id=user_id,
            )

        max_stars = total * 3
        return PathProgressReport(
            path_id=path.path_id,
            user_id=user_id,
            total_nodes=total,
            completed_nodes=completed,
            in_progress_nodes=in_progress,
            locked_nodes=locked,
            completion_percent=percent(completed, total),
            xp_earned=xp_earned,
            xp_available=path.total_xp,
            stars_earned=stars,
            max_stars=max_stars,
            star_percent=percent(stars, max_stars),
            nodes=entries,
        )
