# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Template path generation.

Groups active nodes by (grade, class, semester, subject, major) and writes
one public template path per group. Groups that already have a template
are skipped, so the job is additive and safe to re-run.

Example:
    >>> generator = TemplatePathGenerator(db)
    >>> summary = await generator.generate()
    >>> summary.created_count, summary.skipped_count
    (12, 0)
"""

import logging
import re
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.core.config.settings import Settings, get_settings
from learnpath.domains.curriculum.models import Node
from learnpath.domains.curriculum.store import NodeStore
from learnpath.domains.paths.aggregator import aggregate_nodes, unique_texts
from learnpath.domains.paths.schemas import GenerationSummary
from learnpath.infrastructure.database.models import PathRecord
from learnpath.infrastructure.events import EventBus, EventTypes, get_event_bus

logger = logging.getLogger(__name__)

DEFAULT_CURRICULUM = "Kurikulum Merdeka"

GroupKey = tuple[str, int, int, str, str | None]


@dataclass
class NodeGroup:
    """Active nodes sharing curriculum coordinates."""

    grade_level: str
    class_number: int
    semester: int
    subject: str
    major: str | None
    curriculum: str
    nodes: list[Node] = field(default_factory=list)

    @property
    def label(self) -> str:
        return (
            f"{self.grade_level}-{self.class_number}-{self.semester}-"
            f"{self.subject}-{self.major or 'NONE'}"
        )


def group_nodes(nodes: list[Node]) -> tuple[list[NodeGroup], list[str]]:
    """Group nodes by coordinates, keeping first-seen order.

    Returns:
        Tuple of (groups, ids of nodes missing a coordinate).
    """
    groups: dict[GroupKey, NodeGroup] = {}
    ungrouped: list[str] = []
    for node in nodes:
        if not (node.grade_level and node.class_number and node.semester and node.subject):
            ungrouped.append(node.node_id)
            continue
        key = (node.grade_level, node.class_number, node.semester, node.subject, node.major)
        group = groups.get(key)
        if group is None:
            group = groups[key] = NodeGroup(
                grade_level=node.grade_level,
                class_number=node.class_number,
                semester=node.semester,
                subject=node.subject,
                major=node.major,
                curriculum=node.curriculum or DEFAULT_CURRICULUM,
            )
        group.nodes.append(node)
    return list(groups.values()), ungrouped


def _slug(value: str) -> str:
    return re.sub(r"\s+", "-", value.strip()).upper()


class TemplatePathGenerator:
    """Creates template paths for uncovered node groups.

    Attributes:
        db: Async database session.
        settings: Application settings.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self._bus = bus if bus is not None else get_event_bus()
        self.nodes = NodeStore(db)

    async def _find_template(self, group: NodeGroup) -> PathRecord | None:
        if group.major is None:
            major = PathRecord.major.is_(None)
        else:
            major = PathRecord.major == group.major
        stmt = select(PathRecord).where(
            PathRecord.is_template.is_(True),
            PathRecord.grade_level == group.grade_level,
            PathRecord.class_number == group.class_number,
            PathRecord.semester == group.semester,
            PathRecord.subject == group.subject,
            major,
        )
        return (await self.db.execute(stmt.limit(1))).scalar_one_or_none()

    async def _unique_path_id(self, group: NodeGroup, taken: set[str]) -> str:
        base = "-".join(
            [
                self.settings.paths.id_prefix,
                _slug(group.grade_level),
                str(group.class_number),
                str(group.semester),
                _slug(group.subject),
            ]
            + ([_slug(group.major)] if group.major else [])
        )
        candidate, suffix = base, 1
        while candidate in taken or await self.db.get(PathRecord, candidate) is not None:
            suffix += 1
            candidate = f"{base}-{suffix}"
        taken.add(candidate)
        return candidate

    def _build_path(self, path_id: str, group: NodeGroup) -> PathRecord:
        nodes = group.nodes[: self.settings.paths.max_nodes]
        if len(nodes) < len(group.nodes):
            logger.warning(
                "Group %s has %d nodes, keeping the first %d",
                group.label,
                len(group.nodes),
                len(nodes),
            )
        aggregate = aggregate_nodes(nodes)

        major_suffix = f" ({group.major})" if group.major else ""
        name = (
            f"{group.subject} - Class {group.class_number} "
            f"Semester {group.semester}{major_suffix}"
        )
        description = (
            f"Complete learning path for {group.subject}, class {group.class_number} "
            f"semester {group.semester}{f' major {group.major}' if group.major else ''}. "
            f"Covers {aggregate.total_nodes} topics with {aggregate.total_quizzes} quizzes "
            f"and about {aggregate.estimated_hours} hours of study."
        )
        tags = [
            group.grade_level,
            f"Class-{group.class_number}",
            f"Semester-{group.semester}",
            group.subject,
            group.curriculum,
        ]
        if group.major:
            tags.append(group.major)

        return PathRecord(
            path_id=path_id,
            name=name,
            description=description,
            grade_level=group.grade_level,
            class_number=group.class_number,
            semester=group.semester,
            subject=group.subject,
            major=group.major,
            curriculum=group.curriculum,
            node_ids=[node.node_id for node in nodes],
            total_nodes=aggregate.total_nodes,
            total_xp=aggregate.total_xp,
            total_quizzes=aggregate.total_quizzes,
            estimated_hours=aggregate.estimated_hours,
            checkpoint_count=aggregate.checkpoint_count,
            difficulty=aggregate.difficulty.value,
            learning_outcomes=unique_texts(o for node in nodes for o in node.learning_outcomes),
            kompetensi_dasar=unique_texts(k for node in nodes for k in node.kompetensi_dasar),
            prerequisites=[],
            tags=unique_texts(tags),
            is_template=True,
            is_public=True,
            is_active=True,
        )

    async def generate(self) -> GenerationSummary:
        """Create template paths for every node group without one.

        Returns:
            GenerationSummary with created path ids and skipped group keys.
        """
        nodes = await self.nodes.list_active_nodes()
        groups, ungrouped = group_nodes(nodes)
        logger.info("Found %d active nodes in %d groups", len(nodes), len(groups))
        if ungrouped:
            logger.warning("Skipping %d nodes without curriculum coordinates", len(ungrouped))

        summary = GenerationSummary(total_nodes=len(nodes), ungrouped_nodes=ungrouped)
        taken: set[str] = set()
        try:
            for group in groups:
                existing = await self._find_template(group)
                if existing is not None:
                    logger.info("Skipping %s, template exists: %s", group.label, existing.path_id)
                    summary.skipped.append(group.label)
                    continue

                record = self._build_path(await self._unique_path_id(group, taken), group)
                self.db.add(record)
                await self.db.flush()
                summary.created.append(record.path_id)
                logger.info(
                    "Created %s: nodes=%d xp=%d quizzes=%d hours=%s checkpoints=%d",
                    record.path_id,
                    record.total_nodes,
                    record.total_xp,
                    record.total_quizzes,
                    record.estimated_hours,
                    record.checkpoint_count,
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Template generation complete: created=%d skipped=%d",
            summary.created_count,
            summary.skipped_count,
        )
        await self._bus.publish(EventTypes.Paths.GENERATED, summary.model_dump())
        return summary
