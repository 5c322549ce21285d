# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Read-only node lookups and the skill tree containment index.

Example:
    >>> store = NodeStore(db)
    >>> nodes, missing = await store.resolve_ordered(["N-2", "N-9", "N-1"])
    >>> tree = await store.load_tree()
    >>> tree.next_node_in_skill("N-1")
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.core.errors import NotFoundError
from learnpath.domains.curriculum.models import Node, Skill, Unit, UnitReward
from learnpath.infrastructure.database.models import NodeRecord, SkillRecord, UnitRecord

logger = logging.getLogger(__name__)


class NodeNotFoundError(NotFoundError):
    """Raised when a node does not exist."""

    pass


def node_from_record(record: NodeRecord) -> Node:
    """Convert a database row to a Node."""
    return Node.model_validate(record)


def unit_from_record(record: UnitRecord) -> Unit:
    """Convert a database row to a Unit, folding the reward columns."""
    reward = None
    if record.reward_type:
        reward = UnitReward(
            reward_type=record.reward_type,
            reward_label=record.reward_label or record.reward_type,
            reward_xp=record.reward_xp,
        )
    return Unit(
        unit_id=record.unit_id,
        title=record.title,
        order_index=record.order_index,
        reward=reward,
    )


@dataclass
class SkillTreeIndex:
    """Ordered unit -> skill -> node containment over the node arena.

    Attributes:
        units: Units in order.
        skills_by_unit: Ordered skills of each unit.
        node_ids_by_skill: Ordered node ids of each skill.
        nodes: All nodes referenced by the tree, by id.
    """

    units: list[Unit] = field(default_factory=list)
    skills_by_unit: dict[str, list[Skill]] = field(default_factory=dict)
    node_ids_by_skill: dict[str, list[str]] = field(default_factory=dict)
    nodes: dict[str, Node] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._skills = {
            skill.skill_id: skill
            for skills in self.skills_by_unit.values()
            for skill in skills
        }
        self._units = {unit.unit_id: unit for unit in self.units}

    def skill_ids(self) -> list[str]:
        """All skill ids in course order."""
        return [s.skill_id for u in self.units for s in self.skills_in_unit(u.unit_id)]

    def get_skill(self, skill_id: str) -> Skill | None:
        return self._skills.get(skill_id)

    def get_unit(self, unit_id: str) -> Unit | None:
        return self._units.get(unit_id)

    def skill_of(self, node_id: str) -> Skill | None:
        """Get the skill containing a node, if any."""
        node = self.nodes.get(node_id)
        if node is None or node.skill_id is None:
            return None
        return self._skills.get(node.skill_id)

    def nodes_in_skill(self, skill_id: str) -> list[str]:
        return self.node_ids_by_skill.get(skill_id, [])

    def skills_in_unit(self, unit_id: str) -> list[Skill]:
        return self.skills_by_unit.get(unit_id, [])

    def next_node_in_skill(self, node_id: str) -> str | None:
        """Get the sibling that follows a node in its skill."""
        skill = self.skill_of(node_id)
        if skill is None:
            return None
        siblings = self.nodes_in_skill(skill.skill_id)
        position = siblings.index(node_id)
        if position + 1 < len(siblings):
            return siblings[position + 1]
        return None

    def next_skill(self, skill_id: str) -> Skill | None:
        """Get the skill that follows in the same unit."""
        skill = self._skills.get(skill_id)
        if skill is None:
            return None
        skills = self.skills_in_unit(skill.unit_id)
        position = skills.index(skill)
        if position + 1 < len(skills):
            return skills[position + 1]
        return None

    def next_unit(self, unit_id: str) -> Unit | None:
        """Get the unit that follows in course order."""
        unit = self._units.get(unit_id)
        if unit is None:
            return None
        position = self.units.index(unit)
        if position + 1 < len(self.units):
            return self.units[position + 1]
        return None

    def first_node_of_skill(self, skill_id: str) -> str | None:
        node_ids = self.nodes_in_skill(skill_id)
        return node_ids[0] if node_ids else None


class NodeStore:
    """Read-only access to nodes and their containment.

    Attributes:
        _db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_node(self, node_id: str) -> Node:
        """Get a node by id.

        Raises:
            NodeNotFoundError: If the node does not exist.
        """
        record = await self._db.get(NodeRecord, node_id)
        if record is None:
            raise NodeNotFoundError(f"Node not found: {node_id}", node_id=node_id)
        return node_from_record(record)

    async def get_nodes_by_ids(self, node_ids: Iterable[str]) -> list[Node]:
        """Get the nodes that exist among the given ids, in no particular order."""
        ids = list(dict.fromkeys(node_ids))
        if not ids:
            return []
        result = await self._db.execute(select(NodeRecord).where(NodeRecord.node_id.in_(ids)))
        return [node_from_record(r) for r in result.scalars().all()]

    async def resolve_ordered(self, node_ids: list[str]) -> tuple[list[Node], list[str]]:
        """Resolve ids keeping the requested order.

        Args:
            node_ids: Requested ids, possibly with unknown entries.

        Returns:
            Tuple of (resolved nodes in request order, unresolved ids in
            request order).
        """
        found = {node.node_id: node for node in await self.get_nodes_by_ids(node_ids)}
        resolved = [found[node_id] for node_id in node_ids if node_id in found]
        missing = [node_id for node_id in node_ids if node_id not in found]
        return resolved, missing

    async def list_active_nodes(self) -> list[Node]:
        """List active nodes ordered by grade, class, semester and position."""
        stmt = (
            select(NodeRecord)
            .where(NodeRecord.is_active.is_(True))
            .order_by(
                NodeRecord.grade_level,
                NodeRecord.class_number,
                NodeRecord.semester,
                NodeRecord.order_index,
                NodeRecord.node_id,
            )
        )
        result = await self._db.execute(stmt)
        return [node_from_record(r) for r in result.scalars().all()]

    async def find_dependents(self, node_id: str) -> list[Node]:
        """List nodes that name the given node as a prerequisite."""
        result = await self._db.execute(select(NodeRecord).order_by(NodeRecord.node_id))
        return [
            node_from_record(r)
            for r in result.scalars().all()
            if node_id in (r.prerequisites or [])
        ]

    async def load_tree(self) -> SkillTreeIndex:
        """Load the ordered unit -> skill -> node index."""
        units = (
            await self._db.execute(
                select(UnitRecord).order_by(UnitRecord.order_index, UnitRecord.unit_id)
            )
        ).scalars().all()
        skills = (
            await self._db.execute(
                select(SkillRecord).order_by(SkillRecord.order_index, SkillRecord.skill_id)
            )
        ).scalars().all()
        nodes = (
            await self._db.execute(
                select(NodeRecord)
                .where(NodeRecord.skill_id.is_not(None))
                .order_by(NodeRecord.order_index, NodeRecord.node_id)
            )
        ).scalars().all()

        skills_by_unit: dict[str, list[Skill]] = {u.unit_id: [] for u in units}
        for record in skills:
            skills_by_unit.setdefault(record.unit_id, []).append(Skill.model_validate(record))

        node_ids_by_skill: dict[str, list[str]] = {s.skill_id: [] for s in skills}
        node_map: dict[str, Node] = {}
        for record in nodes:
            node = node_from_record(record)
            node_map[node.node_id] = node
            node_ids_by_skill.setdefault(record.skill_id, []).append(node.node_id)

        logger.debug(
            "Loaded skill tree: %d units, %d skills, %d nodes",
            len(units),
            len(skills),
            len(node_map),
        )

        return SkillTreeIndex(
            units=[unit_from_record(u) for u in units],
            skills_by_unit=skills_by_unit,
            node_ids_by_skill=node_ids_by_skill,
            nodes=node_map,
        )
