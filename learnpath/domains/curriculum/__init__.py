# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Curriculum domain: the node arena and the skill tree index."""

from learnpath.domains.curriculum.models import (
    Difficulty,
    Node,
    NodeStatus,
    Skill,
    SkillStatus,
    Unit,
    UnitReward,
    UnitStatus,
)
from learnpath.domains.curriculum.store import (
    NodeNotFoundError,
    NodeStore,
    SkillTreeIndex,
    node_from_record,
)

__all__ = [
    "Difficulty",
    "NodeStatus",
    "SkillStatus",
    "UnitStatus",
    "Node",
    "Skill",
    "Unit",
    "UnitReward",
    "NodeStore",
    "NodeNotFoundError",
    "SkillTreeIndex",
    "node_from_record",
]
