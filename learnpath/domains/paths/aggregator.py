# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Path aggregation: derived statistics computed from member nodes."""

from typing import Iterable

from pydantic import BaseModel

from learnpath.domains.curriculum.models import Difficulty, Node
from learnpath.utils.rounding import round_half_up


class PathAggregate(BaseModel):
    """Derived fields of a path, always recomputed from its nodes."""

    total_nodes: int = 0
    total_xp: int = 0
    total_quizzes: int = 0
    estimated_hours: float = 0.0
    checkpoint_count: int = 0
    difficulty: Difficulty = Difficulty.MIXED


def overall_difficulty(nodes: Iterable[Node]) -> Difficulty:
    """Return the single difficulty shared by all nodes, else MIXED."""
    difficulties = {node.difficulty for node in nodes}
    if len(difficulties) == 1:
        return difficulties.pop()
    return Difficulty.MIXED


def aggregate_nodes(nodes: list[Node]) -> PathAggregate:
    """Aggregate statistics over a path's nodes.

    Args:
        nodes: Resolved member nodes. Duplicates count once per occurrence.

    Returns:
        PathAggregate with totals, hours rounded to one decimal and the
        overall difficulty.
    """
    total_minutes = sum(node.estimated_minutes for node in nodes)
    return PathAggregate(
        total_nodes=len(nodes),
        total_xp=sum(node.xp_reward for node in nodes),
        total_quizzes=sum(node.quiz_count for node in nodes),
        estimated_hours=round_half_up(total_minutes / 60, 1),
        checkpoint_count=sum(1 for node in nodes if node.is_checkpoint),
        difficulty=overall_difficulty(nodes),
    )


def unique_texts(values: Iterable[str]) -> list[str]:
    """Deduplicate strings in first-seen order, dropping blank entries."""
    seen: dict[str, None] = {}
    for value in values:
        if value and value.strip():
            seen.setdefault(value, None)
    return list(seen)
