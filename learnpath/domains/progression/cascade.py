# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Cascading unlocks after a node completion.

The cascade is a pure function over a snapshot of one learner's state. It
walks a work list instead of recursing: each item is a node, skill or unit
that just finished, and handling it may enqueue the next container that
finished as a consequence (an empty skill or unit completes immediately).
The caller persists the returned diffs and reports the events in order.

Event order for one completion:

    lesson_unlocked   next sibling, then prerequisite dependents
    skill_unlocked    next skill of the unit
    lesson_unlocked   first lesson of that skill
    skill_unlocked    first skill of the next unit
    unit_progressed   next unit becomes current
    lesson_unlocked   first lesson of the next unit
    unit_progressed   finished unit, status=completed
    reward_claimed    one-time unit reward
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable

from learnpath.domains.curriculum.models import (
    Node,
    NodeStatus,
    SkillStatus,
    UnitReward,
    UnitStatus,
)
from learnpath.domains.curriculum.store import SkillTreeIndex
from learnpath.domains.gamification.models import TelemetryEventType
from learnpath.domains.progress.models import SkillProgress, UnitProgress
from learnpath.utils.rounding import round_half_up

_NODE = "node"
_SKILL = "skill"
_UNIT = "unit"


@dataclass
class CascadeEvent:
    """A telemetry event produced by the cascade."""

    type: TelemetryEventType
    metadata: dict[str, Any]


@dataclass
class GrantedReward:
    """A unit reward granted during the cascade."""

    unit_id: str
    reward: UnitReward


@dataclass
class CascadeOutcome:
    """Everything a completion changed beyond the completed node itself.

    Attributes:
        node_updates: New status per unlocked node.
        skill_updates: New state per touched skill.
        unit_updates: New state per touched unit.
        events: Telemetry events in emission order.
        unlocked_lessons: Nodes that moved from locked to available.
        unlocked_skills: Skills that became unlocked.
        unlocked_units: Units that became current.
        completed_units: Units that became completed.
        rewards: Unit rewards granted.
    """

    node_updates: dict[str, NodeStatus] = field(default_factory=dict)
    skill_updates: dict[str, SkillProgress] = field(default_factory=dict)
    unit_updates: dict[str, UnitProgress] = field(default_factory=dict)
    events: list[CascadeEvent] = field(default_factory=list)
    unlocked_lessons: list[str] = field(default_factory=list)
    unlocked_skills: list[str] = field(default_factory=list)
    unlocked_units: list[str] = field(default_factory=list)
    completed_units: list[str] = field(default_factory=list)
    rewards: list[GrantedReward] = field(default_factory=list)

    @property
    def reward_xp(self) -> int:
        return sum(granted.reward.reward_xp for granted in self.rewards)


def skill_mastery(node_ids: list[str], statuses: dict[str, NodeStatus]) -> int:
    """Percentage of finished nodes in a skill, rounded to an integer.

    An empty skill counts as fully mastered.
    """
    if not node_ids:
        return 100
    finished = sum(
        1 for node_id in node_ids if statuses.get(node_id, NodeStatus.LOCKED).is_terminal
    )
    return int(round_half_up(finished / len(node_ids) * 100))


class _Cascade:
    def __init__(
        self,
        user_id: str,
        tree: SkillTreeIndex,
        statuses: dict[str, NodeStatus],
        skill_states: dict[str, SkillProgress],
        unit_states: dict[str, UnitProgress],
    ) -> None:
        self.user_id = user_id
        self.tree = tree
        self.statuses = dict(statuses)
        self.skill_states = {k: v.model_copy() for k, v in skill_states.items()}
        self.unit_states = {k: v.model_copy() for k, v in unit_states.items()}
        self.outcome = CascadeOutcome()

    def _status(self, node_id: str) -> NodeStatus:
        return self.statuses.get(node_id, NodeStatus.LOCKED)

    def _skill_state(self, skill_id: str) -> SkillProgress:
        state = self.skill_states.get(skill_id)
        if state is None:
            state = SkillProgress(user_id=self.user_id, skill_id=skill_id)
            self.skill_states[skill_id] = state
        return state

    def _unit_state(self, unit_id: str) -> UnitProgress:
        state = self.unit_states.get(unit_id)
        if state is None:
            state = UnitProgress(user_id=self.user_id, unit_id=unit_id)
            self.unit_states[unit_id] = state
        return state

    def _emit(self, event_type: TelemetryEventType, **metadata: Any) -> None:
        self.outcome.events.append(CascadeEvent(event_type, metadata))

    def _location(self, node_id: str) -> tuple[str | None, str | None]:
        skill = self.tree.skill_of(node_id)
        if skill is None:
            return None, None
        return skill.skill_id, skill.unit_id

    def _unlock_node(self, node_id: str) -> bool:
        if self._status(node_id) is not NodeStatus.LOCKED:
            return False
        self.statuses[node_id] = NodeStatus.AVAILABLE
        self.outcome.node_updates[node_id] = NodeStatus.AVAILABLE
        self.outcome.unlocked_lessons.append(node_id)
        return True

    def _emit_lesson_unlocked(self, node_id: str, reason: str) -> None:
        skill_id, unit_id = self._location(node_id)
        self._emit(
            TelemetryEventType.LESSON_UNLOCKED,
            lesson_id=node_id,
            skill_id=skill_id,
            unit_id=unit_id,
            reason=reason,
        )

    def _put_skill(self, state: SkillProgress) -> None:
        self.outcome.skill_updates[state.skill_id] = state

    def _put_unit(self, state: UnitProgress) -> None:
        self.outcome.unit_updates[state.unit_id] = state

    def run(self, node_id: str, dependents: Iterable[Node]) -> CascadeOutcome:
        work: deque[tuple[str, str]] = deque()

        sibling = self.tree.next_node_in_skill(node_id)
        if sibling is not None and self._unlock_node(sibling):
            self._emit_lesson_unlocked(sibling, "sibling")

        for dependent in dependents:
            ready = all(self._status(p).is_terminal for p in dependent.prerequisites)
            if ready and self._unlock_node(dependent.node_id):
                self._emit_lesson_unlocked(dependent.node_id, "prerequisites")

        work.append((_NODE, node_id))
        while work:
            kind, ident = work.popleft()
            if kind == _NODE:
                work.extend(self._after_node(ident))
            elif kind == _SKILL:
                work.extend(self._after_skill(ident))
            else:
                work.extend(self._after_unit(ident))

        return self.outcome

    def _after_node(self, node_id: str) -> list[tuple[str, str]]:
        skill = self.tree.skill_of(node_id)
        if skill is None:
            return []

        state = self._skill_state(skill.skill_id)
        node_ids = self.tree.nodes_in_skill(skill.skill_id)
        mastery = skill_mastery(node_ids, self.statuses)
        finished = any(self._status(n).is_terminal for n in node_ids)

        state.mastery = mastery
        state.unlocked = True
        self._put_skill(state)
        if mastery == 100:
            if state.status is not SkillStatus.COMPLETED:
                state.status = SkillStatus.COMPLETED
                return [(_SKILL, skill.skill_id)]
        elif finished:
            state.status = SkillStatus.CURRENT
        return []

    def _open_skill(self, skill_id: str) -> tuple[str | None, list[tuple[str, str]]]:
        """Unlock a skill and its first node; report the node and follow-ups."""
        state = self._skill_state(skill_id)
        state.unlocked = True
        if state.status is SkillStatus.LOCKED:
            state.status = SkillStatus.CURRENT
        self._put_skill(state)
        self.outcome.unlocked_skills.append(skill_id)

        first = self.tree.first_node_of_skill(skill_id)
        if first is None:
            # empty skill, complete on the spot
            state.mastery = 100
            if state.status is not SkillStatus.COMPLETED:
                state.status = SkillStatus.COMPLETED
                return None, [(_SKILL, skill_id)]
            return None, []
        return (first if self._unlock_node(first) else None), []

    def _after_skill(self, skill_id: str) -> list[tuple[str, str]]:
        skill = self.tree.get_skill(skill_id)
        if skill is None:
            return []

        following = self.tree.next_skill(skill_id)
        if following is None:
            return [(_UNIT, skill.unit_id)]

        if self._skill_state(following.skill_id).unlocked:
            return []

        lesson, work = self._open_skill(following.skill_id)
        self._emit(
            TelemetryEventType.SKILL_UNLOCKED,
            skill_id=following.skill_id,
            unit_id=skill.unit_id,
        )
        if lesson is not None:
            self._emit_lesson_unlocked(lesson, "skill_unlocked")
        return work

    def _after_unit(self, unit_id: str) -> list[tuple[str, str]]:
        state = self._unit_state(unit_id)
        if state.status is UnitStatus.COMPLETED:
            return []

        state.status = UnitStatus.COMPLETED
        self._put_unit(state)
        self.outcome.completed_units.append(unit_id)

        work: list[tuple[str, str]] = []
        following = self.tree.next_unit(unit_id)
        if following is not None:
            next_state = self._unit_state(following.unit_id)
            if next_state.status is UnitStatus.UPCOMING:
                next_state.status = UnitStatus.CURRENT
                self._put_unit(next_state)
                self.outcome.unlocked_units.append(following.unit_id)

                lesson = None
                skills = self.tree.skills_in_unit(following.unit_id)
                if skills:
                    lesson, work = self._open_skill(skills[0].skill_id)
                    self._emit(
                        TelemetryEventType.SKILL_UNLOCKED,
                        skill_id=skills[0].skill_id,
                        unit_id=following.unit_id,
                    )
                else:
                    work = [(_UNIT, following.unit_id)]

                self._emit(
                    TelemetryEventType.UNIT_PROGRESSED,
                    unit_id=following.unit_id,
                    status=UnitStatus.CURRENT.value,
                )
                if lesson is not None:
                    self._emit_lesson_unlocked(lesson, "unit_unlocked")

        self._emit(
            TelemetryEventType.UNIT_PROGRESSED,
            unit_id=unit_id,
            status=UnitStatus.COMPLETED.value,
        )

        unit = self.tree.get_unit(unit_id)
        if unit is not None and unit.reward is not None and not state.reward_claimed:
            state.reward_claimed = True
            self.outcome.rewards.append(GrantedReward(unit_id, unit.reward))
            self._emit(
                TelemetryEventType.REWARD_CLAIMED,
                unit_id=unit_id,
                reward_type=unit.reward.reward_type,
                reward_label=unit.reward.reward_label,
                xp_bonus=unit.reward.reward_xp,
            )
        return work


def cascade_completion(
    user_id: str,
    node_id: str,
    tree: SkillTreeIndex,
    statuses: dict[str, NodeStatus],
    skill_states: dict[str, SkillProgress],
    unit_states: dict[str, UnitProgress],
    dependents: Iterable[Node] = (),
) -> CascadeOutcome:
    """Compute the unlocks caused by finishing a node.

    Args:
        user_id: Learner id.
        node_id: The node that just became terminal.
        tree: Containment index.
        statuses: Current node statuses, with ``node_id`` already terminal.
        skill_states: Current skill states; missing entries read as locked.
        unit_states: Current unit states; missing entries read as upcoming.
        dependents: Nodes naming ``node_id`` as a prerequisite.

    Returns:
        The diffs and ordered events. Inputs are not modified.
    """
    return _Cascade(user_id, tree, statuses, skill_states, unit_states).run(node_id, dependents)
