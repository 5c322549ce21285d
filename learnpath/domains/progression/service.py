# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progression service: the learner state machine.

This module provides the ProgressionService class for:
- Enrolling learners and bootstrapping the first lesson
- Starting nodes behind prerequisite and level gates
- Recording lesson views and quiz submissions
- Completing lessons with rewards and cascading unlocks
- Claiming the daily goal and spending gems

Every mutating call runs as one transaction while holding the learner's
profile lock and the node's progress lock. Telemetry is emitted only
after the transaction commits, in the order the effects happened.

Example:
    >>> service = ProgressionService(db)
    >>> await service.enroll_learner("user-1", "Ayu")
    >>> result = await service.complete_lesson("user-1", "N-1")
    >>> result.unlocked_lessons
    ['N-2']
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.core.config.settings import Settings, get_settings
from learnpath.core.errors import (
    InvariantViolationError,
    PreconditionFailedError,
    ValidationError,
)
from learnpath.domains.curriculum.models import Node, NodeStatus, SkillStatus, UnitStatus
from learnpath.domains.curriculum.store import NodeStore, SkillTreeIndex
from learnpath.domains.gamification.ledger import (
    apply_daily_goal,
    grant_gems,
    grant_streak,
    grant_xp,
    new_profile,
    record_daily_progress,
    reset_daily_goal,
    spend_gems,
    update_streak,
)
from learnpath.domains.gamification.models import Profile, TelemetryEventType
from learnpath.domains.gamification.profiles import ProfileStore
from learnpath.domains.gamification.telemetry import TelemetryLog, get_telemetry_log
from learnpath.domains.progress.models import Progress, SkillProgress, UnitProgress
from learnpath.domains.progress.store import ProgressMutator, ProgressStore
from learnpath.domains.progression.cascade import cascade_completion
from learnpath.domains.progression.schemas import (
    CompletionResult,
    LessonSnapshot,
    PrerequisiteCheck,
    QuizResult,
    SkillSnapshot,
    SkillTreeProgress,
    UnitSnapshot,
)
from learnpath.infrastructure.events import EventBus, EventTypes, get_event_bus
from learnpath.infrastructure.locks import (
    KeyedLockRegistry,
    LockKey,
    get_lock_registry,
    profile_key,
    progress_key,
)
from learnpath.utils.datetime import utc_now
from learnpath.utils.rounding import percent

logger = logging.getLogger(__name__)

# (minimum score, stars), highest first
STAR_THRESHOLDS: tuple[tuple[int, int], ...] = ((90, 3), (75, 2), (60, 1))

PendingEvent = tuple[TelemetryEventType, dict[str, Any]]


class NodeLockedError(PreconditionFailedError):
    """Raised when acting on a node that is still locked."""

    pass


class PrerequisitesNotMetError(PreconditionFailedError):
    """Raised when a node's prerequisites are not all finished."""

    pass


class LessonNotViewedError(PreconditionFailedError):
    """Raised when a quiz requires the lesson to be viewed first."""

    pass


class LevelRequirementError(PreconditionFailedError):
    """Raised when the learner's level is below the node's minimum."""

    pass


class InvalidScoreError(ValidationError):
    """Raised when a quiz score is outside 0-100."""

    pass


def stars_for_score(score: int) -> int:
    """Convert a quiz score (0-100) to 0-3 stars."""
    for minimum, stars in STAR_THRESHOLDS:
        if score >= minimum:
            return stars
    return 0


def _unlock(progress: Progress) -> None:
    if progress.status is NodeStatus.LOCKED:
        progress.status = NodeStatus.AVAILABLE


class ProgressionService:
    """Service applying learner events to progress and profile state.

    Attributes:
        db: Async database session.
        settings: Application settings.
        nodes: Node lookups.
        progress: Progress persistence.
        profiles: Profile persistence.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings | None = None,
        locks: KeyedLockRegistry | None = None,
        telemetry: TelemetryLog | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self._locks = locks if locks is not None else get_lock_registry()
        self._telemetry = telemetry if telemetry is not None else get_telemetry_log()
        self._bus = bus if bus is not None else get_event_bus()
        self.nodes = NodeStore(db)
        self.progress = ProgressStore(db, self._locks)
        self.profiles = ProfileStore(db)

    @property
    def _growth_factor(self) -> float:
        return self.settings.gamification.level_growth_factor

    @asynccontextmanager
    async def _transaction(self, *keys: LockKey) -> AsyncIterator[None]:
        """Hold the keys, commit on success and roll back on any error."""
        async with self._locks.hold(*keys):
            try:
                yield
                await self.db.commit()
            except InvariantViolationError as e:
                await self.db.rollback()
                logger.error("Aborted on invariant violation: %s %s", e.message, e.details)
                raise
            except Exception:
                await self.db.rollback()
                raise

    async def _publish(
        self,
        user_id: str,
        pending: list[PendingEvent],
        profile: Profile | None = None,
        levels_gained: int = 0,
    ) -> None:
        for event_type, metadata in pending:
            await self._telemetry.emit(event_type, user_id, metadata)
        if profile is not None and levels_gained:
            await self._bus.publish(
                EventTypes.Gamification.LEVEL_UP,
                {"user_id": user_id, "level": profile.level, "levels_gained": levels_gained},
            )

    # =========================================================================
    # Enrollment
    # =========================================================================

    async def enroll_learner(self, user_id: str, display_name: str = "") -> Profile:
        """Create a learner's profile and unlock the first lesson.

        Calling it again for an enrolled learner returns the existing
        profile and changes nothing.

        Args:
            user_id: Learner id.
            display_name: Name shown on the profile.

        Returns:
            The learner's profile.
        """
        async with self._transaction(profile_key(user_id)):
            existing = await self.profiles.find_profile(user_id, for_update=True)
            if existing is not None:
                return existing

            profile = new_profile(user_id, display_name, self.settings.gamification)
            await self.profiles.save_profile(profile)

            tree = await self.nodes.load_tree()
            if tree.units:
                first_unit = tree.units[0]
                await self.progress.upsert_unit_state(
                    UnitProgress(
                        user_id=user_id,
                        unit_id=first_unit.unit_id,
                        status=UnitStatus.CURRENT,
                    )
                )
                skills = tree.skills_in_unit(first_unit.unit_id)
                if skills:
                    await self.progress.upsert_skill_state(
                        SkillProgress(
                            user_id=user_id,
                            skill_id=skills[0].skill_id,
                            unlocked=True,
                            status=SkillStatus.CURRENT,
                        )
                    )
                    first_node = tree.first_node_of_skill(skills[0].skill_id)
                    if first_node is not None:
                        await self.progress.upsert_progress(user_id, first_node, _unlock)

            logger.info("Enrolled learner: %s", user_id)
            return profile

    # =========================================================================
    # Gates
    # =========================================================================

    async def _prerequisite_check(self, user_id: str, node: Node, level: int) -> PrerequisiteCheck:
        by_node = await self.progress.progress_map(user_id, node.prerequisites)
        completed = [p for p in node.prerequisites if by_node[p].status.is_terminal]
        missing = [p for p in node.prerequisites if not by_node[p].status.is_terminal]
        return PrerequisiteCheck(
            node_id=node.node_id,
            met=not missing,
            completed=completed,
            missing=missing,
            required_level=node.minimum_level,
            current_level=level,
        )

    async def check_prerequisites(self, user_id: str, node_id: str) -> PrerequisiteCheck:
        """Report which prerequisites of a node the learner has finished.

        Raises:
            NodeNotFoundError: If the node does not exist.
        """
        node = await self.nodes.get_node(node_id)
        profile = await self.profiles.find_profile(user_id)
        return await self._prerequisite_check(user_id, node, profile.level if profile else 1)

    async def start_node(self, user_id: str, node_id: str) -> Progress:
        """Mark a node in progress.

        Finished nodes are returned unchanged. A node inside the skill tree
        must have been unlocked first; a node outside it only needs its
        prerequisites and level.

        Raises:
            NodeNotFoundError: If the node does not exist.
            ProfileNotFoundError: If the learner is not enrolled.
            NodeLockedError: If a skill tree node is still locked.
            PrerequisitesNotMetError: If a prerequisite is unfinished.
            LevelRequirementError: If the learner's level is too low.
        """
        node = await self.nodes.get_node(node_id)

        async with self._transaction(profile_key(user_id), progress_key(user_id, node_id)):
            profile = await self.profiles.get_profile(user_id)
            current = await self.progress.find_progress(user_id, node_id, for_update=True)
            if current is not None and current.status.is_terminal:
                return current

            status = current.status if current else NodeStatus.LOCKED
            if status is NodeStatus.LOCKED and node.skill_id is not None:
                raise NodeLockedError(
                    f"Node is locked: {node_id}", node_id=node_id, user_id=user_id
                )

            check = await self._prerequisite_check(user_id, node, profile.level)
            if not check.met:
                raise PrerequisitesNotMetError(
                    f"Prerequisites not met for {node_id}",
                    node_id=node_id,
                    missing=check.missing,
                )
            if not check.level_ok:
                raise LevelRequirementError(
                    f"Level {node.minimum_level} required for {node_id}",
                    node_id=node_id,
                    required_level=node.minimum_level,
                    current_level=profile.level,
                )

            def start(progress: Progress) -> None:
                progress.status = NodeStatus.IN_PROGRESS
                progress.attempts += 1

            progress = await self.progress.upsert_progress(user_id, node_id, start)

        logger.info("Started node: user=%s node=%s", user_id, node_id)
        return progress

    async def record_lesson_view(self, user_id: str, node_id: str, minutes: int = 0) -> Progress:
        """Record that the learner viewed a node's lesson.

        Args:
            user_id: Learner id.
            node_id: Node id.
            minutes: Time spent in this viewing session.

        Raises:
            NodeNotFoundError: If the node does not exist.
            ValidationError: If minutes is negative.
        """
        if minutes < 0:
            raise ValidationError("Lesson time must not be negative", minutes=minutes)
        await self.nodes.get_node(node_id)

        def view(progress: Progress) -> None:
            progress.lesson_viewed = True
            if progress.lesson_viewed_at is None:
                progress.lesson_viewed_at = utc_now()
            progress.lesson_time_spent += minutes

        async with self._transaction(progress_key(user_id, node_id)):
            progress = await self.progress.upsert_progress(user_id, node_id, view)
        return progress

    # =========================================================================
    # Completion
    # =========================================================================

    async def _tree_statuses(self, user_id: str, tree: SkillTreeIndex) -> dict[str, NodeStatus]:
        by_node = await self.progress.progress_map(user_id, tree.nodes)
        return {node_id: progress.status for node_id, progress in by_node.items()}

    async def _finish_node(
        self,
        user_id: str,
        node: Node,
        profile: Profile,
        terminal: NodeStatus,
        mutator: ProgressMutator,
        pending: list[PendingEvent],
    ) -> CompletionResult:
        """Mark a node finished, grant its rewards and run the cascade.

        Caller holds the profile and progress locks and owns the commit.
        """
        now = utc_now()

        def finish(progress: Progress) -> None:
            mutator(progress)
            progress.status = terminal
            progress.completed_at = now
            progress.xp_earned = node.xp_reward

        await self.progress.upsert_progress(user_id, node.node_id, finish)

        updated, levels_gained = grant_xp(profile, node.xp_reward, self._growth_factor)
        updated = record_daily_progress(updated, node.xp_reward)
        updated = grant_gems(updated, node.gems_reward)
        updated = update_streak(updated, now)
        updated = grant_streak(updated, node.streak_reward)
        updated.last_lesson_id = node.node_id

        tree = await self.nodes.load_tree()
        dependents = await self.nodes.find_dependents(node.node_id)
        tracked = set(tree.nodes) | {node.node_id}
        for dependent in dependents:
            tracked.add(dependent.node_id)
            tracked.update(dependent.prerequisites)

        by_node = await self.progress.progress_map(user_id, tracked)
        statuses = {node_id: progress.status for node_id, progress in by_node.items()}
        statuses[node.node_id] = terminal

        outcome = cascade_completion(
            user_id,
            node.node_id,
            tree,
            statuses,
            await self.progress.get_skill_states(user_id, tree.skill_ids()),
            await self.progress.get_unit_states(user_id, [u.unit_id for u in tree.units]),
            dependents,
        )

        for node_id in outcome.node_updates:
            await self.progress.upsert_progress(user_id, node_id, _unlock)
        for skill_state in outcome.skill_updates.values():
            await self.progress.upsert_skill_state(skill_state)
        for unit_state in outcome.unit_updates.values():
            await self.progress.upsert_unit_state(unit_state)

        if outcome.reward_xp:
            updated, reward_levels = grant_xp(updated, outcome.reward_xp, self._growth_factor)
            levels_gained += reward_levels

        await self.profiles.save_profile(updated)

        skill = tree.skill_of(node.node_id)
        pending.append(
            (
                TelemetryEventType.LESSON_COMPLETED,
                {
                    "lesson_id": node.node_id,
                    "skill_id": skill.skill_id if skill else None,
                    "unit_id": skill.unit_id if skill else None,
                    "xp_earned": node.xp_reward,
                    "streak_increment": node.streak_reward,
                    "gems_earned": node.gems_reward,
                },
            )
        )
        pending.extend((event.type, event.metadata) for event in outcome.events)

        statuses.update(outcome.node_updates)
        logger.info(
            "Completed node: user=%s node=%s xp=%d unlocked=%s",
            user_id,
            node.node_id,
            node.xp_reward,
            outcome.unlocked_lessons,
        )

        return CompletionResult(
            node_id=node.node_id,
            status=terminal,
            xp_earned=node.xp_reward,
            streak_increment=node.streak_reward,
            gems_earned=node.gems_reward,
            levels_gained=levels_gained,
            reward_xp=outcome.reward_xp,
            unlocked_lessons=outcome.unlocked_lessons,
            unlocked_skills=outcome.unlocked_skills,
            unlocked_units=outcome.unlocked_units,
            completed_units=outcome.completed_units,
            profile=updated,
            node_statuses={node_id: statuses[node_id] for node_id in tree.nodes},
        )

    async def complete_lesson(self, user_id: str, node_id: str) -> CompletionResult:
        """Complete a lesson and apply every consequence.

        Completing a finished node again succeeds with zero rewards and no
        state change.

        Args:
            user_id: Learner id.
            node_id: Node id.

        Returns:
            CompletionResult with rewards, unlocks and the refreshed profile.

        Raises:
            NodeNotFoundError: If the node does not exist.
            ProfileNotFoundError: If the learner is not enrolled.
            NodeLockedError: If the node is locked.
        """
        node = await self.nodes.get_node(node_id)
        pending: list[PendingEvent] = []

        async with self._transaction(profile_key(user_id), progress_key(user_id, node_id)):
            profile = await self.profiles.get_profile(user_id, for_update=True)
            current = await self.progress.find_progress(user_id, node_id, for_update=True)
            status = current.status if current else NodeStatus.LOCKED

            if status.is_terminal:
                logger.info("Replayed completion ignored: user=%s node=%s", user_id, node_id)
                tree = await self.nodes.load_tree()
                return CompletionResult(
                    node_id=node_id,
                    status=status,
                    already_completed=True,
                    profile=profile,
                    node_statuses=await self._tree_statuses(user_id, tree),
                )

            if status is NodeStatus.LOCKED:
                raise NodeLockedError(
                    f"Node is locked: {node_id}", node_id=node_id, user_id=user_id
                )

            def attempt(progress: Progress) -> None:
                progress.attempts += 1

            result = await self._finish_node(
                user_id, node, profile, NodeStatus.MASTERED, attempt, pending
            )

        await self._publish(user_id, pending, result.profile, result.levels_gained)
        return result

    async def submit_quiz(self, user_id: str, node_id: str, score: int) -> QuizResult:
        """Grade a quiz submission.

        The first passing submission (at least one star) completes the node
        with the same rewards and unlocks as ``complete_lesson``. Later
        submissions only raise the best score and stars.

        Args:
            user_id: Learner id.
            node_id: Node id.
            score: Score from 0 to 100.

        Raises:
            InvalidScoreError: If the score is outside 0-100.
            NodeNotFoundError: If the node does not exist.
            ProfileNotFoundError: If the learner is not enrolled.
            NodeLockedError: If the node is locked.
            LessonNotViewedError: If the lesson must be viewed first.
        """
        if not 0 <= score <= 100:
            raise InvalidScoreError(f"Score must be between 0 and 100: {score}", score=score)

        node = await self.nodes.get_node(node_id)
        stars = stars_for_score(score)
        pending: list[PendingEvent] = []
        completion: CompletionResult | None = None

        def grade(progress: Progress) -> None:
            progress.attempts += 1
            progress.stars = max(progress.stars, stars)
            progress.best_score = max(progress.best_score, score)

        def grade_failed(progress: Progress) -> None:
            grade(progress)
            progress.status = NodeStatus.IN_PROGRESS

        async with self._transaction(profile_key(user_id), progress_key(user_id, node_id)):
            profile = await self.profiles.get_profile(user_id, for_update=True)
            current = await self.progress.find_progress(user_id, node_id, for_update=True)
            status = current.status if current else NodeStatus.LOCKED

            if status is NodeStatus.LOCKED:
                raise NodeLockedError(
                    f"Node is locked: {node_id}", node_id=node_id, user_id=user_id
                )
            if node.requires_lesson_view and not current.lesson_viewed:
                raise LessonNotViewedError(
                    f"Lesson must be viewed before the quiz: {node_id}",
                    node_id=node_id,
                )

            if status.is_terminal:
                progress = await self.progress.upsert_progress(user_id, node_id, grade)
            elif stars > 0:
                completion = await self._finish_node(
                    user_id, node, profile, NodeStatus.COMPLETED, grade, pending
                )
                progress = await self.progress.get_progress(user_id, node_id)
            else:
                progress = await self.progress.upsert_progress(user_id, node_id, grade_failed)

        if completion is not None:
            await self._publish(user_id, pending, completion.profile, completion.levels_gained)

        logger.info(
            "Quiz submitted: user=%s node=%s score=%d stars=%d",
            user_id,
            node_id,
            score,
            stars,
        )
        return QuizResult(
            node_id=node_id,
            score=score,
            stars=stars,
            passed=stars > 0,
            best_score=progress.best_score,
            best_stars=progress.stars,
            attempts=progress.attempts,
            status=progress.status,
            completion=completion,
        )

    # =========================================================================
    # Daily goal
    # =========================================================================

    async def claim_daily_goal(self, user_id: str) -> Profile:
        """Claim the bonus for a met daily goal.

        Raises:
            ProfileNotFoundError: If the learner is not enrolled.
            DailyGoalNotClaimableError: If the goal is not met or already claimed.
        """
        bonus_xp = self.settings.gamification.daily_goal_bonus_xp

        async with self._transaction(profile_key(user_id)):
            profile = await self.profiles.get_profile(user_id, for_update=True)
            updated, levels_gained = apply_daily_goal(profile, bonus_xp, self._growth_factor)
            await self.profiles.save_profile(updated)

        await self._publish(
            user_id,
            [
                (
                    TelemetryEventType.DAILY_GOAL_CLAIMED,
                    {"bonus_xp": bonus_xp, "streak": updated.streak},
                )
            ],
            updated,
            levels_gained,
        )
        logger.info("Daily goal claimed: %s", user_id)
        return updated

    async def reset_daily_goal(self, user_id: str) -> Profile:
        """Roll the learner's daily goal over to a new day."""
        async with self._transaction(profile_key(user_id)):
            profile = await self.profiles.get_profile(user_id, for_update=True)
            updated = reset_daily_goal(profile)
            await self.profiles.save_profile(updated)
        return updated

    # =========================================================================
    # Gems
    # =========================================================================

    async def spend_gems(self, user_id: str, amount: int, reason: str = "purchase") -> Profile:
        """Spend gems from the learner's balance.

        Raises:
            ProfileNotFoundError: If the learner is not enrolled.
            InvalidAmountError: If amount is negative.
            InsufficientGemsError: If the balance is too small.
        """
        async with self._transaction(profile_key(user_id)):
            profile = await self.profiles.get_profile(user_id, for_update=True)
            updated = spend_gems(profile, amount)
            await self.profiles.save_profile(updated)

        logger.info(
            "Gems spent: user=%s amount=%d reason=%s balance=%d",
            user_id,
            amount,
            reason,
            updated.gems,
        )
        return updated

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_skill_tree_progress(self, user_id: str) -> SkillTreeProgress:
        """Snapshot the learner's progress over the whole skill tree."""
        tree = await self.nodes.load_tree()
        by_node = await self.progress.progress_map(user_id, tree.nodes)
        skill_states = await self.progress.get_skill_states(user_id, tree.skill_ids())
        unit_states = await self.progress.get_unit_states(user_id, [u.unit_id for u in tree.units])

        units: list[UnitSnapshot] = []
        for unit in tree.units:
            skills: list[SkillSnapshot] = []
            total = finished = 0
            for skill in tree.skills_in_unit(unit.unit_id):
                node_ids = tree.nodes_in_skill(skill.skill_id)
                lessons = [
                    LessonSnapshot(
                        node_id=node_id,
                        title=tree.nodes[node_id].title,
                        status=by_node[node_id].status,
                        stars=by_node[node_id].stars,
                    )
                    for node_id in node_ids
                ]
                state = skill_states[skill.skill_id]
                skills.append(
                    SkillSnapshot(
                        skill_id=skill.skill_id,
                        title=skill.title,
                        status=state.status,
                        unlocked=state.unlocked,
                        mastery=state.mastery,
                        lessons=lessons,
                    )
                )
                total += len(node_ids)
                finished += sum(1 for lesson in lessons if lesson.status.is_terminal)

            unit_state = unit_states[unit.unit_id]
            units.append(
                UnitSnapshot(
                    unit_id=unit.unit_id,
                    title=unit.title,
                    status=unit_state.status,
                    reward_claimed=unit_state.reward_claimed,
                    progress_percent=percent(finished, total),
                    skills=skills,
                )
            )

        return SkillTreeProgress(
            user_id=user_id,
            units=units,
            profile=await self.profiles.find_profile(user_id),
        )
