# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Gamification ledger: XP, levels, streaks, gems and the daily goal.

Every function takes a Profile and returns an updated copy. The input is
never modified, so a failed grant leaves the caller's profile exactly as
it was. Level-ups are resolved in a loop because one grant can cross
several thresholds:

    >>> profile = Profile(user_id="u", xp_in_level=90, xp_for_next_level=100)
    >>> updated, levels = grant_xp(profile, 25)
    >>> (updated.level, updated.xp_in_level, updated.xp_for_next_level, levels)
    (2, 15, 115, 1)
"""

import logging
import math
from datetime import datetime, timedelta

from learnpath.core.config.settings import GamificationSettings
from learnpath.core.errors import InvariantViolationError, PreconditionFailedError, ValidationError
from learnpath.domains.gamification.models import Profile
from learnpath.utils.datetime import ensure_utc

logger = logging.getLogger(__name__)

DEFAULT_LEVEL_GROWTH_FACTOR = 1.15
DEFAULT_DAILY_GOAL_BONUS_XP = 30

# activity within this window keeps the streak; within twice it extends it
STREAK_WINDOW = timedelta(hours=24)


class InvalidAmountError(ValidationError):
    """Raised when a grant amount is negative."""

    pass


class DailyGoalNotClaimableError(PreconditionFailedError):
    """Raised when the daily goal is not met or already claimed."""

    pass


class InsufficientGemsError(PreconditionFailedError):
    """Raised when spending more gems than the balance holds."""

    pass


def next_level_threshold(current: int, growth_factor: float = DEFAULT_LEVEL_GROWTH_FACTOR) -> int:
    """Compute the threshold of the following level, rounding half up."""
    return max(1, math.floor(current * growth_factor + 0.5))


def _require_non_negative(amount: int, what: str) -> None:
    if amount < 0:
        raise InvalidAmountError(f"{what} amount must not be negative: {amount}", amount=amount)


def _check_level_invariant(profile: Profile) -> None:
    if not 0 <= profile.xp_in_level < profile.xp_for_next_level:
        logger.error(
            "Level invariant broken for %s: xp_in_level=%d xp_for_next_level=%d",
            profile.user_id,
            profile.xp_in_level,
            profile.xp_for_next_level,
        )
        raise InvariantViolationError(
            "xp_in_level must stay below xp_for_next_level",
            user_id=profile.user_id,
            xp_in_level=profile.xp_in_level,
            xp_for_next_level=profile.xp_for_next_level,
        )


def new_profile(
    user_id: str,
    display_name: str = "",
    settings: GamificationSettings | None = None,
) -> Profile:
    """Build the baseline profile of a newly enrolled learner."""
    settings = settings or GamificationSettings()
    return Profile(
        user_id=user_id,
        display_name=display_name,
        xp_for_next_level=settings.base_xp_for_next_level,
        daily_goal_xp=settings.daily_goal_xp,
    )


def grant_xp(
    profile: Profile,
    amount: int,
    growth_factor: float = DEFAULT_LEVEL_GROWTH_FACTOR,
) -> tuple[Profile, int]:
    """Add XP to the lifetime and in-level totals and resolve level-ups.

    Args:
        profile: Current profile.
        amount: XP to add.
        growth_factor: Threshold multiplier applied per level-up.

    Returns:
        Tuple of (updated profile, number of levels gained).

    Raises:
        InvalidAmountError: If amount is negative.
        InvariantViolationError: If the level loop leaves the profile
            inconsistent.
    """
    _require_non_negative(amount, "XP")
    updated = profile.model_copy()
    updated.xp += amount
    updated.xp_in_level += amount

    levels_gained = 0
    while updated.xp_in_level >= updated.xp_for_next_level:
        updated.xp_in_level -= updated.xp_for_next_level
        updated.level += 1
        updated.xp_for_next_level = next_level_threshold(updated.xp_for_next_level, growth_factor)
        levels_gained += 1

    _check_level_invariant(updated)
    if levels_gained:
        logger.info(
            "Level up for %s: level %d (+%d)",
            updated.user_id,
            updated.level,
            levels_gained,
        )
    return updated, levels_gained


def grant_streak(profile: Profile, increment: int) -> Profile:
    """Increase the streak and raise the best streak if exceeded."""
    _require_non_negative(increment, "Streak")
    updated = profile.model_copy()
    updated.streak += increment
    updated.best_streak = max(updated.best_streak, updated.streak)
    return updated


def grant_gems(profile: Profile, amount: int) -> Profile:
    """Add gems to the balance."""
    _require_non_negative(amount, "Gem")
    updated = profile.model_copy()
    updated.gems += amount
    return updated


def spend_gems(profile: Profile, amount: int) -> Profile:
    """Take gems from the balance.

    Raises:
        InvalidAmountError: If amount is negative.
        InsufficientGemsError: If the balance is smaller than amount.
    """
    _require_non_negative(amount, "Gem")
    if amount > profile.gems:
        raise InsufficientGemsError(
            f"Cannot spend {amount} gems with a balance of {profile.gems}",
            user_id=profile.user_id,
            amount=amount,
            balance=profile.gems,
        )
    updated = profile.model_copy()
    updated.gems -= amount
    return updated


def update_streak(profile: Profile, now: datetime) -> Profile:
    """Advance the activity streak from the time since the last completion.

    ``last_completed_at`` anchors the streak and only moves when the
    streak changes:

    - first activity starts the streak at 1
    - within 24 hours of the anchor nothing changes
    - between 24 and 48 hours the streak grows by one
    - after 48 hours the streak restarts at 1

    A ``now`` earlier than the anchor is treated as the same day.
    """
    updated = profile.model_copy()
    last = ensure_utc(profile.last_completed_at)
    now = ensure_utc(now)

    if last is None:
        updated.streak = 1
    else:
        elapsed = now - last
        if elapsed < STREAK_WINDOW:
            if elapsed < timedelta(0):
                logger.warning(
                    "Completion time %s is before the streak anchor %s for %s",
                    now,
                    last,
                    profile.user_id,
                )
            return updated
        if elapsed < 2 * STREAK_WINDOW:
            updated.streak += 1
        else:
            logger.info("Streak broken for %s after %s", profile.user_id, elapsed)
            updated.streak = 1

    updated.best_streak = max(updated.best_streak, updated.streak)
    updated.last_completed_at = now
    return updated


def record_daily_progress(profile: Profile, amount: int) -> Profile:
    """Count XP towards today's goal, capped at the goal."""
    _require_non_negative(amount, "Daily progress")
    updated = profile.model_copy()
    updated.daily_goal_progress = min(
        updated.daily_goal_xp,
        updated.daily_goal_progress + amount,
    )
    if updated.daily_goal_progress >= updated.daily_goal_xp:
        updated.daily_goal_met = True
    return updated


def apply_daily_goal(
    profile: Profile,
    bonus_xp: int = DEFAULT_DAILY_GOAL_BONUS_XP,
    growth_factor: float = DEFAULT_LEVEL_GROWTH_FACTOR,
) -> tuple[Profile, int]:
    """Claim a met daily goal.

    Grants the bonus XP, adds one to the streak and marks the goal claimed.

    Returns:
        Tuple of (updated profile, number of levels gained).

    Raises:
        DailyGoalNotClaimableError: If the goal is not met or already claimed.
    """
    if not profile.daily_goal_met:
        raise DailyGoalNotClaimableError(
            "Daily goal not yet met",
            user_id=profile.user_id,
            progress=profile.daily_goal_progress,
            goal=profile.daily_goal_xp,
        )
    if profile.daily_goal_claimed:
        raise DailyGoalNotClaimableError("Daily goal already claimed", user_id=profile.user_id)

    updated, levels_gained = grant_xp(profile, bonus_xp, growth_factor)
    updated = grant_streak(updated, 1)
    updated.daily_goal_claimed = True
    return updated, levels_gained


def reset_daily_goal(profile: Profile) -> Profile:
    """Start a new day: clear progress and the met/claimed flags."""
    updated = profile.model_copy()
    updated.daily_goal_progress = 0
    updated.daily_goal_met = False
    updated.daily_goal_claimed = False
    return updated
