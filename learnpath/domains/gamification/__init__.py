# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Gamification domain: profile ledger and telemetry."""

from learnpath.domains.gamification.ledger import (
    DailyGoalNotClaimableError,
    InsufficientGemsError,
    InvalidAmountError,
    apply_daily_goal,
    grant_gems,
    grant_streak,
    grant_xp,
    new_profile,
    next_level_threshold,
    record_daily_progress,
    reset_daily_goal,
    spend_gems,
    update_streak,
)
from learnpath.domains.gamification.models import Profile, TelemetryEvent, TelemetryEventType
from learnpath.domains.gamification.profiles import ProfileNotFoundError, ProfileStore
from learnpath.domains.gamification.telemetry import (
    TelemetryLog,
    get_telemetry_log,
    reset_telemetry_log,
)

__all__ = [
    "Profile",
    "TelemetryEvent",
    "TelemetryEventType",
    "grant_xp",
    "grant_streak",
    "grant_gems",
    "record_daily_progress",
    "apply_daily_goal",
    "reset_daily_goal",
    "spend_gems",
    "update_streak",
    "new_profile",
    "next_level_threshold",
    "InvalidAmountError",
    "DailyGoalNotClaimableError",
    "InsufficientGemsError",
    "ProfileStore",
    "ProfileNotFoundError",
    "TelemetryLog",
    "get_telemetry_log",
    "reset_telemetry_log",
]
