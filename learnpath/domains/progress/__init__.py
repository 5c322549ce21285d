# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progress domain: per-learner node, skill and unit state."""

from learnpath.domains.progress.models import Progress, SkillProgress, UnitProgress
from learnpath.domains.progress.store import (
    ProgressMutator,
    ProgressNotFoundError,
    ProgressStore,
)

__all__ = [
    "Progress",
    "SkillProgress",
    "UnitProgress",
    "ProgressStore",
    "ProgressMutator",
    "ProgressNotFoundError",
]
