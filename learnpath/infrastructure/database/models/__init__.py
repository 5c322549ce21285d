# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy models. Importing this package registers every table."""

from learnpath.infrastructure.database.models.base import Base, JSONList, TimestampMixin
from learnpath.infrastructure.database.models.curriculum import (
    NodeRecord,
    PathRecord,
    SkillRecord,
    UnitRecord,
)
from learnpath.infrastructure.database.models.progress import (
    ProfileRecord,
    ProgressRecord,
    SkillProgressRecord,
    UnitProgressRecord,
)

__all__ = [
    "Base",
    "JSONList",
    "TimestampMixin",
    "NodeRecord",
    "SkillRecord",
    "UnitRecord",
    "PathRecord",
    "ProgressRecord",
    "SkillProgressRecord",
    "UnitProgressRecord",
    "ProfileRecord",
]
