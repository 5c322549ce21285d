# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Profile persistence.

The store reads and writes whole profiles; callers hold the
``("profile", user_id)`` lock around read-modify-write cycles.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.core.errors import NotFoundError
from learnpath.domains.gamification.models import Profile
from learnpath.infrastructure.database.models import ProfileRecord

logger = logging.getLogger(__name__)


class ProfileNotFoundError(NotFoundError):
    """Raised when a learner has no profile."""

    pass


class ProfileStore:
    """Async persistence of learner profiles.

    Attributes:
        _db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def _load(self, user_id: str, lock: bool = False) -> ProfileRecord | None:
        stmt = select(ProfileRecord).where(ProfileRecord.user_id == user_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_profile(self, user_id: str, for_update: bool = False) -> Profile | None:
        """Get a profile, or None if the learner is not enrolled."""
        record = await self._load(user_id, lock=for_update)
        return Profile.model_validate(record) if record else None

    async def get_profile(self, user_id: str, for_update: bool = False) -> Profile:
        """Get a profile.

        Raises:
            ProfileNotFoundError: If the learner has no profile.
        """
        profile = await self.find_profile(user_id, for_update=for_update)
        if profile is None:
            raise ProfileNotFoundError(f"Profile not found: {user_id}", user_id=user_id)
        return profile

    async def save_profile(self, profile: Profile) -> Profile:
        """Insert or update a profile row."""
        record = await self._load(profile.user_id, lock=True)
        if record is None:
            record = ProfileRecord(user_id=profile.user_id)
            self._db.add(record)
            logger.info("Created profile: %s", profile.user_id)
        for name, value in profile.model_dump().items():
            setattr(record, name, value)
        await self._db.flush()
        return profile
