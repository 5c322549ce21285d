# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Per-key asyncio locks for serializing learner and path writes.

Every mutation of a profile, a progress record or a path runs while the
matching key is held:

    ("profile", user_id)
    ("progress", user_id, node_id)
    ("path", path_id)

Locks are re-entrant within the task that holds them, so a service method
holding the profile key can call a store helper that asks for it again.
Keys requested together are acquired in sorted order, and a lock entry is
dropped as soon as nobody holds or waits for it.

These locks only serialize one process. Stores additionally take row
locks (SELECT ... FOR UPDATE) so several workers can share a database.

Example:
    locks = get_lock_registry()
    async with locks.hold(profile_key(user_id), progress_key(user_id, node_id)):
        ...
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator

LockKey = tuple[str, ...]


def profile_key(user_id: str) -> LockKey:
    """Lock key guarding a learner's profile and cascading writes."""
    return ("profile", user_id)


def progress_key(user_id: str, node_id: str) -> LockKey:
    """Lock key guarding one (user, node) progress record."""
    return ("progress", user_id, node_id)


def path_key(path_id: str) -> LockKey:
    """Lock key guarding one learning path."""
    return ("path", path_id.upper())


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    owner: asyncio.Task | None = None
    depth: int = 0
    # holders plus waiters
    users: int = 0


class KeyedLockRegistry:
    """Registry of re-entrant per-key locks."""

    def __init__(self) -> None:
        self._entries: dict[LockKey, _LockEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def is_locked(self, key: LockKey) -> bool:
        """Check whether a key is currently held by any task."""
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    @asynccontextmanager
    async def hold(self, *keys: LockKey) -> AsyncIterator[None]:
        """Hold all given keys for the duration of the block.

        Args:
            *keys: Lock keys. Duplicates are ignored.

        Yields:
            None once every key is held.
        """
        task = asyncio.current_task()
        acquired: list[LockKey] = []
        try:
            for key in sorted(set(keys)):
                await self._acquire(key, task)
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._release(key)

    async def _acquire(self, key: LockKey, task: asyncio.Task | None) -> None:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _LockEntry()

        if task is not None and entry.owner is task:
            entry.depth += 1
            return

        entry.users += 1
        try:
            await entry.lock.acquire()
        except BaseException:
            entry.users -= 1
            self._drop_if_idle(key, entry)
            raise

        entry.owner = task
        entry.depth = 1

    def _release(self, key: LockKey) -> None:
        entry = self._entries[key]
        entry.depth -= 1
        if entry.depth > 0:
            return

        entry.owner = None
        entry.users -= 1
        entry.lock.release()
        self._drop_if_idle(key, entry)

    def _drop_if_idle(self, key: LockKey, entry: _LockEntry) -> None:
        if entry.users == 0 and self._entries.get(key) is entry:
            del self._entries[key]


_lock_registry: KeyedLockRegistry | None = None


def get_lock_registry() -> KeyedLockRegistry:
    """Get the process-wide lock registry."""
    global _lock_registry
    if _lock_registry is None:
        _lock_registry = KeyedLockRegistry()
    return _lock_registry


def reset_lock_registry() -> None:
    """Drop the process-wide lock registry (tests)."""
    global _lock_registry
    _lock_registry = None
