# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the keyed lock registry."""

import asyncio

import pytest

from learnpath.infrastructure.locks import (
    KeyedLockRegistry,
    get_lock_registry,
    path_key,
    profile_key,
    progress_key,
    reset_lock_registry,
)


class TestLockKeys:
    """Tests for key builders."""

    def test_profile_sorts_before_progress(self):
        keys = [progress_key("u", "n"), profile_key("u")]

        assert sorted(keys) == [profile_key("u"), progress_key("u", "n")]

    def test_path_key_case_insensitive(self):
        assert path_key("path-sma-10") == path_key("PATH-SMA-10")


class TestKeyedLockRegistry:
    """Tests for KeyedLockRegistry."""

    @pytest.mark.asyncio
    async def test_hold_and_release(self, lock_registry: KeyedLockRegistry):
        key = profile_key("u")

        async with lock_registry.hold(key):
            assert lock_registry.is_locked(key)

        assert not lock_registry.is_locked(key)

    @pytest.mark.asyncio
    async def test_idle_entries_dropped(self, lock_registry: KeyedLockRegistry):
        async with lock_registry.hold(profile_key("u"), progress_key("u", "n")):
            assert len(lock_registry) == 2

        assert len(lock_registry) == 0

    @pytest.mark.asyncio
    async def test_reentrant_within_task(self, lock_registry: KeyedLockRegistry):
        key = progress_key("u", "n")

        async with lock_registry.hold(key):
            async with lock_registry.hold(key):
                assert lock_registry.is_locked(key)
            assert lock_registry.is_locked(key)

        assert not lock_registry.is_locked(key)

    @pytest.mark.asyncio
    async def test_duplicate_keys_ignored(self, lock_registry: KeyedLockRegistry):
        key = profile_key("u")

        async with lock_registry.hold(key, key):
            assert len(lock_registry) == 1

        assert len(lock_registry) == 0

    @pytest.mark.asyncio
    async def test_serializes_tasks_on_same_key(self, lock_registry: KeyedLockRegistry):
        order: list[str] = []

        async def worker(name: str) -> None:
            async with lock_registry.hold(profile_key("u")):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert order in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )
        assert len(lock_registry) == 0

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self, lock_registry: KeyedLockRegistry):
        entered = asyncio.Event()
        release = asyncio.Event()

        async def first() -> None:
            async with lock_registry.hold(profile_key("a")):
                entered.set()
                await release.wait()

        task = asyncio.create_task(first())
        await entered.wait()

        async with lock_registry.hold(profile_key("b")):
            assert lock_registry.is_locked(profile_key("a"))

        release.set()
        await task

    @pytest.mark.asyncio
    async def test_released_on_error(self, lock_registry: KeyedLockRegistry):
        key = profile_key("u")

        with pytest.raises(RuntimeError):
            async with lock_registry.hold(key):
                raise RuntimeError("boom")

        assert not lock_registry.is_locked(key)
        assert len(lock_registry) == 0

    @pytest.mark.asyncio
    async def test_opposite_request_order_does_not_deadlock(
        self, lock_registry: KeyedLockRegistry
    ):
        a, b = profile_key("u"), progress_key("u", "n")

        async def take(*keys) -> None:
            async with lock_registry.hold(*keys):
                await asyncio.sleep(0.01)

        await asyncio.wait_for(asyncio.gather(take(a, b), take(b, a)), timeout=1)


class TestRegistrySingleton:
    """Tests for the process-wide registry."""

    def test_singleton(self):
        assert get_lock_registry() is get_lock_registry()

    def test_reset(self):
        first = get_lock_registry()
        reset_lock_registry()

        assert get_lock_registry() is not first
