"""Tests for PathLock and LockRegistry."""

from __future__ import annotations

import asyncio
import os
import threading
import time

import pytest

from ferry.locks import LockRegistry, PathLock, default_registry, lock_key

# =========================================================================
# PathLock from threads
# =========================================================================


class TestPathLock:
    def test_acquire_and_release(self) -> None:
        lock = PathLock("/a")
        assert lock.acquire()
        assert lock.locked()
        lock.release()
        assert not lock.locked()

    def test_release_unheld_raises(self) -> None:
        with pytest.raises(RuntimeError):
            PathLock("/a").release()

    def test_timeout_expires(self) -> None:
        lock = PathLock("/a")
        lock.acquire()
        assert lock.acquire(timeout=0.01) is False
        assert lock.waiting == 0
        lock.release()

    def test_context_manager(self) -> None:
        lock = PathLock("/a")
        with lock:
            assert lock.locked()
        assert not lock.locked()

    def test_threads_are_served_in_order(self) -> None:
        lock = PathLock("/a")
        lock.acquire()
        order: list[int] = []

        def worker(n: int) -> None:
            with lock:
                order.append(n)

        threads = []
        for n in range(3):
            t = threading.Thread(target=worker, args=(n,))
            t.start()
            threads.append(t)
            while lock.waiting < n + 1:
                time.sleep(0.001)

        lock.release()
        for t in threads:
            t.join(timeout=5)
        assert order == [0, 1, 2]
        assert not lock.locked()

    def test_mutual_exclusion(self) -> None:
        lock = PathLock("/a")
        inside = 0
        overlap = False

        def worker() -> None:
            nonlocal inside, overlap
            for _ in range(50):
                with lock:
                    inside += 1
                    if inside > 1:
                        overlap = True
                    inside -= 1

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)
        assert not overlap


# =========================================================================
# PathLock from asyncio
# =========================================================================


class TestPathLockAsync:
    async def test_acquire_async(self) -> None:
        lock = PathLock("/a")
        async with lock:
            assert lock.locked()
        assert not lock.locked()

    async def test_tasks_wait_for_holder(self) -> None:
        lock = PathLock("/a")
        await lock.acquire_async()
        order: list[str] = []

        async def waiter() -> None:
            async with lock:
                order.append("waiter")

        task = asyncio.create_task(waiter())
        await asyncio.sleep(0.01)
        assert order == []
        order.append("holder")
        lock.release()
        await task
        assert order == ["holder", "waiter"]

    async def test_cancelled_waiter_leaves_queue(self) -> None:
        lock = PathLock("/a")
        await lock.acquire_async()
        task = asyncio.create_task(lock.acquire_async())
        await asyncio.sleep(0.01)
        assert lock.waiting == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert lock.waiting == 0
        lock.release()
        assert not lock.locked()

    async def test_thread_hands_off_to_task(self) -> None:
        lock = PathLock("/a")
        lock.acquire()
        task = asyncio.create_task(lock.acquire_async())
        await asyncio.sleep(0.01)

        threading.Thread(target=lock.release).start()
        await asyncio.wait_for(task, timeout=5)
        assert lock.locked()
        lock.release()


# =========================================================================
# LockRegistry
# =========================================================================


class TestLockRegistry:
    def test_same_path_same_lock(self, tmp_path) -> None:
        registry = LockRegistry()
        a = registry.get(tmp_path / "x.txt")
        b = registry.get(str(tmp_path / "sub" / ".." / "x.txt"))
        assert a is b
        assert len(registry) == 1

    def test_different_paths_different_locks(self, tmp_path) -> None:
        registry = LockRegistry()
        assert registry.get(tmp_path / "a") is not registry.get(tmp_path / "b")

    def test_contains(self, tmp_path) -> None:
        registry = LockRegistry()
        registry.get(tmp_path / "a")
        assert tmp_path / "a" in registry
        assert str(tmp_path / "b") not in registry
        assert 42 not in registry

    def test_lock_key_normalizes(self) -> None:
        assert lock_key("a/../b") == os.path.normcase(os.path.abspath("b"))

    def test_hold_keeps_entries_by_default(self, tmp_path) -> None:
        registry = LockRegistry()
        with registry.hold(tmp_path / "a") as lock:
            assert lock.locked()
        assert not lock.locked()
        assert tmp_path / "a" in registry

    def test_evict_idle(self, tmp_path) -> None:
        registry = LockRegistry(evict_idle=True)
        with registry.hold(tmp_path / "a"):
            assert len(registry) == 1
        assert len(registry) == 0

    async def test_evict_idle_waits_for_last_user(self, tmp_path) -> None:
        registry = LockRegistry(evict_idle=True)
        seen: list[object] = []

        async def user() -> None:
            async with registry.hold_async(tmp_path / "a") as lock:
                seen.append(lock)
                await asyncio.sleep(0.01)

        await asyncio.gather(user(), user())
        assert seen[0] is seen[1]
        assert len(registry) == 0

    def test_clear_skips_locks_in_use(self, tmp_path) -> None:
        registry = LockRegistry()
        registry.get(tmp_path / "idle")
        with registry.hold(tmp_path / "busy"):
            registry.clear()
            assert tmp_path / "busy" in registry
            assert tmp_path / "idle" not in registry

    async def test_hold_async_released_on_error(self, tmp_path) -> None:
        registry = LockRegistry()
        with pytest.raises(ValueError):
            async with registry.hold_async(tmp_path / "a"):
                raise ValueError("boom")
        assert not registry.get(tmp_path / "a").locked()

    def test_default_registry_is_shared(self) -> None:
        assert default_registry() is default_registry()
