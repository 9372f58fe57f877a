"""Per-path locks shared by the blocking and asyncio mutation engines.

A ``PathLock`` is a binary, non-reentrant lock that threads can block on
and asyncio tasks can await.  Ownership is handed to waiters in FIFO
order, so a releasing thread never races a newly arriving caller.

The ``LockRegistry`` maps normalized absolute paths to locks.  Every
operation on the same path goes through the same ``PathLock``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import threading
from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

logger = logging.getLogger(__name__)


class _ThreadWaiter:
    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = threading.Event()

    def grant(self) -> None:
        self._event.set()

    def wait(self, timeout: float | None) -> bool:
        return self._event.wait(timeout)


class _TaskWaiter:
    __slots__ = ("future", "loop")

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self.loop = loop
        self.future: asyncio.Future[None] = loop.create_future()


class PathLock:
    """Binary lock for a single path, usable from threads and coroutines."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._mutex = threading.Lock()
        self._locked = False
        self._waiters: deque[_ThreadWaiter | _TaskWaiter] = deque()

    def __repr__(self) -> str:
        state = "locked" if self._locked else "unlocked"
        return f"<PathLock {self.path!r} {state} waiters={len(self._waiters)}>"

    def locked(self) -> bool:
        return self._locked

    @property
    def waiting(self) -> int:
        """Number of callers queued for this lock."""
        return len(self._waiters)

    # ------------------------------------------------------------------
    # Blocking side
    # ------------------------------------------------------------------

    def acquire(self, timeout: float | None = None) -> bool:
        """Block until the lock is owned. Return False if *timeout* expires."""
        with self._mutex:
            if not self._locked and not self._waiters:
                self._locked = True
                return True
            waiter = _ThreadWaiter()
            self._waiters.append(waiter)

        if waiter.wait(timeout):
            return True

        with self._mutex:
            try:
                self._waiters.remove(waiter)
            except ValueError:
                # Granted between the timeout and taking the mutex.
                return True
        return False

    def release(self) -> None:
        """Release the lock, handing it to the oldest waiter if any."""
        with self._mutex:
            if not self._locked:
                raise RuntimeError(f"Lock for {self.path} is not held")
            if not self._waiters:
                self._locked = False
                return
            waiter = self._waiters.popleft()

        # Ownership moves to *waiter*; _locked stays True.
        if isinstance(waiter, _ThreadWaiter):
            waiter.grant()
        else:
            waiter.loop.call_soon_threadsafe(self._grant_task, waiter)

    def _grant_task(self, waiter: _TaskWaiter) -> None:
        if waiter.future.cancelled():
            self.release()
        else:
            waiter.future.set_result(None)

    def __enter__(self) -> PathLock:
        self.acquire()
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()

    # ------------------------------------------------------------------
    # Asyncio side
    # ------------------------------------------------------------------

    async def acquire_async(self) -> None:
        """Wait for the lock without blocking the event loop."""
        with self._mutex:
            if not self._locked and not self._waiters:
                self._locked = True
                return
            waiter = _TaskWaiter(asyncio.get_running_loop())
            self._waiters.append(waiter)

        try:
            await waiter.future
        except asyncio.CancelledError:
            with self._mutex:
                try:
                    self._waiters.remove(waiter)
                    queued = True
                except ValueError:
                    queued = False
            if not queued and waiter.future.done() and not waiter.future.cancelled():
                # The grant landed before the cancellation did.
                self.release()
            raise

    async def __aenter__(self) -> PathLock:
        await self.acquire_async()
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.release()


def lock_key(path: str | os.PathLike[str]) -> str:
    """Normalize *path* into the registry key (absolute, OS case rules)."""
    return os.path.normcase(os.path.abspath(os.fspath(path)))


class LockRegistry:
    """Maps absolute paths to ``PathLock`` instances created on demand.

    Entries live for the registry's lifetime unless *evict_idle* is set,
    in which case an entry is dropped once its last user releases it.
    Users are counted under the registry mutex, so a path never ends up
    with two live locks.
    """

    def __init__(self, *, evict_idle: bool = False) -> None:
        self.evict_idle = evict_idle
        self._mutex = threading.Lock()
        self._locks: dict[str, PathLock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, os.PathLike)):
            return False
        return lock_key(path) in self._locks

    def get(self, path: str | os.PathLike[str]) -> PathLock:
        """Return the lock for *path*, creating it if absent."""
        key = lock_key(path)
        with self._mutex:
            lock = self._locks.get(key)
            if lock is None:
                lock = PathLock(key)
                self._locks[key] = lock
            return lock

    def _checkout(self, path: str | os.PathLike[str]) -> tuple[str, PathLock]:
        key = lock_key(path)
        with self._mutex:
            lock = self._locks.get(key)
            if lock is None:
                lock = PathLock(key)
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1
            return key, lock

    def _checkin(self, key: str) -> None:
        with self._mutex:
            remaining = self._users.get(key, 1) - 1
            if remaining > 0:
                self._users[key] = remaining
                return
            self._users.pop(key, None)
            if self.evict_idle:
                self._locks.pop(key, None)
                logger.debug("Evicted idle lock for %s", key)

    @contextlib.contextmanager
    def hold(self, path: str | os.PathLike[str]) -> Iterator[PathLock]:
        """Hold the lock for *path* for the duration of the ``with`` block."""
        key, lock = self._checkout(path)
        try:
            lock.acquire()
            try:
                yield lock
            finally:
                lock.release()
        finally:
            self._checkin(key)

    @contextlib.asynccontextmanager
    async def hold_async(self, path: str | os.PathLike[str]) -> AsyncIterator[PathLock]:
        """Async variant of :meth:`hold`; cancellation while waiting is safe."""
        key, lock = self._checkout(path)
        try:
            await lock.acquire_async()
            try:
                yield lock
            finally:
                lock.release()
        finally:
            self._checkin(key)

    def clear(self) -> None:
        """Forget every idle entry. Locks currently in use are kept."""
        with self._mutex:
            for key in [k for k in self._locks if k not in self._users]:
                del self._locks[key]


_default_registry = LockRegistry()


def default_registry() -> LockRegistry:
    """Return the process-wide registry used when none is injected."""
    return _default_registry
