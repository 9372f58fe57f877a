"""Shared fixtures for ferry tests."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import create_engine

from ferry.config import StorageConfig
from ferry.context import StorageContext
from ferry.events import EventBus
from ferry.locks import LockRegistry

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from pathlib import Path

    from sqlalchemy import Engine
    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
def engine() -> Engine:
    """In-memory SQLite engine; catalog tables are created on save."""
    return create_engine("sqlite://", echo=False)


@pytest.fixture
async def async_engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Async SQLite engine over a file the sync engine can also open."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}", echo=False)
    yield eng
    await eng.dispose()


@pytest.fixture
def registry() -> LockRegistry:
    return LockRegistry()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def context(registry: LockRegistry, bus: EventBus) -> StorageContext:
    """Isolated context: private lock registry and event bus."""
    return StorageContext(registry=registry, events=bus)


@pytest.fixture
def cross_volume_context(registry: LockRegistry, bus: EventBus) -> StorageContext:
    """Context that treats every move as crossing volumes, with small chunks."""
    return StorageContext(
        registry=registry,
        events=bus,
        config=StorageConfig(buffer_size=1024),
        same_volume=lambda source, destination: False,
    )


@pytest.fixture
def payload() -> bytes:
    return os.urandom(10 * 1024 + 17)


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[..., Path]:
    """Create a file below ``tmp_path`` and return its path."""

    def _write(relative: str, data: bytes = b"hello") -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    return _write
