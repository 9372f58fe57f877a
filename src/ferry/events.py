"""EventBus and event types for storage change notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Kinds of changes that invalidate cached storage metadata."""

    CREATED = "created"
    COPIED = "copied"
    MOVED = "moved"
    RENAMED = "renamed"
    DELETED = "deleted"
    CHANGED = "changed"


@dataclass(frozen=True, slots=True)
class StorageEvent:
    """Immutable record of a storage change.

    Attributes:
        event_type: The kind of change that occurred.
        path: Absolute path of the affected entry (destination for copies,
            moves and renames).
        old_path: Previous path (moves and renames) or copy source.
    """

    event_type: EventType
    path: str
    old_path: str | None = None


class EventBus:
    """Dispatches storage events to registered handlers.

    Handlers are plain callables invoked sequentially in registration order,
    on the thread that emits.  Exceptions are logged but never propagated:
    a failing handler leaves a stale cache behind, it does not fail the
    mutation that already happened.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[Callable[..., Any]]] = {et: [] for et in EventType}

    def register(self, event_type: EventType, handler: Callable[..., Any]) -> None:
        """Append *handler* to the list for *event_type*."""
        self._handlers[event_type].append(handler)

    def register_all(self, handler: Callable[..., Any]) -> None:
        """Register *handler* for every event type."""
        for event_type in EventType:
            self.register(event_type, handler)

    def unregister(self, event_type: EventType, handler: Callable[..., Any]) -> bool:
        """Remove first occurrence of *handler*. Return True if found."""
        handlers = self._handlers[event_type]
        try:
            handlers.remove(handler)
            return True
        except ValueError:
            return False

    def unregister_all(self, handler: Callable[..., Any]) -> int:
        """Remove *handler* from every event type. Return how many were removed."""
        return sum(self.unregister(et, handler) for et in EventType)

    def emit(self, event: StorageEvent) -> None:
        """Dispatch *event* to all registered handlers for its type."""
        for handler in list(self._handlers[event.event_type]):
            try:
                handler(event)
            except Exception:
                logger.warning(
                    "Handler %r failed for %s on %s",
                    handler,
                    event.event_type.value,
                    event.path,
                    exc_info=True,
                )

    @property
    def handler_count(self) -> int:
        """Total number of registered handlers across all event types."""
        return sum(len(h) for h in self._handlers.values())

    def clear(self) -> None:
        """Remove all registered handlers."""
        for handlers in self._handlers.values():
            handlers.clear()
