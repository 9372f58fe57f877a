"""StorageContext — the collaborators every storage object carries."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .config import StorageConfig
from .locks import LockRegistry, default_registry
from .metadata import stat_metadata
from .utils import is_same_volume

if TYPE_CHECKING:
    from collections.abc import Callable

    from .events import EventBus
    from .identify.catalog import SignatureCatalog
    from .types import MetadataProvider


@dataclass
class StorageContext:
    """Services shared by storage objects and the engines acting on them.

    Objects created by a mutation inherit the context of the object they
    replace, so a test can isolate a whole family of objects by giving the
    first one a private ``LockRegistry``.
    """

    registry: LockRegistry = field(default_factory=default_registry)
    """Per-path locks. Defaults to the process-wide registry."""

    config: StorageConfig = field(default_factory=StorageConfig)

    events: EventBus | None = None
    """Receives a ``StorageEvent`` after every committed mutation."""

    catalog: SignatureCatalog | None = None
    """Signature catalog for identification. ``None`` uses the built-in one."""

    metadata_provider: MetadataProvider = stat_metadata

    same_volume: Callable[[str, str], bool] = is_same_volume
    """Decides whether a move can be a rename. Arguments: source, destination."""
