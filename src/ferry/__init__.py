"""Ferry: storage objects with serialized, progress-reporting mutations.

Copy, move, rename and delete files and directories through path-bound
handles, with per-path locking and signature-based content identification.
"""

__version__ = "0.1.0"

from ferry._engine import MutationEngine
from ferry._engine_async import AsyncMutationEngine
from ferry.config import StorageConfig
from ferry.context import StorageContext
from ferry.events import EventBus, EventType, StorageEvent
from ferry.exceptions import (
    CatalogError,
    ErrorKind,
    InvalidArgumentError,
    ObjectDisposedError,
    OperationFailedError,
    StorageError,
    StorageNotFoundError,
)
from ferry.identify import (
    AnalysisResult,
    Confidence,
    Definition,
    IdentificationReport,
    SignatureCatalog,
    analyze_file,
    identify,
)
from ferry.info import DirectoryInformation, FileInformation
from ferry.locks import LockRegistry, PathLock, default_registry
from ferry.objects import DirectoryObject, FileObject, StorageObject
from ferry.types import FileAttributes, MetadataRecord, StorageProgress

__all__ = [
    "AnalysisResult",
    "AsyncMutationEngine",
    "CatalogError",
    "Confidence",
    "Definition",
    "DirectoryInformation",
    "DirectoryObject",
    "ErrorKind",
    "EventBus",
    "EventType",
    "FileAttributes",
    "FileInformation",
    "FileObject",
    "IdentificationReport",
    "InvalidArgumentError",
    "LockRegistry",
    "MetadataRecord",
    "MutationEngine",
    "ObjectDisposedError",
    "OperationFailedError",
    "PathLock",
    "SignatureCatalog",
    "StorageConfig",
    "StorageContext",
    "StorageError",
    "StorageEvent",
    "StorageNotFoundError",
    "StorageObject",
    "StorageProgress",
    "__version__",
    "analyze_file",
    "default_registry",
    "identify",
]
