"""FileObject and DirectoryObject — path-bound handles to storage entries.

A storage object is a value bound to one path.  Mutations never rebind it:
they dispose the acted-upon object and return a fresh one for the result,
so a stale handle fails loudly with ``ObjectDisposedError``.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar, Self

from ._engine import MutationEngine
from ._engine_async import AsyncMutationEngine
from .context import StorageContext
from .events import EventType, StorageEvent
from .exceptions import (
    InvalidArgumentError,
    ObjectDisposedError,
    OperationFailedError,
    StorageNotFoundError,
)
from .info import DirectoryInformation, FileInformation
from .utils import is_within, normalize_path, require_valid_name, same_path

if TYPE_CHECKING:
    from types import TracebackType

    from .types import MetadataRecord, ProgressCallback

logger = logging.getLogger(__name__)


class StorageObject:
    """Common behaviour of files and directories."""

    is_directory: ClassVar[bool] = False

    def __init__(
        self, path: str | os.PathLike[str], *, context: StorageContext | None = None
    ) -> None:
        full_path = normalize_path(path)
        self._check_kind(full_path)
        self._path = full_path
        self._context = context or StorageContext()
        self._disposed = False
        self._guard = threading.Lock()

    @classmethod
    def _check_kind(cls, path: str) -> None:
        raise NotImplementedError

    def rebind(self, path: str) -> Self:
        """A new object of the same kind and context for *path*."""
        return type(self)(path, context=self._context)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def disposed(self) -> bool:
        return self._disposed

    def ensure_alive(self) -> None:
        if self._disposed:
            raise ObjectDisposedError(self._path)

    def dispose(self) -> None:
        """Invalidate this object. Safe to call more than once."""
        self._disposed = True

    def __enter__(self) -> Self:
        self.ensure_alive()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StorageObject):
            return NotImplemented
        return self.is_directory == other.is_directory and os.path.normcase(
            self._path
        ) == os.path.normcase(other._path)

    def __hash__(self) -> int:
        return hash((self.is_directory, os.path.normcase(self._path)))

    def __repr__(self) -> str:
        state = " disposed" if self._disposed else ""
        return f"<{type(self).__name__} {self._path!r}{state}>"

    def __fspath__(self) -> str:
        return self.full_path

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def context(self) -> StorageContext:
        return self._context

    @property
    def full_path(self) -> str:
        self.ensure_alive()
        return self._path

    @property
    def name(self) -> str:
        self.ensure_alive()
        return os.path.basename(self._path)

    @property
    def parent_directory(self) -> str:
        self.ensure_alive()
        return os.path.dirname(self._path)

    @property
    def exists(self) -> bool:
        self.ensure_alive()
        return os.path.lexists(self._path)

    @property
    def metadata(self) -> MetadataRecord:
        self.ensure_alive()
        return self._context.metadata_provider(self._path)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _engine(self) -> MutationEngine:
        return MutationEngine(self._context)

    def _async_engine(self) -> AsyncMutationEngine:
        return AsyncMutationEngine(self._context)

    def copy(
        self,
        destination_dir: str | os.PathLike[str],
        overwrite: bool = False,
        progress: ProgressCallback | None = None,
    ) -> Self:
        return self._engine().copy(self, destination_dir, overwrite, progress)

    def move(
        self,
        destination_dir: str | os.PathLike[str],
        overwrite: bool = False,
        progress: ProgressCallback | None = None,
    ) -> Self:
        return self._engine().move(self, destination_dir, overwrite, progress)

    def rename(self, new_name: str) -> Self:
        return self._engine().rename(self, new_name)

    def delete(self) -> None:
        self._engine().delete(self)

    async def copy_async(
        self,
        destination_dir: str | os.PathLike[str],
        overwrite: bool = False,
        progress: ProgressCallback | None = None,
    ) -> Self:
        return await self._async_engine().copy(self, destination_dir, overwrite, progress)

    async def move_async(
        self,
        destination_dir: str | os.PathLike[str],
        overwrite: bool = False,
        progress: ProgressCallback | None = None,
    ) -> Self:
        return await self._async_engine().move(self, destination_dir, overwrite, progress)

    async def rename_async(self, new_name: str) -> Self:
        return await self._async_engine().rename(self, new_name)

    async def delete_async(self) -> None:
        await self._async_engine().delete(self)


class FileObject(StorageObject):
    """A regular file.

    Usage::

        with FileObject("/data/photo.jpg") as photo:
            print(photo.information.type_name)
            backup = photo.copy("/backup")
    """

    is_directory = False

    def __init__(
        self, path: str | os.PathLike[str], *, context: StorageContext | None = None
    ) -> None:
        super().__init__(path, context=context)
        self._information: FileInformation | None = None

    @classmethod
    def _check_kind(cls, path: str) -> None:
        if os.path.isdir(path):
            raise InvalidArgumentError(f"Path is a directory, not a file: {path}")
        if not os.path.isfile(path):
            raise StorageNotFoundError(f"File not found: {path}")

    @property
    def information(self) -> FileInformation:
        """Identification and metadata, computed in the background on first use."""
        self.ensure_alive()
        with self._guard:
            if self._information is None:
                self._information = FileInformation(
                    self._path,
                    catalog=self._context.catalog,
                    config=self._context.config,
                    metadata_provider=self._context.metadata_provider,
                )
                self._information.start()
            return self._information

    @property
    def extension(self) -> str:
        return os.path.splitext(self.name)[1]

    @property
    def size(self) -> int:
        return self.metadata.size


class DirectoryObject(StorageObject):
    """A directory.  Copy, move and delete act on the whole tree.

    Pass ``create=True`` to create the directory (and missing parents).
    """

    is_directory = True

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        create: bool = False,
        context: StorageContext | None = None,
    ) -> None:
        if create:
            _make_directory(normalize_path(path), context)
        super().__init__(path, context=context)
        self._information: DirectoryInformation | None = None

    @classmethod
    def _check_kind(cls, path: str) -> None:
        if os.path.isfile(path):
            raise InvalidArgumentError(f"Path is a file, not a directory: {path}")
        if not os.path.isdir(path):
            raise StorageNotFoundError(f"Directory not found: {path}")

    def dispose(self) -> None:
        with self._guard:
            info, self._information = self._information, None
        if info is not None and self._context.events is not None:
            self._context.events.unregister_all(info.on_event)
        super().dispose()

    @property
    def information(self) -> DirectoryInformation:
        """Aggregate size and counts, cached until a change event for this tree."""
        self.ensure_alive()
        with self._guard:
            if self._information is None:
                self._information = DirectoryInformation(
                    self._path, metadata_provider=self._context.metadata_provider
                )
                if self._context.events is not None:
                    self._context.events.register_all(self._information.on_event)
            return self._information

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------

    def _child_path(self, relative_path: str | os.PathLike[str]) -> str:
        self.ensure_alive()
        relative = os.fspath(relative_path)
        if not relative or os.path.isabs(relative):
            raise InvalidArgumentError(f"Expected a relative path, got: {relative!r}")
        child = os.path.normpath(os.path.join(self._path, relative))
        if not is_within(child, self._path) or same_path(child, self._path):
            raise InvalidArgumentError(f"Path escapes {self._path}: {relative}")
        return child

    def get_files(self, pattern: str = "*", recursive: bool = False) -> list[FileObject]:
        """Files directly inside (or, when *recursive*, anywhere below) this directory."""
        root = Path(self.full_path)
        matches = root.rglob(pattern) if recursive else root.glob(pattern)
        return [
            FileObject(p, context=self._context) for p in sorted(matches) if p.is_file()
        ]

    def get_directories(self, pattern: str = "*", recursive: bool = False) -> list[DirectoryObject]:
        root = Path(self.full_path)
        matches = root.rglob(pattern) if recursive else root.glob(pattern)
        return [
            DirectoryObject(p, context=self._context) for p in sorted(matches) if p.is_dir()
        ]

    def get_file(self, relative_path: str | os.PathLike[str]) -> FileObject:
        return FileObject(self._child_path(relative_path), context=self._context)

    def get_directory(self, relative_path: str | os.PathLike[str]) -> DirectoryObject:
        return DirectoryObject(self._child_path(relative_path), context=self._context)

    def create_subdirectory(self, relative_path: str | os.PathLike[str]) -> DirectoryObject:
        """Create (if needed) and return a directory below this one."""
        relative = os.fspath(relative_path)
        for part in Path(relative).parts:
            require_valid_name(part)
        return DirectoryObject(self._child_path(relative), create=True, context=self._context)


def _make_directory(path: str, context: StorageContext | None) -> None:
    if os.path.isdir(path):
        return
    try:
        os.makedirs(path, exist_ok=True)
    except FileExistsError as e:
        raise InvalidArgumentError(f"Path is a file, not a directory: {path}") from e
    except OSError as e:
        raise OperationFailedError(
            f"Failed to create directory: {path}", path=path, cause=e
        ) from e
    logger.debug("Created directory %s", path)
    if context is not None and context.events is not None:
        context.events.emit(StorageEvent(EventType.CREATED, path))
