"""MutationEngine — blocking copy, move, rename and delete."""

from __future__ import annotations

import contextlib
import logging
import os
from typing import TYPE_CHECKING, TypeVar

from ._protocol import (
    Operation,
    OperationState,
    check_destination,
    check_source,
    claim_target,
    discard_partial,
    is_cross_device,
    make_directories,
    os_errors,
    plan_tree,
    remove_entry,
    rename_into,
    tree_size,
)
from .context import StorageContext
from .events import EventType, StorageEvent
from .exceptions import OperationFailedError
from .transfer import TransferMeter, file_size, transfer_file
from .types import StorageProgress
from .utils import normalize_path, prepare_directory, require_valid_name

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .objects import StorageObject
    from .types import ProgressCallback

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="StorageObject")


class MutationEngine:
    """Runs mutations on storage objects, blocking the calling thread.

    Every mutation holds the source path's lock for its whole duration, so
    mutations of one path never interleave.  A cross-volume move is the one
    exception: it runs as a locked copy followed by a locked delete, and a
    failed delete removes the copy again.

    Targets are created exclusively before any byte moves, so concurrent
    copies into one directory get distinct ``"name (n).ext"`` names even
    when their sources differ, and a failed copy only removes what it made.

    Usage::

        engine = MutationEngine(StorageContext())
        copied = engine.copy(FileObject("/data/a.bin"), "/backup")
    """

    def __init__(self, context: StorageContext | None = None) -> None:
        self.context = context or StorageContext()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def _locked(self, source: StorageObject, op: Operation) -> Iterator[None]:
        with self.context.registry.hold(source.full_path):
            op.advance(OperationState.LOCK_ACQUIRED)
            check_source(source)
            op.advance(OperationState.IN_PROGRESS)
            try:
                yield
            except BaseException:
                op.advance(OperationState.FAILED)
                raise
            op.advance(OperationState.COMMITTED)

    def _emit(self, event_type: EventType, path: str, old_path: str | None = None) -> None:
        if self.context.events is not None:
            self.context.events.emit(StorageEvent(event_type, path, old_path))

    def _copy_to(
        self,
        source: T,
        directory: str,
        overwrite: bool,
        progress: ProgressCallback | None,
    ) -> T:
        op = Operation("copy", source.full_path)
        with self._locked(source, op):
            with os_errors(f"Failed to create target in: {directory}", directory):
                destination, created = claim_target(
                    directory, source.name, overwrite, source.is_directory
                )
            try:
                if source.is_directory:
                    self._copy_tree(source.full_path, destination, overwrite, progress)
                else:
                    self._copy_file(source.full_path, destination, progress)
            except BaseException:
                if created:
                    discard_partial(destination, source.is_directory)
                raise
        return source.rebind(destination)

    def _copy_file(
        self,
        source: str,
        destination: str,
        progress: ProgressCallback | None,
    ) -> None:
        size = file_size(source)
        meter = TransferMeter(size, progress)
        # The target is already claimed, so it is opened for writing as is.
        transfer_file(
            source,
            destination,
            overwrite=True,
            buffer_size=self.context.config.chunk_size(size),
            meter=meter,
        )

    def _copy_tree(
        self,
        source: str,
        destination: str,
        overwrite: bool,
        progress: ProgressCallback | None,
    ) -> None:
        with os_errors(f"Failed to copy directory to: {destination}", destination):
            total = tree_size(source)
            directories, files = plan_tree(source, destination)
            make_directories(directories)
        meter = TransferMeter(total, progress)
        buffer_size = self.context.config.chunk_size(total)
        for src, dst in files:
            transfer_file(src, dst, overwrite=overwrite, buffer_size=buffer_size, meter=meter)

    def _rename_to(
        self, source: T, directory: str, name: str, overwrite: bool, verb: str
    ) -> T | None:
        """Rename under the source lock. ``None`` means the devices differ after all."""
        op = Operation(verb, source.full_path)
        try:
            with self._locked(source, op):
                try:
                    destination = rename_into(source.full_path, directory, name, overwrite)
                except OSError as e:
                    if is_cross_device(e):
                        raise
                    raise OperationFailedError(
                        f"Failed to {verb} {source.full_path} into {directory}",
                        path=os.path.join(directory, name),
                        cause=e,
                    ) from e
                source.dispose()
        except OSError as e:
            if not is_cross_device(e):
                raise
            return None
        return source.rebind(destination)

    def _delete(self, source: StorageObject) -> None:
        path = source.full_path
        op = Operation("delete", path)
        with self._locked(source, op), os_errors(f"Failed to delete: {path}", path):
            remove_entry(path, source.is_directory)
            source.dispose()

    def _rollback(self, copied: StorageObject) -> bool:
        path = copied.full_path
        try:
            self._delete(copied)
        except Exception:
            logger.warning("Rollback of %s failed", path, exc_info=True)
            return False
        logger.debug("Rolled back copy %s", path)
        return True

    def _abandon_copy(
        self, source: StorageObject, copied: StorageObject, origin: str, op: Operation
    ) -> None:
        """Undo a cross-volume copy whose source could not be deleted."""
        if source.is_directory:
            logger.warning(
                "Source %s may be partly removed; keeping copy %s", origin, copied.full_path
            )
        elif not os.path.lexists(origin):
            source.dispose()
            logger.debug("Source %s already removed; keeping copy", origin)
        elif self._rollback(copied):
            op.advance(OperationState.ROLLED_BACK)
            return
        op.advance(OperationState.FAILED)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def copy(
        self,
        source: T,
        destination_dir: str | os.PathLike[str],
        overwrite: bool = False,
        progress: ProgressCallback | None = None,
    ) -> T:
        """Copy *source* into *destination_dir* and return the new object.

        When the target name is taken and *overwrite* is False, the copy is
        named ``"name (n).ext"`` with the smallest free ``n``.
        """
        source.ensure_alive()
        origin = source.full_path
        directory = normalize_path(destination_dir)
        check_destination(source, directory, overwrite)
        prepare_directory(directory)

        copied = self._copy_to(source, directory, overwrite, progress)
        self._emit(EventType.COPIED, copied.full_path, origin)
        return copied

    def move(
        self,
        source: T,
        destination_dir: str | os.PathLike[str],
        overwrite: bool = False,
        progress: ProgressCallback | None = None,
    ) -> T:
        """Move *source* into *destination_dir*; *source* is disposed on success."""
        source.ensure_alive()
        origin = source.full_path
        directory = normalize_path(destination_dir)
        check_destination(source, directory, overwrite)
        prepare_directory(directory)
        destination = os.path.join(directory, source.name)

        if self.context.same_volume(origin, destination):
            moved = self._rename_to(source, directory, source.name, overwrite, "move")
            if moved is not None:
                if progress is not None:
                    progress(StorageProgress(total_bytes=1, bytes_transferred=1))
                self._emit(EventType.MOVED, moved.full_path, origin)
                return moved
            logger.debug("Rename across devices refused; copying %s instead", origin)

        # Copy and delete each hold the source lock on their own.
        op = Operation("move", origin)
        op.advance(OperationState.IN_PROGRESS)
        try:
            copied = self._copy_to(source, directory, overwrite, progress)
        except BaseException:
            op.advance(OperationState.FAILED)
            raise
        try:
            self._delete(source)
        except Exception:
            self._abandon_copy(source, copied, origin, op)
            raise
        op.advance(OperationState.COMMITTED)
        self._emit(EventType.MOVED, copied.full_path, origin)
        return copied

    def rename(self, source: T, new_name: str) -> T:
        """Rename *source* within its directory; a taken name gets a number suffix."""
        source.ensure_alive()
        require_valid_name(new_name)
        origin = source.full_path

        renamed = self._rename_to(source, source.parent_directory, new_name, False, "rename")
        if renamed is None:
            raise OperationFailedError(f"Failed to rename {origin}", path=origin)
        self._emit(EventType.RENAMED, renamed.full_path, origin)
        return renamed

    def delete(self, source: StorageObject) -> None:
        """Delete *source* (recursively for directories) and dispose it."""
        source.ensure_alive()
        path = source.full_path
        self._delete(source)
        self._emit(EventType.DELETED, path)
