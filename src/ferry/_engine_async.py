"""AsyncMutationEngine — the mutation protocol for asyncio callers."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from typing import TYPE_CHECKING, Any, TypeVar

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
from .transfer import TransferMeter, file_size, transfer_file_async
from .types import StorageProgress
from .utils import normalize_path, prepare_directory, require_valid_name

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from .objects import StorageObject
    from .types import ProgressCallback

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="StorageObject")
R = TypeVar("R")


async def _uninterrupted(
    func: Callable[..., R], *args: Any, on_cancel: Callable[[R], None] | None = None
) -> R:
    """Run *func* in a worker thread that a cancelled caller still waits for.

    A step already running in a thread cannot be stopped.  When the caller
    is cancelled and the step succeeded anyway, *on_cancel* receives its
    result before the cancellation propagates.
    """
    worker = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.shield(worker)
    except asyncio.CancelledError:
        await asyncio.wait({worker})
        if on_cancel is not None and not worker.cancelled() and worker.exception() is None:
            await asyncio.to_thread(on_cancel, worker.result())
        raise


class AsyncMutationEngine:
    """Runs mutations on storage objects without blocking the event loop.

    Same protocol as ``MutationEngine``; file system calls run in worker
    threads and file copies use the overlapped transfer unless
    ``StorageConfig.overlapped`` is off.  Cancelling the calling task stops
    a copy between chunks and removes the partial output.
    """

    def __init__(self, context: StorageContext | None = None) -> None:
        self.context = context or StorageContext()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def _locked(self, source: StorageObject, op: Operation) -> AsyncIterator[None]:
        async with self.context.registry.hold_async(source.full_path):
            op.advance(OperationState.LOCK_ACQUIRED)
            await asyncio.to_thread(check_source, source)
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

    async def _target_directory(
        self, source: StorageObject, destination_dir: str | os.PathLike[str], overwrite: bool
    ) -> str:
        directory = normalize_path(destination_dir)
        check_destination(source, directory, overwrite)
        await asyncio.to_thread(prepare_directory, directory)
        return directory

    async def _claim(
        self, source: StorageObject, directory: str, overwrite: bool
    ) -> tuple[str, bool]:
        is_directory = source.is_directory

        def claim() -> tuple[str, bool]:
            with os_errors(f"Failed to create target in: {directory}", directory):
                return claim_target(directory, source.name, overwrite, is_directory)

        def release(claimed: tuple[str, bool]) -> None:
            destination, created = claimed
            if created:
                discard_partial(destination, is_directory)

        return await _uninterrupted(claim, on_cancel=release)

    async def _copy_to(
        self,
        source: T,
        directory: str,
        overwrite: bool,
        progress: ProgressCallback | None,
    ) -> T:
        op = Operation("copy", source.full_path)
        async with self._locked(source, op):
            destination, created = await self._claim(source, directory, overwrite)
            try:
                if source.is_directory:
                    await self._copy_tree(source.full_path, destination, overwrite, progress)
                else:
                    await self._copy_file(source.full_path, destination, progress)
            except BaseException:
                if created:
                    await asyncio.to_thread(discard_partial, destination, source.is_directory)
                raise
        return source.rebind(destination)

    async def _copy_file(
        self,
        source: str,
        destination: str,
        progress: ProgressCallback | None,
    ) -> None:
        config = self.context.config
        size = await asyncio.to_thread(file_size, source)
        # The target is already claimed, so it is opened for writing as is.
        await transfer_file_async(
            source,
            destination,
            overwrite=True,
            buffer_size=config.chunk_size(size),
            meter=TransferMeter(size, progress),
            overlapped=config.overlapped,
        )

    async def _copy_tree(
        self,
        source: str,
        destination: str,
        overwrite: bool,
        progress: ProgressCallback | None,
    ) -> None:
        config = self.context.config

        def prepare() -> tuple[int, list[tuple[str, str]]]:
            with os_errors(f"Failed to copy directory to: {destination}", destination):
                total = tree_size(source)
                directories, files = plan_tree(source, destination)
                make_directories(directories)
            return total, files

        total, files = await asyncio.to_thread(prepare)
        meter = TransferMeter(total, progress)
        for src, dst in files:
            await transfer_file_async(
                src,
                dst,
                overwrite=overwrite,
                buffer_size=config.chunk_size(total),
                meter=meter,
                overlapped=config.overlapped,
            )

    async def _rename_to(
        self, source: T, directory: str, name: str, overwrite: bool, verb: str
    ) -> T | None:
        op = Operation(verb, source.full_path)
        try:
            async with self._locked(source, op):
                try:
                    destination = await _uninterrupted(
                        rename_into,
                        source.full_path,
                        directory,
                        name,
                        overwrite,
                        on_cancel=lambda _: source.dispose(),
                    )
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

    async def _delete(self, source: StorageObject) -> None:
        path = source.full_path
        op = Operation("delete", path)

        def remove() -> None:
            with os_errors(f"Failed to delete: {path}", path):
                remove_entry(path, source.is_directory)

        async with self._locked(source, op):
            await _uninterrupted(remove, on_cancel=lambda _: source.dispose())
            source.dispose()

    async def _rollback(self, copied: StorageObject) -> bool:
        path = copied.full_path
        try:
            await self._delete(copied)
        except Exception:
            logger.warning("Rollback of %s failed", path, exc_info=True)
            return False
        logger.debug("Rolled back copy %s", path)
        return True

    async def _abandon_copy(
        self, source: StorageObject, copied: StorageObject, origin: str, op: Operation
    ) -> None:
        """Undo a cross-volume copy whose source could not be deleted."""
        if source.is_directory:
            logger.warning(
                "Source %s may be partly removed; keeping copy %s", origin, copied.full_path
            )
        elif not await asyncio.to_thread(os.path.lexists, origin):
            source.dispose()
            logger.debug("Source %s already removed; keeping copy", origin)
        elif await self._rollback(copied):
            op.advance(OperationState.ROLLED_BACK)
            return
        op.advance(OperationState.FAILED)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def copy(
        self,
        source: T,
        destination_dir: str | os.PathLike[str],
        overwrite: bool = False,
        progress: ProgressCallback | None = None,
    ) -> T:
        source.ensure_alive()
        origin = source.full_path
        directory = await self._target_directory(source, destination_dir, overwrite)

        copied = await self._copy_to(source, directory, overwrite, progress)
        self._emit(EventType.COPIED, copied.full_path, origin)
        return copied

    async def move(
        self,
        source: T,
        destination_dir: str | os.PathLike[str],
        overwrite: bool = False,
        progress: ProgressCallback | None = None,
    ) -> T:
        """Move *source* into *destination_dir*.

        If the task is cancelled after a cross-volume copy finished, the copy
        is removed only while the source still exists; once the source is
        gone the copy is the sole surviving data and stays.
        """
        source.ensure_alive()
        origin = source.full_path
        directory = await self._target_directory(source, destination_dir, overwrite)
        destination = os.path.join(directory, source.name)

        if await asyncio.to_thread(self.context.same_volume, origin, destination):
            moved = await self._rename_to(source, directory, source.name, overwrite, "move")
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
            copied = await self._copy_to(source, directory, overwrite, progress)
        except BaseException:
            op.advance(OperationState.FAILED)
            raise
        try:
            await self._delete(source)
        except BaseException:
            await self._abandon_copy(source, copied, origin, op)
            raise
        op.advance(OperationState.COMMITTED)
        self._emit(EventType.MOVED, copied.full_path, origin)
        return copied

    async def rename(self, source: T, new_name: str) -> T:
        source.ensure_alive()
        require_valid_name(new_name)
        origin = source.full_path

        renamed = await self._rename_to(
            source, source.parent_directory, new_name, False, "rename"
        )
        if renamed is None:
            raise OperationFailedError(f"Failed to rename {origin}", path=origin)
        self._emit(EventType.RENAMED, renamed.full_path, origin)
        return renamed

    async def delete(self, source: StorageObject) -> None:
        source.ensure_alive()
        path = source.full_path
        await self._delete(source)
        self._emit(EventType.DELETED, path)
