"""Byte transfer between open handles, with progress accounting.

Two variants share one contract:

- ``copy_stream`` reads a chunk, writes it, reports, and repeats.
- ``copy_stream_overlapped`` keeps two buffers and starts reading the next
  chunk before the current one is written, so disk reads and writes run
  concurrently.  The buffer being written is never the one being filled.

Both raise ``OperationFailedError`` carrying the destination path on any
I/O failure and leave partial output in place for the caller to clean up.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import TYPE_CHECKING, BinaryIO

from .exceptions import OperationFailedError
from .types import StorageProgress

if TYPE_CHECKING:
    from .types import ProgressCallback

logger = logging.getLogger(__name__)


class TransferMeter:
    """Counts transferred bytes and reports ``StorageProgress`` to a sink.

    One meter may span several files (directory copies), in which case
    *total_bytes* is the size of the whole tree.
    """

    def __init__(self, total_bytes: int, progress: ProgressCallback | None = None) -> None:
        self.total_bytes = total_bytes
        self.bytes_transferred = 0
        self.reports = 0
        self._progress = progress
        self._started = time.monotonic()

    def advance(self, count: int) -> None:
        self.bytes_transferred += count
        if self._progress is None:
            return
        elapsed = time.monotonic() - self._started
        rate = self.bytes_transferred / elapsed if elapsed > 0 else 0.0
        self.reports += 1
        self._progress(
            StorageProgress(
                total_bytes=self.total_bytes,
                bytes_transferred=self.bytes_transferred,
                bytes_per_second=rate,
            )
        )


def _failed(destination: str, exc: BaseException) -> OperationFailedError:
    return OperationFailedError(
        f"Failed to copy file to: {destination}", path=destination, cause=exc
    )


# =========================================================================
# Stream variants
# =========================================================================


def copy_stream(
    source: BinaryIO,
    target: BinaryIO,
    *,
    buffer_size: int,
    meter: TransferMeter,
    destination: str,
) -> int:
    """Sequentially copy *source* into *target*. Return bytes copied."""
    buffer = bytearray(buffer_size)
    view = memoryview(buffer)
    copied = 0
    try:
        while True:
            count = source.readinto(buffer)
            if not count:
                break
            target.write(view[:count])
            copied += count
            meter.advance(count)
    except OSError as e:
        raise _failed(destination, e) from e
    finally:
        view.release()
    return copied


async def copy_stream_async(
    source: BinaryIO,
    target: BinaryIO,
    *,
    buffer_size: int,
    meter: TransferMeter,
    destination: str,
) -> int:
    """Sequential copy with each read and write delegated to a worker thread."""
    buffer = bytearray(buffer_size)
    copied = 0
    try:
        while count := await asyncio.to_thread(source.readinto, buffer):
            await asyncio.to_thread(target.write, memoryview(buffer)[:count])
            copied += count
            meter.advance(count)
    except OSError as e:
        raise _failed(destination, e) from e
    return copied


async def copy_stream_overlapped(
    source: BinaryIO,
    target: BinaryIO,
    *,
    buffer_size: int,
    meter: TransferMeter,
    destination: str,
) -> int:
    """Double-buffered copy: read chunk n+1 while chunk n is being written."""
    current = bytearray(buffer_size)
    pending = bytearray(buffer_size)
    read_task: asyncio.Future[int] | None = None
    copied = 0
    try:
        count = await asyncio.to_thread(source.readinto, current)
        while count:
            read_task = asyncio.ensure_future(asyncio.to_thread(source.readinto, pending))
            await asyncio.to_thread(target.write, memoryview(current)[:count])
            copied += count
            meter.advance(count)

            current, pending = pending, current
            count = await asyncio.shield(read_task)
            read_task = None
    except OSError as e:
        raise _failed(destination, e) from e
    finally:
        if read_task is not None:
            # Never hand the handles back while a worker thread still reads them.
            await asyncio.wait({read_task})
            if not read_task.cancelled():
                read_task.exception()
    return copied


# =========================================================================
# File variants
# =========================================================================


def _open_pair(source_path: str, destination: str, overwrite: bool) -> tuple[BinaryIO, BinaryIO]:
    try:
        source = open(source_path, "rb")  # noqa: SIM115
    except OSError as e:
        raise _failed(destination, e) from e
    try:
        target = open(destination, "wb" if overwrite else "xb")  # noqa: SIM115
    except OSError as e:
        source.close()
        raise _failed(destination, e) from e
    return source, target


def transfer_file(
    source_path: str,
    destination: str,
    *,
    overwrite: bool,
    buffer_size: int,
    meter: TransferMeter,
) -> int:
    """Copy one file with the sequential variant."""
    source, target = _open_pair(source_path, destination, overwrite)
    try:
        with source, target:
            copied = copy_stream(
                source, target, buffer_size=buffer_size, meter=meter, destination=destination
            )
    except OSError as e:
        raise _failed(destination, e) from e
    logger.debug("Copied %d bytes %s -> %s", copied, source_path, destination)
    return copied


async def transfer_file_async(
    source_path: str,
    destination: str,
    *,
    overwrite: bool,
    buffer_size: int,
    meter: TransferMeter,
    overlapped: bool = True,
) -> int:
    """Copy one file without blocking the event loop."""
    source, target = await asyncio.to_thread(_open_pair, source_path, destination, overwrite)
    copy = copy_stream_overlapped if overlapped else copy_stream_async
    try:
        copied = await copy(
            source, target, buffer_size=buffer_size, meter=meter, destination=destination
        )
    finally:
        await asyncio.to_thread(_close_pair, source, target, destination)
    logger.debug("Copied %d bytes %s -> %s", copied, source_path, destination)
    return copied


def _close_pair(source: BinaryIO, target: BinaryIO, destination: str) -> None:
    try:
        target.close()
    except OSError as e:
        raise _failed(destination, e) from e
    finally:
        source.close()


def file_size(path: str) -> int:
    try:
        return os.path.getsize(path)
    except OSError as e:
        raise OperationFailedError(f"Cannot access file: {path}", path=path, cause=e) from e
