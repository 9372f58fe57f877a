"""Steps shared by the blocking and asyncio mutation engines.

Both engines run the same protocol; only the way they wait differs.
Everything here is synchronous and safe to call from a worker thread.
"""

from __future__ import annotations

import contextlib
import errno
import logging
import os
import shutil
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import (
    InvalidArgumentError,
    OperationFailedError,
    StorageNotFoundError,
)
from .utils import IS_WINDOWS, is_within, same_path, target_path

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from .objects import StorageObject

logger = logging.getLogger(__name__)


class OperationState(Enum):
    IDLE = "idle"
    LOCK_ACQUIRED = "lock_acquired"
    IN_PROGRESS = "in_progress"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


class Operation:
    """Tracks and logs the state of one mutation."""

    def __init__(self, name: str, path: str) -> None:
        self.name = name
        self.path = path
        self.state = OperationState.IDLE

    def advance(self, state: OperationState) -> None:
        logger.debug("%s %s: %s -> %s", self.name, self.path, self.state.value, state.value)
        self.state = state

    def __repr__(self) -> str:
        return f"<Operation {self.name} {self.path!r} {self.state.value}>"


def check_source(source: StorageObject) -> None:
    """Raise if *source* was disposed or vanished while we waited for its lock."""
    source.ensure_alive()
    if not os.path.lexists(source.full_path):
        kind = "Directory" if source.is_directory else "File"
        raise StorageNotFoundError(f"{kind} not found: {source.full_path}")


def check_destination(source: StorageObject, directory: str, overwrite: bool) -> None:
    """Reject target directories that would overwrite or contain the source itself."""
    target = os.path.join(directory, source.name)
    if overwrite and same_path(target, source.full_path):
        raise InvalidArgumentError(f"Source and destination are the same: {source.full_path}")
    if overwrite and is_within(source.full_path, target):
        raise InvalidArgumentError(
            f"Overwriting {target} would destroy the source {source.full_path}"
        )
    if source.is_directory and is_within(directory, source.full_path):
        raise InvalidArgumentError(
            f"Cannot place directory {source.full_path} inside itself: {directory}"
        )


@contextlib.contextmanager
def os_errors(message: str, path: str) -> Iterator[None]:
    """Translate ``OSError`` raised inside the block into ferry errors."""
    try:
        yield
    except FileNotFoundError as e:
        raise StorageNotFoundError(f"{message} (not found)") from e
    except OSError as e:
        raise OperationFailedError(message, path=path, cause=e) from e


# =========================================================================
# Filesystem steps
# =========================================================================


def remove_entry(path: str, is_directory: bool) -> None:
    if is_directory:
        shutil.rmtree(path)
    else:
        os.remove(path)


def _create_file(path: str) -> None:
    os.close(os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o666))


def claim_target(
    directory: str, name: str, overwrite: bool, is_directory: bool
) -> tuple[str, bool]:
    """Settle the target of a copy and create it before any byte moves.

    Returns the path and whether this call created it.  Without *overwrite*,
    a name another writer takes first moves on to the next free
    ``"name (n)"``; with *overwrite* the existing entry is reused.
    """
    claim = os.mkdir if is_directory else _create_file
    while True:
        destination = target_path(directory, name, overwrite)
        try:
            claim(destination)
        except FileExistsError:
            if overwrite:
                return destination, False
            logger.debug("%s was taken, settling again", destination)
            continue
        return destination, True


# Errors from os.link on file systems without hard links.
_NO_HARD_LINKS = frozenset({errno.EPERM, errno.EMLINK, errno.ENOTSUP, errno.EOPNOTSUPP})


def _link(source: str, destination: str) -> None:
    if os.link in os.supports_follow_symlinks:
        os.link(source, destination, follow_symlinks=False)
    elif os.path.islink(source):
        raise OSError(errno.ENOTSUP, "Cannot hard-link a symbolic link", source)
    else:
        os.link(source, destination)


def _rename_file(source: str, destination: str) -> None:
    try:
        _link(source, destination)
    except FileExistsError:
        raise
    except OSError as e:
        if e.errno not in _NO_HARD_LINKS:
            raise
        if os.path.lexists(destination):
            raise FileExistsError(errno.EEXIST, "Destination already exists", destination) from e
        os.rename(source, destination)
        return
    try:
        os.unlink(source)
    except OSError:
        _discard_claim(destination, os.unlink)
        raise


def _rename_directory(source: str, destination: str) -> None:
    os.mkdir(destination)
    try:
        # Replaces the empty directory claimed above.
        os.rename(source, destination)
    except OSError as e:
        _discard_claim(destination, os.rmdir)
        if e.errno in (errno.ENOTEMPTY, errno.EEXIST):
            raise FileExistsError(errno.EEXIST, "Destination already exists", destination) from e
        raise


def _discard_claim(path: str, remove: Callable[[str], None]) -> None:
    try:
        remove(path)
    except OSError:
        logger.warning("Could not remove %s", path, exc_info=True)


def rename_entry(source: str, destination: str, overwrite: bool) -> None:
    """Move *source* to *destination* on the same volume.

    Without *overwrite* an existing destination is never replaced: the call
    raises ``FileExistsError`` and leaves both entries alone.
    """
    if os.path.normcase(source) == os.path.normcase(destination):
        os.replace(source, destination)
        return
    if overwrite:
        if os.path.isdir(source) and os.path.isdir(destination) and not os.path.islink(destination):
            shutil.rmtree(destination)
        os.replace(source, destination)
    elif IS_WINDOWS:
        # os.rename never replaces an existing entry on Windows.
        os.rename(source, destination)
    elif os.path.isdir(source) and not os.path.islink(source):
        _rename_directory(source, destination)
    else:
        _rename_file(source, destination)


def rename_into(source: str, directory: str, name: str, overwrite: bool) -> str:
    """Rename *source* to *name* inside *directory* and return the new path.

    Without *overwrite*, a target that appears between settling the name
    and renaming moves on to the next free ``"name (n)"``.
    """
    while True:
        destination = target_path(directory, name, overwrite)
        try:
            rename_entry(source, destination, overwrite)
        except FileExistsError:
            if overwrite:
                raise
            logger.debug("%s was taken, settling again", destination)
            continue
        return destination


def is_cross_device(exc: OSError) -> bool:
    return exc.errno == errno.EXDEV


def tree_size(path: str) -> int:
    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            total += os.path.getsize(os.path.join(root, name))
    return total


def plan_tree(source: str, destination: str) -> tuple[list[str], list[tuple[str, str]]]:
    """Directories to create and (source, destination) file pairs for a tree copy."""
    directories = [destination]
    files: list[tuple[str, str]] = []
    for root, dirnames, filenames in os.walk(source):
        rel = os.path.relpath(root, source)
        target_root = destination if rel == os.curdir else os.path.join(destination, rel)
        directories.extend(os.path.join(target_root, d) for d in sorted(dirnames))
        files.extend(
            (os.path.join(root, f), os.path.join(target_root, f)) for f in sorted(filenames)
        )
    return directories, files


def make_directories(directories: list[str]) -> None:
    for directory in directories:
        os.makedirs(directory, exist_ok=True)


def discard_partial(destination: str, is_directory: bool) -> None:
    """Best-effort removal of a copy that failed half way."""
    try:
        if os.path.lexists(destination):
            remove_entry(destination, is_directory)
            logger.debug("Removed partial copy %s", destination)
    except OSError:
        logger.warning("Could not remove partial copy %s", destination, exc_info=True)
