"""Default metadata provider built on ``os.stat``."""

from __future__ import annotations

import os
import stat
from datetime import UTC, datetime

from .exceptions import OperationFailedError, StorageNotFoundError
from .types import FileAttributes, MetadataRecord


def attributes_from_mode(mode: int, name: str = "") -> FileAttributes:
    """Map a POSIX *mode* (and the entry's *name*) to ``FileAttributes``."""
    attributes = FileAttributes.NONE
    if stat.S_ISREG(mode):
        attributes |= FileAttributes.NORMAL
    elif stat.S_ISDIR(mode):
        attributes |= FileAttributes.DIRECTORY
    elif stat.S_ISLNK(mode):
        attributes |= FileAttributes.SYMLINK

    if not mode & stat.S_IWUSR:
        attributes |= FileAttributes.READ_ONLY

    if name.startswith("."):
        attributes |= FileAttributes.HIDDEN
    return attributes


def _timestamp(value: float) -> datetime:
    return datetime.fromtimestamp(value, tz=UTC)


def stat_metadata(path: str) -> MetadataRecord:
    """Collect a ``MetadataRecord`` for *path* without following a final symlink."""
    try:
        st = os.lstat(path)
        target = os.readlink(path) if stat.S_ISLNK(st.st_mode) else None
    except FileNotFoundError as e:
        raise StorageNotFoundError(f"Path not found: {path}") from e
    except OSError as e:
        raise OperationFailedError(
            f"Failed to retrieve storage information: {path}", path=path, cause=e
        ) from e

    attributes = attributes_from_mode(st.st_mode, os.path.basename(path))
    if target is not None:
        attributes |= FileAttributes.SYMLINK
    created = getattr(st, "st_birthtime", None) or st.st_ctime

    return MetadataRecord(
        mode=st.st_mode,
        owner_id=getattr(st, "st_uid", None),
        group_id=getattr(st, "st_gid", None),
        size=st.st_size,
        access_time=_timestamp(st.st_atime),
        write_time=_timestamp(st.st_mtime),
        creation_time=_timestamp(created),
        attributes=attributes,
        symlink_target=target,
    )
