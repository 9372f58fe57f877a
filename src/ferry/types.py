"""Value types: StorageProgress, MetadataRecord, FileAttributes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Flag, auto
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime


@dataclass(frozen=True, slots=True)
class StorageProgress:
    """Progress of a transfer, reported after every chunk write."""

    total_bytes: int
    bytes_transferred: int
    bytes_per_second: float = 0.0

    @property
    def progress_percentage(self) -> float:
        if self.total_bytes == 0:
            return 0.0
        return self.bytes_transferred / self.total_bytes * 100


ProgressCallback: TypeAlias = "Callable[[StorageProgress], None]"


class FileAttributes(Flag):
    """Normalized attribute flags derived from a platform mode."""

    NONE = 0
    NORMAL = auto()
    DIRECTORY = auto()
    READ_ONLY = auto()
    HIDDEN = auto()
    SYMLINK = auto()


@dataclass(frozen=True, slots=True)
class MetadataRecord:
    """Normalized platform metadata for a single path."""

    mode: int
    owner_id: int | None
    group_id: int | None
    size: int
    access_time: datetime
    write_time: datetime
    creation_time: datetime
    attributes: FileAttributes = FileAttributes.NONE
    symlink_target: str | None = None

    @property
    def is_read_only(self) -> bool:
        return FileAttributes.READ_ONLY in self.attributes

    @property
    def is_hidden(self) -> bool:
        return FileAttributes.HIDDEN in self.attributes

    @property
    def is_symlink(self) -> bool:
        return FileAttributes.SYMLINK in self.attributes


MetadataProvider: TypeAlias = "Callable[[str], MetadataRecord]"
