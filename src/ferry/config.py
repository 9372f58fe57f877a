"""StorageConfig — tunables shared by both mutation engines."""

from __future__ import annotations

from dataclasses import dataclass

from .utils import buffer_size_for

DEFAULT_SCAN_WINDOW = 8192


@dataclass
class StorageConfig:
    """Configuration for mutation engines and information snapshots."""

    buffer_size: int | None = None
    """Fixed transfer chunk size. ``None`` sizes chunks from the file size."""

    overlapped: bool = True
    """Use the double-buffered transfer on the async engine."""

    check_strings: bool = True
    """Verify required strings (reads the whole file) during identification."""

    scan_window: int = DEFAULT_SCAN_WINDOW
    """Header bytes read for identification."""

    def __post_init__(self) -> None:
        if self.buffer_size is not None and self.buffer_size <= 0:
            raise ValueError(f"buffer_size must be positive, got {self.buffer_size}")
        if self.scan_window <= 0:
            raise ValueError(f"scan_window must be positive, got {self.scan_window}")

    def chunk_size(self, total_bytes: int) -> int:
        """Transfer chunk size for a payload of *total_bytes*."""
        return self.buffer_size or buffer_size_for(total_bytes)
