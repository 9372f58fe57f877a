"""Lazy information snapshots for files and directories.

``FileInformation`` identifies a file's content once, in the background,
the first time anything asks for it.  Every reader, blocking or async,
waits on the same future.

``DirectoryInformation`` caches aggregate size and entry counts until a
change event for the directory invalidates them.
"""

from __future__ import annotations

import asyncio
import atexit
import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .config import StorageConfig
from .identify.analyzer import analyze_report
from .metadata import stat_metadata
from .utils import is_within

if TYPE_CHECKING:
    from concurrent.futures import Executor

    from .events import StorageEvent
    from .identify.catalog import SignatureCatalog
    from .identify.types import AnalysisResult, Confidence, IdentificationReport
    from .types import MetadataProvider, MetadataRecord

logger = logging.getLogger(__name__)

ANALYSIS_WORKERS = 4

_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()


def analysis_executor() -> ThreadPoolExecutor:
    """Shared pool for background identification, created on first use."""
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=ANALYSIS_WORKERS, thread_name_prefix="ferry-analysis"
            )
            atexit.register(_executor.shutdown, wait=False)
        return _executor


class FileInformation:
    """Content identification and metadata for one file path."""

    def __init__(
        self,
        path: str,
        *,
        catalog: SignatureCatalog | None = None,
        config: StorageConfig | None = None,
        metadata_provider: MetadataProvider | None = None,
        executor: Executor | None = None,
    ) -> None:
        self.path = path
        self._catalog = catalog
        self._config = config or StorageConfig()
        self._metadata_provider = metadata_provider or stat_metadata
        self._executor = executor
        self._guard = threading.Lock()
        self._future: Future[IdentificationReport] | None = None

    def _analyze(self) -> IdentificationReport:
        logger.debug("Identifying %s", self.path)
        return analyze_report(
            self.path,
            catalog=self._catalog,
            check_strings=self._config.check_strings,
            scan_window=self._config.scan_window,
        )

    def start(self) -> Future[IdentificationReport]:
        """Begin identification if nobody has yet; return the shared future."""
        with self._guard:
            if self._future is None:
                executor = self._executor or analysis_executor()
                self._future = executor.submit(self._analyze)
            return self._future

    @property
    def started(self) -> bool:
        return self._future is not None

    # ------------------------------------------------------------------
    # Identification
    # ------------------------------------------------------------------

    @property
    def report(self) -> IdentificationReport:
        """The identification report, blocking until it is ready."""
        return self.start().result()

    async def report_async(self) -> IdentificationReport:
        return await asyncio.wrap_future(self.start())

    @property
    def results(self) -> list[AnalysisResult]:
        return list(self.report.results)

    @property
    def type_name(self) -> str:
        return self.report.type_name

    @property
    def mime_type(self) -> Confidence | None:
        mime_types = self.report.mime_types
        return mime_types[0] if mime_types else None

    @property
    def actual_extension(self) -> Confidence | None:
        extensions = self.report.extensions
        return extensions[0] if extensions else None

    @property
    def extension(self) -> str:
        """Extension taken from the file name, not the content."""
        return os.path.splitext(self.path)[1]

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @property
    def metadata(self) -> MetadataRecord:
        return self._metadata_provider(self.path)

    @property
    def size(self) -> int:
        return self.metadata.size


@dataclass(frozen=True, slots=True)
class DirectorySummary:
    """Aggregate figures for a directory tree."""

    size: int
    file_count: int
    directory_count: int


def summarize_directory(path: str) -> DirectorySummary:
    """Walk *path* and total file sizes and entry counts (unreadable entries skipped)."""
    size = files = directories = 0
    for root, dirnames, filenames in os.walk(path):
        directories += len(dirnames)
        for filename in filenames:
            try:
                size += os.lstat(os.path.join(root, filename)).st_size
            except OSError:
                continue
            files += 1
    return DirectorySummary(size=size, file_count=files, directory_count=directories)


class DirectoryInformation:
    """Cached aggregate metadata for a directory, recomputed after changes."""

    def __init__(self, path: str, *, metadata_provider: MetadataProvider | None = None) -> None:
        self.path = path
        self._metadata_provider = metadata_provider or stat_metadata
        self._guard = threading.Lock()
        self._summary: DirectorySummary | None = None

    @property
    def summary(self) -> DirectorySummary:
        with self._guard:
            if self._summary is None:
                self._summary = summarize_directory(self.path)
            return self._summary

    @property
    def size(self) -> int:
        return self.summary.size

    @property
    def file_count(self) -> int:
        return self.summary.file_count

    @property
    def directory_count(self) -> int:
        return self.summary.directory_count

    @property
    def metadata(self) -> MetadataRecord:
        return self._metadata_provider(self.path)

    @property
    def is_cached(self) -> bool:
        return self._summary is not None

    def invalidate(self) -> None:
        with self._guard:
            self._summary = None

    def on_event(self, event: StorageEvent) -> None:
        """Change-event handler: drop the cache when the change touches this tree."""
        touched = [event.path] + ([event.old_path] if event.old_path else [])
        if any(is_within(p, self.path) for p in touched):
            logger.debug("Invalidating summary of %s after %s", self.path, event.event_type.value)
            self.invalidate()
