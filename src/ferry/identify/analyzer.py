"""Content identification: candidate discovery, scoring and ranking."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from .catalog import SignatureCatalog
from .types import AnalysisResult, IdentificationReport

if TYPE_CHECKING:
    from collections.abc import Callable

    from .types import Definition

logger = logging.getLogger(__name__)

SCAN_WINDOW_SIZE = 8192
"""Bytes of file header read for identification."""

DISCOVERY_LIMIT = 512
"""Header positions scanned for the first pattern of a definition."""

HEADER_WEIGHT = 1000
OFFSET_WEIGHT = 100
STRING_WEIGHT = 500


class _WholeFile:
    """Reads the full file at most once per identification."""

    def __init__(self, read_all: Callable[[], bytes] | None) -> None:
        self._read_all = read_all
        self._data: bytes | None = None

    def get(self) -> bytes:
        if self._data is None:
            self._data = self._read_all() if self._read_all is not None else b""
        return self._data


def discover_candidates(header: bytes, catalog: SignatureCatalog) -> list[Definition]:
    """Definitions that may match *header*, in discovery order, all patterns checked."""
    to_check: dict[Definition, None] = dict.fromkeys(catalog.catch_all)

    for position in range(min(len(header), DISCOVERY_LIMIT)):
        for definition in catalog.lookup(position, header[position]):
            to_check.setdefault(definition, None)

    return [
        definition
        for definition in to_check
        if all(p.matches(header) for p in definition.signature.patterns)
    ]


def score_definition(
    definition: Definition,
    header: bytes,
    whole_file: _WholeFile,
    check_strings: bool,
) -> int:
    """All-or-nothing score of *definition*; 0 when any pattern or string misses."""
    points = 0
    for pattern in definition.signature.patterns:
        if not pattern.matches(header):
            return 0
        weight = HEADER_WEIGHT if pattern.position == 0 else OFFSET_WEIGHT
        points += len(pattern.data) * weight

    strings = definition.signature.strings
    if check_strings and points > 0 and strings:
        content = whole_file.get()
        for needle in strings:
            if needle not in content:
                return 0
            points += len(needle) * STRING_WEIGHT

    return points


def identify(
    header: bytes,
    read_all: Callable[[], bytes] | None = None,
    *,
    catalog: SignatureCatalog | None = None,
    check_strings: bool = True,
) -> list[AnalysisResult]:
    """Rank the catalog's definitions against a file header.

    Args:
        header: The first bytes of the file (at most ``SCAN_WINDOW_SIZE``).
        read_all: Returns the whole file; called at most once, and only when
            a positively scored definition declares required strings.
        catalog: Definitions to test. Defaults to the built-in catalog.
        check_strings: Whether required strings are verified.

    Returns:
        Results with a positive score, highest score first.  Confidences sum
        to 100.  Empty when nothing matches or *header* is empty.
    """
    if not header:
        return []
    catalog = catalog if catalog is not None else SignatureCatalog.builtin()
    whole_file = _WholeFile(read_all)

    results: list[AnalysisResult] = []
    total = 0
    for definition in discover_candidates(header, catalog):
        points = score_definition(definition, header, whole_file, check_strings)
        if points > 0:
            total += points
            results.append(AnalysisResult(definition=definition, raw_score=points))

    for result in results:
        result.confidence = result.raw_score * 100.0 / total if total > 0 else 0.0

    # Stable: equal scores keep discovery order.
    results.sort(key=lambda r: r.raw_score, reverse=True)
    return results


def read_header(path: str | os.PathLike[str], size: int = SCAN_WINDOW_SIZE) -> bytes:
    with open(path, "rb") as f:
        return f.read(size)


def _read_whole(path: str | os.PathLike[str]) -> Callable[[], bytes]:
    def _read() -> bytes:
        with open(path, "rb") as f:
            return f.read()

    return _read


def analyze_file(
    path: str | os.PathLike[str],
    *,
    catalog: SignatureCatalog | None = None,
    check_strings: bool = True,
    scan_window: int = SCAN_WINDOW_SIZE,
) -> list[AnalysisResult]:
    """Identify the file at *path*. Missing or unreadable files yield ``[]``."""
    try:
        if not os.path.isfile(path) or os.path.getsize(path) == 0:
            return []
        header = read_header(path, scan_window)
        return identify(
            header, _read_whole(path), catalog=catalog, check_strings=check_strings
        )
    except OSError:
        logger.debug("Cannot analyze %s", path, exc_info=True)
        return []


def analyze_report(
    path: str | os.PathLike[str],
    *,
    catalog: SignatureCatalog | None = None,
    check_strings: bool = True,
    scan_window: int = SCAN_WINDOW_SIZE,
) -> IdentificationReport:
    """:func:`analyze_file` wrapped in an ``IdentificationReport``."""
    results = analyze_file(
        path, catalog=catalog, check_strings=check_strings, scan_window=scan_window
    )
    return IdentificationReport(tuple(results))
