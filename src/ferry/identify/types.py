"""Signature definitions and identification results."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Pattern:
    """A fixed byte sequence expected at a fixed offset in the file header."""

    position: int
    data: bytes

    def __post_init__(self) -> None:
        if self.position < 0:
            raise ValueError(f"Pattern position must be non-negative, got {self.position}")
        if not self.data:
            raise ValueError("Pattern data must not be empty")

    def matches(self, header: bytes) -> bool:
        """True when *header* holds :attr:`data` exactly at :attr:`position`."""
        end = self.position + len(self.data)
        return end <= len(header) and header[self.position:end] == self.data


@dataclass(frozen=True, slots=True)
class Signature:
    """Patterns (all must match) plus required strings (all must be present)."""

    patterns: tuple[Pattern, ...] = ()
    strings: tuple[bytes, ...] = ()

    @property
    def is_catch_all(self) -> bool:
        """A signature without positional patterns is tried on every file."""
        return not self.patterns


@dataclass(frozen=True, slots=True)
class Definition:
    """A named file-type signature."""

    file_type: str
    extension: str
    mime_type: str
    signature: Signature = field(default_factory=Signature)
    priority: int = 0
    remarks: str = ""


@dataclass(slots=True)
class AnalysisResult:
    """Score of one definition against one file."""

    definition: Definition
    raw_score: int
    confidence: float = 0.0


@dataclass(frozen=True, slots=True)
class Confidence:
    """A subject (MIME type, extension) with its summed confidence."""

    subject: str
    value: float


def _aggregate(results: list[AnalysisResult], key: str) -> list[Confidence]:
    totals: dict[str, float] = {}
    for result in results:
        subject = getattr(result.definition, key)
        if not subject:
            continue
        totals[subject] = totals.get(subject, 0.0) + result.confidence
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [Confidence(subject, value) for subject, value in ranked]


@dataclass(frozen=True)
class IdentificationReport:
    """Ranked identification results for a single file."""

    results: tuple[AnalysisResult, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.results)

    @property
    def best(self) -> AnalysisResult | None:
        return self.results[0] if self.results else None

    @property
    def type_name(self) -> str:
        best = self.best
        return best.definition.file_type if best else "Unknown"

    @property
    def mime_types(self) -> list[Confidence]:
        return _aggregate(list(self.results), "mime_type")

    @property
    def extensions(self) -> list[Confidence]:
        return _aggregate(list(self.results), "extension")
