"""Content identification — signature catalog, scoring and ranking."""

from ferry.identify.analyzer import (
    SCAN_WINDOW_SIZE,
    analyze_file,
    analyze_report,
    discover_candidates,
    identify,
    score_definition,
)
from ferry.identify.catalog import SignatureCatalog
from ferry.identify.store import load_catalog, load_catalog_async, save_catalog
from ferry.identify.types import (
    AnalysisResult,
    Confidence,
    Definition,
    IdentificationReport,
    Pattern,
    Signature,
)

__all__ = [
    "SCAN_WINDOW_SIZE",
    "AnalysisResult",
    "Confidence",
    "Definition",
    "IdentificationReport",
    "Pattern",
    "Signature",
    "SignatureCatalog",
    "analyze_file",
    "analyze_report",
    "discover_candidates",
    "identify",
    "load_catalog",
    "load_catalog_async",
    "save_catalog",
    "score_definition",
]
