"""Normalization, classification and change detection for listing data."""

from .parsing import (
    ParsedDate,
    parse_date,
    normalize_whitespace,
    clean_html_text,
)
from .classify import (
    BidCategory,
    Region,
    classify_category,
    extract_region,
)
from .diff import (
    FieldChange,
    DiffResult,
    compute_fingerprint,
    compute_diff,
)

__all__ = [
    # Parsing
    "ParsedDate",
    "parse_date",
    "normalize_whitespace",
    "clean_html_text",
    # Classification
    "BidCategory",
    "Region",
    "classify_category",
    "extract_region",
    # Diff
    "FieldChange",
    "DiffResult",
    "compute_fingerprint",
    "compute_diff",
]
