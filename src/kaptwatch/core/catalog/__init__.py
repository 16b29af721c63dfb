"""Catalog fetching and snapshot assembly."""

from .assembler import (
    AssemblyResult,
    CatalogAssembler,
    PageSource,
    StopReason,
    breakdown,
    dedupe_records,
    sort_by_post_date,
)
from .fetcher import FIXED_PARAMS, PageFetcher, months_before

__all__ = [
    "AssemblyResult",
    "CatalogAssembler",
    "PageSource",
    "StopReason",
    "breakdown",
    "dedupe_records",
    "sort_by_post_date",
    "FIXED_PARAMS",
    "PageFetcher",
    "months_before",
]
