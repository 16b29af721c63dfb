"""Listing extraction for the K-apt notice table."""

from .bid_table import (
    DEFAULT_PAGE_SIZE,
    NO_RESULT_PHRASES,
    PageParseResult,
    parse_bid_page,
)

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "NO_RESULT_PHRASES",
    "PageParseResult",
    "parse_bid_page",
]
