"""
Parsing utilities for normalizing extracted listing text.

Handles date/time parsing and whitespace cleanup for table cells.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, date, time

import dateparser


# =============================================================================
# Date Parsing
# =============================================================================


@dataclass
class ParsedDate:
    """Result of parsing a date string."""

    value: datetime | None
    original: str
    confidence: float  # 0.0 - 1.0
    format_detected: str | None = None

    @property
    def ok(self) -> bool:
        return self.value is not None


# Fast-path patterns, most specific first. K-apt renders ISO-like
# "YYYY-MM-DD HH:MM:SS" and occasionally dotted "YYYY.MM.DD".
_DATE_PATTERNS: list[tuple[str, float, str]] = [
    (r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})", 1.0, "iso8601"),
    (r"^(\d{4})-(\d{1,2})-(\d{1,2})\s+(\d{1,2}):(\d{2}):(\d{2})$", 0.95, "iso_space"),
    (r"^(\d{4})-(\d{1,2})-(\d{1,2})\s+(\d{1,2}):(\d{2})$", 0.95, "iso_space_no_sec"),
    (r"^(\d{4})-(\d{1,2})-(\d{1,2})$", 0.9, "iso_date"),
    (r"^(\d{4})\.\s?(\d{1,2})\.\s?(\d{1,2})\.?\s+(\d{1,2}):(\d{2})(?::(\d{2}))?$", 0.9, "dotted_datetime"),
    (r"^(\d{4})\.\s?(\d{1,2})\.\s?(\d{1,2})\.?$", 0.85, "dotted_date"),
    (r"^(\d{4})/(\d{1,2})/(\d{1,2})(?:\s+(\d{1,2}):(\d{2})(?::(\d{2}))?)?$", 0.85, "slashed"),
]


def parse_date(
    value: str | datetime | date | None,
    *,
    relative_base: datetime | None = None,
) -> ParsedDate:
    """Parse a date/datetime from listing text.

    Handles:
    - ISO 8601 and "YYYY-MM-DD HH:MM[:SS]"
    - Dotted and slashed year-first dates ("2025.06.10", "2025/06/10")
    - Anything else dateparser understands (Korean and English)

    Args:
        value: String or datetime to parse
        relative_base: Base datetime for relative expressions

    Returns:
        ParsedDate with parsed value and metadata. ``value`` is None when
        the text could not be parsed; ``original`` always holds the input.
    """
    if value is None:
        return ParsedDate(value=None, original="", confidence=0.0)

    if isinstance(value, datetime):
        return ParsedDate(
            value=value,
            original=value.isoformat(),
            confidence=1.0,
            format_detected="datetime",
        )

    if isinstance(value, date):
        return ParsedDate(
            value=datetime.combine(value, time.min),
            original=value.isoformat(),
            confidence=1.0,
            format_detected="date",
        )

    original = str(value)
    text = normalize_whitespace(original)

    if not text:
        return ParsedDate(value=None, original=original, confidence=0.0)

    result = _try_common_patterns(text)
    if result:
        return ParsedDate(
            value=result[0],
            original=original,
            confidence=result[1],
            format_detected=result[2],
        )

    settings = {
        "DATE_ORDER": "YMD",
        "PREFER_DAY_OF_MONTH": "first",
        "RETURN_AS_TIMEZONE_AWARE": False,
        "STRICT_PARSING": False,
    }
    if relative_base:
        settings["RELATIVE_BASE"] = relative_base

    # dateparser raises a grab-bag of ValueError/TypeError/OverflowError on junk
    try:
        parsed = dateparser.parse(text, languages=["ko", "en"], settings=settings)
    except (ValueError, TypeError, OverflowError):
        parsed = None

    if parsed:
        return ParsedDate(
            value=parsed.replace(tzinfo=None),
            original=original,
            confidence=0.7,
            format_detected="dateparser",
        )

    return ParsedDate(value=None, original=original, confidence=0.0)


def _try_common_patterns(text: str) -> tuple[datetime, float, str] | None:
    """Try to parse using common year-first patterns (fast path)."""
    for pattern, confidence, name in _DATE_PATTERNS:
        match = re.match(pattern, text)
        if not match:
            continue

        groups = [int(g) if g else 0 for g in match.groups()]
        groups += [0] * (6 - len(groups))
        year, month, day, hour, minute, second = groups[:6]

        try:
            return (datetime(year, month, day, hour, minute, second), confidence, name)
        except ValueError:
            continue

    return None


# =============================================================================
# Utility Functions
# =============================================================================


def normalize_whitespace(text: str | None) -> str:
    """Collapse runs of whitespace (including newlines) and trim."""
    if text is None:
        return ""
    return " ".join(text.split())


def clean_html_text(text: str | None) -> str:
    """Clean text extracted from HTML."""
    if text is None:
        return ""

    text = re.sub(r"&nbsp;?", " ", text)
    text = text.replace("\xa0", " ")
    text = re.sub(r"&amp;?", "&", text)
    text = re.sub(r"&lt;?", "<", text)
    text = re.sub(r"&gt;?", ">", text)
    text = re.sub(r"&quot;?", '"', text)
    text = re.sub(r"&#39;?", "'", text)

    return normalize_whitespace(text)
