"""
Fingerprinting and diff computation for change tracking.

Detects and describes changes between two versions of the same notice.
Scrape timestamps are never part of the comparison.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import orjson

if TYPE_CHECKING:
    from kaptwatch.core.models import BidRecord


@dataclass
class FieldChange:
    """A single field change."""

    field: str
    old_value: Any
    new_value: Any
    significance: str = "medium"  # low, medium, high


@dataclass
class DiffResult:
    """Result of comparing two notice versions."""

    changes: list[FieldChange]
    old_fingerprint: str
    new_fingerprint: str
    summary: str

    @property
    def has_changes(self) -> bool:
        return len(self.changes) > 0

    @property
    def changed_fields(self) -> list[str]:
        return [c.field for c in self.changes]


# Serialized field name -> significance. postDate is the identity-bearing
# field; a change there drops the notice from the selection entirely.
FIELD_SIGNIFICANCE: dict[str, str] = {
    "postDate": "high",
    "deadline": "high",
    "status": "high",
    "title": "high",

    "aptName": "medium",
    "method": "medium",
    "type": "medium",
    "postDateRaw": "medium",
    "deadlineRaw": "medium",

    "region": "low",
    "category": "low",
    "detailLink": "low",
}


def compute_fingerprint(record: BidRecord | dict[str, Any]) -> str:
    """Compute a content-based fingerprint for a notice.

    Args:
        record: BidRecord or its serialized form

    Returns:
        32-character hex fingerprint
    """
    data = _content(record)
    content = {key: data.get(key) or "" for key in FIELD_SIGNIFICANCE}
    encoded = orjson.dumps(content, option=orjson.OPT_SORT_KEYS)
    return hashlib.sha256(encoded).hexdigest()[:32]


def compute_diff(
    old: BidRecord | dict[str, Any],
    new: BidRecord | dict[str, Any],
) -> DiffResult:
    """Compute the difference between two notice versions.

    Args:
        old: Previous version of the notice
        new: Current version of the notice

    Returns:
        DiffResult with list of changes and summary
    """
    old_dict = _content(old)
    new_dict = _content(new)

    old_fingerprint = compute_fingerprint(old_dict)
    new_fingerprint = compute_fingerprint(new_dict)

    if old_fingerprint == new_fingerprint:
        return DiffResult(
            changes=[],
            old_fingerprint=old_fingerprint,
            new_fingerprint=new_fingerprint,
            summary="No changes",
        )

    changes: list[FieldChange] = []
    for field_name, significance in FIELD_SIGNIFICANCE.items():
        old_value = old_dict.get(field_name)
        new_value = new_dict.get(field_name)

        if _values_differ(old_value, new_value):
            changes.append(FieldChange(
                field=field_name,
                old_value=old_value,
                new_value=new_value,
                significance=significance,
            ))

    return DiffResult(
        changes=changes,
        old_fingerprint=old_fingerprint,
        new_fingerprint=new_fingerprint,
        summary=_generate_summary(changes),
    )


def _content(record: BidRecord | dict[str, Any]) -> dict[str, Any]:
    if isinstance(record, dict):
        data = dict(record)
        data.pop("scrapedAt", None)
        return data
    return record.content_key()


def _values_differ(old: Any, new: Any) -> bool:
    """Check if two values differ, treating None and "" as equal."""
    if old == "":
        old = None
    if new == "":
        new = None

    if old is None and new is None:
        return False
    if old is None or new is None:
        return True

    return str(old) != str(new)


def _generate_summary(changes: list[FieldChange]) -> str:
    """Generate a human-readable summary of changes."""
    if not changes:
        return "No changes"

    high = [c for c in changes if c.significance == "high"]
    if high:
        parts = [f"{c.field}: {c.old_value} -> {c.new_value}" for c in high]
        return "; ".join(parts)

    fields = [c.field for c in changes[:3]]
    return f"Updated: {', '.join(fields)}"
