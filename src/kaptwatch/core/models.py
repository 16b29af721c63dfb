"""
Core data model for catalog synchronization.

Provides the canonical notice record, the snapshot of live notices, the
user's curated selection set and the per-run sync report. Serialized
forms use the camelCase keys of the stored JSON documents.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Iterator

from kaptwatch.core.logging import get_logger
from kaptwatch.core.normalize.parsing import parse_date

logger = get_logger("models")


# =============================================================================
# Notices
# =============================================================================


@dataclass(frozen=True)
class BidRecord:
    """One procurement notice as extracted from a listing row.

    Records are immutable; every sync produces fresh instances.
    ``post_date``/``deadline`` are None when the source text could not be
    parsed, in which case ``*_raw`` still holds the original text.
    """

    id: str
    title: str = ""
    apt_name: str = ""
    bid_type: str = ""
    method: str = ""
    status: str = ""
    region: str = ""
    category: str = ""

    post_date: datetime | None = None
    post_date_raw: str = ""
    deadline: datetime | None = None
    deadline_raw: str = ""

    detail_link: str = ""
    scraped_at: datetime | None = None

    def post_date_key(self) -> str:
        """Comparable post date: the parsed value, else the raw text."""
        if self.post_date is not None:
            return self.post_date.isoformat()
        return self.post_date_raw

    def content_key(self) -> dict[str, Any]:
        """Serialized fields that describe the notice itself (no scrape time)."""
        data = self.to_dict()
        data.pop("scrapedAt")
        return data

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "aptName": self.apt_name,
            "type": self.bid_type,
            "method": self.method,
            "status": self.status,
            "region": self.region,
            "category": self.category,
            "postDate": _dt_to_str(self.post_date),
            "postDateRaw": self.post_date_raw,
            "deadline": _dt_to_str(self.deadline),
            "deadlineRaw": self.deadline_raw,
            "detailLink": self.detail_link,
            "scrapedAt": _dt_to_str(self.scraped_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, default_id: str | None = None) -> "BidRecord":
        post_date, post_raw = _read_date(data, "postDate")
        deadline, deadline_raw = _read_date(data, "deadline")
        scraped_at, _ = _read_date(data, "scrapedAt")

        return cls(
            id=str(data.get("id") or default_id or ""),
            title=data.get("title") or "",
            apt_name=data.get("aptName") or "",
            bid_type=data.get("type") or "",
            method=data.get("method") or "",
            status=data.get("status") or "",
            region=data.get("region") or "",
            category=data.get("category") or "",
            post_date=post_date,
            post_date_raw=post_raw,
            deadline=deadline,
            deadline_raw=deadline_raw,
            detail_link=data.get("detailLink") or "",
            scraped_at=scraped_at,
        )


def _dt_to_str(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _read_date(data: dict[str, Any], key: str) -> tuple[datetime | None, str]:
    """Read a stored date plus its raw fallback.

    Older documents stored the unparsed text directly in the date field,
    so a non-ISO value is re-parsed and kept as raw text.
    """
    has_raw = f"{key}Raw" in data
    raw = data.get(f"{key}Raw") or ""
    value = data.get(key)
    if not value:
        return None, raw

    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        reparsed = parse_date(str(value))
        return reparsed.value, raw if has_raw else str(value)

    return parsed, raw if has_raw else str(value)


@dataclass(frozen=True)
class BidSnapshot:
    """All live notices as of one synchronization run.

    Ordered by post date, newest first, with ids unique.
    """

    records: tuple[BidRecord, ...] = ()

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[BidRecord]:
        return iter(self.records)

    def by_id(self) -> dict[str, BidRecord]:
        return {record.id: record for record in self.records}

    def ids(self) -> list[str]:
        return [record.id for record in self.records]

    def get(self, bid_id: str) -> BidRecord | None:
        for record in self.records:
            if record.id == bid_id:
                return record
        return None

    def to_list(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self.records]

    @classmethod
    def from_list(cls, items: list[dict[str, Any]] | None) -> "BidSnapshot":
        return cls(tuple(BidRecord.from_dict(item) for item in items or []))


# =============================================================================
# Selection annotations
# =============================================================================


class SubmissionMethod(str, Enum):
    """How the bid documents are submitted."""

    ELECTRONIC = "electronic"
    IN_PERSON = "in-person"

    @classmethod
    def parse(cls, value: str | None) -> "SubmissionMethod":
        if not value:
            return cls.ELECTRONIC
        legacy = {"전자": cls.ELECTRONIC, "직접": cls.IN_PERSON}
        if value in legacy:
            return legacy[value]
        try:
            return cls(value)
        except ValueError:
            logger.warning(f"Unknown submission method {value!r}, using electronic")
            return cls.ELECTRONIC


@dataclass(frozen=True)
class SiteVisit:
    """Site-visit window (date plus start/end time)."""

    enabled: bool = False
    date: str = ""
    start_time: str = ""
    end_time: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "date": self.date,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SiteVisit":
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled", False)),
            date=data.get("date") or "",
            start_time=data.get("startTime") or "",
            end_time=data.get("endTime") or "",
        )


@dataclass(frozen=True)
class SitePresentation:
    """On-site presentation slot (date plus a single time)."""

    enabled: bool = False
    date: str = ""
    time: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "date": self.date, "time": self.time}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SitePresentation":
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled", False)),
            date=data.get("date") or "",
            time=data.get("time") or "",
        )


@dataclass(frozen=True)
class SelectionAnnotation:
    """User-entered scheduling detail for one selected notice."""

    bid_time: str = ""
    submission_method: SubmissionMethod = SubmissionMethod.ELECTRONIC
    site_visit: SiteVisit = field(default_factory=SiteVisit)
    site_pt: SitePresentation = field(default_factory=SitePresentation)

    def to_dict(self) -> dict[str, Any]:
        return {
            "bidTime": self.bid_time,
            "submissionMethod": self.submission_method.value,
            "siteVisit": self.site_visit.to_dict(),
            "sitePT": self.site_pt.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SelectionAnnotation":
        return cls(
            bid_time=data.get("bidTime") or "",
            submission_method=SubmissionMethod.parse(data.get("submissionMethod")),
            site_visit=SiteVisit.from_dict(data.get("siteVisit")),
            site_pt=SitePresentation.from_dict(data.get("sitePT")),
        )


ANNOTATION_KEYS = ("bidTime", "submissionMethod", "siteVisit", "sitePT")


@dataclass(frozen=True)
class SelectionEntry:
    """A selected notice: latest canonical record plus its annotation."""

    record: BidRecord
    annotation: SelectionAnnotation = field(default_factory=SelectionAnnotation)

    @property
    def bid_id(self) -> str:
        return self.record.id

    def to_dict(self) -> dict[str, Any]:
        """Flat document: record fields and annotation fields side by side."""
        return {**self.record.to_dict(), **self.annotation.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, default_id: str | None = None) -> "SelectionEntry":
        record_data = {k: v for k, v in data.items() if k not in ANNOTATION_KEYS}
        return cls(
            record=BidRecord.from_dict(record_data, default_id=default_id),
            annotation=SelectionAnnotation.from_dict(data),
        )


# =============================================================================
# Selection set
# =============================================================================


@dataclass
class SelectionSet:
    """The user's curated notices.

    ``entries`` is an unordered mapping keyed by bid id; ``check_order``
    is the only carrier of sequence. Every id in one must appear in the
    other exactly once.
    """

    entries: dict[str, SelectionEntry] = field(default_factory=dict)
    check_order: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, bid_id: object) -> bool:
        return bid_id in self.entries

    def ordered_entries(self) -> list[SelectionEntry]:
        """Entries in ``check_order`` sequence, skipping dangling ids."""
        return [self.entries[bid_id] for bid_id in self.check_order if bid_id in self.entries]

    def is_consistent(self) -> bool:
        """Check the id-set invariant between mapping and order."""
        return (
            len(self.check_order) == len(set(self.check_order))
            and set(self.check_order) == set(self.entries)
        )

    def select(
        self,
        record: BidRecord,
        annotation: SelectionAnnotation | None = None,
    ) -> SelectionEntry:
        """Select a notice and move it to the front of the order.

        Re-selecting an already selected notice keeps its annotation
        unless a new one is given.
        """
        existing = self.entries.get(record.id)
        if annotation is None:
            annotation = existing.annotation if existing else SelectionAnnotation()

        entry = SelectionEntry(record=record, annotation=annotation)
        self.entries[record.id] = entry
        self.check_order = [record.id] + [i for i in self.check_order if i != record.id]
        return entry

    def deselect(self, bid_id: str) -> bool:
        """Remove a notice from the selection. Returns False if absent."""
        if bid_id not in self.entries:
            return False
        del self.entries[bid_id]
        self.check_order = [i for i in self.check_order if i != bid_id]
        return True

    def annotate(self, bid_id: str, **changes: Any) -> SelectionEntry:
        """Replace the annotation of a selected notice with an updated copy.

        Raises:
            KeyError: If the notice is not selected
        """
        entry = self.entries[bid_id]
        updated = SelectionEntry(record=entry.record, annotation=replace(entry.annotation, **changes))
        self.entries[bid_id] = updated
        return updated

    def clear(self) -> None:
        self.entries.clear()
        self.check_order.clear()

    def to_dict(self) -> dict[str, Any]:
        return {
            "selectedBids": {bid_id: entry.to_dict() for bid_id, entry in self.entries.items()},
            "checkOrder": list(self.check_order),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SelectionSet":
        """Load a stored selection.

        Accepts the current ``{"selectedBids", "checkOrder"}`` document and
        the older flat ``{bid_id: entry}`` mapping, whose order is its key
        order. The stored order is kept verbatim, even if inconsistent.
        """
        if not data:
            return cls()

        if isinstance(data.get("selectedBids"), dict):
            raw_entries = data["selectedBids"]
            order = data.get("checkOrder")
            if order is None:
                order = list(raw_entries)
        else:
            raw_entries = data
            order = list(raw_entries)

        entries = {
            str(bid_id): SelectionEntry.from_dict(item, default_id=str(bid_id))
            for bid_id, item in raw_entries.items()
        }
        return cls(entries=entries, check_order=[str(i) for i in order])


# =============================================================================
# Sync report
# =============================================================================


@dataclass
class SyncReport:
    """Outcome of one synchronization run."""

    total_bids: int = 0
    newly_added: int = 0
    removed_from_selection: int = 0
    updated_in_selection: int = 0
    unchanged_in_selection: int = 0
    invalid_selections_removed: int = 0

    newly_added_ids: list[str] = field(default_factory=list)
    removed_ids: list[str] = field(default_factory=list)
    field_changes: dict[str, list[str]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    trigger: str = "manual"
    pages_fetched: int = 0
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: datetime | None = None
    success: bool = True
    error: str | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def counts(self) -> dict[str, int]:
        return {
            "totalBids": self.total_bids,
            "newlyAdded": self.newly_added,
            "removedFromSelection": self.removed_from_selection,
            "updatedInSelection": self.updated_in_selection,
            "unchangedInSelection": self.unchanged_in_selection,
            "invalidSelectionsRemoved": self.invalid_selections_removed,
        }

    def to_event(self) -> dict[str, Any]:
        """Sync-log entry for this run."""
        event: dict[str, Any] = {
            "timestamp": _dt_to_str(self.finished_at or self.started_at),
            "type": self.trigger,
            "success": self.success,
            "pagesFetched": self.pages_fetched,
            **self.counts(),
        }
        if self.error:
            event["error"] = self.error
        return event

    def summary(self) -> str:
        if not self.success:
            return f"Update failed: {self.error}"

        details = []
        if self.newly_added:
            details.append(f"new notices: {self.newly_added}")
        if self.removed_from_selection:
            details.append(f"removed from selection: {self.removed_from_selection} (deleted/re-dated)")
        if self.updated_in_selection:
            details.append(f"selection updated: {self.updated_in_selection}")
        if self.invalid_selections_removed:
            details.append(f"invalid selections removed: {self.invalid_selections_removed}")

        message = f"Update complete, {self.total_bids} notices"
        if details:
            message += f" ({', '.join(details)})"
        return message
