"""
Repository pattern over the key/value store.

Typed load/save for the snapshot, the selection set (including named
archives) and the sync log/state documents.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from kaptwatch.core.models import BidSnapshot, SelectionSet

from .store import (
    BIDS_KEY,
    DEFAULT_SYNC_LOG_LIMIT,
    SAVED_SELECTION_PREFIX,
    SELECTED_BIDS_KEY,
    SYNC_LOG_KEY,
    SYNC_STATE_KEY,
    KeyValueStore,
)


# =============================================================================
# Snapshot Repository
# =============================================================================


class SnapshotRepository:
    """Repository for the current catalog snapshot."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def load(self) -> BidSnapshot:
        """Load the stored snapshot (empty if none)."""
        return BidSnapshot.from_list(self.store.load(BIDS_KEY))

    def save(self, snapshot: BidSnapshot) -> None:
        self.store.save(BIDS_KEY, snapshot.to_list())


# =============================================================================
# Selection Repository
# =============================================================================


class SelectionRepository:
    """Repository for the curated selection set and its named archives."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def load(self) -> SelectionSet:
        """Load the selection, accepting the legacy flat format."""
        return SelectionSet.from_dict(self.store.load(SELECTED_BIDS_KEY))

    def save(self, selection: SelectionSet) -> None:
        self.store.save(SELECTED_BIDS_KEY, selection.to_dict())

    def save_named(self, selection: SelectionSet, now: datetime | None = None) -> str:
        """Archive a copy of the selection.

        Returns:
            Archive name (``saved_selection:<timestamp>``)
        """
        now = now or datetime.utcnow()
        name = f"{SAVED_SELECTION_PREFIX}{now.strftime('%Y%m%dT%H%M%S')}"
        self.store.save(name, {
            "savedAt": now.isoformat(),
            "count": len(selection),
            **selection.to_dict(),
        })
        return name

    def list_named(self) -> list[dict[str, Any]]:
        """Archived selections, newest first, with their size."""
        archives = []
        for name in reversed(self.store.keys(SAVED_SELECTION_PREFIX)):
            data = self.store.load(name) or {}
            archives.append({
                "name": name,
                "savedAt": data.get("savedAt"),
                "count": data.get("count", len(data.get("checkOrder", []))),
            })
        return archives

    def load_named(self, name: str) -> SelectionSet:
        """Load an archived selection.

        Raises:
            KeyError: If no archive has that name
        """
        if not name.startswith(SAVED_SELECTION_PREFIX):
            name = SAVED_SELECTION_PREFIX + name
        data = self.store.load(name)
        if data is None:
            raise KeyError(name)
        return SelectionSet.from_dict({
            "selectedBids": data.get("selectedBids", {}),
            "checkOrder": data.get("checkOrder"),
        })


# =============================================================================
# Sync Log Repository
# =============================================================================


class SyncLogRepository:
    """Repository for the sync event log and last completion time."""

    def __init__(self, store: KeyValueStore, limit: int = DEFAULT_SYNC_LOG_LIMIT):
        self.store = store
        self.limit = limit

    def record(self, event: dict[str, Any]) -> None:
        self.store.append(SYNC_LOG_KEY, event, limit=self.limit)

    def history(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Logged events, newest first."""
        events = list(reversed(self.store.load(SYNC_LOG_KEY) or []))
        if limit is not None:
            events = events[:limit]
        return events

    def last_update(self) -> datetime | None:
        state = self.store.load(SYNC_STATE_KEY) or {}
        value = state.get("lastUpdate")
        return datetime.fromisoformat(value) if value else None

    @staticmethod
    def state_document(completed_at: datetime) -> dict[str, Any]:
        return {"lastUpdate": completed_at.isoformat()}
