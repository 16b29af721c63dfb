"""Persistence layer: key/value store and typed repositories."""

from .db import create_db_engine, init_db, session_scope
from .models import Base, StoredValue, StoredValueBackup
from .repo import SelectionRepository, SnapshotRepository, SyncLogRepository
from .store import (
    BIDS_KEY,
    SAVED_SELECTION_PREFIX,
    SELECTED_BIDS_KEY,
    SYNC_LOG_KEY,
    SYNC_STATE_KEY,
    KeyValueStore,
    MemoryKeyValueStore,
    SqlKeyValueStore,
)

__all__ = [
    "create_db_engine",
    "init_db",
    "session_scope",
    "Base",
    "StoredValue",
    "StoredValueBackup",
    "SelectionRepository",
    "SnapshotRepository",
    "SyncLogRepository",
    "BIDS_KEY",
    "SAVED_SELECTION_PREFIX",
    "SELECTED_BIDS_KEY",
    "SYNC_LOG_KEY",
    "SYNC_STATE_KEY",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqlKeyValueStore",
]
