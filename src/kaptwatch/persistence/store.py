"""
Key/value storage for application state.

Every persisted document is plain JSON addressed by a string key.
``save`` followed by ``load`` returns an equal value.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Mapping

import orjson
from sqlalchemy import delete, select
from sqlalchemy.engine import Engine

from .db import DEFAULT_DATABASE_URL, create_db_engine, init_db, make_session_factory, session_scope
from .models import StoredValue, StoredValueBackup


# Logical keys
BIDS_KEY = "bids"
SELECTED_BIDS_KEY = "selected_bids"
SYNC_LOG_KEY = "sync_log"
SYNC_STATE_KEY = "sync_state"
SAVED_SELECTION_PREFIX = "saved_selection:"

DEFAULT_SYNC_LOG_LIMIT = 1000


class KeyValueStore(ABC):
    """Storage contract used by the sync orchestrator and the CLI."""

    @abstractmethod
    def load(self, key: str) -> Any | None:
        """Return the value stored under ``key``, or None."""

    def save(self, key: str, value: Any) -> None:
        self.save_many({key: value})

    @abstractmethod
    def save_many(self, items: Mapping[str, Any]) -> None:
        """Write several keys at once; either all are written or none."""

    @abstractmethod
    def append(self, key: str, entry: Any, limit: int | None = None) -> list[Any]:
        """Append to the list under ``key``, keeping the newest ``limit`` items.

        Returns:
            The stored list after appending
        """

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]:
        """Stored keys starting with ``prefix``, sorted."""

    def load_backups(self, key: str) -> list[tuple[datetime, Any]]:
        """Previous values of ``key``, newest first."""
        return []

    def close(self) -> None:
        pass


def _json_copy(value: Any) -> Any:
    """Detached copy of a JSON document; rejects non-JSON values."""
    return orjson.loads(orjson.dumps(value))


def _appended(current: Any, entry: Any, limit: int | None) -> list[Any]:
    items = list(current) if isinstance(current, list) else []
    items.append(entry)
    if limit is not None and len(items) > limit:
        items = items[-limit:]
    return items


# =============================================================================
# In-memory store
# =============================================================================


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store with the same round-trip behavior as the SQL store."""

    def __init__(self, initial: Mapping[str, Any] | None = None, backups_to_keep: int = 5):
        self._values: dict[str, Any] = {}
        self._backups: dict[str, list[tuple[datetime, Any]]] = {}
        self.backups_to_keep = backups_to_keep
        for key, value in (initial or {}).items():
            self._values[key] = _json_copy(value)

    def load(self, key: str) -> Any | None:
        if key not in self._values:
            return None
        return _json_copy(self._values[key])

    def save_many(self, items: Mapping[str, Any]) -> None:
        # Serialize everything first so a bad value writes nothing
        copies = {key: _json_copy(value) for key, value in items.items()}
        for key, value in copies.items():
            if key in self._values and self.backups_to_keep > 0:
                history = self._backups.setdefault(key, [])
                history.insert(0, (datetime.utcnow(), self._values[key]))
                del history[self.backups_to_keep:]
            self._values[key] = value

    def append(self, key: str, entry: Any, limit: int | None = None) -> list[Any]:
        items = _appended(self._values.get(key), _json_copy(entry), limit)
        self._values[key] = items
        return _json_copy(items)

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(key for key in self._values if key.startswith(prefix))

    def load_backups(self, key: str) -> list[tuple[datetime, Any]]:
        return [(at, _json_copy(value)) for at, value in self._backups.get(key, [])]


# =============================================================================
# SQL store
# =============================================================================


class SqlKeyValueStore(KeyValueStore):
    """SQLAlchemy-backed store (SQLite by default).

    Overwriting a key moves its previous value to ``stored_value_backups``;
    the newest ``backups_to_keep`` backups are kept per key. Appends to a
    list are not backed up.
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        engine: Engine | None = None,
        backups_to_keep: int = 5,
        echo: bool = False,
    ) -> None:
        if engine is None:
            engine = create_db_engine(url or DEFAULT_DATABASE_URL, echo=echo)
        self.engine = engine
        self.backups_to_keep = backups_to_keep
        self._session_factory = make_session_factory(engine)
        init_db(engine)

    def load(self, key: str) -> Any | None:
        with session_scope(self._session_factory) as session:
            row = session.get(StoredValue, key)
            return row.value if row is not None else None

    def save_many(self, items: Mapping[str, Any]) -> None:
        with session_scope(self._session_factory) as session:
            for key, value in items.items():
                self._write(session, key, _json_copy(value), backup=True)

    def append(self, key: str, entry: Any, limit: int | None = None) -> list[Any]:
        with session_scope(self._session_factory) as session:
            row = session.get(StoredValue, key)
            items = _appended(row.value if row is not None else None, _json_copy(entry), limit)
            self._write(session, key, items, backup=False)
            return items

    def keys(self, prefix: str = "") -> list[str]:
        with session_scope(self._session_factory) as session:
            stmt = select(StoredValue.key).order_by(StoredValue.key)
            if prefix:
                stmt = stmt.where(StoredValue.key.startswith(prefix, autoescape=True))
            return list(session.execute(stmt).scalars().all())

    def load_backups(self, key: str) -> list[tuple[datetime, Any]]:
        with session_scope(self._session_factory) as session:
            stmt = (
                select(StoredValueBackup)
                .where(StoredValueBackup.key == key)
                .order_by(StoredValueBackup.backed_up_at.desc(), StoredValueBackup.id.desc())
            )
            return [(row.backed_up_at, row.value) for row in session.execute(stmt).scalars()]

    def close(self) -> None:
        self.engine.dispose()

    def _write(self, session: Any, key: str, value: Any, *, backup: bool) -> None:
        row = session.get(StoredValue, key)
        if row is None:
            session.add(StoredValue(key=key, value=value))
            return

        if backup and self.backups_to_keep > 0:
            session.add(StoredValueBackup(key=key, value=row.value, backed_up_at=datetime.utcnow()))
            session.flush()
            self._prune_backups(session, key)

        row.value = value

    def _prune_backups(self, session: Any, key: str) -> None:
        """Delete all but the newest ``backups_to_keep`` backups of a key."""
        stale_ids = session.execute(
            select(StoredValueBackup.id)
            .where(StoredValueBackup.key == key)
            .order_by(StoredValueBackup.backed_up_at.desc(), StoredValueBackup.id.desc())
            .offset(self.backups_to_keep)
        ).scalars().all()
        if stale_ids:
            session.execute(delete(StoredValueBackup).where(StoredValueBackup.id.in_(stale_ids)))
