"""
SQLAlchemy ORM models for KaptWatch.

The application state is a handful of JSON documents addressed by key
(snapshot, selection, sync log, sync state, saved selections):
- StoredValue: current value per key
- StoredValueBackup: previous values per key, newest kept
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import orjson
from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def json_serializer(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


def json_deserializer(s: str | bytes) -> Any:
    return orjson.loads(s)


# =============================================================================
# Base Class
# =============================================================================


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    type_annotation_map = {
        dict[str, Any]: JSON,
    }


# =============================================================================
# Mixins
# =============================================================================


class TimestampMixin:
    """Mixin providing created_at and updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        default=None,
        onupdate=datetime.utcnow,
        nullable=True,
    )


# =============================================================================
# Key/Value Models
# =============================================================================


class StoredValue(Base, TimestampMixin):
    """Current JSON value of one storage key."""

    __tablename__ = "stored_values"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<StoredValue(key='{self.key}')>"


class StoredValueBackup(Base):
    """A value a key held before it was overwritten."""

    __tablename__ = "stored_value_backups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(200), nullable=False)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    backed_up_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_stored_value_backups_key_time", "key", "backed_up_at"),
    )

    def __repr__(self) -> str:
        return f"<StoredValueBackup(key='{self.key}', at={self.backed_up_at})>"
