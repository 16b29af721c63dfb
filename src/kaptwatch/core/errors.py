"""
Error and warning taxonomy for catalog synchronization.

Transport failures live with the backends (``FetchError``); everything the
assembler, reconciler and orchestrator raise or record is defined here.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from kaptwatch.core.backends.base import FetchError

if TYPE_CHECKING:
    from kaptwatch.core.models import BidSnapshot, SyncReport


class KaptWatchError(Exception):
    """Base exception for KaptWatch errors."""


class CatalogUnavailableError(KaptWatchError):
    """The first catalog page could not be fetched.

    Carries the (empty) snapshot the assembler produced so callers can
    still report ``total_bids``.
    """

    def __init__(
        self,
        message: str,
        snapshot: BidSnapshot,
        cause: FetchError | None = None,
    ):
        super().__init__(message)
        self.snapshot = snapshot
        self.cause = cause


class ConfigError(KaptWatchError):
    """Configuration loading or validation error."""

    def __init__(self, message: str, path: Path | None = None, details: str | None = None):
        self.path = path
        self.details = details
        super().__init__(message)


class SyncBusyError(KaptWatchError):
    """A sync was requested while another one was running."""

    def __init__(self, message: str = "A synchronization is already in progress"):
        super().__init__(message)


class SyncFailedError(KaptWatchError):
    """A sync run was aborted; persisted state was left untouched."""

    def __init__(
        self,
        message: str,
        report: SyncReport,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.report = report
        self.cause = cause


# =============================================================================
# Warnings (recorded and logged, never raised)
# =============================================================================


class ParseWarning(UserWarning):
    """A single listing row failed structural parsing and was skipped."""

    def __init__(self, message: str, row_index: int | None = None):
        super().__init__(message)
        self.row_index = row_index

    def __str__(self) -> str:
        if self.row_index is None:
            return self.args[0]
        return f"row {self.row_index}: {self.args[0]}"


class ReconciliationIntegrityWarning(UserWarning):
    """Selection data referenced an id inconsistently."""

    def __init__(self, message: str, bid_id: str):
        super().__init__(message)
        self.bid_id = bid_id

    def __str__(self) -> str:
        return f"{self.bid_id}: {self.args[0]}"


__all__ = [
    "KaptWatchError",
    "FetchError",
    "CatalogUnavailableError",
    "ConfigError",
    "SyncBusyError",
    "SyncFailedError",
    "ParseWarning",
    "ReconciliationIntegrityWarning",
]
