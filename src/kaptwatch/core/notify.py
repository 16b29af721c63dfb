"""Sync result notification."""

from __future__ import annotations

from typing import Protocol

from kaptwatch.core.logging import get_logger
from kaptwatch.core.models import SyncReport


logger = get_logger("notify")


class Notifier(Protocol):
    """Receives the report of every finished sync, successful or not."""

    def notify(self, report: SyncReport) -> None: ...


class LogNotifier:
    """Writes notable sync outcomes to the application log."""

    def notify(self, report: SyncReport) -> None:
        if not report.success:
            logger.error(report.summary())
            return

        if report.newly_added > 0:
            logger.info(f"{report.newly_added} new notices available. {report.summary()}")
        else:
            logger.debug(report.summary())
