"""
Sync orchestrator.

Coordinates one synchronization: load state → assemble snapshot →
reconcile selection → persist → log → notify.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Iterable

from kaptwatch.core.catalog.assembler import AssemblyResult, CatalogAssembler
from kaptwatch.core.catalog.fetcher import PageFetcher
from kaptwatch.core.config.models import SourceConfig
from kaptwatch.core.errors import CatalogUnavailableError, SyncBusyError, SyncFailedError
from kaptwatch.core.logging import ContextualLogger, get_contextual_logger
from kaptwatch.core.models import SyncReport
from kaptwatch.core.notify import Notifier
from kaptwatch.core.reconcile import reconcile
from kaptwatch.persistence.repo import SelectionRepository, SnapshotRepository, SyncLogRepository
from kaptwatch.persistence.store import (
    BIDS_KEY,
    DEFAULT_SYNC_LOG_LIMIT,
    SELECTED_BIDS_KEY,
    SYNC_STATE_KEY,
    KeyValueStore,
)


AssembleFn = Callable[[], Awaitable[AssemblyResult]]


@dataclass
class SyncStatus:
    """Point-in-time view of the orchestrator."""

    in_progress: bool
    last_update: datetime | None


def default_assemble(config: SourceConfig) -> AssembleFn:
    """Assemble with a fresh fetcher per run (new date window and dTime)."""

    async def assemble() -> AssemblyResult:
        async with PageFetcher(config) as fetcher:
            assembler = CatalogAssembler.from_config(config, fetcher)
            return await assembler.assemble()

    return assemble


class SyncOrchestrator:
    """Single-flight coordinator for catalog synchronization.

    A run requested while another is active fails immediately with
    ``SyncBusyError``; requests are never queued. A failed run leaves the
    stored snapshot and selection exactly as they were.
    """

    def __init__(
        self,
        store: KeyValueStore,
        assemble: AssembleFn,
        *,
        notifiers: Iterable[Notifier] = (),
        sync_log_limit: int = DEFAULT_SYNC_LOG_LIMIT,
    ) -> None:
        self.store = store
        self._assemble = assemble
        self.notifiers = list(notifiers)

        self.snapshots = SnapshotRepository(store)
        self.selections = SelectionRepository(store)
        self.sync_log = SyncLogRepository(store, limit=sync_log_limit)

        self._in_progress = False
        self.last_update: datetime | None = self.sync_log.last_update()

    @classmethod
    def from_config(
        cls,
        config: SourceConfig,
        store: KeyValueStore,
        **kwargs: object,
    ) -> "SyncOrchestrator":
        return cls(store, default_assemble(config), **kwargs)  # type: ignore[arg-type]

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    def status(self) -> SyncStatus:
        return SyncStatus(in_progress=self._in_progress, last_update=self.last_update)

    async def run_sync(self, trigger: str = "manual") -> SyncReport:
        """Run one synchronization.

        Args:
            trigger: ``manual`` or ``scheduled``; recorded in the sync log

        Returns:
            SyncReport for the completed run

        Raises:
            SyncBusyError: If a run is already in progress
            SyncFailedError: If the run could not complete; nothing is saved
        """
        if self._in_progress:
            raise SyncBusyError()

        self._in_progress = True
        log = get_contextual_logger("orchestrator", run_id=uuid.uuid4().hex[:8], trigger=trigger)
        started_at = datetime.utcnow()

        try:
            log.info("Sync started")
            try:
                old_snapshot = self.snapshots.load()
                old_selection = self.selections.load()

                assembly = await self._assemble()
                result = reconcile(old_snapshot, assembly.snapshot, old_selection)

                report = result.report
                report.trigger = trigger
                report.pages_fetched = assembly.pages_fetched
                report.started_at = started_at
                report.warnings = assembly.warnings + report.warnings
                if assembly.error is not None:
                    report.warnings.append(
                        f"pagination stopped after page {assembly.pages_fetched}: {assembly.error}"
                    )

                completed_at = datetime.utcnow()
                report.finished_at = completed_at

                self.store.save_many({
                    BIDS_KEY: assembly.snapshot.to_list(),
                    SELECTED_BIDS_KEY: result.selection.to_dict(),
                    SYNC_STATE_KEY: SyncLogRepository.state_document(completed_at),
                })
            except Exception as e:
                raise self._fail(e, trigger, started_at, log) from e

            self.last_update = completed_at
            self.sync_log.record(report.to_event())

            log.info(report.summary())
            self._notify(report)
            return report

        finally:
            self._in_progress = False

    def _fail(
        self,
        error: Exception,
        trigger: str,
        started_at: datetime,
        log: ContextualLogger,
    ) -> SyncFailedError:
        """Record and announce a failed run; stored state is left as it was."""
        report = SyncReport(
            trigger=trigger,
            started_at=started_at,
            finished_at=datetime.utcnow(),
            success=False,
            error=str(error),
        )
        if isinstance(error, CatalogUnavailableError):
            report.total_bids = len(error.snapshot)
        log.error(f"Sync failed: {error}")
        try:
            self.sync_log.record(report.to_event())
        except Exception:
            log.exception("Could not record the failed sync")
        self._notify(report)
        return SyncFailedError(f"Sync failed: {error}", report=report, cause=error)

    def _notify(self, report: SyncReport) -> None:
        for notifier in self.notifiers:
            notifier.notify(report)
