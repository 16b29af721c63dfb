"""
APScheduler v4 integration for KaptWatch.

Runs a sync at fixed times of day. A run that finds another sync in
progress is logged and skipped.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from apscheduler import AsyncScheduler, ConflictPolicy
from apscheduler.triggers.cron import CronTrigger

from kaptwatch.core.config.models import ScheduleConfig
from kaptwatch.core.errors import SyncBusyError, SyncFailedError
from kaptwatch.core.logging import get_logger
from kaptwatch.core.orchestrator.runner import SyncOrchestrator

logger = get_logger("scheduler")


async def execute_scheduled_sync(orchestrator: SyncOrchestrator) -> None:
    """Execute one scheduled sync."""
    try:
        report = await orchestrator.run_sync(trigger="scheduled")
    except SyncBusyError:
        logger.info("Sync already in progress, skipping scheduled run")
        return
    except SyncFailedError as e:
        # Already logged and recorded by the orchestrator
        logger.warning("Scheduled sync failed: %s", e.report.error)
        return

    logger.info("Scheduled sync finished: %s", report.summary())


def next_run_time(
    now: datetime,
    times: list[tuple[int, int]],
    timezone: str = "Asia/Seoul",
) -> datetime | None:
    """Next scheduled time strictly after ``now``.

    Args:
        now: Current time; naive values are taken as UTC
        times: (hour, minute) pairs
        timezone: Timezone the times of day are expressed in

    Returns:
        Aware datetime in ``timezone``, or None when no times are set
    """
    if not times:
        return None

    tz = ZoneInfo(timezone)
    if now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    local_now = now.astimezone(tz)

    candidates = []
    for day_offset in (0, 1):
        day = local_now.date() + timedelta(days=day_offset)
        for hour, minute in times:
            candidate = datetime(day.year, day.month, day.day, hour, minute, tzinfo=tz)
            if candidate > local_now:
                candidates.append(candidate)

    return min(candidates)


class SchedulerService:
    """APScheduler v4 integration for KaptWatch."""

    def __init__(self, orchestrator: SyncOrchestrator, config: ScheduleConfig) -> None:
        self.orchestrator = orchestrator
        self.config = config
        self._scheduler: AsyncScheduler | None = None

    def build_triggers(self) -> dict[str, CronTrigger]:
        """One cron trigger per configured time of day, keyed by schedule id."""
        return {
            f"sync-{hour:02d}{minute:02d}": CronTrigger(
                hour=hour,
                minute=minute,
                timezone=self.config.timezone,
            )
            for hour, minute in self.config.parsed_times()
        }

    def next_run(self, now: datetime | None = None) -> datetime | None:
        return next_run_time(
            now or datetime.now(ZoneInfo(self.config.timezone)),
            self.config.parsed_times(),
            self.config.timezone,
        )

    async def start(self) -> None:
        """Start scheduler in foreground mode (blocking)."""
        if not self.config.enabled:
            logger.warning("Scheduling is disabled in configuration")
            return

        async with AsyncScheduler() as scheduler:
            self._scheduler = scheduler
            for schedule_id, trigger in self.build_triggers().items():
                await scheduler.add_schedule(
                    execute_scheduled_sync,
                    trigger,
                    id=schedule_id,
                    args=[self.orchestrator],
                    conflict_policy=ConflictPolicy.replace,
                )
                logger.info("Scheduled sync %s (%s)", schedule_id, self.config.timezone)

            await scheduler.run_until_stopped()

    async def stop(self) -> None:
        if self._scheduler is not None:
            await self._scheduler.stop()
