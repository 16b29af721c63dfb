"""Scheduler service - APScheduler integration."""

from .service import SchedulerService, execute_scheduled_sync, next_run_time

__all__ = [
    "SchedulerService",
    "execute_scheduled_sync",
    "next_run_time",
]
