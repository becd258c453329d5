"""
Stale-Task Sweeper — housekeeping loop on top of the Task Manager.

Behavioral Contract:
- PENDING and NEEDS_INPUT tasks untouched for ``needs_input_timeout_seconds``
  are cancelled; READY tasks after ``ready_timeout_seconds``.
- Cancellation goes through the manager, so events and focus follow the
  normal path. A task updated after it was selected is left alone.
- EXECUTING tasks are never swept.
- Terminal tasks older than ``retention_days`` are purged when the retention
  cron schedule is due, or on every sweep when no schedule is set.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from croniter import croniter

from task_kernel.engine.manager import TaskManager
from task_kernel.models.engine import SweeperConfig
from task_kernel.models.task import TaskStatus, utcnow
from task_kernel.repository.base import TaskRepository

logger = logging.getLogger(__name__)


class SweepReport:
    """Outcome of one sweep."""

    def __init__(self, cancelled: Optional[list] = None, purged: int = 0):
        self.cancelled = cancelled or []
        self.purged = purged
        self.swept_at = utcnow()

    def to_dict(self) -> dict:
        return {
            "cancelled": list(self.cancelled),
            "purged": self.purged,
            "swept_at": self.swept_at.isoformat(),
        }


class StaleTaskSweeper:
    """Cancels abandoned tasks and purges old history."""

    def __init__(
        self,
        manager: TaskManager,
        repository: Optional[TaskRepository] = None,
        config: Optional[SweeperConfig] = None,
    ):
        self.manager = manager
        self.repository = repository or manager.repository
        self.config = config or SweeperConfig()
        self._running = False
        self._next_purge_at: Optional[datetime] = None

        schedule = self.config.retention_schedule
        if schedule is not None and not croniter.is_valid(schedule):
            logger.error("Invalid retention schedule '%s'; purging disabled", schedule)
            self._schedule_valid = False
        else:
            self._schedule_valid = True

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    def _timeout_for(self, status: TaskStatus) -> Optional[int]:
        if status in (TaskStatus.PENDING, TaskStatus.NEEDS_INPUT):
            return self.config.needs_input_timeout_seconds
        if status == TaskStatus.READY:
            return self.config.ready_timeout_seconds
        return None

    async def sweep_once(self, now: Optional[datetime] = None) -> SweepReport:
        """Run one sweep. ``now`` defaults to the current UTC time."""
        if now is None:
            now = utcnow()

        report = SweepReport()
        for task in await self.repository.get_active_tasks():
            timeout = self._timeout_for(task.status)
            if timeout is None:
                continue
            cutoff = now - timedelta(seconds=timeout)
            if task.updated_at >= cutoff:
                continue

            cancelled = await self.manager.cancel_stale(task.id, updated_before=cutoff)
            if cancelled is not None:
                logger.info("Cancelled stale task %s (%s)", task.id, task.status.value)
                report.cancelled.append(task.id)

        if self._purge_due(now):
            before = now - timedelta(days=self.config.retention_days)
            report.purged = await self.repository.clear_old_tasks(before)
            if report.purged:
                logger.info("Purged %d terminal tasks older than %s", report.purged, before.isoformat())

        return report

    def _purge_due(self, now: datetime) -> bool:
        if self.config.retention_days is None or not self._schedule_valid:
            return False

        schedule = self.config.retention_schedule
        if schedule is None:
            return True

        if self._next_purge_at is None:
            self._next_purge_at = croniter(schedule, now).get_next(datetime)
            return False
        if now < self._next_purge_at:
            return False

        self._next_purge_at = croniter(schedule, now).get_next(datetime)
        return True

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Sweep every ``interval_seconds`` until ``stop_event`` is set."""
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()

        try:
            while not stop_event.is_set():
                report = await self.sweep_once()
                logger.debug("Sweep finished: %s", report.to_dict())
                try:
                    await asyncio.wait_for(
                        stop_event.wait(),
                        timeout=self.config.interval_seconds,
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            self._running = False
