"""
Background task scheduler for housekeeping.

Expired challenges and sessions are already rejected when they are
presented; this scheduler only evicts them so the tables stay small.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

from passkey_starter.config import Settings
from passkey_starter.database import Database
from passkey_starter.services.challenge_store import ChallengeStore
from passkey_starter.services.session_service import SessionIssuer

logger = logging.getLogger(__name__)


@dataclass
class ScheduledTask:
    """Represents a scheduled background task."""
    name: str
    func: Callable[[], Awaitable[int]]
    interval_seconds: int
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    last_result: Optional[int] = None
    enabled: bool = True
    running: bool = False

    def __post_init__(self):
        """Calculate next run time after initialization."""
        if self.next_run is None:
            self.next_run = datetime.now() + timedelta(seconds=self.interval_seconds)

    def should_run(self) -> bool:
        """Check if task should run now."""
        return (
            self.enabled
            and not self.running
            and self.next_run is not None
            and datetime.now() >= self.next_run
        )

    def mark_completed(self):
        """Mark task as completed and schedule next run."""
        self.last_run = datetime.now()
        self.next_run = self.last_run + timedelta(seconds=self.interval_seconds)
        self.running = False

    def mark_started(self):
        """Mark task as started."""
        self.running = True


class HousekeepingScheduler:
    """Runs the eviction tasks on a fixed interval."""

    def __init__(self, database: Database, settings: Settings):
        """Initialize task scheduler."""
        self.database = database
        self.settings = settings
        self.tasks: Dict[str, ScheduledTask] = {}
        self.running = False
        self._task: Optional[asyncio.Task] = None
        self._setup_default_tasks()

    def _setup_default_tasks(self):
        interval = self.settings.cleanup_interval_seconds
        self.add_task("challenge_cleanup", self.evict_expired_challenges, interval)
        self.add_task("session_cleanup", self.evict_expired_sessions, interval)

    def add_task(self, name: str, func: Callable[[], Awaitable[int]], interval_seconds: int, enabled: bool = True):
        """Add a new scheduled task."""
        self.tasks[name] = ScheduledTask(
            name=name,
            func=func,
            interval_seconds=interval_seconds,
            enabled=enabled
        )
        logger.info(f"Added background task: {name} (interval: {interval_seconds}s)")

    @property
    def poll_seconds(self) -> float:
        return min(10, self.settings.cleanup_interval_seconds)

    async def run(self):
        """Check for due tasks until stopped."""
        self.running = True
        logger.info("Starting housekeeping scheduler")

        while self.running:
            try:
                for task in list(self.tasks.values()):
                    if task.should_run():
                        await self._execute_task(task)
                await asyncio.sleep(self.poll_seconds)
            except asyncio.CancelledError:
                logger.info("Housekeeping scheduler cancelled")
                break

        logger.info("Housekeeping scheduler stopped")

    def start(self) -> asyncio.Task:
        """Start the scheduler as a background asyncio task."""
        if self._task is not None and not self._task.done():
            logger.warning("Housekeeping scheduler is already running")
            return self._task
        self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        """Stop the scheduler and wait for it to exit."""
        self.running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _execute_task(self, task: ScheduledTask):
        """Execute a single task."""
        logger.debug(f"Executing background task: {task.name}")
        task.mark_started()

        try:
            task.last_result = await task.func()
            if task.last_result:
                logger.info(f"{task.name} removed {task.last_result} expired rows")
        except Exception as e:
            task.last_result = None
            logger.error(f"Task failed: {task.name} - {e}")
        finally:
            # Reschedule even after a failure so the task never gets stuck
            task.mark_completed()

    async def evict_expired_challenges(self) -> int:
        async with self.database.session() as session:
            return await ChallengeStore(session, self.settings).evict_expired()

    async def evict_expired_sessions(self) -> int:
        async with self.database.session() as session:
            return await SessionIssuer(session, self.settings).evict_expired()

    async def run_all_now(self) -> Dict[str, int]:
        """Run every enabled task immediately and return the rows each removed."""
        results = {}
        for name, task in self.tasks.items():
            if task.enabled:
                await self._execute_task(task)
                results[name] = task.last_result or 0
        return results

    def get_task_status(self) -> Dict[str, Any]:
        """Get status of all scheduled tasks."""
        status = {
            "scheduler_running": self.running,
            "total_tasks": len(self.tasks),
            "tasks": {}
        }

        for name, task in self.tasks.items():
            status["tasks"][name] = {
                "enabled": task.enabled,
                "running": task.running,
                "interval_seconds": task.interval_seconds,
                "last_run": task.last_run.isoformat() if task.last_run else None,
                "next_run": task.next_run.isoformat() if task.next_run else None,
                "last_result": task.last_result,
            }

        return status
