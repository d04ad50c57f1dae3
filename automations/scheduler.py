"""
In-process scheduler for the deadline reminder jobs.

Wakes at the top of every hour (server local time):
- DEADLINE_CHECK_HOUR: combined approaching/passed scan
- PASSED_CHECK_HOUR: overdue-only scan
- every other hour: overdue-only scan, when HOURLY_PASSED_CHECK is on
"""

import asyncio
from datetime import datetime, timedelta
from typing import List, Optional

from automations.deadline_checker import check_passed_deadlines, check_task_deadlines
from config import config
from logging_config import get_logger, job_context

logger = get_logger("scheduler")

COMBINED = "combined"
PASSED_ONLY = "passed_only"


def next_tick(now: datetime) -> datetime:
    """Top of the next hour."""
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


def jobs_for_hour(hour: int) -> List[str]:
    if hour == config.DEADLINE_CHECK_HOUR:
        return [COMBINED]
    if hour == config.PASSED_CHECK_HOUR:
        return [PASSED_ONLY]
    if config.HOURLY_PASSED_CHECK:
        return [PASSED_ONLY]
    return []


class DeadlineScheduler:
    def __init__(self, db):
        self.db = db
        self._task: Optional[asyncio.Task] = None
        self._running = False

    async def start(self):
        """Start the background loop"""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Deadline scheduler started",
            extra={"data": {
                "deadline_check_hour": config.DEADLINE_CHECK_HOUR,
                "passed_check_hour": config.PASSED_CHECK_HOUR,
                "hourly_passed_check": config.HOURLY_PASSED_CHECK,
            }}
        )

    async def stop(self):
        """Stop the background loop"""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Deadline scheduler stopped")

    async def run_jobs(self, hour: int) -> dict:
        results = {}
        for job in jobs_for_hour(hour):
            with job_context(f"scheduled_{job}"):
                try:
                    if job == COMBINED:
                        results[job] = await check_task_deadlines(self.db)
                    else:
                        results[job] = await check_passed_deadlines(self.db)
                except Exception as e:
                    logger.error(f"Scheduled {job} deadline check crashed: {e}", exc_info=True)
                    continue
                # Hourly catch-up runs are only interesting when they found something
                if job == COMBINED or hour == config.PASSED_CHECK_HOUR or results[job].get("notified_count"):
                    logger.info(f"Scheduled {job} deadline check done", extra={"data": results[job]})
        return results

    async def _loop(self):
        while self._running:
            now = datetime.now()
            wake_at = next_tick(now)
            await asyncio.sleep((wake_at - now).total_seconds())
            await self.run_jobs(wake_at.hour)
