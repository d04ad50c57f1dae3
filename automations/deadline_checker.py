"""
Task deadline reminders.

Meant to run once a day (plus an hourly catch-up for overdue tasks). The job
keeps no state between runs: whether a reminder already went out is read back
from the notifications collection, so at most one unread reminder per task and
action exists inside the suppression window.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from config import config
from constants import NotificationAction, NotificationStatus
from logging_config import get_logger
from utils.notifications import send_notification
from utils.task_notifications import Dispatcher, notify_deadline_approaching, notify_deadline_passed
from utils.task_store import find_open_tasks_by_deadline, resolve_task_project_id

logger = get_logger("deadline_checker")

PASSED = "passed"
APPROACHING = "approaching"


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def days_until_deadline(deadline: datetime, today: datetime) -> int:
    """Calendar days between today and the deadline's day; anything later today is 0."""
    return (deadline.date() - today.date()).days


def classify_deadline(days_left: int, window_days: Optional[int] = None) -> Optional[str]:
    if window_days is None:
        window_days = config.DEADLINE_WINDOW_DAYS
    if days_left < 0:
        return PASSED
    if days_left <= window_days:
        return APPROACHING
    return None


async def recently_notified(db, task_id: str, action: str, now: datetime) -> bool:
    """True if an unread `action` notification for this task exists inside the suppression window."""
    since = now - timedelta(hours=config.NOTIFICATION_SUPPRESSION_HOURS)
    existing = await db.notifications.find_one(
        {
            "task_id": task_id,
            "action": action,
            "status": NotificationStatus.UNREAD,
            "created_at": {"$gte": since},
        },
        {"_id": 1},
    )
    return existing is not None


async def check_task_deadlines(
    db,
    now: Optional[datetime] = None,
    dispatcher: Dispatcher = send_notification,
) -> Dict[str, Any]:
    """
    Remind assignees about tasks due between today and the end of the window.

    Returns {"success", "approaching_count", "passed_count", "total_checked"},
    or {"success": False, "error"} if the scan could not run at all.
    """
    try:
        logger.info("Deadline check started")
        now = now or datetime.now()
        today = start_of_day(now)
        window_end = today + timedelta(days=config.DEADLINE_WINDOW_DAYS + 1)

        tasks = await find_open_tasks_by_deadline(db, {"$gte": today, "$lt": window_end})
        logger.info(f"Found {len(tasks)} tasks to check")

        approaching_count = 0
        passed_count = 0

        for task in tasks:
            if not task.get("assignee_id"):
                continue

            project_id = await resolve_task_project_id(db, task)
            if not project_id:
                continue

            days_left = days_until_deadline(task["deadline"], today)
            category = classify_deadline(days_left)
            if category is None:
                continue

            action = (
                NotificationAction.DEADLINE_PASSED if category == PASSED
                else NotificationAction.DEADLINE_APPROACHING
            )
            if await recently_notified(db, task["id"], action, now):
                continue

            try:
                if category == PASSED:
                    if await notify_deadline_passed(db, task, project_id, send=dispatcher):
                        passed_count += 1
                else:
                    if await notify_deadline_approaching(db, task, project_id, days_left, send=dispatcher):
                        approaching_count += 1
            except Exception as e:
                logger.error(
                    f"Failed to send deadline {category} notification for task {task['id']}: {e}",
                    exc_info=True,
                )

        logger.info(
            f"Deadline check finished: {approaching_count} approaching, {passed_count} passed",
            extra={"data": {"total_checked": len(tasks)}}
        )
        return {
            "success": True,
            "approaching_count": approaching_count,
            "passed_count": passed_count,
            "total_checked": len(tasks),
        }
    except Exception as e:
        logger.error(f"Deadline check failed: {e}", exc_info=True)
        return {"success": False, "error": str(e)}


async def check_passed_deadlines(
    db,
    now: Optional[datetime] = None,
    dispatcher: Dispatcher = send_notification,
) -> Dict[str, Any]:
    """
    Overdue-only pass, run separately so a failed or skipped combined scan
    cannot leave overdue tasks unreported.

    Returns {"success", "notified_count", "total_checked"} or {"success": False, "error"}.
    """
    try:
        logger.info("Passed deadline check started")
        now = now or datetime.now()
        today = start_of_day(now)

        tasks = await find_open_tasks_by_deadline(db, {"$lt": today})
        logger.info(f"Found {len(tasks)} overdue tasks")

        notified_count = 0

        for task in tasks:
            if not task.get("assignee_id"):
                continue

            project_id = await resolve_task_project_id(db, task)
            if not project_id:
                continue

            if await recently_notified(db, task["id"], NotificationAction.DEADLINE_PASSED, now):
                continue

            try:
                if await notify_deadline_passed(db, task, project_id, send=dispatcher):
                    notified_count += 1
            except Exception as e:
                logger.error(
                    f"Failed to send deadline passed notification for task {task['id']}: {e}",
                    exc_info=True,
                )

        logger.info(f"Passed deadline check finished: {notified_count} notified")
        return {
            "success": True,
            "notified_count": notified_count,
            "total_checked": len(tasks),
        }
    except Exception as e:
        logger.error(f"Passed deadline check failed: {e}", exc_info=True)
        return {"success": False, "error": str(e)}
