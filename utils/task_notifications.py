from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from constants import NotificationAction, NotificationPriority, NotificationType, TaskStatus
from logging_config import get_logger
from utils.mongo import ref_id
from utils.notifications import send_notification

logger = get_logger("task_notifications")

Dispatcher = Callable[..., Awaitable[Dict[str, Any]]]


def task_url(project_id: Any, task_id: Any) -> str:
    return f"/projects/{project_id}/tasks?taskId={task_id}"


def _task_priority(task: Dict[str, Any]) -> str:
    if task.get("priority") in ("Critical", "High"):
        return NotificationPriority.HIGH
    return NotificationPriority.MEDIUM


def approaching_message(title: str, days_until_deadline: int):
    """(message, priority) for a deadline `days_until_deadline` calendar days away, or (None, None)."""
    if days_until_deadline == 0:
        return f'Task "{title}" is due today!', NotificationPriority.URGENT
    if days_until_deadline == 1:
        return f'Task "{title}" is due tomorrow!', NotificationPriority.HIGH
    if 2 <= days_until_deadline <= 3:
        return f'Task "{title}" is due in {days_until_deadline} days', NotificationPriority.HIGH
    if 4 <= days_until_deadline <= 7:
        return f'Task "{title}" is due in {days_until_deadline} days', NotificationPriority.MEDIUM
    return None, None


# --- Deadline reminders (raise on failure, the scan job counts and logs) ---

async def notify_deadline_approaching(
    db,
    task: Dict[str, Any],
    project_id: str,
    days_until_deadline: int,
    send: Dispatcher = send_notification,
) -> bool:
    assignee_id = ref_id(task.get("assignee_id"))
    if not assignee_id:
        return False

    message, priority = approaching_message(task.get("title", ""), days_until_deadline)
    if not message:
        return False

    await send(
        db,
        user_id=assignee_id,
        type=NotificationType.TASK,
        action=NotificationAction.DEADLINE_APPROACHING,
        message=message,
        priority=priority,
        project_id=project_id,
        task_id=task["id"],
        action_url=task_url(project_id, task["id"]),
        metadata={
            "task_title": task.get("title"),
            "deadline": task.get("deadline"),
            "days_until_deadline": days_until_deadline,
        },
    )
    return True


async def notify_deadline_passed(
    db,
    task: Dict[str, Any],
    project_id: str,
    send: Dispatcher = send_notification,
) -> bool:
    """Overdue alert to the assignee, and a copy to the assigner when that is someone else."""
    assignee_id = ref_id(task.get("assignee_id"))
    if not assignee_id:
        return False
    if task.get("status") in (TaskStatus.COMPLETED, TaskStatus.DONE):
        return False

    message = f'Task "{task.get("title", "")}" is overdue!'
    metadata = {"task_title": task.get("title"), "deadline": task.get("deadline")}

    await send(
        db,
        user_id=assignee_id,
        type=NotificationType.TASK,
        action=NotificationAction.DEADLINE_PASSED,
        message=message,
        priority=NotificationPriority.URGENT,
        project_id=project_id,
        task_id=task["id"],
        action_url=task_url(project_id, task["id"]),
        metadata=metadata,
    )

    # The assignee has been told; a failed copy to the assigner must not undo that
    assigner_id = ref_id(task.get("assigner_id"))
    if assigner_id and assigner_id != assignee_id:
        try:
            await send(
                db,
                user_id=assigner_id,
                type=NotificationType.TASK,
                action=NotificationAction.DEADLINE_PASSED,
                message=message,
                priority=NotificationPriority.HIGH,
                project_id=project_id,
                task_id=task["id"],
                action_url=task_url(project_id, task["id"]),
                metadata=metadata,
            )
        except Exception as e:
            logger.error(
                f"Failed to send deadline passed copy to assigner for task {task['id']}: {e}",
                exc_info=True,
            )
    return True


# --- Task lifecycle events (never break the request that triggered them) ---

async def notify_task_created(db, task: Dict[str, Any], creator_id: str, project_id: str):
    assignee_id = ref_id(task.get("assignee_id"))
    if not assignee_id or assignee_id == ref_id(creator_id):
        return
    try:
        await send_notification(
            db,
            user_id=assignee_id,
            type=NotificationType.TASK,
            action=NotificationAction.CREATE,
            message=f'You have been given a new task: "{task.get("title")}"',
            priority=_task_priority(task),
            project_id=project_id,
            task_id=task["id"],
            created_by=creator_id,
            action_url=task_url(project_id, task["id"]),
            metadata={
                "task_title": task.get("title"),
                "task_priority": task.get("priority"),
                "deadline": task.get("deadline"),
            },
        )
    except Exception as e:
        logger.error(f"Failed to send task created notification: {e}", exc_info=True)


async def notify_task_assigned(
    db,
    task: Dict[str, Any],
    old_assignee_id: Optional[str],
    new_assignee_id: Optional[str],
    assigner_id: str,
    project_id: str,
):
    old_assignee = ref_id(old_assignee_id)
    new_assignee = ref_id(new_assignee_id)
    assigner = ref_id(assigner_id)
    try:
        if new_assignee and new_assignee != assigner:
            await send_notification(
                db,
                user_id=new_assignee,
                type=NotificationType.TASK,
                action=NotificationAction.ASSIGN,
                message=f'You have been assigned to task: "{task.get("title")}"',
                priority=_task_priority(task),
                project_id=project_id,
                task_id=task["id"],
                created_by=assigner,
                action_url=task_url(project_id, task["id"]),
                metadata={
                    "task_title": task.get("title"),
                    "task_priority": task.get("priority"),
                    "deadline": task.get("deadline"),
                },
            )

        if old_assignee and old_assignee != new_assignee and old_assignee != assigner:
            await send_notification(
                db,
                user_id=old_assignee,
                type=NotificationType.TASK,
                action=NotificationAction.UPDATE,
                message=f'You have been removed from task: "{task.get("title")}"',
                priority=NotificationPriority.LOW,
                project_id=project_id,
                task_id=task["id"],
                created_by=assigner,
                action_url=task_url(project_id, task["id"]),
                metadata={"task_title": task.get("title")},
            )
    except Exception as e:
        logger.error(f"Failed to send task assignment notification: {e}", exc_info=True)


async def notify_task_status_changed(
    db,
    task: Dict[str, Any],
    old_status: str,
    new_status: str,
    changer_id: str,
    project_id: str,
):
    assignee_id = ref_id(task.get("assignee_id"))
    assigner_id = ref_id(task.get("assigner_id"))
    changer = ref_id(changer_id)
    message = f'Task "{task.get("title")}" moved from "{old_status}" to "{new_status}"'
    metadata = {"task_title": task.get("title"), "old_status": old_status, "new_status": new_status}
    # "Completed" only exists on legacy records; new tasks finish as "Done"
    finished = new_status in (TaskStatus.DONE, TaskStatus.COMPLETED)
    try:
        if assignee_id and assignee_id != changer:
            await send_notification(
                db,
                user_id=assignee_id,
                type=NotificationType.TASK,
                action=NotificationAction.STATUS_CHANGE,
                message=message,
                priority=NotificationPriority.MEDIUM if finished else NotificationPriority.LOW,
                project_id=project_id,
                task_id=task["id"],
                created_by=changer,
                action_url=task_url(project_id, task["id"]),
                metadata=metadata,
            )

        if assigner_id and assigner_id != assignee_id and assigner_id != changer:
            await send_notification(
                db,
                user_id=assigner_id,
                type=NotificationType.TASK,
                action=NotificationAction.STATUS_CHANGE,
                message=message,
                priority=NotificationPriority.LOW,
                project_id=project_id,
                task_id=task["id"],
                created_by=changer,
                action_url=task_url(project_id, task["id"]),
                metadata=metadata,
            )
    except Exception as e:
        logger.error(f"Failed to send task status notification: {e}", exc_info=True)


async def notify_task_deadline_changed(
    db,
    task: Dict[str, Any],
    old_deadline: Optional[datetime],
    new_deadline: datetime,
    changer_id: str,
    project_id: str,
):
    """Tell the assignee (unless they made the change) that the due date moved."""
    assignee_id = ref_id(task.get("assignee_id"))
    changer = ref_id(changer_id)
    if not assignee_id or assignee_id == changer:
        return

    old_label = old_deadline.strftime("%d/%m/%Y") if isinstance(old_deadline, datetime) else "not set"
    new_label = new_deadline.strftime("%d/%m/%Y") if isinstance(new_deadline, datetime) else str(new_deadline)
    try:
        await send_notification(
            db,
            user_id=assignee_id,
            type=NotificationType.TASK,
            action=NotificationAction.UPDATE,
            message=f'Deadline of task "{task.get("title")}" changed from {old_label} to {new_label}',
            priority=NotificationPriority.MEDIUM,
            project_id=project_id,
            task_id=task["id"],
            created_by=changer,
            action_url=task_url(project_id, task["id"]),
            metadata={
                "task_title": task.get("title"),
                "old_deadline": old_deadline,
                "new_deadline": new_deadline,
            },
        )
    except Exception as e:
        logger.error(f"Failed to send task deadline changed notification: {e}", exc_info=True)


async def notify_task_priority_changed(
    db,
    task: Dict[str, Any],
    old_priority: Optional[str],
    new_priority: str,
    changer_id: str,
    project_id: str,
):
    assignee_id = ref_id(task.get("assignee_id"))
    changer = ref_id(changer_id)
    if not assignee_id or assignee_id == changer:
        return
    try:
        await send_notification(
            db,
            user_id=assignee_id,
            type=NotificationType.TASK,
            action=NotificationAction.UPDATE,
            message=f'Priority of task "{task.get("title")}" changed from "{old_priority}" to "{new_priority}"',
            priority=_task_priority({"priority": new_priority}),
            project_id=project_id,
            task_id=task["id"],
            created_by=changer,
            action_url=task_url(project_id, task["id"]),
            metadata={
                "task_title": task.get("title"),
                "old_priority": old_priority,
                "new_priority": new_priority,
            },
        )
    except Exception as e:
        logger.error(f"Failed to send task priority changed notification: {e}", exc_info=True)
