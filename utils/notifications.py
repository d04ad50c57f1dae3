"""
Notification dispatcher.

Every notification is written to the `notifications` collection first; the
realtime push that follows is best effort and can never fail the dispatch.
"""

from typing import Any, Dict, Iterable, List, Optional

from fastapi.encoders import jsonable_encoder

from constants import RealtimeEvents
from logging_config import get_logger
from models.notification import NotificationModel
from utils.mongo import parse_mongo_data, ref_id
from utils.realtime import Notifier, get_notifier

logger = get_logger("notifications")


class NotificationValidationError(ValueError):
    """Missing recipient, message or type."""


async def expand_references(db, notification: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of the notification with creator, project and task summaries inlined."""
    expanded = dict(notification)

    if notification.get("created_by"):
        user = await db.users.find_one(
            {"id": notification["created_by"]}, {"_id": 0, "id": 1, "full_name": 1, "email": 1}
        )
        if user:
            expanded["created_by"] = user

    if notification.get("project_id"):
        project = await db.projects.find_one(
            {"id": notification["project_id"]}, {"_id": 0, "id": 1, "topic": 1, "code": 1}
        )
        if project:
            expanded["project_id"] = project

    if notification.get("task_id"):
        task = await db.tasks.find_one({"id": notification["task_id"]}, {"_id": 0, "id": 1, "title": 1})
        if task:
            expanded["task_id"] = task

    return expanded


async def push_to_user(notifier: Optional[Notifier], user_id: str, event: str, payload: Dict[str, Any]) -> bool:
    """Best-effort realtime push. Returns False instead of raising."""
    try:
        active = notifier or get_notifier()
        await active.notify(user_id, event, jsonable_encoder(payload))
        return True
    except Exception as e:
        logger.warning(
            f"Realtime push skipped: {e}",
            extra={"data": {"user_id": user_id, "event": event}}
        )
        return False


async def send_notification(
    db,
    user_id: Any,
    message: Optional[str],
    type: Optional[str],
    action: Optional[str] = None,
    priority: Optional[str] = None,
    project_id: Any = None,
    document_id: Any = None,
    task_id: Any = None,
    meeting_id: Any = None,
    created_by: Any = None,
    action_url: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    notifier: Optional[Notifier] = None,
) -> Dict[str, Any]:
    """
    Persist a notification for one recipient and push it to their live sessions.

    Raises NotificationValidationError when user_id, message or type is missing.
    Database errors propagate; push errors are logged and swallowed.
    Returns the stored notification with references expanded.
    """
    recipient = ref_id(user_id)
    if not recipient or not message or not type:
        raise NotificationValidationError("Missing required fields: user_id, message, type")

    notification = NotificationModel(
        user_id=recipient,
        type=type,
        action=action,
        message=message,
        priority=priority or "Medium",
        project_id=ref_id(project_id),
        document_id=ref_id(document_id),
        task_id=ref_id(task_id),
        meeting_id=ref_id(meeting_id),
        created_by=ref_id(created_by),
        action_url=action_url,
        metadata=metadata or {},
    )
    doc = notification.model_dump()
    await db.notifications.insert_one(doc)
    doc.pop("_id", None)

    expanded = await expand_references(db, doc)
    if await push_to_user(notifier, recipient, RealtimeEvents.NOTIFICATION, expanded):
        logger.debug(f"Notification pushed to user {recipient}")

    logger.info(
        "Notification sent",
        extra={"data": {"notification_id": notification.id, "user_id": recipient, "type": type, "action": action}}
    )
    return parse_mongo_data(expanded)


async def send_notifications_to_users(
    db,
    user_ids: Iterable[Any],
    notification_data: Dict[str, Any],
    notifier: Optional[Notifier] = None,
) -> List[Dict[str, Any]]:
    """
    Fan one notification payload out to many recipients.

    Recipient ids are de-duplicated by their string form; all documents go in
    with a single insert_many, then each recipient gets its own push.
    """
    if not user_ids:
        raise NotificationValidationError("user_ids must be a non-empty list")
    if not notification_data.get("message") or not notification_data.get("type"):
        raise NotificationValidationError("Missing required fields: message, type")

    unique_ids = list(dict.fromkeys(rid for rid in (ref_id(u) for u in user_ids) if rid))
    if not unique_ids:
        raise NotificationValidationError("user_ids must be a non-empty list")

    base = dict(notification_data)
    base.pop("user_id", None)
    for ref_field in ("project_id", "document_id", "task_id", "meeting_id", "created_by"):
        if ref_field in base:
            base[ref_field] = ref_id(base[ref_field])

    docs = [NotificationModel(user_id=uid, **base).model_dump() for uid in unique_ids]
    await db.notifications.insert_many(docs)
    logger.info(f"Created {len(docs)} notifications for {len(unique_ids)} users")

    created = []
    for doc in docs:
        doc.pop("_id", None)
        await push_to_user(notifier, doc["user_id"], RealtimeEvents.NOTIFICATION, doc)
        created.append(doc)
    return created
