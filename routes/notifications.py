from fastapi import APIRouter, Body, Depends, HTTPException, Query
from typing import List, Optional
from pydantic import BaseModel, Field
from math import ceil
from datetime import datetime
from models.notification import NotificationTypeLiteral, NotificationActionLiteral, NotificationPriorityLiteral
from models.user import UserModel
from constants import ADMIN_ROLES, NotificationStatus, RealtimeEvents
from routes.deps import get_current_user, get_db, require_role
from utils.mongo import parse_mongo_data
from utils.notifications import NotificationValidationError, push_to_user, send_notifications_to_users
from logging_config import get_logger

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])
logger = get_logger("notifications")


class BroadcastRequest(BaseModel):
    user_ids: List[str]
    message: str = Field(..., max_length=500)
    type: NotificationTypeLiteral = "System"
    action: Optional[NotificationActionLiteral] = None
    priority: NotificationPriorityLiteral = "Medium"
    project_id: Optional[str] = None
    action_url: Optional[str] = None


@router.get("")
async def get_notifications(
    type: Optional[str] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: UserModel = Depends(get_current_user),
    db = Depends(get_db)
):
    """Paginated notifications for the current user, newest first."""
    query = {"user_id": current_user.id}
    if type:
        query["type"] = type
    if status:
        query["status"] = status

    skip = (page - 1) * limit
    notifications = await db.notifications.find(query).sort("created_at", -1).skip(skip).limit(limit).to_list(limit)
    total = await db.notifications.count_documents(query)
    unread_count = await db.notifications.count_documents({
        "user_id": current_user.id,
        "status": NotificationStatus.UNREAD
    })

    return {
        "notifications": parse_mongo_data(notifications),
        "pagination": {
            "current_page": page,
            "total_pages": ceil(total / limit),
            "total_notifications": total,
            "limit": limit,
            "unread_count": unread_count,
        },
    }


@router.get("/unread-count")
async def get_unread_count(
    current_user: UserModel = Depends(get_current_user),
    db = Depends(get_db)
):
    """Get count of unread notifications."""
    count = await db.notifications.count_documents({
        "user_id": current_user.id,
        "status": NotificationStatus.UNREAD
    })
    return {"unread_count": count}


@router.patch("/mark-all-read")
async def mark_all_read(
    current_user: UserModel = Depends(get_current_user),
    db = Depends(get_db)
):
    """Mark all notifications as read for the current user."""
    result = await db.notifications.update_many(
        {"user_id": current_user.id, "status": NotificationStatus.UNREAD},
        {"$set": {"status": NotificationStatus.READ, "updated_at": datetime.now()}}
    )
    return {"message": "All notifications marked as read", "updated_count": result.modified_count}


@router.patch("/{notification_id}/read")
async def mark_as_read(
    notification_id: str,
    current_user: UserModel = Depends(get_current_user),
    db = Depends(get_db)
):
    """Mark a notification as read and push the new unread count to the user's sessions."""
    result = await db.notifications.update_one(
        {"id": notification_id, "user_id": current_user.id},
        {"$set": {"status": NotificationStatus.READ, "updated_at": datetime.now()}}
    )
    if result.matched_count == 0:
        logger.warning(f"Notification not found for mark-as-read", extra={"data": {"notification_id": notification_id}})
        raise HTTPException(status_code=404, detail="Notification not found")

    unread_count = await db.notifications.count_documents({
        "user_id": current_user.id,
        "status": NotificationStatus.UNREAD
    })
    await push_to_user(None, current_user.id, RealtimeEvents.NOTIFICATION_READ, {
        "notification_id": notification_id,
        "unread_count": unread_count,
    })

    notification = await db.notifications.find_one({"id": notification_id}, {"_id": 0})
    return {"message": "Marked as read", "notification": notification}


@router.delete("/read/all")
async def delete_all_read(
    current_user: UserModel = Depends(get_current_user),
    db = Depends(get_db)
):
    """Delete every read notification of the current user."""
    result = await db.notifications.delete_many({
        "user_id": current_user.id,
        "status": NotificationStatus.READ
    })
    logger.info(f"Deleted read notifications", extra={"data": {"deleted_count": result.deleted_count}})
    return {"message": "Read notifications deleted", "deleted_count": result.deleted_count}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current_user: UserModel = Depends(get_current_user),
    db = Depends(get_db)
):
    result = await db.notifications.delete_one({"id": notification_id, "user_id": current_user.id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"message": "Notification deleted"}


@router.post("/broadcast", status_code=201)
async def broadcast_notification(
    payload: BroadcastRequest = Body(...),
    current_user: UserModel = Depends(require_role(*ADMIN_ROLES)),
    db = Depends(get_db)
):
    """Admin-only: send the same notification to a list of users."""
    data = payload.model_dump(exclude={"user_ids"})
    data["created_by"] = current_user.id
    try:
        created = await send_notifications_to_users(db, payload.user_ids, data)
    except NotificationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "Notifications sent", "count": len(created)}
