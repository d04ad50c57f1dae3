from fastapi import APIRouter, Body, HTTPException, Depends
from datetime import datetime
from models.task import TaskModel, TaskCreateModel, TaskUpdateModel
from models.user import UserModel
from constants import ADMIN_ROLES
from routes.deps import get_current_user, get_db
from middleware.project_auth import check_project_permission, is_project_member
from utils.mongo import parse_mongo_data, ref_id
from utils.task_store import resolve_task_project_id
from utils.task_notifications import (
    notify_task_assigned,
    notify_task_created,
    notify_task_deadline_changed,
    notify_task_priority_changed,
    notify_task_status_changed,
)
from logging_config import get_logger, project_id_var

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])
logger = get_logger("tasks")


async def _function_in_project(db, function_id: str, project_id: str) -> bool:
    return await resolve_task_project_id(db, {"function_id": function_id}) == project_id


@router.post("", status_code=201)
async def create_task(
    payload: TaskCreateModel = Body(...),
    project_id: str = Depends(check_project_permission("write")),
    current_user: UserModel = Depends(get_current_user),
    db = Depends(get_db)
):
    """Create a task under one of the project's functions (owner/leader only)."""
    if not await _function_in_project(db, payload.function_id, project_id):
        raise HTTPException(status_code=400, detail="Function does not belong to this project")

    if payload.start_date and payload.start_date > payload.deadline:
        raise HTTPException(status_code=400, detail="start_date must be before the deadline")

    if payload.assignee_id:
        member, _ = await is_project_member(db, payload.assignee_id, project_id)
        if not member:
            raise HTTPException(status_code=400, detail="Assignee is not a member of this project")

    task = TaskModel(
        **payload.model_dump(exclude={"project_id"}),
        assigner_id=current_user.id,
    )
    await db.tasks.insert_one(task.model_dump())

    await notify_task_created(db, task.model_dump(), current_user.id, project_id)

    logger.info(f"Task created", extra={"data": {"task_id": task.id, "title": task.title, "project_id": project_id}})
    return task.model_dump()


@router.patch("/{task_id}")
async def update_task(
    task_id: str,
    updates: TaskUpdateModel = Body(...),
    current_user: UserModel = Depends(get_current_user),
    db = Depends(get_db)
):
    """
    Owners, leaders and admins may change anything; the assignee may only move
    the task's status. Assignee and status changes notify the people involved.
    """
    task = await db.tasks.find_one({"id": task_id}, {"_id": 0})
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")

    project_id = await resolve_task_project_id(db, task)
    if not project_id:
        raise HTTPException(status_code=404, detail="Task is not linked to a project")
    project_id_var.set(project_id)

    changes = updates.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to update")

    if current_user.role not in ADMIN_ROLES:
        project = await db.projects.find_one({"id": project_id}, {"_id": 0, "created_by": 1})
        is_owner = ref_id((project or {}).get("created_by")) == current_user.id
        _, leader = await is_project_member(db, current_user.id, project_id)
        is_assignee = ref_id(task.get("assignee_id")) == current_user.id
        if not (is_owner or leader):
            if not (is_assignee and set(changes) <= {"status"}):
                raise HTTPException(status_code=403, detail="Only the project owner or team leader can do this")

    if "assignee_id" in changes and changes["assignee_id"]:
        member, _ = await is_project_member(db, changes["assignee_id"], project_id)
        if not member:
            raise HTTPException(status_code=400, detail="Assignee is not a member of this project")

    changes["updated_at"] = datetime.now()
    await db.tasks.update_one({"id": task_id}, {"$set": changes})
    updated = await db.tasks.find_one({"id": task_id}, {"_id": 0})

    old_assignee = ref_id(task.get("assignee_id"))
    if "assignee_id" in changes and ref_id(changes["assignee_id"]) != old_assignee:
        await notify_task_assigned(db, updated, old_assignee, changes["assignee_id"], current_user.id, project_id)

    if "status" in changes and changes["status"] != task.get("status"):
        await notify_task_status_changed(db, updated, task.get("status"), changes["status"], current_user.id, project_id)

    if changes.get("deadline") and changes["deadline"] != task.get("deadline"):
        await notify_task_deadline_changed(db, updated, task.get("deadline"), changes["deadline"], current_user.id, project_id)

    if changes.get("priority") and changes["priority"] != task.get("priority"):
        await notify_task_priority_changed(db, updated, task.get("priority"), changes["priority"], current_user.id, project_id)

    logger.info(f"Task updated", extra={"data": {"task_id": task_id, "fields": list(changes.keys())}})
    return parse_mongo_data(updated)
