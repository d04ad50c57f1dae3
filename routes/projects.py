from fastapi import APIRouter, Body, Depends, HTTPException
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional
import secrets
from models.project import ProjectModel, ProjectUpdateModel, TeamModel, TeamMemberModel
from models.user import UserModel
from constants import Role, TERMINAL_TASK_STATUSES
from routes.deps import get_current_user, get_db
from middleware.project_auth import (
    require_project_leader,
    require_project_member,
    require_membership,
    require_mentor,
)
from utils.mongo import parse_mongo_data, ref_id
from logging_config import get_logger

router = APIRouter(prefix="/api/projects", tags=["Projects"])
logger = get_logger("projects")


class ProjectCreateRequest(BaseModel):
    topic: str = Field(..., max_length=250)
    code: str = Field(..., max_length=50)
    semester: str
    description: Optional[str] = Field(default=None, max_length=2000)
    team_name: Optional[str] = None


async def _project_function_ids(db, project_id: str):
    feature_ids = [f["id"] for f in await db.features.find({"project_id": project_id}, {"_id": 0, "id": 1}).to_list(None)]
    if not feature_ids:
        return []
    function_ids = [
        f["id"] for f in await db.functions.find({"feature_id": {"$in": feature_ids}}, {"_id": 0, "id": 1}).to_list(None)
    ]
    return function_ids


@router.post("", status_code=201)
async def create_project(
    payload: ProjectCreateRequest = Body(...),
    current_user: UserModel = Depends(get_current_user),
    db = Depends(get_db)
):
    """Students create projects; the creator becomes the team leader."""
    if current_user.role != Role.STUDENT:
        raise HTTPException(status_code=403, detail="Only students can create projects")

    if await db.projects.find_one({"code": payload.code.strip().upper()}):
        raise HTTPException(status_code=400, detail="Project code already exists")

    try:
        project = ProjectModel(
            topic=payload.topic,
            code=payload.code,
            semester=payload.semester,
            description=payload.description,
            created_by=current_user.id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    team = TeamModel(
        name=payload.team_name or f"{project.code} Team",
        project_id=project.id,
        team_code=secrets.token_hex(4),
        team_member=[TeamMemberModel(user_id=current_user.id, team_leader=1)],
    )

    await db.projects.insert_one(project.model_dump())
    await db.teams.insert_one(team.model_dump())
    await db.users.update_one({"id": current_user.id}, {"$set": {"role": Role.STUDENT_LEADER.value}})

    logger.info(f"Project created", extra={"data": {"project_id": project.id, "code": project.code}})
    return {"project": project.model_dump(), "team": team.model_dump()}


@router.get("/{project_id}")
async def get_project(
    project_id: str = Depends(require_project_member),
    db = Depends(get_db)
):
    project = await db.projects.find_one({"id": project_id})
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return parse_mongo_data(project)


@router.patch("/{project_id}")
async def update_project(
    updates: ProjectUpdateModel = Body(...),
    project_id: str = Depends(require_project_leader),
    db = Depends(get_db)
):
    changes = updates.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to update")

    start = changes.get("start_date")
    end = changes.get("end_date")
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="end_date must be on or after start_date")

    changes["updated_at"] = datetime.now()
    result = await db.projects.update_one({"id": project_id}, {"$set": changes})
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Project not found")

    logger.info(f"Project updated", extra={"data": {"project_id": project_id, "fields": list(changes.keys())}})
    return parse_mongo_data(await db.projects.find_one({"id": project_id}))


@router.get("/{project_id}/team")
async def get_project_team(
    project_id: str = Depends(require_membership),
    db = Depends(get_db)
):
    team = await db.teams.find_one({"project_id": project_id}, {"_id": 0})
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")

    member_ids = [ref_id(m.get("user_id")) for m in team.get("team_member", [])]
    users = await db.users.find(
        {"id": {"$in": member_ids}}, {"_id": 0, "id": 1, "full_name": 1, "email": 1, "avatar": 1}
    ).to_list(None)
    by_id = {u["id"]: u for u in users}

    team["team_member"] = [
        {**m, "user": by_id.get(ref_id(m.get("user_id")))} for m in team.get("team_member", [])
    ]
    return team


@router.get("/{project_id}/supervision")
async def get_supervision_summary(
    project_id: str = Depends(require_mentor),
    db = Depends(get_db)
):
    """Open and overdue task counts for the supervisor of record."""
    function_ids = await _project_function_ids(db, project_id)
    if not function_ids:
        return {"project_id": project_id, "open_tasks": 0, "overdue_tasks": 0}

    open_filter = {"function_id": {"$in": function_ids}, "status": {"$nin": TERMINAL_TASK_STATUSES}}
    open_tasks = await db.tasks.count_documents(open_filter)
    today = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
    overdue_tasks = await db.tasks.count_documents({**open_filter, "deadline": {"$lt": today}})
    return {"project_id": project_id, "open_tasks": open_tasks, "overdue_tasks": overdue_tasks}
