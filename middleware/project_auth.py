"""
Project access guard.

FastAPI dependencies that work out which project a request targets and
whether the current user may act on it:
- students: read projects they belong to
- team leaders and the project creator: read and write
- supervisors: read any project; mentor-only routes need the supervisor of record
- admins: everything
"""

from typing import Any, Dict, Mapping, Optional, Tuple

from fastapi import Depends, HTTPException, Request, status

from constants import ADMIN_ROLES, ProjectAction, Role
from logging_config import get_logger, project_id_var
from models.user import UserModel
from routes.deps import get_current_user, get_db
from utils.mongo import ref_id, ref_ids

logger = get_logger("project_auth")

PATH_KEYS = ("projectId", "project_id", "id")
BODY_KEYS = ("projectId", "project_id")
QUERY_KEYS = ("projectId", "project_id")

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def _first_value(source: Optional[Mapping[str, Any]], keys) -> Optional[str]:
    if not source:
        return None
    for key in keys:
        value = ref_id(source.get(key))
        if value:
            return value
    return None


def pick_project_id(
    path_params: Optional[Mapping[str, Any]],
    body: Optional[Mapping[str, Any]],
    query_params: Optional[Mapping[str, Any]],
) -> Optional[str]:
    """Path params win over the body, the body wins over the query string."""
    return (
        _first_value(path_params, PATH_KEYS)
        or _first_value(body, BODY_KEYS)
        or _first_value(query_params, QUERY_KEYS)
    )


async def read_request_body(request: Request) -> Dict[str, Any]:
    """JSON or form body as a dict; anything else (or unparsable) is an empty dict."""
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith("application/json"):
            body = await request.json()
            return body if isinstance(body, dict) else {}
        if content_type.startswith(FORM_CONTENT_TYPES):
            form = await request.form()
            return dict(form)
    except Exception as e:
        logger.debug(f"Could not parse request body while resolving project id: {e}")
    return {}


async def resolve_project_id(request: Request) -> Optional[str]:
    body = await read_request_body(request)
    project_id = pick_project_id(request.path_params, body, request.query_params)
    if not project_id:
        logger.debug(
            "No project id on request",
            extra={"data": {"path": request.url.path, "body_keys": list(body.keys())}}
        )
    return project_id


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


async def is_project_member(db, user_id: Any, project_id: Any) -> Tuple[bool, bool]:
    """(member, leader) for a user in a project's team. Lookup problems count as (False, False)."""
    user_key = ref_id(user_id)
    project_key = ref_id(project_id)
    if not user_key or not project_key:
        return False, False

    try:
        team = await db.teams.find_one(
            {"project_id": project_key, "team_member.user_id": user_key},
            {"_id": 0, "team_member": 1},
        )
        if not team or not isinstance(team.get("team_member"), list):
            return False, False

        member = next(
            (m for m in team["team_member"] if isinstance(m, dict) and ref_id(m.get("user_id")) == user_key),
            None,
        )
        if member is None:
            return False, False
        return True, _as_int(member.get("team_leader")) == 1
    except Exception as e:
        logger.error(f"Team membership lookup failed: {e}", exc_info=True)
        return False, False


def _require_user(current_user: Optional[UserModel]) -> UserModel:
    if current_user is None or not current_user.id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return current_user


async def _load_project(db, project_id: str) -> Dict[str, Any]:
    project = await db.projects.find_one({"id": project_id}, {"_id": 0})
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def check_project_permission(required_action: str = ProjectAction.READ.value):
    """Dependency factory. Resolves to the project id once the check passes."""
    async def checker(
        request: Request,
        current_user: UserModel = Depends(get_current_user),
        db=Depends(get_db),
    ) -> str:
        user = _require_user(current_user)

        project_id = await resolve_project_id(request)
        if not project_id:
            raise HTTPException(status_code=400, detail="Missing projectId parameter")
        project_id_var.set(project_id)

        if user.role in ADMIN_ROLES:
            return project_id

        project = await _load_project(db, project_id)

        user_key = ref_id(user.id)
        is_owner = ref_id(project.get("created_by")) == user_key
        member, leader = await is_project_member(db, user_key, project_id)

        try:
            action = ProjectAction(required_action)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid action")

        if action is ProjectAction.READ:
            if user.role == Role.SUPERVISOR or is_owner or member:
                return project_id
            denial = "You do not have permission to view this project"
        elif action in (ProjectAction.WRITE, ProjectAction.UPDATE, ProjectAction.DELETE):
            if is_owner or leader:
                return project_id
            denial = "Only the project owner or team leader can do this"
        else:
            raise HTTPException(status_code=400, detail="Invalid action")

        logger.warning(
            f"Project access denied for action '{action.value}'",
            extra={"data": {"user_id": user_key, "role": user.role.value}}
        )
        raise HTTPException(status_code=403, detail=denial)

    return checker


require_project_member = check_project_permission(ProjectAction.READ.value)
require_project_leader = check_project_permission(ProjectAction.UPDATE.value)


async def require_membership(
    request: Request,
    current_user: UserModel = Depends(get_current_user),
    db=Depends(get_db),
) -> Optional[str]:
    """
    Broader than read permission: the creator, a supervisor of record, or any
    team member gets in. A missing or malformed team is a 403, not a 500.
    """
    user = _require_user(current_user)
    project_id = await resolve_project_id(request)

    if user.role in ADMIN_ROLES:
        return project_id

    if not project_id:
        raise HTTPException(status_code=400, detail="Missing project ID")
    project_id_var.set(project_id)

    project = await _load_project(db, project_id)
    user_key = ref_id(user.id)

    if ref_id(project.get("created_by")) == user_key:
        return project_id
    if user_key in ref_ids(project.get("supervisor_id")):
        return project_id

    denial = "You do not have access to this project. Only project members or supervisors can access it."
    team = await db.teams.find_one({"project_id": project_id}, {"_id": 0, "team_member": 1})
    if not team:
        raise HTTPException(status_code=403, detail=denial)

    members = team.get("team_member")
    if not isinstance(members, list):
        raise HTTPException(status_code=403, detail=denial)

    if not any(isinstance(m, dict) and ref_id(m.get("user_id")) == user_key for m in members):
        raise HTTPException(status_code=403, detail=denial)

    return project_id


async def require_mentor(
    request: Request,
    current_user: UserModel = Depends(get_current_user),
    db=Depends(get_db),
) -> str:
    """Supervisor role AND supervisor of record for this particular project."""
    user = _require_user(current_user)

    project_id = await resolve_project_id(request)
    if not project_id:
        raise HTTPException(status_code=400, detail="Missing projectId parameter")
    project_id_var.set(project_id)

    if user.role in ADMIN_ROLES:
        return project_id

    if user.role != Role.SUPERVISOR:
        raise HTTPException(status_code=403, detail="Only supervisors or admins can access this")

    project = await _load_project(db, project_id)
    if ref_id(user.id) not in ref_ids(project.get("supervisor_id")):
        raise HTTPException(status_code=403, detail="You are not the supervisor of this project")

    return project_id
