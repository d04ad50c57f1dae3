from typing import Any, Dict, List, Optional

from constants import TERMINAL_TASK_STATUSES
from utils.mongo import ref_id


async def resolve_task_project_id(db, task: Dict[str, Any]) -> Optional[str]:
    """
    Follow task -> function -> feature -> project.
    Returns None as soon as any link is missing (orphaned or partial records).
    """
    function_id = ref_id(task.get("function_id"))
    if not function_id:
        return None

    function = await db.functions.find_one({"id": function_id}, {"_id": 0, "feature_id": 1})
    feature_id = ref_id((function or {}).get("feature_id"))
    if not feature_id:
        return None

    feature = await db.features.find_one({"id": feature_id}, {"_id": 0, "project_id": 1})
    project_id = ref_id((feature or {}).get("project_id"))
    if not project_id:
        return None

    project = await db.projects.find_one({"id": project_id}, {"_id": 0, "id": 1})
    return project_id if project else None


async def find_open_tasks_by_deadline(db, deadline_filter: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Tasks not in a terminal status whose deadline matches `deadline_filter`, oldest deadline first."""
    cursor = db.tasks.find(
        {
            "deadline": deadline_filter,
            "status": {"$nin": TERMINAL_TASK_STATUSES},
        },
        {"_id": 0},
    ).sort("deadline", 1)
    return await cursor.to_list(length=None)
