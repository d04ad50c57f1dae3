from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from models.user import UserModel
from routes.deps import get_current_user, get_db
from automations.deadline_checker import check_task_deadlines, check_passed_deadlines
from logging_config import get_logger

router = APIRouter(prefix="/api/tasks", tags=["Task Deadlines"])
logger = get_logger("task_deadlines")


# Manual trigger, also what an external cron calls
@router.post("/deadline-check")
async def run_deadline_check(
    current_user: UserModel = Depends(get_current_user),
    db = Depends(get_db)
):
    logger.info("Deadline check triggered over HTTP")
    result = await check_task_deadlines(db)
    if not result.get("success"):
        return JSONResponse(
            status_code=500,
            content={"message": "Deadline check failed", "error": result.get("error")}
        )
    return {"message": "Deadline check completed", **result}


@router.post("/deadline-check-passed")
async def run_passed_deadline_check(
    current_user: UserModel = Depends(get_current_user),
    db = Depends(get_db)
):
    logger.info("Passed deadline check triggered over HTTP")
    result = await check_passed_deadlines(db)
    if not result.get("success"):
        return JSONResponse(
            status_code=500,
            content={"message": "Passed deadline check failed", "error": result.get("error")}
        )
    return {"message": "Passed deadline check completed", **result}
