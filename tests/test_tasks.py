import pytest
from datetime import datetime, timezone
from httpx import AsyncClient

from conftest import FUNCTION_ID, LEADER_ID, MEMBER_ID, OUTSIDER_ID, PROJECT_ID

pytestmark = pytest.mark.asyncio


def _task_payload(**overrides):
    payload = {
        "project_id": PROJECT_ID,
        "function_id": FUNCTION_ID,
        "title": "Build login form",
        "priority": "High",
        "assignee_id": MEMBER_ID,
        "deadline": "2030-01-15T17:00:00",
    }
    payload.update(overrides)
    return payload


async def test_leader_creates_task_and_assignee_is_notified(async_client: AsyncClient, db, project, leader_headers: dict):
    resp = await async_client.post("/api/tasks", json=_task_payload(), headers=leader_headers)
    assert resp.status_code == 201
    task = resp.json()
    assert task["assigner_id"] == LEADER_ID
    assert task["status"] == "To Do"
    assert "project_id" not in task

    notification = await db.notifications.find_one({"task_id": task["id"]}, {"_id": 0})
    assert notification["user_id"] == MEMBER_ID
    assert notification["action"] == "create"
    assert notification["priority"] == "High"
    assert notification["created_by"] == LEADER_ID
    assert notification["action_url"] == f"/projects/{PROJECT_ID}/tasks?taskId={task['id']}"


async def test_member_cannot_create_task(async_client: AsyncClient, project, member_headers: dict):
    resp = await async_client.post("/api/tasks", json=_task_payload(), headers=member_headers)
    assert resp.status_code == 403


async def test_function_must_belong_to_project(async_client: AsyncClient, db, project, leader_headers: dict):
    await db.projects.insert_one({"id": "p_other", "topic": "Other", "created_by": OUTSIDER_ID})
    await db.features.insert_one({"id": "f_other", "title": "Other", "project_id": "p_other"})
    await db.functions.insert_one({"id": "fn_other", "title": "Other", "feature_id": "f_other"})

    resp = await async_client.post("/api/tasks", json=_task_payload(function_id="fn_other"), headers=leader_headers)
    assert resp.status_code == 400


async def test_assignee_must_be_team_member(async_client: AsyncClient, project, leader_headers: dict):
    resp = await async_client.post("/api/tasks", json=_task_payload(assignee_id=OUTSIDER_ID), headers=leader_headers)
    assert resp.status_code == 400


async def test_self_assigned_task_sends_nothing(async_client: AsyncClient, db, project, leader_headers: dict):
    resp = await async_client.post("/api/tasks", json=_task_payload(assignee_id=LEADER_ID), headers=leader_headers)
    assert resp.status_code == 201
    assert await db.notifications.count_documents({}) == 0


async def test_assignee_moves_status_and_assigner_hears_about_it(async_client: AsyncClient, db, project, make_task, member_headers: dict):
    task = await make_task(title="Write tests")

    resp = await async_client.patch(f"/api/tasks/{task['id']}", json={"status": "Doing"}, headers=member_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "Doing"

    notifications = await db.notifications.find({"task_id": task["id"]}, {"_id": 0}).to_list(None)
    assert len(notifications) == 1
    assert notifications[0]["user_id"] == LEADER_ID
    assert notifications[0]["action"] == "status_change"
    assert notifications[0]["metadata"] == {"task_title": "Write tests", "old_status": "To Do", "new_status": "Doing"}


async def test_assignee_cannot_edit_other_fields(async_client: AsyncClient, project, make_task, member_headers: dict):
    task = await make_task()

    resp = await async_client.patch(f"/api/tasks/{task['id']}", json={"title": "Renamed"}, headers=member_headers)
    assert resp.status_code == 403


async def test_outsider_cannot_touch_task(async_client: AsyncClient, project, make_task, outsider_headers: dict):
    task = await make_task()

    resp = await async_client.patch(f"/api/tasks/{task['id']}", json={"status": "Done"}, headers=outsider_headers)
    assert resp.status_code == 403


async def test_reassign_notifies_old_and_new_assignee(async_client: AsyncClient, db, project, make_task, leader_headers: dict):
    await db.teams.update_one(
        {"project_id": PROJECT_ID},
        {"$push": {"team_member": {"user_id": OUTSIDER_ID, "team_leader": 0}}}
    )
    task = await make_task(title="Deploy staging")

    resp = await async_client.patch(f"/api/tasks/{task['id']}", json={"assignee_id": OUTSIDER_ID}, headers=leader_headers)
    assert resp.status_code == 200

    new_assignee = await db.notifications.find_one({"user_id": OUTSIDER_ID}, {"_id": 0})
    old_assignee = await db.notifications.find_one({"user_id": MEMBER_ID}, {"_id": 0})
    assert new_assignee["action"] == "assign"
    assert old_assignee["action"] == "update"
    assert old_assignee["priority"] == "Low"
    assert "removed" in old_assignee["message"]


async def test_update_missing_task(async_client: AsyncClient, project, leader_headers: dict):
    resp = await async_client.patch("/api/tasks/nope", json={"status": "Done"}, headers=leader_headers)
    assert resp.status_code == 404


async def test_update_orphaned_task(async_client: AsyncClient, project, make_task, leader_headers: dict):
    task = await make_task(function_id="deleted_function")

    resp = await async_client.patch(f"/api/tasks/{task['id']}", json={"status": "Done"}, headers=leader_headers)
    assert resp.status_code == 404


async def test_create_task_with_mixed_timezone_dates(async_client: AsyncClient, db, project, leader_headers: dict):
    resp = await async_client.post("/api/tasks", json=_task_payload(
        start_date="2025-11-01T00:00:00",
        deadline="2025-11-10T00:00:00Z",
    ), headers=leader_headers)
    assert resp.status_code == 201

    stored = await db.tasks.find_one({"id": resp.json()["id"]})
    expected = datetime(2025, 11, 10, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    assert stored["deadline"].tzinfo is None
    assert stored["deadline"] == expected


async def test_create_task_aware_deadline_before_naive_start(async_client: AsyncClient, project, leader_headers: dict):
    resp = await async_client.post("/api/tasks", json=_task_payload(
        start_date="2025-11-20T00:00:00",
        deadline="2025-11-10T00:00:00+07:00",
    ), headers=leader_headers)
    assert resp.status_code == 400


async def test_deadline_change_notifies_assignee(async_client: AsyncClient, db, project, make_task, leader_headers: dict):
    task = await make_task(title="Prepare demo", deadline=datetime(2030, 1, 10, 17, 0))

    resp = await async_client.patch(
        f"/api/tasks/{task['id']}", json={"deadline": "2030-01-20T17:00:00+00:00"}, headers=leader_headers
    )
    assert resp.status_code == 200

    notification = await db.notifications.find_one({"task_id": task["id"]}, {"_id": 0})
    assert notification["user_id"] == MEMBER_ID
    assert notification["action"] == "update"
    assert notification["priority"] == "Medium"
    assert notification["message"].startswith('Deadline of task "Prepare demo" changed from 10/01/2030')


async def test_unchanged_deadline_sends_nothing(async_client: AsyncClient, db, project, make_task, leader_headers: dict):
    task = await make_task(deadline=datetime(2030, 1, 10, 17, 0))

    resp = await async_client.patch(
        f"/api/tasks/{task['id']}", json={"deadline": "2030-01-10T17:00:00"}, headers=leader_headers
    )
    assert resp.status_code == 200
    assert await db.notifications.count_documents({"task_id": task["id"]}) == 0


async def test_priority_change_notifies_assignee(async_client: AsyncClient, db, project, make_task, leader_headers: dict):
    task = await make_task(title="Fix crash", priority="Low")

    resp = await async_client.patch(f"/api/tasks/{task['id']}", json={"priority": "Critical"}, headers=leader_headers)
    assert resp.status_code == 200

    notification = await db.notifications.find_one({"task_id": task["id"]}, {"_id": 0})
    assert notification["user_id"] == MEMBER_ID
    assert notification["priority"] == "High"
    assert notification["metadata"] == {"task_title": "Fix crash", "old_priority": "Low", "new_priority": "Critical"}


async def test_priority_change_by_assignee_is_not_echoed(async_client: AsyncClient, db, project, make_task, auth_headers_for):
    # the assignee is also the team leader here
    task = await make_task(priority="Low", assignee_id=LEADER_ID)

    resp = await async_client.patch(f"/api/tasks/{task['id']}", json={"priority": "High"}, headers=auth_headers_for(LEADER_ID))
    assert resp.status_code == 200
    assert await db.notifications.count_documents({"task_id": task["id"]}) == 0


async def test_finished_task_is_medium_priority_for_assignee(async_client: AsyncClient, db, project, make_task, leader_headers: dict):
    task = await make_task()

    resp = await async_client.patch(f"/api/tasks/{task['id']}", json={"status": "Done"}, headers=leader_headers)
    assert resp.status_code == 200

    notification = await db.notifications.find_one({"task_id": task["id"], "user_id": MEMBER_ID}, {"_id": 0})
    assert notification["action"] == "status_change"
    assert notification["priority"] == "Medium"
