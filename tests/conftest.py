import pytest
from httpx import AsyncClient, ASGITransport
import os
from datetime import datetime, timedelta

# Set up test environment variables before anything else
os.environ["ENV"] = "testing"
os.environ["DB_NAME"] = "capstone_hub_test"
os.environ["SECRET_KEY"] = "test_secret_key_12345"
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017/")
os.environ["DEADLINE_SCHEDULER_ENABLED"] = "false"

from config import config
config.ENV = "testing"
config.DB_NAME = "capstone_hub_test"

from mongomock_motor import AsyncMongoMockClient

from main import app
from database import client, db as app_db
from routes.deps import create_access_token
from utils.realtime import shutdown_hub


ADMIN_ID = "user_admin"
SUPERVISOR_ID = "user_supervisor"
OTHER_SUPERVISOR_ID = "user_supervisor_2"
LEADER_ID = "user_leader"
MEMBER_ID = "user_member"
OUTSIDER_ID = "user_outsider"

PROJECT_ID = "project_alpha"
FEATURE_ID = "feature_login"
FUNCTION_ID = "function_login_form"


@pytest.fixture(scope="function", autouse=True)
def mock_db():
    """Fresh in-memory MongoDB for every test."""
    client.use(AsyncMongoMockClient())
    yield app_db
    client._client = None


@pytest.fixture(scope="function", autouse=True)
def reset_realtime_hub():
    shutdown_hub()
    yield
    shutdown_hub()


@pytest.fixture(scope="function")
def db(mock_db):
    return mock_db


@pytest.fixture(scope="function")
async def async_client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client


def _user(user_id, role, name):
    return {
        "id": user_id,
        "email": f"{user_id}@capstonehub.io",
        "full_name": name,
        "role": role,
        "verified": True,
        "created_at": datetime.now(),
    }


@pytest.fixture(scope="function")
async def users(db):
    docs = [
        _user(ADMIN_ID, "admin", "Ada Admin"),
        _user(SUPERVISOR_ID, "supervisor", "Sam Supervisor"),
        _user(OTHER_SUPERVISOR_ID, "supervisor", "Sky Supervisor"),
        _user(LEADER_ID, "student_leader", "Lee Leader"),
        _user(MEMBER_ID, "student", "Max Member"),
        _user(OUTSIDER_ID, "student", "Olly Outsider"),
    ]
    await db.users.insert_many(docs)
    return {doc["id"]: doc for doc in docs}


@pytest.fixture(scope="function")
async def project(db, users):
    """Project -> team (leader + member) -> feature -> function."""
    project_doc = {
        "id": PROJECT_ID,
        "topic": "Smart Attendance",
        "code": "SA01",
        "semester": "Fall2025",
        "created_by": LEADER_ID,
        "supervisor_id": [SUPERVISOR_ID],
        "created_at": datetime.now(),
        "updated_at": datetime.now(),
    }
    await db.projects.insert_one(project_doc)
    await db.teams.insert_one({
        "id": "team_alpha",
        "name": "Alpha",
        "project_id": PROJECT_ID,
        "team_code": "ALPHA001",
        "team_member": [
            {"user_id": LEADER_ID, "team_leader": 1},
            {"user_id": MEMBER_ID, "team_leader": 0},
        ],
    })
    await db.features.insert_one({"id": FEATURE_ID, "title": "Login", "project_id": PROJECT_ID})
    await db.functions.insert_one({"id": FUNCTION_ID, "title": "Login form", "feature_id": FEATURE_ID})
    return project_doc


@pytest.fixture(scope="function")
def make_task(db):
    """Insert a task under the seeded function; keyword overrides win."""
    counter = {"n": 0}

    async def _make(**overrides):
        counter["n"] += 1
        task = {
            "id": f"task_{counter['n']}",
            "title": f"Task {counter['n']}",
            "function_id": FUNCTION_ID,
            "status": "To Do",
            "priority": "Medium",
            "assigner_id": LEADER_ID,
            "assignee_id": MEMBER_ID,
            "deadline": datetime.now() + timedelta(days=2),
            "created_at": datetime.now(),
        }
        task.update(overrides)
        await db.tasks.insert_one(task)
        task.pop("_id", None)
        return task

    return _make


def _headers(user_id):
    token = create_access_token(data={"sub": user_id}, expires_delta=timedelta(minutes=60))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def auth_headers_for(users):
    return _headers


@pytest.fixture(scope="function")
def admin_headers(users):
    return _headers(ADMIN_ID)


@pytest.fixture(scope="function")
def supervisor_headers(users):
    return _headers(SUPERVISOR_ID)


@pytest.fixture(scope="function")
def leader_headers(users):
    return _headers(LEADER_ID)


@pytest.fixture(scope="function")
def member_headers(users):
    return _headers(MEMBER_ID)


@pytest.fixture(scope="function")
def outsider_headers(users):
    return _headers(OUTSIDER_ID)


class RecordingNotifier:
    """Notifier stand-in that remembers every push."""

    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    async def notify(self, user_id, event, payload):
        if self.fail:
            raise RuntimeError("socket layer down")
        self.calls.append((user_id, event, payload))


@pytest.fixture(scope="function")
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="function")
def failing_notifier():
    return RecordingNotifier(fail=True)
