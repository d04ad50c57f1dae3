from datetime import datetime, timedelta

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from automations import scheduler as scheduler_module
from automations.scheduler import COMBINED, PASSED_ONLY, DeadlineScheduler, jobs_for_hour, next_tick
from config import config
from conftest import MEMBER_ID
from main import app
from routes.deps import create_access_token
from utils.realtime import RealtimeNotInitialized, RoomHub, get_hub, get_notifier, init_hub, user_rooms


class FakeSocket:
    def __init__(self, broken=False):
        self.sent = []
        self.broken = broken

    async def send_json(self, message):
        if self.broken:
            raise RuntimeError("connection reset")
        self.sent.append(message)


# --- Room hub ---

def test_user_rooms():
    assert user_rooms("abc") == ["abc", "user-abc"]


async def test_emit_reaches_every_socket_in_room():
    hub = RoomHub()
    laptop, phone = FakeSocket(), FakeSocket()
    await hub.join(laptop, user_rooms("u1"))
    await hub.join(phone, ["user-u1"])

    delivered = await hub.emit(user_rooms("u1"), "notification", {"message": "hi"})

    assert delivered == 2
    assert laptop.sent == [{"event": "notification", "data": {"message": "hi"}}]
    assert phone.sent == laptop.sent


async def test_emit_to_empty_room_is_a_noop():
    hub = RoomHub()
    assert await hub.emit(["nobody"], "notification", {}) == 0


async def test_dead_socket_is_dropped():
    hub = RoomHub()
    alive, dead = FakeSocket(), FakeSocket(broken=True)
    await hub.join(alive, ["u1"])
    await hub.join(dead, ["u1"])

    delivered = await hub.emit(["u1"], "notification", {})

    assert delivered == 1
    assert hub.room_size("u1") == 1


async def test_leave_removes_socket_from_all_rooms():
    hub = RoomHub()
    socket = FakeSocket()
    await hub.join(socket, user_rooms("u1"))

    await hub.leave(socket)

    assert hub.room_size("u1") == 0
    assert hub.room_size("user-u1") == 0


def test_hub_must_be_initialized():
    with pytest.raises(RealtimeNotInitialized):
        get_hub()
    with pytest.raises(RealtimeNotInitialized):
        get_notifier()


def test_init_hub_is_idempotent():
    assert init_hub() is init_hub()
    assert get_hub() is init_hub()


# --- WebSocket endpoint ---

async def test_socket_rejects_bad_token(users):
    test_client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with test_client.websocket_connect("/ws/notifications?token=not-a-jwt"):
            pass
    assert exc.value.code == 1008


async def test_socket_rejects_unknown_user(users):
    token = create_access_token({"sub": "ghost"}, expires_delta=timedelta(minutes=5))
    test_client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with test_client.websocket_connect(f"/ws/notifications?token={token}"):
            pass
    assert exc.value.code == 1008


async def test_socket_closes_when_hub_missing(users):
    token = create_access_token({"sub": MEMBER_ID}, expires_delta=timedelta(minutes=5))
    # no lifespan, so no hub
    test_client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with test_client.websocket_connect(f"/ws/notifications?token={token}"):
            pass
    assert exc.value.code == 1011


async def test_socket_connects_and_answers_ping(users):
    token = create_access_token({"sub": MEMBER_ID}, expires_delta=timedelta(minutes=5))
    with TestClient(app) as test_client:
        with test_client.websocket_connect(f"/ws/notifications?token={token}") as ws:
            hello = ws.receive_json()
            assert hello == {"event": "connected", "data": {"user_id": MEMBER_ID}}
            assert get_hub().room_size(f"user-{MEMBER_ID}") == 1

            ws.send_text("ping")
            assert ws.receive_json() == {"event": "pong", "data": None}


# --- Scheduler ---

def test_next_tick_is_top_of_next_hour():
    assert next_tick(datetime(2025, 11, 10, 10, 42, 13)) == datetime(2025, 11, 10, 11, 0)
    assert next_tick(datetime(2025, 11, 10, 23, 30)) == datetime(2025, 11, 11, 0, 0)


def test_jobs_for_hour(monkeypatch):
    monkeypatch.setattr(config, "DEADLINE_CHECK_HOUR", 8)
    monkeypatch.setattr(config, "PASSED_CHECK_HOUR", 9)
    monkeypatch.setattr(config, "HOURLY_PASSED_CHECK", True)

    assert jobs_for_hour(8) == [COMBINED]
    assert jobs_for_hour(9) == [PASSED_ONLY]
    assert jobs_for_hour(14) == [PASSED_ONLY]


def test_jobs_for_hour_without_hourly_catch_up(monkeypatch):
    monkeypatch.setattr(config, "DEADLINE_CHECK_HOUR", 8)
    monkeypatch.setattr(config, "PASSED_CHECK_HOUR", 9)
    monkeypatch.setattr(config, "HOURLY_PASSED_CHECK", False)

    assert jobs_for_hour(14) == []
    assert jobs_for_hour(9) == [PASSED_ONLY]


async def test_run_jobs_calls_the_right_scan(db, monkeypatch):
    monkeypatch.setattr(config, "DEADLINE_CHECK_HOUR", 8)
    monkeypatch.setattr(config, "PASSED_CHECK_HOUR", 9)
    calls = []

    async def fake_combined(db):
        calls.append("combined")
        return {"success": True, "approaching_count": 0, "passed_count": 0, "total_checked": 0}

    async def fake_passed(db):
        calls.append("passed")
        return {"success": True, "notified_count": 0, "total_checked": 0}

    monkeypatch.setattr(scheduler_module, "check_task_deadlines", fake_combined)
    monkeypatch.setattr(scheduler_module, "check_passed_deadlines", fake_passed)
    scheduler = DeadlineScheduler(db)

    results = await scheduler.run_jobs(8)
    await scheduler.run_jobs(9)

    assert calls == ["combined", "passed"]
    assert results[COMBINED]["success"] is True


async def test_run_jobs_survives_a_crashing_scan(db, monkeypatch):
    monkeypatch.setattr(config, "DEADLINE_CHECK_HOUR", 8)

    async def boom(db):
        raise RuntimeError("boom")

    monkeypatch.setattr(scheduler_module, "check_task_deadlines", boom)

    results = await DeadlineScheduler(db).run_jobs(8)

    assert results == {}


async def test_scheduler_start_and_stop(db):
    scheduler = DeadlineScheduler(db)

    await scheduler.start()
    assert scheduler._running is True
    await scheduler.stop()

    assert scheduler._running is False
    assert scheduler._task is None
