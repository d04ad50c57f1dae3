"""
Realtime notification channel.

WebSocket connections join named rooms (a user's bare id and its prefixed
variant); server code emits events to rooms. Delivery is best effort: the
durable copy of every notification lives in MongoDB, this channel only
shortens the time until the browser shows it.
"""

import asyncio
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set

from fastapi import WebSocket

from config import config
from logging_config import get_logger

logger = get_logger("realtime")


class RealtimeNotInitialized(RuntimeError):
    """Raised when something tries to emit before the hub is set up."""


def user_rooms(user_id: Any) -> List[str]:
    """Both room names a user's sockets are joined to."""
    uid = str(user_id)
    return [uid, f"{config.REALTIME_ROOM_PREFIX}{uid}"]


class Notifier(Protocol):
    """Best-effort side channel. Implementations may raise; callers log and move on."""

    async def notify(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        ...


class RoomHub:
    """
    Room-based WebSocket broadcaster.

    A socket can be in several rooms; emitting to several rooms at once
    delivers the event a single time per socket.
    """

    def __init__(self):
        # room -> sockets
        self._rooms: Dict[str, Set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def join(self, websocket: WebSocket, rooms: Iterable[str]):
        async with self._lock:
            for room in rooms:
                self._rooms[room].add(websocket)

    async def leave(self, websocket: WebSocket):
        async with self._lock:
            for room in list(self._rooms):
                self._rooms[room].discard(websocket)
                if not self._rooms[room]:
                    del self._rooms[room]

    def room_size(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    async def emit(self, rooms: Iterable[str], event: str, data: Any) -> int:
        """Send {"event", "data"} to every socket in any of `rooms`. Returns sockets reached."""
        async with self._lock:
            targets: Set[WebSocket] = set()
            for room in rooms:
                targets.update(self._rooms.get(room, ()))

        message = {"event": event, "data": data}
        delivered = 0
        dead: List[WebSocket] = []
        for websocket in targets:
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping dead socket after send failure: {e}")
                dead.append(websocket)

        for websocket in dead:
            await self.leave(websocket)
        return delivered


class RoomNotifier:
    """Notifier that pushes to a user's rooms on the hub."""

    def __init__(self, hub: RoomHub):
        self.hub = hub

    async def notify(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        await self.hub.emit(user_rooms(user_id), event, payload)


_hub: Optional[RoomHub] = None


def init_hub() -> RoomHub:
    global _hub
    if _hub is None:
        _hub = RoomHub()
        logger.info("Realtime hub initialized")
    return _hub


def shutdown_hub():
    global _hub
    _hub = None


def get_hub() -> RoomHub:
    if _hub is None:
        raise RealtimeNotInitialized("Realtime hub has not been initialized")
    return _hub


def get_notifier() -> Notifier:
    return RoomNotifier(get_hub())
