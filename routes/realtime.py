from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from database import users_collection
from routes.deps import decode_user_id
from utils.realtime import get_hub, user_rooms, RealtimeNotInitialized
from logging_config import get_logger

router = APIRouter(tags=["Realtime"])
logger = get_logger("realtime_ws")


@router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket, token: str = Query(...)):
    """
    Live notification feed. The socket joins the user's bare-id room and its
    prefixed room; the server pushes {"event", "data"} JSON messages.
    Clients may send "ping" and get {"event": "pong"} back.
    """
    user_id = decode_user_id(token)
    if not user_id or not await users_collection.find_one({"id": user_id}, {"_id": 1}):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        hub = get_hub()
    except RealtimeNotInitialized:
        logger.error("Realtime socket rejected: hub not initialized")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    await websocket.accept()
    await hub.join(websocket, user_rooms(user_id))
    logger.info(f"Realtime socket connected", extra={"data": {"user_id": user_id}})

    try:
        await websocket.send_json({"event": "connected", "data": {"user_id": user_id}})
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_json({"event": "pong", "data": None})
    except WebSocketDisconnect:
        pass
    finally:
        await hub.leave(websocket)
        logger.info(f"Realtime socket disconnected", extra={"data": {"user_id": user_id}})
