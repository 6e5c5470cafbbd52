"""
services/realtime/router.py
WebSocket endpoint for live updates: /api/ws?token=<access token>.

Client frames: {"event": "join_conversation" | "leave_conversation" | "typing", "data": {...}}
Server frames: {"event": ..., "data": ...}
"""

import json
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from config.redis_client import RedisCache
from services.messaging.service import MessagingService
from services.realtime.manager import ConnectionManager, push_safely
from shared.middleware.auth import decode_token, load_active_user
from shared.utils.exceptions import AppError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


async def authenticate(websocket: WebSocket, token: Optional[str]) -> Optional[uuid.UUID]:
    """Resolve the connecting user, or None when the token is missing or rejected."""
    if not token:
        return None
    database = websocket.app.state.db
    try:
        token_data = await decode_token(token, RedisCache(getattr(websocket.app.state, "redis", None)))
        async with database.session_factory() as db:
            user = await load_active_user(db, token_data)
    except AppError as e:
        logger.info(f"WebSocket auth rejected: {e.message}")
        return None
    return user.id


async def _conversation_peer(websocket: WebSocket, conversation_id: uuid.UUID, user_id: uuid.UUID) -> uuid.UUID:
    async with websocket.app.state.db.session_factory() as db:
        conversation = await MessagingService(db).get_conversation_for(conversation_id, user_id)
    return conversation.other_participant(user_id)


async def handle_frame(
    websocket: WebSocket,
    manager: ConnectionManager,
    user_id: uuid.UUID,
    frame: dict,
) -> None:
    event = frame.get("event")
    data = frame.get("data") or {}

    match event:
        case "join_conversation":
            conversation_id = uuid.UUID(str(data["conversationId"]))
            await _conversation_peer(websocket, conversation_id, user_id)
            manager.join_conversation(websocket, conversation_id)
        case "leave_conversation":
            manager.leave_conversation(websocket)
        case "typing":
            conversation_id = uuid.UUID(str(data["conversationId"]))
            peer = await _conversation_peer(websocket, conversation_id, user_id)
            await push_safely(manager, peer, "typing", {
                "conversationId": str(conversation_id),
                "userId": str(user_id),
                "isTyping": bool(data.get("isTyping", True)),
            })
        case _:
            await websocket.send_json({"event": "error", "data": {"message": f"Unknown event: {event}"}})


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = Query(None)):
    user_id = await authenticate(websocket, token)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager: ConnectionManager = websocket.app.state.realtime
    await manager.connect(user_id, websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                await handle_frame(websocket, manager, user_id, json.loads(raw))
            except (AppError, AttributeError, KeyError, TypeError, ValueError) as e:
                message = e.message if isinstance(e, AppError) else "Malformed frame"
                await websocket.send_json({"event": "error", "data": {"message": message}})
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(user_id, websocket)
        logger.info(f"User {user_id} disconnected")
