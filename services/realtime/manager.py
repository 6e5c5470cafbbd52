"""
services/realtime/manager.py
Per-process registry of live WebSocket connections.
Tracks presence (is a user connected?) and which conversation each socket
has open, and pushes JSON frames of the form {"event": ..., "data": ...}.
Every push is best-effort: failures are logged and the dead socket dropped.
"""

import logging
import uuid
from collections import defaultdict
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self):
        self._sockets: Dict[uuid.UUID, Set[WebSocket]] = defaultdict(set)
        self._open_conversation: Dict[WebSocket, uuid.UUID] = {}

    # ── Connection lifecycle ──────────────────────────────────
    async def connect(self, user_id: uuid.UUID, websocket: WebSocket) -> None:
        await websocket.accept()
        self._sockets[user_id].add(websocket)
        logger.info(f"User {user_id} connected ({len(self._sockets[user_id])} sockets)")

    def disconnect(self, user_id: uuid.UUID, websocket: WebSocket) -> None:
        self._open_conversation.pop(websocket, None)
        sockets = self._sockets.get(user_id)
        if sockets is None:
            return
        sockets.discard(websocket)
        if not sockets:
            del self._sockets[user_id]

    # ── Presence ──────────────────────────────────────────────
    def is_user_online(self, user_id: uuid.UUID) -> bool:
        return bool(self._sockets.get(user_id))

    def online_count(self) -> int:
        return len(self._sockets)

    # ── Active conversation tracking ──────────────────────────
    def join_conversation(self, websocket: WebSocket, conversation_id: uuid.UUID) -> None:
        self._open_conversation[websocket] = conversation_id

    def leave_conversation(self, websocket: WebSocket) -> None:
        self._open_conversation.pop(websocket, None)

    def is_viewing_conversation(self, user_id: uuid.UUID, conversation_id: uuid.UUID) -> bool:
        """True when any of the user's sockets has this conversation open."""
        return any(
            self._open_conversation.get(ws) == conversation_id
            for ws in self._sockets.get(user_id, ())
        )

    # ── Push ──────────────────────────────────────────────────
    async def send_to_user(self, user_id: uuid.UUID, event: str, data: Any = None) -> int:
        """Push a frame to every socket of user_id. Returns sockets reached."""
        frame = jsonable_encoder({"event": event, "data": data})
        delivered = 0
        for websocket in list(self._sockets.get(user_id, ())):
            try:
                await websocket.send_json(frame)
                delivered += 1
            except Exception as e:
                logger.warning(f"Live push '{event}' to {user_id} failed: {e}")
                self.disconnect(user_id, websocket)
        return delivered


async def push_safely(
    manager: Optional[ConnectionManager], user_id: uuid.UUID, event: str, data: Any = None
) -> None:
    """Best-effort push that tolerates a missing manager and never raises."""
    if manager is None:
        return
    try:
        await manager.send_to_user(user_id, event, data)
    except Exception:
        logger.exception(f"Live push '{event}' to {user_id} failed")
