"""
tests/test_realtime.py
The live connection registry and client frame handling.
"""

import uuid

import pytest
from httpx import AsyncClient

from services.realtime.manager import ConnectionManager, push_safely
from services.realtime.router import authenticate, handle_frame
from shared.models.models import User
from shared.utils.exceptions import AuthorizationError
from tests.conftest import auth_headers, make_planner


class FakeSocket:
    def __init__(self, app=None):
        self.app = app
        self.frames = []

    async def accept(self):
        pass

    async def send_json(self, frame):
        self.frames.append(frame)


async def open_conversation(client: AsyncClient, sender: User, recipient: User) -> uuid.UUID:
    response = await client.post(
        "/api/messages/send",
        json={"recipientId": str(recipient.id), "content": "Hi"},
        headers=auth_headers(sender),
    )
    return uuid.UUID(response.json()["data"]["conversationId"])


# ── Registry ──────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_presence_tracks_all_sockets():
    manager = ConnectionManager()
    user_id = uuid.uuid4()
    first, second = FakeSocket(), FakeSocket()
    await manager.connect(user_id, first)
    await manager.connect(user_id, second)

    assert await manager.send_to_user(user_id, "ping", {"n": 1}) == 2
    manager.disconnect(user_id, first)
    assert manager.is_user_online(user_id) is True
    manager.disconnect(user_id, second)
    assert manager.is_user_online(user_id) is False
    assert manager.online_count() == 0


@pytest.mark.asyncio
async def test_viewing_conversation_cleared_on_leave():
    manager = ConnectionManager()
    user_id, conversation_id = uuid.uuid4(), uuid.uuid4()
    socket = FakeSocket()
    await manager.connect(user_id, socket)

    manager.join_conversation(socket, conversation_id)
    assert manager.is_viewing_conversation(user_id, conversation_id) is True
    manager.leave_conversation(socket)
    assert manager.is_viewing_conversation(user_id, conversation_id) is False


@pytest.mark.asyncio
async def test_push_safely_without_manager():
    await push_safely(None, uuid.uuid4(), "notification", {})


# ── Frames ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_typing_relayed_to_peer(app, client: AsyncClient, planner: User, professional: User):
    conversation_id = await open_conversation(client, planner, professional)
    manager = app.state.realtime
    planner_socket, peer_socket = FakeSocket(app), FakeSocket(app)
    await manager.connect(planner.id, planner_socket)
    await manager.connect(professional.id, peer_socket)

    await handle_frame(planner_socket, manager, planner.id, {
        "event": "typing", "data": {"conversationId": str(conversation_id)},
    })

    assert peer_socket.frames == [{
        "event": "typing",
        "data": {"conversationId": str(conversation_id), "userId": str(planner.id), "isTyping": True},
    }]


@pytest.mark.asyncio
async def test_join_requires_participation(app, client: AsyncClient, db, planner: User, professional: User):
    conversation_id = await open_conversation(client, planner, professional)
    outsider = await make_planner(db)
    socket = FakeSocket(app)
    await app.state.realtime.connect(professional.id, socket)

    with pytest.raises(AuthorizationError):
        await handle_frame(socket, app.state.realtime, outsider.id, {
            "event": "join_conversation", "data": {"conversationId": str(conversation_id)},
        })

    await handle_frame(socket, app.state.realtime, professional.id, {
        "event": "join_conversation", "data": {"conversationId": str(conversation_id)},
    })
    assert app.state.realtime.is_viewing_conversation(professional.id, conversation_id) is True


@pytest.mark.asyncio
async def test_unknown_event_answers_error(app, planner: User):
    socket = FakeSocket(app)
    await handle_frame(socket, app.state.realtime, planner.id, {"event": "dance"})
    assert socket.frames == [{"event": "error", "data": {"message": "Unknown event: dance"}}]


@pytest.mark.asyncio
async def test_authenticate(app, planner: User):
    socket = FakeSocket(app)
    token = auth_headers(planner)["Authorization"].split(" ", 1)[1]
    assert await authenticate(socket, token) == planner.id
    assert await authenticate(socket, None) is None
    assert await authenticate(socket, "not-a-jwt") is None
