"""
services/messaging/router.py
Direct messages between two users, plus presence lookups.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.messaging.service import MessagingService
from services.realtime.dependencies import get_realtime
from services.realtime.manager import ConnectionManager
from shared.middleware.auth import get_current_user
from shared.middleware.rate_limit import RateLimit
from shared.models.models import Message, User
from shared.schemas.schemas import ChatMessageResponse, ConversationResponse, SendMessageRequest
from shared.utils.pagination import ok

router = APIRouter(prefix="/messages", tags=["Messages"])


def get_messaging_service(
    db: AsyncSession = Depends(get_db),
    realtime: Optional[ConnectionManager] = Depends(get_realtime),
) -> MessagingService:
    return MessagingService(db, realtime)


def _dump(message: Message) -> dict:
    return ChatMessageResponse.model_validate(message).model_dump(by_alias=True)


@router.post("/send", status_code=status.HTTP_201_CREATED, dependencies=[Depends(RateLimit("message"))])
async def send_message(
    data: SendMessageRequest,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    message = await service.send_message(
        sender_id=current_user.id,
        recipient_id=data.recipient_id,
        content=data.content,
        message_type=data.message_type,
        metadata=data.metadata,
        client_message_id=data.client_message_id,
    )
    return ok(_dump(message), "Message sent")


@router.get("/conversations")
async def get_conversations(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Most recently active first."""
    items, pagination = await service.get_conversations(current_user.id, page, limit)
    return ok(
        [ConversationResponse.model_validate(c).model_dump(by_alias=True) for c in items],
        pagination=pagination,
    )


@router.get("/conversations/{conversation_id}")
async def get_messages(
    conversation_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    messages, pagination = await service.get_messages(conversation_id, current_user.id, page, limit)
    return ok([_dump(m) for m in messages], pagination=pagination)


@router.patch("/conversations/{conversation_id}/read")
async def mark_conversation_read(
    conversation_id: UUID,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    updated = await service.mark_messages_as_read(conversation_id, current_user.id)
    return ok({"updated": updated}, "Messages marked as read")


@router.get("/unread-count")
async def get_unread_count(
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return ok({"count": await service.get_unread_count(current_user.id)})


@router.get("/search")
async def search_messages(
    q: str = Query(..., min_length=1),
    conversation_id: Optional[UUID] = Query(None, alias="conversationId"),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    messages = await service.search_messages(current_user.id, q, conversation_id, limit)
    return ok([_dump(m) for m in messages])


@router.get("/presence/{user_id}")
async def get_presence(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    realtime: Optional[ConnectionManager] = Depends(get_realtime),
):
    online = realtime.is_user_online(user_id) if realtime else False
    return ok({"userId": user_id, "online": online})


@router.delete("/{message_id}")
async def delete_message(
    message_id: UUID,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    await service.delete_message(message_id, current_user.id)
    return ok(None, "Message deleted")
