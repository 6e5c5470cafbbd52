"""
services/messaging/service.py
Conversations and direct messages between two users.

A conversation is identified by its unordered participant pair, stored
ordered (participant_a_id < participant_b_id). Messages are read in
(created_at, id) order. Read state only moves forward: unread -> read.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from services.notification.service import NotificationService
from services.realtime.manager import ConnectionManager, push_safely
from shared.models.models import Conversation, Message, MessageType, User
from shared.schemas.schemas import ChatMessageResponse
from shared.utils.dates import utcnow
from shared.utils.exceptions import AuthorizationError, NotFoundError, ValidationError
from shared.utils.pagination import build_pagination, offset_for

logger = logging.getLogger(__name__)


def ordered_pair(a: uuid.UUID, b: uuid.UUID) -> tuple[uuid.UUID, uuid.UUID]:
    return (a, b) if a < b else (b, a)


def _involves(user_id: uuid.UUID):
    return or_(Conversation.participant_a_id == user_id, Conversation.participant_b_id == user_id)


def _frame(message: Message) -> dict:
    return ChatMessageResponse.model_validate(message).model_dump(mode="json", by_alias=True)


class MessagingService:
    def __init__(
        self,
        db: AsyncSession,
        realtime: Optional[ConnectionManager] = None,
        notifications: Optional[NotificationService] = None,
    ):
        self.db = db
        self.realtime = realtime
        self.notifications = notifications or NotificationService(db, realtime)

    # ── Conversations ─────────────────────────────────────────
    async def find_conversation(self, a: uuid.UUID, b: uuid.UUID) -> Optional[Conversation]:
        first, second = ordered_pair(a, b)
        result = await self.db.execute(
            select(Conversation).where(
                Conversation.participant_a_id == first,
                Conversation.participant_b_id == second,
            )
        )
        return result.scalar_one_or_none()

    async def get_or_create_conversation(self, a: uuid.UUID, b: uuid.UUID) -> tuple[Conversation, bool]:
        existing = await self.find_conversation(a, b)
        if existing:
            return existing, False
        first, second = ordered_pair(a, b)
        conversation = Conversation(id=uuid.uuid4(), participant_a_id=first, participant_b_id=second)
        self.db.add(conversation)
        await self.db.flush()
        return conversation, True

    async def get_conversation_for(self, conversation_id: uuid.UUID, user_id: uuid.UUID) -> Conversation:
        """Load a conversation, enforcing that user_id participates in it."""
        conversation = await self.db.get(Conversation, conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        if not conversation.has_participant(user_id):
            raise AuthorizationError("You are not a participant in this conversation")
        return conversation

    # ── Send ──────────────────────────────────────────────────
    async def send_message(
        self,
        sender_id: uuid.UUID,
        recipient_id: uuid.UUID,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        metadata: Optional[dict] = None,
        client_message_id: Optional[str] = None,
    ) -> Message:
        """
        Store a message, creating the conversation on first contact.
        A repeated client_message_id from the same sender returns the
        message stored by the first attempt.
        """
        if sender_id == recipient_id:
            raise ValidationError("Cannot send a message to yourself")

        if client_message_id:
            existing = (await self.db.execute(
                select(Message).where(
                    Message.sender_id == sender_id,
                    Message.client_message_id == client_message_id,
                )
            )).scalar_one_or_none()
            if existing:
                logger.info(f"Duplicate send {client_message_id} from {sender_id}, returning stored message")
                return existing

        recipient = await self.db.get(User, recipient_id)
        if recipient is None or not recipient.is_active:
            raise NotFoundError("Recipient not found")
        sender = await self.db.get(User, sender_id)

        conversation, _ = await self.get_or_create_conversation(sender_id, recipient_id)
        now = utcnow()
        message = Message(
            id=uuid.uuid4(),
            conversation_id=conversation.id,
            sender_id=sender_id,
            recipient_id=recipient_id,
            content=content,
            message_type=MessageType(message_type),
            extra=metadata,
            client_message_id=client_message_id,
            is_read=False,
            created_at=now,
        )
        self.db.add(message)
        conversation.last_message_at = now

        if not self._recipient_is_viewing(recipient_id, conversation.id):
            await self.notifications.send_message_notification(
                recipient_id=recipient_id,
                sender_name=sender.name,
                content=content,
                conversation_id=conversation.id,
                message_id=message.id,
            )

        await self.db.commit()
        await self.db.refresh(message)

        frame = _frame(message)
        await push_safely(self.realtime, recipient_id, "new_message", frame)
        await push_safely(self.realtime, sender_id, "message_sent", frame)
        await self.notifications.publish_pending()
        return message

    def _recipient_is_viewing(self, recipient_id: uuid.UUID, conversation_id: uuid.UUID) -> bool:
        if self.realtime is None:
            return False
        try:
            return self.realtime.is_viewing_conversation(recipient_id, conversation_id)
        except Exception:
            logger.exception("Active-conversation lookup failed")
            return False

    # ── Read side ─────────────────────────────────────────────
    async def get_conversations(self, user_id: uuid.UUID, page: int = 1, limit: int = 20) -> tuple[list[dict], dict]:
        """
        Conversations of user_id, most recent activity first, each with the
        other participant, the last message and the viewer's unread count.
        """
        base = select(Conversation).where(_involves(user_id))
        total = await self.db.scalar(select(func.count()).select_from(base.subquery())) or 0

        activity = func.coalesce(Conversation.last_message_at, Conversation.created_at)
        conversations = (await self.db.execute(
            base.order_by(activity.desc(), Conversation.id.desc())
            .offset(offset_for(page, limit))
            .limit(limit)
        )).scalars().all()
        if not conversations:
            return [], build_pagination(page, limit, total)

        ids = [c.id for c in conversations]
        unread_rows = await self.db.execute(
            select(Message.conversation_id, func.count(Message.id))
            .where(
                Message.conversation_id.in_(ids),
                Message.recipient_id == user_id,
                Message.is_read.is_(False),
            )
            .group_by(Message.conversation_id)
        )
        unread = {conversation_id: count for conversation_id, count in unread_rows.all()}

        other_ids = {c.other_participant(user_id) for c in conversations}
        users = {
            u.id: u for u in (await self.db.execute(select(User).where(User.id.in_(other_ids)))).scalars()
        }

        items = []
        for conversation in conversations:
            last_message = (await self.db.execute(
                select(Message)
                .where(Message.conversation_id == conversation.id)
                .order_by(Message.created_at.desc(), Message.id.desc())
                .limit(1)
            )).scalar_one_or_none()
            items.append({
                "id": conversation.id,
                "other_participant": users[conversation.other_participant(user_id)],
                "last_message": last_message,
                "last_message_at": conversation.last_message_at,
                "unread_count": unread.get(conversation.id, 0),
                "created_at": conversation.created_at,
            })
        return items, build_pagination(page, limit, total)

    async def get_messages(
        self, conversation_id: uuid.UUID, user_id: uuid.UUID, page: int = 1, limit: int = 50
    ) -> tuple[list[Message], dict]:
        """
        Page 1 holds the newest `limit` messages. Each page is returned
        oldest-first so it renders top to bottom.
        """
        await self.get_conversation_for(conversation_id, user_id)
        query = select(Message).where(Message.conversation_id == conversation_id)
        total = await self.db.scalar(select(func.count()).select_from(query.subquery())) or 0
        result = await self.db.execute(
            query.order_by(Message.created_at.desc(), Message.id.desc())
            .offset(offset_for(page, limit))
            .limit(limit)
        )
        messages = list(result.scalars())
        messages.reverse()
        return messages, build_pagination(page, limit, total)

    async def mark_messages_as_read(self, conversation_id: uuid.UUID, user_id: uuid.UUID) -> int:
        """Mark every unread message addressed to user_id as read. Returns rows updated."""
        conversation = await self.get_conversation_for(conversation_id, user_id)
        now = utcnow()
        result = await self.db.execute(
            update(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.recipient_id == user_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True, read_at=now)
        )
        await self.db.commit()
        updated = result.rowcount or 0
        if updated:
            await push_safely(
                self.realtime,
                conversation.other_participant(user_id),
                "messages_read",
                {"conversationId": str(conversation_id), "readBy": str(user_id), "readAt": now.isoformat(), "count": updated},
            )
        return updated

    async def delete_message(self, message_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        message = await self.db.get(Message, message_id)
        if message is None:
            raise NotFoundError("Message not found")
        if message.sender_id != user_id:
            raise AuthorizationError("You can only delete your own messages")

        conversation_id, recipient_id = message.conversation_id, message.recipient_id
        await self.db.execute(delete(Message).where(Message.id == message_id))
        latest = await self.db.scalar(
            select(func.max(Message.created_at)).where(Message.conversation_id == conversation_id)
        )
        await self.db.execute(
            update(Conversation).where(Conversation.id == conversation_id).values(last_message_at=latest)
        )
        await self.db.commit()
        await push_safely(
            self.realtime, recipient_id, "message_deleted",
            {"conversationId": str(conversation_id), "messageId": str(message_id)},
        )
        return True

    async def get_unread_count(self, user_id: uuid.UUID) -> int:
        count = await self.db.scalar(
            select(func.count(Message.id)).where(
                Message.recipient_id == user_id,
                Message.is_read.is_(False),
            )
        )
        return count or 0

    async def search_messages(
        self,
        user_id: uuid.UUID,
        query: str,
        conversation_id: Optional[uuid.UUID] = None,
        limit: int = 50,
    ) -> list[Message]:
        """Case-insensitive substring match over messages visible to user_id."""
        if conversation_id is not None:
            await self.get_conversation_for(conversation_id, user_id)
            scope = Message.conversation_id == conversation_id
        else:
            scope = Message.conversation_id.in_(select(Conversation.id).where(_involves(user_id)))

        result = await self.db.execute(
            select(Message)
            .where(scope, Message.content.icontains(query, autoescape=True))
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
        return list(result.scalars())
