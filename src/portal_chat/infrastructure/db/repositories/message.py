from __future__ import annotations

from uuid import UUID

from sqlalchemy import ColumnElement, Select, and_, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from portal_chat.domain.entities.message import Message
from portal_chat.domain.value_objects.enums import MessageType
from portal_chat.infrastructure.db.mappers import message as mapper
from portal_chat.infrastructure.db.models.message import MessageModel
from portal_chat.infrastructure.db.repositories._cursor import decode_cursor


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, message_id: UUID) -> Message | None:
        model = await self._session.get(MessageModel, message_id)
        return mapper.model_to_entity(model) if model else None

    async def list_for_user(
        self,
        user_id: str,
        *,
        cursor: str | None = None,
        limit: int = 50,
    ) -> list[Message]:
        where = or_(MessageModel.sender_id == user_id, MessageModel.receiver_id == user_id)
        return await self._timeline(where, cursor, limit)

    async def list_for_course(
        self,
        course_id: str,
        *,
        cursor: str | None = None,
        limit: int = 50,
    ) -> list[Message]:
        where = and_(
            MessageModel.course_id == course_id,
            MessageModel.type == MessageType.COURSE.value,
        )
        return await self._timeline(where, cursor, limit)

    async def list_conversation(
        self,
        user_id: str,
        other_id: str,
        *,
        cursor: str | None = None,
        limit: int = 50,
    ) -> list[Message]:
        where = or_(
            and_(MessageModel.sender_id == user_id, MessageModel.receiver_id == other_id),
            and_(MessageModel.sender_id == other_id, MessageModel.receiver_id == user_id),
        )
        return await self._timeline(where, cursor, limit)

    async def count_unread(self, user_id: str) -> int:
        stmt = select(func.count(MessageModel.id)).where(
            MessageModel.receiver_id == user_id,
            MessageModel.is_read.is_(False),
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def _timeline(
        self,
        where: ColumnElement[bool],
        cursor: str | None,
        limit: int,
    ) -> list[Message]:
        stmt: Select[tuple[MessageModel]] = (
            select(MessageModel)
            .where(where)
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
            .limit(limit)
        )
        if cursor:
            ts, mid = decode_cursor(cursor)
            stmt = stmt.where(
                (MessageModel.created_at > ts)
                | ((MessageModel.created_at == ts) & (MessageModel.id > mid))
            )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        """Insert message idempotently. Returns (message, created_flag)."""
        model = mapper.entity_to_model(message)
        values = {
            "id": model.id,
            "sender_id": model.sender_id,
            "receiver_id": model.receiver_id,
            "course_id": model.course_id,
            "content": model.content,
            "type": model.type,
            "is_read": model.is_read,
            "client_msg_id": model.client_msg_id,
            "created_at": model.created_at,
        }
        stmt = (
            pg_insert(MessageModel)
            .values(**values)
            .on_conflict_do_nothing(constraint="uq_message_idempotency")
            .returning(MessageModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()

        if row is not None:
            return mapper.model_to_entity(row), True

        # Conflict: only possible when client_msg_id is set
        assert message.client_msg_id is not None
        existing = await self.get_by_client_msg_id(message.sender_id, message.client_msg_id)
        assert existing is not None
        return existing, False

    async def get_by_client_msg_id(
        self,
        sender_id: str,
        client_msg_id: UUID,
    ) -> Message | None:
        stmt = select(MessageModel).where(
            MessageModel.sender_id == sender_id,
            MessageModel.client_msg_id == client_msg_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def mark_read(self, message_id: UUID) -> None:
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .values(is_read=True)
        )
        await self._session.execute(stmt)
