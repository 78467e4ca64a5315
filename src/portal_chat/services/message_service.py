from __future__ import annotations

import uuid
from datetime import datetime, timezone

from portal_chat.application.dto.message import MessageQueryDTO, SendMessageDTO
from portal_chat.application.dto.principal import Principal
from portal_chat.application.exceptions import ConflictError, NotFoundError
from portal_chat.application.policies.addressing import normalize_content, validate_addressing
from portal_chat.application.policies.permissions import (
    assert_can_mark_read,
    assert_course_access,
)
from portal_chat.application.uow import UnitOfWork
from portal_chat.domain.entities.message import Message
from portal_chat.domain.value_objects.enums import UserRole


async def load_sender(sender_id: str, uow: UnitOfWork) -> Principal:
    user = await uow.users.get_by_id(sender_id)
    if user is None:
        raise NotFoundError("Sender not found")
    return Principal(role=UserRole(user.role), subject_id=user.id)


async def send_message(
    dto: SendMessageDTO,
    sender: Principal,
    uow: UnitOfWork,
) -> tuple[Message, bool]:
    """Create a message idempotently.

    Both the WebSocket ``message`` event and ``POST /api/messages`` land here.
    Returns (message, created). When ``client_msg_id`` is set and a message
    with the same key from the same sender already exists, the existing one is
    returned with created=False. Without a key every call inserts a new row.
    """
    content = normalize_content(dto.content)
    validate_addressing(dto.type, dto.receiver_id, dto.course_id)

    if dto.receiver_id is not None:
        receiver = await uow.users.get_by_id(dto.receiver_id)
        if receiver is None:
            raise NotFoundError("Receiver not found")
    if dto.course_id is not None:
        await assert_course_access(sender, dto.course_id, uow.courses)

    msg = Message(
        id=uuid.uuid4(),
        sender_id=sender.subject_id,
        receiver_id=dto.receiver_id,
        course_id=dto.course_id,
        content=content,
        type=dto.type.value,
        is_read=False,
        client_msg_id=dto.client_msg_id,
        created_at=datetime.now(timezone.utc),
    )

    msg, created = await uow.messages_w.create_if_not_exists(msg)

    if created:
        await uow.activity.add(sender.subject_id, "send", "message", str(msg.id))
        await uow.commit()
    elif not _same_logical_message(msg, content, dto):
        raise ConflictError("clientMsgId was already used for a different message")

    return msg, created


def _same_logical_message(existing: Message, content: str, dto: SendMessageDTO) -> bool:
    return (
        existing.content == content
        and existing.type == dto.type.value
        and existing.receiver_id == dto.receiver_id
        and existing.course_id == dto.course_id
    )


async def list_messages(
    principal: Principal,
    query: MessageQueryDTO,
    uow: UnitOfWork,
) -> list[Message]:
    if query.course_id:
        await assert_course_access(principal, query.course_id, uow.courses)
        return await uow.messages.list_for_course(
            query.course_id, cursor=query.cursor, limit=query.limit,
        )
    if query.receiver_id:
        return await uow.messages.list_conversation(
            principal.subject_id, query.receiver_id, cursor=query.cursor, limit=query.limit,
        )
    return await uow.messages.list_for_user(
        principal.subject_id, cursor=query.cursor, limit=query.limit,
    )


async def mark_read(
    message_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> None:
    message = assert_can_mark_read(principal, await uow.messages.get_by_id(message_id))
    if message.is_read:
        return
    await uow.messages_w.mark_read(message_id)
    await uow.commit()


async def unread_count(principal: Principal, uow: UnitOfWork) -> int:
    return await uow.messages.count_unread(principal.subject_id)
