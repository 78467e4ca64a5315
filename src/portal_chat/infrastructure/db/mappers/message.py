from __future__ import annotations

from portal_chat.domain.entities.message import Message
from portal_chat.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        sender_id=model.sender_id,
        receiver_id=model.receiver_id,
        course_id=model.course_id,
        content=model.content,
        type=model.type,
        is_read=model.is_read,
        client_msg_id=model.client_msg_id,
        created_at=model.created_at,
    )


def entity_to_model(entity: Message) -> MessageModel:
    return MessageModel(
        id=entity.id,
        sender_id=entity.sender_id,
        receiver_id=entity.receiver_id,
        course_id=entity.course_id,
        content=entity.content,
        type=entity.type,
        is_read=entity.is_read,
        client_msg_id=entity.client_msg_id,
        created_at=entity.created_at,
    )
