from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from portal_chat.domain.value_objects.enums import MessageType


class SendMessageRequest(BaseModel):
    content: str = Field(min_length=1)
    type: MessageType = MessageType.DIRECT
    receiver_id: str | None = None
    course_id: str | None = None
    sender_id: str | None = None
    client_msg_id: UUID | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageResponse(BaseModel):
    """Wire shape shared by the HTTP API and the ``new_message`` push."""

    id: UUID
    sender_id: str
    receiver_id: str | None
    course_id: str | None
    content: str
    type: str
    is_read: bool
    client_msg_id: UUID | None
    created_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class UnreadCountResponse(BaseModel):
    count: int
