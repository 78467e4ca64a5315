from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from portal_chat.domain.value_objects.enums import MessageType


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    sender_id: str
    content: str
    type: MessageType = MessageType.DIRECT
    receiver_id: str | None = None
    course_id: str | None = None
    client_msg_id: UUID | None = None


@dataclass(frozen=True, slots=True)
class MessageQueryDTO:
    course_id: str | None = None
    receiver_id: str | None = None
    cursor: str | None = None
    limit: int = 50
