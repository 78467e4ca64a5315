from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    sender_id: str
    receiver_id: str | None
    course_id: str | None
    content: str
    type: str
    is_read: bool
    client_msg_id: UUID | None
    created_at: datetime
