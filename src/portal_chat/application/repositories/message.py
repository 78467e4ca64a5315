from __future__ import annotations

from typing import Protocol
from uuid import UUID

from portal_chat.domain.entities.message import Message


class MessageReader(Protocol):
    async def get_by_id(self, message_id: UUID) -> Message | None: ...

    async def list_for_user(
        self,
        user_id: str,
        *,
        cursor: str | None = None,
        limit: int = 50,
    ) -> list[Message]:
        """Messages the user sent or received, oldest first."""
        ...

    async def list_for_course(
        self,
        course_id: str,
        *,
        cursor: str | None = None,
        limit: int = 50,
    ) -> list[Message]: ...

    async def list_conversation(
        self,
        user_id: str,
        other_id: str,
        *,
        cursor: str | None = None,
        limit: int = 50,
    ) -> list[Message]: ...

    async def count_unread(self, user_id: str) -> int: ...


class MessageWriter(Protocol):
    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        """Insert message. Return (message, created). If conflict on client_msg_id → return existing."""
        ...

    async def get_by_client_msg_id(
        self,
        sender_id: str,
        client_msg_id: UUID,
    ) -> Message | None: ...

    async def mark_read(self, message_id: UUID) -> None: ...
