from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Callable, Protocol

from portal_chat.application.repositories.activity_log import ActivityLogWriter
from portal_chat.application.repositories.course import CourseReader
from portal_chat.application.repositories.message import MessageReader, MessageWriter
from portal_chat.application.repositories.user import UserReader


class UnitOfWork(Protocol):
    users: UserReader
    courses: CourseReader
    messages: MessageReader
    messages_w: MessageWriter
    activity: ActivityLogWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...


# Opens a fresh unit of work per operation (one DB session each).
UoWFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]
