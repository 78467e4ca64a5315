"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import json
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator
from uuid import UUID

import pytest
from starlette.websockets import WebSocketState

from portal_chat.application.dto.principal import Principal
from portal_chat.domain.entities.course import Course
from portal_chat.domain.entities.message import Message
from portal_chat.domain.entities.user import User
from portal_chat.domain.value_objects.enums import MessageType, UserRole
from portal_chat.infrastructure.db.repositories._cursor import decode_cursor
from portal_chat.infrastructure.ws.connection import ChatConnection

_EPOCH = datetime(2024, 9, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def student_principal() -> Principal:
    return Principal(role=UserRole.STUDENT, subject_id="student-1")


@pytest.fixture
def admin_principal() -> Principal:
    return Principal(role=UserRole.ADMIN, subject_id="admin-1")


def make_user(user_id: str, role: str = UserRole.STUDENT) -> User:
    return User(
        id=user_id,
        email=f"{user_id}@portal.test",
        first_name=user_id.split("-")[0].capitalize(),
        last_name="Test",
        role=role,
        created_at=_EPOCH,
    )


def make_course(course_id: str = "cs-101", instructor_id: str = "faculty-1") -> Course:
    return Course(
        id=course_id,
        name="Intro to Computer Science",
        code=course_id.upper(),
        instructor_id=instructor_id,
        created_at=_EPOCH,
    )


def make_message(
    *,
    sender_id: str = "student-1",
    receiver_id: str | None = "student-2",
    course_id: str | None = None,
    content: str = "hello",
    msg_type: str = MessageType.DIRECT,
    is_read: bool = False,
    minutes: int = 0,
    client_msg_id: UUID | None = None,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        sender_id=sender_id,
        receiver_id=receiver_id,
        course_id=course_id,
        content=content,
        type=msg_type,
        is_read=is_read,
        client_msg_id=client_msg_id,
        created_at=_EPOCH + timedelta(minutes=minutes),
    )


@dataclass
class FakeUserReader:
    _store: dict[str, User] = field(default_factory=dict)

    def add(self, *users: User) -> None:
        for user in users:
            self._store[user.id] = user

    async def get_by_id(self, user_id: str) -> User | None:
        return self._store.get(user_id)


@dataclass
class FakeCourseReader:
    _store: dict[str, Course] = field(default_factory=dict)
    _enrolled: dict[str, set[str]] = field(default_factory=dict)

    def add(self, course: Course, *student_ids: str) -> None:
        self._store[course.id] = course
        self._enrolled.setdefault(course.id, set()).update(student_ids)

    async def get_by_id(self, course_id: str) -> Course | None:
        return self._store.get(course_id)

    async def is_member(self, course_id: str, user_id: str) -> bool:
        return user_id in await self.list_member_ids(course_id)

    async def list_member_ids(self, course_id: str) -> list[str]:
        course = self._store.get(course_id)
        if course is None:
            return []
        return [course.instructor_id, *sorted(self._enrolled.get(course_id, ()))]


def _page(messages: list[Message], cursor: str | None, limit: int) -> list[Message]:
    ordered = sorted(messages, key=lambda m: (m.created_at, str(m.id)))
    if cursor:
        ts, mid = decode_cursor(cursor)
        ordered = [m for m in ordered if (m.created_at, str(m.id)) > (ts, str(mid))]
    return ordered[:limit]


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)

    async def get_by_id(self, message_id: UUID) -> Message | None:
        return next((m for m in self._messages if m.id == message_id), None)

    async def list_for_user(self, user_id: str, *, cursor: str | None = None, limit: int = 50) -> list[Message]:
        rows = [m for m in self._messages if user_id in (m.sender_id, m.receiver_id)]
        return _page(rows, cursor, limit)

    async def list_for_course(self, course_id: str, *, cursor: str | None = None, limit: int = 50) -> list[Message]:
        rows = [m for m in self._messages if m.course_id == course_id and m.type == MessageType.COURSE]
        return _page(rows, cursor, limit)

    async def list_conversation(
        self, user_id: str, other_id: str, *, cursor: str | None = None, limit: int = 50,
    ) -> list[Message]:
        pair = {(user_id, other_id), (other_id, user_id)}
        rows = [m for m in self._messages if (m.sender_id, m.receiver_id) in pair]
        return _page(rows, cursor, limit)

    async def count_unread(self, user_id: str) -> int:
        return sum(1 for m in self._messages if m.receiver_id == user_id and not m.is_read)


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader
    fail_with: Exception | None = None
    delay: float = 0.0

    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        if message.client_msg_id is not None:
            existing = await self.get_by_client_msg_id(message.sender_id, message.client_msg_id)
            if existing is not None:
                return existing, False
        self._reader._messages.append(message)
        return message, True

    async def get_by_client_msg_id(self, sender_id: str, client_msg_id: UUID) -> Message | None:
        for m in self._reader._messages:
            if m.sender_id == sender_id and m.client_msg_id == client_msg_id:
                return m
        return None

    async def mark_read(self, message_id: UUID) -> None:
        rows = self._reader._messages
        for i, m in enumerate(rows):
            if m.id == message_id:
                rows[i] = replace(m, is_read=True)


@dataclass
class FakeActivityLog:
    _rows: list[tuple[str, str, str, str]] = field(default_factory=list)

    async def add(self, user_id: str, action: str, entity_type: str, entity_id: str) -> None:
        self._rows.append((user_id, action, entity_type, entity_id))


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    users: FakeUserReader = field(default_factory=FakeUserReader)
    courses: FakeCourseReader = field(default_factory=FakeCourseReader)
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    activity: FakeActivityLog = field(default_factory=FakeActivityLog)
    _committed: bool = False
    _commits: int = 0

    def __post_init__(self) -> None:
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True
        self._commits += 1

    async def rollback(self) -> None:
        pass


def fake_uow_factory(uow: FakeUoW):
    """Every unit of work opened by the factory shares the same in-memory store."""

    @asynccontextmanager
    async def _scope() -> AsyncIterator[FakeUoW]:
        yield uow

    return _scope


def seeded_uow() -> FakeUoW:
    """faculty-1 teaches cs-101 with student-1 and student-2 enrolled; student-3 is not."""
    uow = FakeUoW()
    uow.users.add(
        make_user("faculty-1", UserRole.FACULTY),
        make_user("student-1"),
        make_user("student-2"),
        make_user("student-3"),
        make_user("admin-1", UserRole.ADMIN),
    )
    uow.courses.add(make_course(), "student-1", "student-2")
    return uow


@pytest.fixture
def uow() -> FakeUoW:
    return seeded_uow()


class FakeWebSocket:
    """Just enough of starlette's WebSocket for ChatConnection and ChatSession."""

    def __init__(self) -> None:
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.accepted = False
        self.sent: list[dict[str, Any]] = []
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self.fail_sends = False
        self._inbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, data: str) -> None:
        if self.fail_sends:
            raise RuntimeError("socket is broken")
        self.sent.append(json.loads(data))

    async def receive(self) -> dict[str, Any]:
        message = await self._inbox.get()
        if message["type"] == "websocket.disconnect":
            self.client_state = WebSocketState.DISCONNECTED
        return message

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.close_code = code
        self.close_reason = reason
        self.application_state = WebSocketState.DISCONNECTED

    def feed(self, payload: dict[str, Any] | str) -> None:
        text = payload if isinstance(payload, str) else json.dumps(payload)
        self._inbox.put_nowait({"type": "websocket.receive", "text": text})

    def feed_bytes(self, data: bytes) -> None:
        self._inbox.put_nowait({"type": "websocket.receive", "bytes": data})

    def hang_up(self) -> None:
        self._inbox.put_nowait({"type": "websocket.disconnect", "code": 1000})

    def sent_types(self) -> list[str]:
        return [frame["type"] for frame in self.sent]


async def open_connection(user_id: str | None = None, *, auth_timeout: float = 10.0) -> ChatConnection:
    """An accepted connection, already bound to ``user_id`` when one is given."""
    connection = ChatConnection(FakeWebSocket(), auth_timeout=auth_timeout)  # type: ignore[arg-type]
    await connection.accept()
    if user_id is not None:
        connection.authenticate(user_id)
    return connection
