from __future__ import annotations

import asyncio

import jwt
import pytest

from portal_chat.application.dto.principal import Principal
from portal_chat.domain.value_objects.enums import ConnectionState, UserRole
from portal_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from portal_chat.infrastructure.ws.connection import ChatConnection
from portal_chat.infrastructure.ws.registry import ConnectionRegistry
from portal_chat.infrastructure.ws.relay import LocalRelay
from portal_chat.infrastructure.ws.session import ChatSession
from tests.conftest import FakeWebSocket, fake_uow_factory, seeded_uow

SECRET = "handshake-test-secret-with-32-bytes!"


def _session(
    *,
    auth_timeout: float = 10.0,
    registry: ConnectionRegistry | None = None,
    verifier=None,
) -> tuple[ChatSession, FakeWebSocket, ConnectionRegistry]:
    ws = FakeWebSocket()
    registry = registry if registry is not None else ConnectionRegistry()
    session = ChatSession(
        ChatConnection(ws, auth_timeout=auth_timeout),  # type: ignore[arg-type]
        registry=registry,
        relay=LocalRelay(registry),
        uow_factory=fake_uow_factory(seeded_uow()),
        verifier=verifier,
    )
    return session, ws, registry


@pytest.mark.asyncio
async def test_silent_connection_is_closed_with_4000():
    session, ws, registry = _session(auth_timeout=0.05)

    await asyncio.wait_for(session.run(), timeout=2)

    assert ws.close_code == 4000
    assert ws.close_reason == "Authentication timeout"
    assert session.connection.state == ConnectionState.CLOSED
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_protocol_errors_do_not_extend_the_window():
    session, ws, registry = _session(auth_timeout=0.3)
    task = asyncio.create_task(session.run())

    for _ in range(4):
        ws.feed({"type": "authenticate"})
        await asyncio.sleep(0.04)
    ws.feed({"type": "message", "content": "too early", "receiverId": "student-2"})

    await asyncio.wait_for(task, timeout=2)

    assert ws.close_code == 4000
    assert ws.sent_types().count("error") == 5
    assert ws.sent[0]["message"] == "Missing userId in authentication"
    assert ws.sent[-1]["message"] == "Not authenticated"
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_authenticate_registers_and_acks():
    session, ws, registry = _session()
    task = asyncio.create_task(session.run())

    ws.feed({"type": "authenticate", "userId": "student-1"})
    await asyncio.sleep(0.05)

    assert ws.sent == [{"type": "authenticated", "userId": "student-1"}]
    assert registry.get("student-1") is session.connection
    assert session.connection.state == ConnectionState.AUTHENTICATED

    ws.hang_up()
    await asyncio.wait_for(task, timeout=2)
    assert "student-1" not in registry
    assert session.connection.state == ConnectionState.CLOSED
    assert ws.close_code is None


@pytest.mark.asyncio
async def test_authenticated_connection_outlives_the_window():
    session, ws, registry = _session(auth_timeout=0.05)
    task = asyncio.create_task(session.run())

    ws.feed({"type": "authenticate", "userId": "student-1"})
    await asyncio.sleep(0.15)
    ws.feed({"type": "ping"})
    await asyncio.sleep(0.02)

    assert ws.close_code is None
    assert ws.sent_types() == ["authenticated", "pong"]

    ws.hang_up()
    await asyncio.wait_for(task, timeout=2)


@pytest.mark.asyncio
async def test_replaced_connection_closing_keeps_new_registration():
    registry = ConnectionRegistry()
    old, old_ws, _ = _session(registry=registry)
    new, new_ws, _ = _session(registry=registry)
    old_task = asyncio.create_task(old.run())
    new_task = asyncio.create_task(new.run())

    old_ws.feed({"type": "authenticate", "userId": "student-1"})
    await asyncio.sleep(0.02)
    new_ws.feed({"type": "authenticate", "userId": "student-1"})
    await asyncio.sleep(0.02)

    old_ws.hang_up()
    await asyncio.wait_for(old_task, timeout=2)
    assert registry.get("student-1") is new.connection

    new_ws.hang_up()
    await asyncio.wait_for(new_task, timeout=2)
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_reauthenticate_with_another_user_is_rejected():
    session, ws, registry = _session()
    task = asyncio.create_task(session.run())

    ws.feed({"type": "authenticate", "userId": "student-1"})
    ws.feed({"type": "authenticate", "userId": "student-2"})
    ws.feed({"type": "authenticate", "userId": "student-1"})
    await asyncio.sleep(0.05)

    assert ws.sent_types() == ["authenticated", "error", "authenticated"]
    assert ws.sent[1]["code"] == "already_authenticated"
    assert registry.online_user_ids() == ["student-1"]

    ws.hang_up()
    await asyncio.wait_for(task, timeout=2)


@pytest.mark.asyncio
async def test_malformed_frames_and_unknown_types():
    session, ws, _ = _session()
    task = asyncio.create_task(session.run())

    ws.feed("{not json")
    ws.feed({"no": "type"})
    ws.feed({"type": "typing"})
    await asyncio.sleep(0.05)

    assert [f["code"] for f in ws.sent] == ["invalid_payload", "invalid_payload", "unknown_type"]
    assert ws.sent[0]["message"] == "Invalid message format"

    ws.hang_up()
    await asyncio.wait_for(task, timeout=2)


@pytest.mark.asyncio
async def test_jwt_mode_requires_matching_token():
    session, ws, registry = _session(verifier=HS256Verifier(SECRET))
    task = asyncio.create_task(session.run())

    other = jwt.encode({"sub": "student-2"}, SECRET, algorithm="HS256")
    mine = jwt.encode({"sub": "student-1"}, SECRET, algorithm="HS256")
    ws.feed({"type": "authenticate", "userId": "student-1"})
    ws.feed({"type": "authenticate", "userId": "student-1", "token": "garbage"})
    ws.feed({"type": "authenticate", "userId": "student-1", "token": other})
    ws.feed({"type": "authenticate", "userId": "student-1", "token": mine})
    await asyncio.sleep(0.05)

    assert [f.get("code") for f in ws.sent[:3]] == ["missing_token", "invalid_token", "identity_mismatch"]
    assert ws.sent[3] == {"type": "authenticated", "userId": "student-1"}
    assert "student-1" in registry

    ws.hang_up()
    await asyncio.wait_for(task, timeout=2)


@pytest.mark.asyncio
async def test_binary_frames_are_decoded_and_keep_the_connection():
    session, ws, registry = _session()
    task = asyncio.create_task(session.run())

    ws.feed({"type": "authenticate", "userId": "student-1"})
    ws.feed_bytes(b'{"type": "ping"}')
    ws.feed_bytes(b"\xff\xfe not utf-8")
    ws.feed({"type": "ping"})
    await asyncio.sleep(0.05)

    assert ws.sent_types() == ["authenticated", "pong", "error", "pong"]
    assert ws.sent[2]["code"] == "invalid_payload"
    assert registry.get("student-1") is session.connection
    assert ws.close_code is None

    ws.hang_up()
    await asyncio.wait_for(task, timeout=2)


@pytest.mark.asyncio
async def test_replaced_connection_reclaims_entry_on_reauthenticate():
    registry = ConnectionRegistry()
    old, old_ws, _ = _session(registry=registry)
    new, new_ws, _ = _session(registry=registry)
    old_task = asyncio.create_task(old.run())
    new_task = asyncio.create_task(new.run())

    old_ws.feed({"type": "authenticate", "userId": "student-1"})
    await asyncio.sleep(0.02)
    new_ws.feed({"type": "authenticate", "userId": "student-1"})
    await asyncio.sleep(0.02)
    assert registry.get("student-1") is new.connection

    old_ws.feed({"type": "authenticate", "userId": "student-1"})
    await asyncio.sleep(0.02)

    assert old_ws.sent_types() == ["authenticated", "authenticated"]
    assert registry.get("student-1") is old.connection

    # the newer socket closing no longer evicts the reclaimed entry
    new_ws.hang_up()
    await asyncio.wait_for(new_task, timeout=2)
    assert registry.get("student-1") is old.connection

    old_ws.hang_up()
    await asyncio.wait_for(old_task, timeout=2)
    assert len(registry) == 0


class _SlowVerifier:
    """Accepts any token, but only after ``delay`` seconds."""

    def __init__(self, delay: float) -> None:
        self._delay = delay

    async def verify(self, token: str) -> Principal:
        await asyncio.sleep(self._delay)
        return Principal(role=UserRole.STUDENT, subject_id="student-1")


@pytest.mark.asyncio
async def test_authenticate_completing_after_deadline_is_not_honoured():
    session, ws, registry = _session(auth_timeout=0.05, verifier=_SlowVerifier(0.1))
    task = asyncio.create_task(session.run())

    ws.feed({"type": "authenticate", "userId": "student-1", "token": "t"})
    await asyncio.wait_for(task, timeout=2)

    assert ws.close_code == 4000
    assert ws.close_reason == "Authentication timeout"
    assert "authenticated" not in ws.sent_types()
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_numeric_user_id_is_accepted_as_string():
    session, ws, registry = _session()
    task = asyncio.create_task(session.run())

    ws.feed({"type": "authenticate", "userId": 0})
    ws.feed({"type": "authenticate", "userId": 42})
    await asyncio.sleep(0.05)

    assert ws.sent[0]["code"] == "missing_user_id"
    assert ws.sent[1] == {"type": "authenticated", "userId": "42"}
    assert "42" in registry

    ws.hang_up()
    await asyncio.wait_for(task, timeout=2)
