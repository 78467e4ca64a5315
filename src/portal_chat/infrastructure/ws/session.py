"""Read loop for one ``/ws`` connection.

Each event type is handled by a ``_handle_<type>`` method. Every failure is
answered on this connection and never reaches other connections.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocketDisconnect

from portal_chat.application.ports.auth import TokenVerifier
from portal_chat.application.ports.bus import FanoutRelay
from portal_chat.application.uow import UoWFactory
from portal_chat.domain.value_objects.enums import CourseFanoutScope
from portal_chat.infrastructure.ws.connection import ChatConnection
from portal_chat.infrastructure.ws.protocol import (
    MSG_AUTHENTICATE,
    MSG_MESSAGE,
    MSG_PING,
    AuthenticatedEvent,
    AuthenticateEvent,
    ChatMessageEvent,
    ErrorEvent,
    PongEvent,
    WsInbound,
)
from portal_chat.infrastructure.ws.registry import ConnectionRegistry
from portal_chat.services import dispatch_service

logger = logging.getLogger(__name__)


class ChatSession:
    def __init__(
        self,
        connection: ChatConnection,
        *,
        registry: ConnectionRegistry,
        relay: FanoutRelay,
        uow_factory: UoWFactory,
        verifier: TokenVerifier | None = None,
        persist_timeout: float = 5.0,
        course_fanout_scope: CourseFanoutScope = CourseFanoutScope.MEMBERS,
        heartbeat_seconds: float = 0,
    ) -> None:
        self.connection = connection
        self._registry = registry
        self._relay = relay
        self._uow_factory = uow_factory
        self._verifier = verifier  # set only when tokens are required
        self._persist_timeout = persist_timeout
        self._course_fanout_scope = course_fanout_scope
        self._heartbeat_seconds = heartbeat_seconds
        self._heartbeat_task: asyncio.Task[None] | None = None

    async def run(self) -> None:
        await self.connection.accept()
        logger.debug("WS connection accepted")
        try:
            while True:
                raw = await self._receive()
                if raw is None:
                    return
                await self._handle(raw)
        except WebSocketDisconnect as exc:
            logger.debug("WS closed by client: %s", exc.code)
        except Exception:
            logger.exception("WS error for %s", self.connection.user_id or "<unauthenticated>")
        finally:
            self._close()

    async def _receive(self) -> str | bytes | None:
        """Next frame, or None once the handshake window has expired."""
        if self.connection.is_authenticated:
            return await self._receive_frame()
        try:
            return await asyncio.wait_for(
                self._receive_frame(),
                timeout=self.connection.remaining_auth_window(),
            )
        except TimeoutError:
            logger.info("WS connection timed out without authentication")
            await self.connection.expire()
            return None

    async def _receive_frame(self) -> str | bytes:
        message = await self.connection.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
        text = message.get("text")
        if text is not None:
            return text
        return message.get("bytes") or b""

    def _close(self) -> None:
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
        user_id = self.connection.mark_closed()
        if user_id is not None:
            self._registry.unregister(user_id, self.connection)
            logger.info("WS disconnected: %s", user_id)

    async def _handle(self, raw: str | bytes) -> None:
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            data = json.loads(raw)
            envelope = WsInbound.model_validate(data)
        except ValueError:
            await self._error("Invalid message format", code="invalid_payload")
            return

        if envelope.type == MSG_AUTHENTICATE:
            await self._handle_authenticate(data)
        elif envelope.type == MSG_MESSAGE:
            await self._handle_message(data)
        elif envelope.type == MSG_PING:
            await self.connection.send(PongEvent())
        else:
            await self._error(f"Unknown event type: {envelope.type}", code="unknown_type")

    async def _handle_authenticate(self, data: dict[str, Any]) -> None:
        try:
            event = AuthenticateEvent.model_validate(data)
        except ValueError:
            await self._error("Invalid authentication payload", code="invalid_payload")
            return

        user_id = event.user_id
        if not user_id:
            await self._error("Missing userId in authentication", code="missing_user_id")
            return

        if self.connection.is_authenticated:
            if user_id == self.connection.user_id:
                # the most recent socket to authenticate owns the entry
                self._registry.register(user_id, self.connection)
                await self.connection.send(AuthenticatedEvent(user_id=user_id))
            else:
                await self._error("Already authenticated", code="already_authenticated")
            return

        if self._verifier is not None and not await self._verify_token(event.token, user_id):
            return
        if self.connection.remaining_auth_window() <= 0:
            # the next receive closes the connection with the timeout code
            return

        self.connection.authenticate(user_id)
        self._registry.register(user_id, self.connection)
        self._start_heartbeat()
        logger.info("WS authenticated for user: %s", user_id)
        await self.connection.send(AuthenticatedEvent(user_id=user_id))

    async def _verify_token(self, token: str | None, user_id: str) -> bool:
        assert self._verifier is not None
        if not token:
            await self._error("Missing token in authentication", code="missing_token")
            return False
        try:
            principal = await self._verifier.verify(token)
        except Exception:
            logger.debug("WS token verification failed", exc_info=True)
            await self._error("Invalid authentication token", code="invalid_token")
            return False
        if principal.subject_id != user_id:
            await self._error("Token does not match userId", code="identity_mismatch")
            return False
        return True

    async def _handle_message(self, data: dict[str, Any]) -> None:
        if not self.connection.is_authenticated:
            await self._error("Not authenticated", code="not_authenticated")
            return

        try:
            event = ChatMessageEvent.model_validate(data)
        except ValueError as exc:
            await self._error(f"Invalid message: {_describe(exc)}", code="invalid_data")
            return

        await dispatch_service.dispatch(
            self.connection,
            event,
            uow_factory=self._uow_factory,
            relay=self._relay,
            persist_timeout=self._persist_timeout,
            course_fanout_scope=self._course_fanout_scope,
        )

    def _start_heartbeat(self) -> None:
        if self._heartbeat_seconds > 0 and self._heartbeat_task is None:
            self._heartbeat_task = asyncio.create_task(
                self._heartbeat(), name=f"ws-heartbeat-{self.connection.user_id}",
            )

    async def _heartbeat(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._heartbeat_seconds)
                await self.connection.send(PongEvent())
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.debug("WS heartbeat stopped", exc_info=True)

    async def _error(self, message: str, *, code: str) -> None:
        await self.connection.send(ErrorEvent(message=message, code=code))


def _describe(exc: ValueError) -> str:
    errors = getattr(exc, "errors", None)
    if not callable(errors):
        return str(exc)
    parts = []
    for err in errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)
