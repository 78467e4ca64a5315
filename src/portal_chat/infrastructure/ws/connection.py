"""Per-connection handshake state machine.

UNAUTHENTICATED --authenticate--> AUTHENTICATED --transport close--> CLOSED
UNAUTHENTICATED --window expired (4000)--> CLOSED
UNAUTHENTICATED --transport close--> CLOSED
"""
from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from portal_chat.domain.value_objects.enums import ConnectionState
from portal_chat.infrastructure.ws.protocol import (
    CLOSE_AUTH_TIMEOUT,
    CLOSE_AUTH_TIMEOUT_REASON,
    WsOutbound,
)

logger = logging.getLogger(__name__)


class ChatConnection:
    """A live WebSocket plus the identity bound to it at handshake time."""

    def __init__(self, websocket: WebSocket, *, auth_timeout: float) -> None:
        self.websocket = websocket
        self.state = ConnectionState.UNAUTHENTICATED
        self.user_id: str | None = None
        self._auth_timeout = auth_timeout
        self._auth_deadline: float | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.state == ConnectionState.AUTHENTICATED

    @property
    def is_open(self) -> bool:
        return (
            self.state != ConnectionState.CLOSED
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def accept(self) -> None:
        await self.websocket.accept()
        self._auth_deadline = asyncio.get_running_loop().time() + self._auth_timeout

    def remaining_auth_window(self) -> float:
        """Seconds left before an unauthenticated connection is closed."""
        if self._auth_deadline is None:
            return self._auth_timeout
        return max(0.0, self._auth_deadline - asyncio.get_running_loop().time())

    def authenticate(self, user_id: str) -> None:
        if self.state != ConnectionState.UNAUTHENTICATED:
            raise RuntimeError(f"cannot authenticate a connection in state {self.state}")
        self.user_id = user_id
        self.state = ConnectionState.AUTHENTICATED

    async def expire(self) -> None:
        """Close an unauthenticated connection whose window ran out."""
        if self.state != ConnectionState.UNAUTHENTICATED:
            raise RuntimeError(f"cannot expire a connection in state {self.state}")
        self.state = ConnectionState.CLOSED
        try:
            await self.websocket.close(code=CLOSE_AUTH_TIMEOUT, reason=CLOSE_AUTH_TIMEOUT_REASON)
        except RuntimeError:
            # client already went away
            logger.debug("WS close after auth timeout failed", exc_info=True)

    def mark_closed(self) -> str | None:
        """Enter CLOSED. Returns the bound user id if the handshake had completed."""
        was_authenticated = self.state == ConnectionState.AUTHENTICATED
        self.state = ConnectionState.CLOSED
        return self.user_id if was_authenticated else None

    async def send(self, event: WsOutbound) -> None:
        await self.send_raw(event.encode())

    async def send_raw(self, raw: str) -> None:
        await self.websocket.send_text(raw)
