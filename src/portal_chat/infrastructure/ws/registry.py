"""In-process registry of authenticated WebSocket connections."""
from __future__ import annotations

import logging
from typing import Callable

from portal_chat.infrastructure.ws.connection import ChatConnection
from portal_chat.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Maps a user id to its single live connection.

    All mutations are synchronous, so they never interleave with another
    coroutine on the event loop. Sends iterate over a snapshot.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ChatConnection] = {}

    def register(self, user_id: str, connection: ChatConnection) -> ChatConnection | None:
        """Insert or overwrite. Returns the replaced connection, which is left open."""
        previous = self._connections.get(user_id)
        self._connections[user_id] = connection
        if previous is not None and previous is not connection:
            logger.info("WS registration for %s replaced an existing connection", user_id)
        logger.debug("WS registered: %s (total=%d)", user_id, len(self._connections))
        return previous

    def unregister(self, user_id: str, connection: ChatConnection | None = None) -> bool:
        """Remove the entry for ``user_id``.

        With ``connection`` given, the entry is only removed while it still
        points at that connection.
        """
        current = self._connections.get(user_id)
        if current is None:
            return False
        if connection is not None and current is not connection:
            return False
        del self._connections[user_id]
        logger.debug("WS unregistered: %s", user_id)
        return True

    def get(self, user_id: str) -> ChatConnection | None:
        return self._connections.get(user_id)

    def online_user_ids(self) -> list[str]:
        return list(self._connections)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    async def send(self, user_id: str, event: WsOutbound) -> bool:
        """Push one event to ``user_id``. False when offline; never raises."""
        return await self.send_raw(user_id, event.encode())

    async def send_raw(self, user_id: str, raw: str) -> bool:
        connection = self._connections.get(user_id)
        if connection is None or not connection.is_open:
            return False
        try:
            await connection.send_raw(raw)
        except Exception:
            logger.debug("WS send to %s failed", user_id, exc_info=True)
            return False
        return True

    async def broadcast_except(
        self,
        event: WsOutbound,
        predicate: Callable[[str], bool],
    ) -> int:
        return await self.broadcast_raw(event.encode(), predicate)

    async def broadcast_raw(self, raw: str, predicate: Callable[[str], bool]) -> int:
        delivered = 0
        for user_id in self.online_user_ids():
            if predicate(user_id) and await self.send_raw(user_id, raw):
                delivered += 1
        return delivered
