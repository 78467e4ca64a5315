from __future__ import annotations

from typing import Iterable

from portal_chat.infrastructure.ws.protocol import WsOutbound
from portal_chat.infrastructure.ws.registry import ConnectionRegistry


class LocalRelay:
    """Implements application.ports.bus.FanoutRelay on this process's registry."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    async def deliver(self, user_ids: Iterable[str], event: WsOutbound) -> int:
        return await self.deliver_raw(user_ids, event.encode())

    async def deliver_raw(self, user_ids: Iterable[str], raw: str) -> int:
        delivered = 0
        for user_id in user_ids:
            if await self._registry.send_raw(user_id, raw):
                delivered += 1
        return delivered

    async def broadcast(self, event: WsOutbound, *, exclude: str | None = None) -> int:
        return await self.broadcast_raw(event.encode(), exclude=exclude)

    async def broadcast_raw(self, raw: str, *, exclude: str | None = None) -> int:
        return await self._registry.broadcast_raw(raw, lambda user_id: user_id != exclude)
