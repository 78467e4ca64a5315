from __future__ import annotations

from typing import Any, Iterable, Protocol

from pydantic import BaseModel


class EventPublisher(Protocol):
    async def publish(self, channel: str, payload: dict[str, Any]) -> None: ...


class FanoutRelay(Protocol):
    """Routes a server event to the live connections of the given users."""

    async def deliver(self, user_ids: Iterable[str], event: BaseModel) -> int:
        """Push to each user that is online. Returns local deliveries."""
        ...

    async def broadcast(self, event: BaseModel, *, exclude: str | None = None) -> int:
        """Push to every online user except ``exclude``."""
        ...
