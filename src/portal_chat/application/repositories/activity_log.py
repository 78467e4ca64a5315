from __future__ import annotations

from typing import Protocol


class ActivityLogWriter(Protocol):
    async def add(
        self,
        user_id: str,
        action: str,
        entity_type: str,
        entity_id: str,
    ) -> None: ...
