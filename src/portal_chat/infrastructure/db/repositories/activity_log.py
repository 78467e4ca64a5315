from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from portal_chat.infrastructure.db.models.activity_log import ActivityLogModel


class ActivityLogWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        user_id: str,
        action: str,
        entity_type: str,
        entity_id: str,
    ) -> None:
        model = ActivityLogModel(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        self._session.add(model)
        await self._session.flush()
