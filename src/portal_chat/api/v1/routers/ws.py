from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket

from portal_chat.api.deps import RegistryDep, RelayDep, UoWFactoryDep, get_verifier
from portal_chat.config import settings
from portal_chat.infrastructure.ws.connection import ChatConnection
from portal_chat.infrastructure.ws.session import ChatSession

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


@router.websocket("/ws")
async def ws_chat(
    websocket: WebSocket,
    registry: RegistryDep,
    relay: RelayDep,
    uow_factory: UoWFactoryDep,
) -> None:
    connection = ChatConnection(websocket, auth_timeout=settings.WS_AUTH_TIMEOUT_SECONDS)
    session = ChatSession(
        connection,
        registry=registry,
        relay=relay,
        uow_factory=uow_factory,
        verifier=get_verifier() if settings.WS_AUTH_MODE == "jwt" else None,
        persist_timeout=settings.PERSIST_TIMEOUT_SECONDS,
        course_fanout_scope=settings.COURSE_FANOUT_SCOPE,
        heartbeat_seconds=settings.WS_HEARTBEAT_SECONDS,
    )
    logger.debug("WS connection opened from %s", websocket.client)
    await session.run()
