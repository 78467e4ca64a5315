from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from portal_chat.api.deps import CurrentPrincipal, RelayDep, UoWDep
from portal_chat.api.v1.schemas.message import (
    MessageResponse,
    SendMessageRequest,
    UnreadCountResponse,
)
from portal_chat.application.dto.message import MessageQueryDTO, SendMessageDTO
from portal_chat.application.policies.permissions import assert_sender_matches
from portal_chat.config import settings
from portal_chat.infrastructure.db.repositories._cursor import encode_cursor
from portal_chat.services import dispatch_service, message_service

router = APIRouter(prefix="/api/messages", tags=["messages"])

NEXT_CURSOR_HEADER = "X-Next-Cursor"


@router.get("", response_model=list[MessageResponse])
async def list_messages(
    principal: CurrentPrincipal,
    uow: UoWDep,
    response: Response,
    course_id: str | None = Query(None, alias="courseId"),
    receiver_id: str | None = Query(None, alias="receiverId"),
    cursor: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> list[MessageResponse]:
    query = MessageQueryDTO(
        course_id=course_id,
        receiver_id=receiver_id,
        cursor=cursor,
        limit=limit,
    )
    messages = await message_service.list_messages(principal, query, uow)
    if len(messages) == limit:
        last = messages[-1]
        response.headers[NEXT_CURSOR_HEADER] = encode_cursor(last.created_at, last.id)
    return [MessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.post("", response_model=MessageResponse, status_code=201)
async def send_message(
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    relay: RelayDep,
) -> MessageResponse:
    assert_sender_matches(principal, body.sender_id)
    dto = SendMessageDTO(
        sender_id=principal.subject_id,
        content=body.content,
        type=body.type,
        receiver_id=body.receiver_id,
        course_id=body.course_id,
        client_msg_id=body.client_msg_id,
    )
    msg, created = await dispatch_service.persist_message(
        dto, uow, timeout=settings.PERSIST_TIMEOUT_SECONDS,
    )
    if created:
        await dispatch_service.deliver_new_message(
            msg, uow, relay, settings.COURSE_FANOUT_SCOPE,
        )
    return MessageResponse.model_validate(msg, from_attributes=True)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> UnreadCountResponse:
    count = await message_service.unread_count(principal, uow)
    return UnreadCountResponse(count=count)


@router.patch("/{message_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_read(
    message_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> Response:
    await message_service.mark_read(message_id, principal, uow)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
