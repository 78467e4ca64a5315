"""Persist-then-fan-out for chat messages.

A message is pushed over the real-time channel only after its row is
committed, exactly once, and only by the entry point that created the row.
Offline recipients are skipped; they see the message on their next fetch.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from portal_chat.api.v1.schemas.message import MessageResponse
from portal_chat.application.dto.message import SendMessageDTO
from portal_chat.application.exceptions import (
    AppError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PersistenceTimeoutError,
    ValidationError,
)
from portal_chat.application.ports.bus import FanoutRelay
from portal_chat.application.uow import UnitOfWork, UoWFactory
from portal_chat.domain.entities.message import Message
from portal_chat.domain.value_objects.enums import CourseFanoutScope, MessageType
from portal_chat.infrastructure.ws.connection import ChatConnection
from portal_chat.infrastructure.ws.protocol import ChatMessageEvent, ErrorEvent, NewMessageEvent
from portal_chat.services import message_service

logger = logging.getLogger(__name__)

_ERROR_CODES: tuple[tuple[type[AppError], str], ...] = (
    (NotFoundError, "not_found"),
    (ForbiddenError, "forbidden"),
    (ConflictError, "conflict"),
    (ValidationError, "invalid_data"),
    (PersistenceTimeoutError, "persist_timeout"),
)


@dataclass(frozen=True, slots=True)
class FanoutPlan:
    user_ids: tuple[str, ...] = ()
    everyone: bool = False


async def dispatch(
    connection: ChatConnection,
    event: ChatMessageEvent,
    *,
    uow_factory: UoWFactory,
    relay: FanoutRelay,
    persist_timeout: float,
    course_fanout_scope: CourseFanoutScope,
) -> Message | None:
    """Handle a ``message`` event from an authenticated connection.

    Errors are reported to the sender as ``error`` events and stop the
    dispatch before any fan-out. Returns the stored message on success.
    """
    sender_id = connection.user_id
    if sender_id is None:
        raise RuntimeError("dispatch requires an authenticated connection")

    if event.sender_id is not None and event.sender_id != sender_id:
        await connection.send(
            ErrorEvent(
                message="senderId does not match the authenticated user",
                code="sender_mismatch",
            )
        )
        return None

    dto = SendMessageDTO(
        sender_id=sender_id,
        content=event.content,
        type=event.message_type,
        receiver_id=event.receiver_id,
        course_id=event.course_id,
        client_msg_id=event.client_msg_id,
    )

    try:
        async with uow_factory() as uow:
            msg, created = await persist_message(dto, uow, timeout=persist_timeout)
            if created:
                await deliver_new_message(msg, uow, relay, course_fanout_scope)
            else:
                logger.debug("Message %s already stored, not pushed again", msg.id)
    except AppError as exc:
        await connection.send(
            ErrorEvent(message=exc.detail, code=error_code(exc), retryable=exc.retryable)
        )
        return None
    except Exception:
        logger.exception("Failed to persist message from %s", sender_id)
        await connection.send(
            ErrorEvent(message="Failed to save message", code="persist_failed", retryable=True)
        )
        return None

    return msg


async def persist_message(
    dto: SendMessageDTO,
    uow: UnitOfWork,
    *,
    timeout: float,
) -> tuple[Message, bool]:
    try:
        async with asyncio.timeout(timeout):
            sender = await message_service.load_sender(dto.sender_id, uow)
            return await message_service.send_message(dto, sender, uow)
    except TimeoutError as exc:
        raise PersistenceTimeoutError(
            "Message could not be saved in time, please retry"
        ) from exc


async def plan_fanout(
    message: Message,
    uow: UnitOfWork,
    scope: CourseFanoutScope,
) -> FanoutPlan:
    recipients: list[str] = []
    if message.receiver_id:
        recipients.append(message.receiver_id)

    if message.course_id and message.type == MessageType.COURSE:
        if scope == CourseFanoutScope.ALL:
            return FanoutPlan(everyone=True)
        recipients.extend(await uow.courses.list_member_ids(message.course_id))

    # the sender renders its own message; never echo it back
    unique = dict.fromkeys(r for r in recipients if r != message.sender_id)
    return FanoutPlan(user_ids=tuple(unique))


async def fan_out(message: Message, plan: FanoutPlan, relay: FanoutRelay) -> int:
    event = NewMessageEvent(message=MessageResponse.model_validate(message, from_attributes=True))
    if plan.everyone:
        return await relay.broadcast(event, exclude=message.sender_id)
    if plan.user_ids:
        return await relay.deliver(plan.user_ids, event)
    return 0


async def deliver_new_message(
    message: Message,
    uow: UnitOfWork,
    relay: FanoutRelay,
    scope: CourseFanoutScope,
) -> int:
    """Push a freshly stored message. Failures are logged, never raised."""
    try:
        plan = await plan_fanout(message, uow, scope)
        delivered = await fan_out(message, plan, relay)
    except Exception:
        logger.exception("Fan-out failed for stored message %s", message.id)
        return 0
    logger.debug(
        "Message %s (%s) delivered to %d connection(s)",
        message.id, message.type, delivered,
    )
    return delivered


def error_code(exc: AppError) -> str:
    for exc_type, code in _ERROR_CODES:
        if isinstance(exc, exc_type):
            return code
    return "error"
