"""WebSocket event models for the ``/ws`` chat channel.

Every frame is a flat JSON object with a ``type`` discriminator and
camelCase fields.
"""
from __future__ import annotations

from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from portal_chat.api.v1.schemas.message import MessageResponse
from portal_chat.domain.value_objects.enums import MessageType

# Client → Server
MSG_AUTHENTICATE = "authenticate"
MSG_MESSAGE = "message"
MSG_PING = "ping"

# Server → Client
MSG_AUTHENTICATED = "authenticated"
MSG_ERROR = "error"
MSG_NEW_MESSAGE = "new_message"
MSG_PONG = "pong"

CLOSE_AUTH_TIMEOUT = 4000
CLOSE_AUTH_TIMEOUT_REASON = "Authentication timeout"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WsInbound(BaseModel):
    """Client → Server envelope; the body is re-validated per type."""

    model_config = ConfigDict(extra="allow")

    type: str


class AuthenticateEvent(_CamelModel):
    type: Literal["authenticate"] = MSG_AUTHENTICATE
    user_id: str | None = None
    token: str | None = None  # required when WS_AUTH_MODE=jwt

    @field_validator("user_id", mode="before")
    @classmethod
    def _numeric_user_id(cls, value: Any) -> Any:
        # numeric ids are accepted as their string form; 0 counts as missing
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value) if value else None
        return value


class ChatMessageEvent(_CamelModel):
    type: Literal["message"] = MSG_MESSAGE
    sender_id: str | None = None
    receiver_id: str | None = None
    course_id: str | None = None
    content: str
    message_type: MessageType = MessageType.DIRECT
    client_msg_id: UUID | None = None


class WsOutbound(_CamelModel):
    """Server → Client."""

    type: str

    def encode(self) -> str:
        return self.model_dump_json(by_alias=True)


class AuthenticatedEvent(WsOutbound):
    type: str = MSG_AUTHENTICATED
    user_id: str


class ErrorEvent(WsOutbound):
    type: str = MSG_ERROR
    message: str
    code: str = "error"
    retryable: bool = False


class NewMessageEvent(WsOutbound):
    type: str = MSG_NEW_MESSAGE
    message: MessageResponse


class PongEvent(WsOutbound):
    type: str = MSG_PONG
