"""Shape rules for a message's addressing fields."""
from __future__ import annotations

from portal_chat.application.exceptions import ValidationError
from portal_chat.domain.value_objects.enums import MessageType


def validate_addressing(
    msg_type: MessageType,
    receiver_id: str | None,
    course_id: str | None,
) -> None:
    if msg_type == MessageType.DIRECT:
        if not receiver_id:
            raise ValidationError("Direct messages require receiverId")
        if course_id:
            raise ValidationError("Direct messages cannot carry courseId")
        return

    # course and group messages are both scoped to a course
    if not course_id:
        raise ValidationError(f"{msg_type.value.capitalize()} messages require courseId")
    if receiver_id:
        raise ValidationError(f"{msg_type.value.capitalize()} messages cannot carry receiverId")


def normalize_content(content: str | None) -> str:
    if content is None or not content.strip():
        raise ValidationError("Message content must not be empty")
    return content
