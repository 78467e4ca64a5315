from __future__ import annotations

from portal_chat.application.dto.principal import Principal
from portal_chat.application.exceptions import ForbiddenError, NotFoundError
from portal_chat.application.repositories.course import CourseReader
from portal_chat.domain.entities.course import Course
from portal_chat.domain.entities.message import Message


async def assert_course_access(
    principal: Principal,
    course_id: str,
    courses: CourseReader,
) -> Course:
    """Raise if course doesn't exist or principal is not a member."""
    course = await courses.get_by_id(course_id)
    if course is None:
        raise NotFoundError("Course not found")

    # Admins have global access
    if principal.is_admin:
        return course

    is_member = await courses.is_member(course_id, principal.subject_id)
    if not is_member:
        raise ForbiddenError("Not a member of this course")

    return course


def assert_can_mark_read(principal: Principal, message: Message | None) -> Message:
    if message is None:
        raise NotFoundError("Message not found")
    if principal.is_admin or message.receiver_id == principal.subject_id:
        return message
    raise ForbiddenError("Only the receiver can mark a message as read")


def assert_sender_matches(principal: Principal, claimed_sender_id: str | None) -> None:
    if claimed_sender_id is not None and claimed_sender_id != principal.subject_id:
        raise ForbiddenError("senderId does not match the authenticated user")
