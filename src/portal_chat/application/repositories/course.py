from __future__ import annotations

from typing import Protocol

from portal_chat.domain.entities.course import Course


class CourseReader(Protocol):
    async def get_by_id(self, course_id: str) -> Course | None: ...

    async def is_member(self, course_id: str, user_id: str) -> bool:
        """True for the instructor and for enrolled students."""
        ...

    async def list_member_ids(self, course_id: str) -> list[str]: ...
