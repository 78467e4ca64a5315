from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal_chat.domain.entities.course import Course
from portal_chat.infrastructure.db.mappers import course as mapper
from portal_chat.infrastructure.db.models.course import CourseEnrollmentModel, CourseModel


class CourseReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, course_id: str) -> Course | None:
        model = await self._session.get(CourseModel, course_id)
        return mapper.model_to_entity(model) if model else None

    async def is_member(self, course_id: str, user_id: str) -> bool:
        enrolled = (
            select(CourseEnrollmentModel.id)
            .where(
                CourseEnrollmentModel.course_id == course_id,
                CourseEnrollmentModel.student_id == user_id,
            )
            .exists()
        )
        stmt = select(CourseModel.id).where(
            CourseModel.id == course_id,
            (CourseModel.instructor_id == user_id) | enrolled,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list_member_ids(self, course_id: str) -> list[str]:
        instructor = select(CourseModel.instructor_id).where(CourseModel.id == course_id)
        students = select(CourseEnrollmentModel.student_id).where(
            CourseEnrollmentModel.course_id == course_id
        )
        result = await self._session.execute(instructor.union(students))
        return list(result.scalars().all())
