from __future__ import annotations

from portal_chat.domain.entities.course import Course
from portal_chat.infrastructure.db.models.course import CourseModel


def model_to_entity(model: CourseModel) -> Course:
    return Course(
        id=model.id,
        name=model.name,
        code=model.code,
        instructor_id=model.instructor_id,
        created_at=model.created_at,
    )
