"""Seed development data: users, a course with enrollments, and messages."""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone

from portal_chat.domain.entities.message import Message
from portal_chat.domain.value_objects.enums import MessageType, UserRole
from portal_chat.infrastructure.db.models import (
    CourseEnrollmentModel,
    CourseModel,
    UserModel,
)
from portal_chat.infrastructure.db.session import AsyncSessionLocal
from portal_chat.infrastructure.db.uow import SqlAlchemyUoW

logger = logging.getLogger(__name__)

USERS = [
    ("faculty-1", "grace@example.edu", "Grace", "Hopper", UserRole.FACULTY),
    ("student-1", "alan@example.edu", "Alan", "Turing", UserRole.STUDENT),
    ("student-2", "ada@example.edu", "Ada", "Lovelace", UserRole.STUDENT),
    ("admin-1", "admin@example.edu", "Portal", "Admin", UserRole.ADMIN),
]
COURSE_ID = "cs-101"


async def seed() -> None:
    async with AsyncSessionLocal() as session:
        for user_id, email, first, last, role in USERS:
            session.add(
                UserModel(id=user_id, email=email, first_name=first, last_name=last, role=role)
            )
        session.add(
            CourseModel(id=COURSE_ID, name="Intro to Computing", code="CS101", instructor_id="faculty-1")
        )
        await session.flush()
        for student_id in ("student-1", "student-2"):
            session.add(CourseEnrollmentModel(course_id=COURSE_ID, student_id=student_id))
        await session.flush()

        uow = SqlAlchemyUoW(session)
        start = datetime.now(timezone.utc) - timedelta(minutes=10)
        messages_data = [
            ("faculty-1", None, COURSE_ID, MessageType.COURSE, "Welcome to CS101! Office hours are Tuesday."),
            ("student-1", "student-2", None, MessageType.DIRECT, "Want to pair on the first assignment?"),
            ("student-2", "student-1", None, MessageType.DIRECT, "Sure, library at 3?"),
            ("student-1", None, COURSE_ID, MessageType.COURSE, "Is the lab due Friday or Monday?"),
        ]
        for i, (sender_id, receiver_id, course_id, msg_type, content) in enumerate(messages_data):
            msg = Message(
                id=uuid.uuid4(),
                sender_id=sender_id,
                receiver_id=receiver_id,
                course_id=course_id,
                content=content,
                type=msg_type,
                is_read=False,
                client_msg_id=uuid.uuid4(),
                created_at=start + timedelta(minutes=i),
            )
            await uow.messages_w.create_if_not_exists(msg)

        await uow.commit()
        logger.info("Seeded %d users, course %s and %d messages", len(USERS), COURSE_ID, len(messages_data))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
