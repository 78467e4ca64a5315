"""Import all models so Base.metadata sees every table."""
from portal_chat.infrastructure.db.models.activity_log import ActivityLogModel
from portal_chat.infrastructure.db.models.course import CourseEnrollmentModel, CourseModel
from portal_chat.infrastructure.db.models.message import MessageModel
from portal_chat.infrastructure.db.models.user import UserModel

__all__ = [
    "ActivityLogModel",
    "CourseEnrollmentModel",
    "CourseModel",
    "MessageModel",
    "UserModel",
]
