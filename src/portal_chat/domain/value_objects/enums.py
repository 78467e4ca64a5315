from __future__ import annotations

from enum import StrEnum


class UserRole(StrEnum):
    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"
    TA = "ta"


class MessageType(StrEnum):
    DIRECT = "direct"
    COURSE = "course"
    GROUP = "group"


class ConnectionState(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class CourseFanoutScope(StrEnum):
    MEMBERS = "members"
    ALL = "all"
