from __future__ import annotations

from typing import Any

from portal_chat.application.dto.principal import Principal
from portal_chat.domain.value_objects.enums import UserRole


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    role_raw = payload.get("role", UserRole.STUDENT)
    role = UserRole(role_raw) if role_raw in UserRole.__members__.values() else UserRole.STUDENT
    return Principal(role=role, subject_id=str(payload["sub"]))
