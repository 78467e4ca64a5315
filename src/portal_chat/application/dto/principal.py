from __future__ import annotations

from dataclasses import dataclass

from portal_chat.domain.value_objects.enums import UserRole


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from JWT."""

    role: UserRole
    subject_id: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
