from __future__ import annotations

from portal_chat.domain.entities.user import User
from portal_chat.infrastructure.db.models.user import UserModel


def model_to_entity(model: UserModel) -> User:
    return User(
        id=model.id,
        email=model.email,
        first_name=model.first_name,
        last_name=model.last_name,
        role=model.role,
        created_at=model.created_at,
    )
