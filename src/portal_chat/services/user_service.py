from __future__ import annotations

from portal_chat.application.dto.principal import Principal
from portal_chat.application.exceptions import NotFoundError
from portal_chat.application.uow import UnitOfWork
from portal_chat.domain.entities.user import User


async def get_current_user(principal: Principal, uow: UnitOfWork) -> User:
    user = await uow.users.get_by_id(principal.subject_id)
    if user is None:
        raise NotFoundError("User not found")
    return user
