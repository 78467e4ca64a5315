from __future__ import annotations

from fastapi import APIRouter

from portal_chat.api.deps import CurrentPrincipal, UoWDep
from portal_chat.api.v1.schemas.user import UserResponse
from portal_chat.services import user_service

router = APIRouter(prefix="/api/auth", tags=["users"])


@router.get("/user", response_model=UserResponse)
async def get_current_user(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> UserResponse:
    user = await user_service.get_current_user(principal, uow)
    return UserResponse.model_validate(user, from_attributes=True)
