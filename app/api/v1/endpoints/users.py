"""
User profile endpoints.
The business profile appears on quote documents and customer messages.
"""

from fastapi import APIRouter

from app.api.deps import DbSession, CurrentUser
from app.schemas.user import UserUpdate, UserResponse, PasswordChangeRequest
from app.schemas.base import MessageResponse
from app.services.user import UserService


router = APIRouter()


@router.get(
    "/me",
    response_model=UserResponse,
    summary="My profile",
)
async def get_my_profile(
    current_user: CurrentUser,
) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.patch(
    "/me",
    response_model=UserResponse,
    summary="Update my profile",
    description="Update the business details shown on quotes",
)
async def update_my_profile(
    data: UserUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> UserResponse:
    service = UserService(db)
    user = await service.update(current_user, data)
    return UserResponse.model_validate(user)


@router.post(
    "/me/change-password",
    response_model=MessageResponse,
    summary="Change password",
)
async def change_password(
    data: PasswordChangeRequest,
    current_user: CurrentUser,
    db: DbSession,
) -> MessageResponse:
    service = UserService(db)
    await service.change_password(
        current_user,
        data.current_password,
        data.new_password,
    )
    return MessageResponse(message="Password changed")
