"""
Authentication endpoints.
Login, register, refresh token.
"""

from fastapi import APIRouter, status

from app.api.deps import DbSession, CurrentUser
from app.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    TokenPair,
    RefreshTokenRequest,
)
from app.schemas.user import UserResponse
from app.services.auth import AuthService


router = APIRouter()


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Create a new business account",
)
async def register(
    data: RegisterRequest,
    db: DbSession,
) -> UserResponse:
    service = AuthService(db)
    user = await service.register(data)
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=TokenPair,
    summary="Log in",
    description="Log in with email and password",
)
async def login(
    data: LoginRequest,
    db: DbSession,
) -> TokenPair:
    service = AuthService(db)
    _, tokens = await service.login(data)
    return tokens


@router.post(
    "/refresh",
    response_model=TokenPair,
    summary="Refresh tokens",
    description="Exchange a refresh token for a new token pair",
)
async def refresh_token(
    data: RefreshTokenRequest,
    db: DbSession,
) -> TokenPair:
    service = AuthService(db)
    tokens = await service.refresh_token(data.refresh_token)
    return tokens


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Current user",
    description="Get the authenticated user's account",
)
async def get_current_user(
    current_user: CurrentUser,
) -> UserResponse:
    return UserResponse.model_validate(current_user)
