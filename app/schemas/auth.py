"""
Authentication schemas.
A business account is created at registration; its contact details print on quotes.
"""

from pydantic import EmailStr, Field, field_validator

from app.core.contact import to_e164
from app.schemas.base import BaseSchema


def normalize_business_phone(value: str | None) -> str | None:
    """Business phones are stored in E.164, like customer phones."""
    if not value:
        return None
    phone = to_e164(value)
    if phone is None:
        raise ValueError("not a valid phone number (E.164, e.g. +12015550123)")
    return phone


class LoginRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=6)


class RegisterRequest(BaseSchema):
    """New business account."""

    email: EmailStr
    password: str = Field(..., min_length=8, description="Minimum 8 characters")
    full_name: str = Field(..., min_length=2, max_length=255)
    business_name: str | None = Field(None, max_length=255)
    business_phone: str | None = Field(None, max_length=50)
    business_email: EmailStr | None = Field(None, description="Defaults to the login email")
    business_address: str | None = None

    @field_validator("business_phone")
    @classmethod
    def normalize_phone(cls, value: str | None) -> str | None:
        return normalize_business_phone(value)


class TokenPair(BaseSchema):
    """Access and refresh tokens; expires_in is the access token lifetime in seconds."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class RefreshTokenRequest(BaseSchema):
    refresh_token: str
