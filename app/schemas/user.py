"""
User schemas: the business profile behind every quote.
"""

from datetime import datetime
from pydantic import EmailStr, Field, field_validator

from app.schemas.auth import normalize_business_phone
from app.schemas.base import BaseSchema


class UserUpdate(BaseSchema):
    """Business profile shown on quote documents and customer messages."""

    full_name: str | None = Field(None, min_length=2, max_length=255)
    business_name: str | None = Field(None, max_length=255)
    business_address: str | None = None
    business_phone: str | None = Field(None, max_length=50)
    business_email: EmailStr | None = None

    @field_validator("business_phone")
    @classmethod
    def normalize_phone(cls, value: str | None) -> str | None:
        return normalize_business_phone(value)


class PasswordChangeRequest(BaseSchema):
    current_password: str
    new_password: str = Field(..., min_length=8)


class UserResponse(BaseSchema):
    """Account and business profile (no credentials)."""

    id: int
    email: EmailStr
    full_name: str
    business_name: str | None
    business_address: str | None
    business_phone: str | None
    business_email: str | None
    display_name: str
    is_active: bool
    is_verified: bool
    created_at: datetime
    updated_at: datetime
