"""
Customer schemas.
"""

from datetime import datetime
from pydantic import EmailStr, Field

from app.schemas.base import BaseSchema, PaginatedResponse


class CustomerBase(BaseSchema):
    """Fields shared by create and response schemas."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50, description="E.164 preferred, e.g. +12015550123")
    address: str | None = None
    notes: str | None = None


class CustomerCreate(CustomerBase):
    """Schema for creating a customer."""
    pass


class CustomerUpdate(BaseSchema):
    """Schema for updating a customer. All fields optional."""

    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = None
    notes: str | None = None


class CustomerResponse(CustomerBase):
    """Customer response schema."""

    id: int
    owner_id: int
    created_at: datetime
    updated_at: datetime


class CustomerSummary(BaseSchema):
    """Customer as embedded in quote responses."""

    id: int
    name: str
    email: str | None = None
    phone: str | None = None


class CustomerListResponse(PaginatedResponse):
    """Paginated customer list."""

    items: list[CustomerResponse]
