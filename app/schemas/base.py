"""
Base schema configuration and common schemas.
"""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


def page_count(total: int, per_page: int) -> int:
    return (total + per_page - 1) // per_page if per_page > 0 else 0


class PaginatedResponse(BaseSchema):
    """Paginated response wrapper; subclasses add `items`."""

    total: int
    page: int
    per_page: int
    pages: int


class MessageResponse(BaseSchema):
    """Simple message response."""

    message: str
    success: bool = True
