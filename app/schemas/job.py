"""
Job schemas.
"""

from datetime import date, datetime
from decimal import Decimal

from app.schemas.base import BaseSchema, PaginatedResponse
from app.models.job import JobStatus


class JobResponse(BaseSchema):
    """Job created from a converted quote."""

    id: int
    owner_id: int
    customer_id: int
    quote_id: int
    title: str
    status: JobStatus
    scheduled_date: date | None
    scheduled_time: str | None
    total: Decimal
    notes: str | None
    created_at: datetime
    updated_at: datetime


class JobListResponse(PaginatedResponse):
    """Paginated job list."""

    items: list[JobResponse]
