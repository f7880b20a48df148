"""
Job model.
A job is created when an approved or scheduled quote is converted.
"""

from typing import Optional
from decimal import Decimal
from datetime import date
from enum import Enum
from sqlalchemy import String, Text, ForeignKey, Integer, Numeric, Date, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class JobStatus(str, Enum):
    """Job status enumeration."""
    UNSCHEDULED = "unscheduled"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Job(BaseModel):
    """
    Job model.

    Attributes:
        owner_id: Foreign key to the business account
        customer_id: Foreign key to the customer
        quote_id: Quote this job was converted from (one job per quote)
        title: Job title, taken from the quote
        status: Current job status
        scheduled_date, scheduled_time: Copied from the quote schedule
        total: Quoted total
    """

    __tablename__ = "jobs"

    owner_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    customer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    quote_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("quotes.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus),
        default=JobStatus.UNSCHEDULED,
        nullable=False,
    )
    scheduled_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    scheduled_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    total: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, quote_id={self.quote_id}, status={self.status})>"
