"""
Database models module.
All SQLAlchemy models are exported from here for easy imports.
"""

from app.models.user import User
from app.models.customer import Customer
from app.models.quote import (
    Quote,
    QuoteItem,
    QuoteCommunication,
    QuoteEvent,
    QuoteStatus,
    CommunicationChannel,
)
from app.models.job import Job, JobStatus


__all__ = [
    "User",
    "Customer",
    "Quote",
    "QuoteItem",
    "QuoteCommunication",
    "QuoteEvent",
    "QuoteStatus",
    "CommunicationChannel",
    "Job",
    "JobStatus",
]
