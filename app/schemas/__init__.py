"""
Pydantic schemas for request/response validation.
"""

from app.schemas.user import (
    UserUpdate,
    UserResponse,
    PasswordChangeRequest,
)
from app.schemas.auth import (
    TokenPair,
    LoginRequest,
    RegisterRequest,
    RefreshTokenRequest,
)
from app.schemas.customer import (
    CustomerCreate,
    CustomerUpdate,
    CustomerResponse,
    CustomerListResponse,
)
from app.schemas.quote import (
    QuoteCreate,
    QuoteUpdate,
    QuoteItemCreate,
    QuoteItemUpdate,
    QuoteResponse,
    QuoteSummary,
    QuoteListResponse,
    QuoteCommunicationResponse,
    QuoteEventResponse,
)
from app.schemas.job import (
    JobResponse,
    JobListResponse,
)

__all__ = [
    # User
    "UserUpdate",
    "UserResponse",
    "PasswordChangeRequest",
    # Auth
    "TokenPair",
    "LoginRequest",
    "RegisterRequest",
    "RefreshTokenRequest",
    # Customer
    "CustomerCreate",
    "CustomerUpdate",
    "CustomerResponse",
    "CustomerListResponse",
    # Quote
    "QuoteCreate",
    "QuoteUpdate",
    "QuoteItemCreate",
    "QuoteItemUpdate",
    "QuoteResponse",
    "QuoteSummary",
    "QuoteListResponse",
    "QuoteCommunicationResponse",
    "QuoteEventResponse",
    # Job
    "JobResponse",
    "JobListResponse",
]
