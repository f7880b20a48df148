"""
Quote schemas for request/response validation.
"""

from datetime import date, datetime
from decimal import Decimal
from pydantic import Field

from app.schemas.base import BaseSchema, PaginatedResponse
from app.schemas.customer import CustomerSummary
from app.models.quote import CommunicationChannel, Quote, QuoteStatus


class QuoteItemBase(BaseSchema):
    """Base quote item schema."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    quantity: Decimal = Field(default=Decimal("1.00"), ge=0)
    unit_price: Decimal = Field(..., ge=0)


class QuoteItemCreate(QuoteItemBase):
    """Schema for creating a quote item."""
    pass


class QuoteItemUpdate(BaseSchema):
    """Schema for updating a quote item."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    quantity: Decimal | None = Field(None, ge=0)
    unit_price: Decimal | None = Field(None, ge=0)


class QuoteItemResponse(QuoteItemBase):
    """Quote item response schema."""

    id: int
    position: int
    total: Decimal


class QuoteCreate(BaseSchema):
    """Schema for creating a draft quote."""

    customer_id: int
    title: str | None = Field(None, max_length=255)
    notes: str | None = None
    terms: str | None = None
    tax_rate: Decimal | None = Field(None, ge=0, le=100, description="Defaults to the configured tax rate")
    margin: Decimal | None = Field(None, ge=0)
    items: list[QuoteItemCreate] = Field(default_factory=list)


class QuoteUpdate(BaseSchema):
    """Schema for updating draft header fields."""

    customer_id: int | None = None
    title: str | None = Field(None, max_length=255)
    notes: str | None = None
    terms: str | None = None
    tax_rate: Decimal | None = Field(None, ge=0, le=100)
    margin: Decimal | None = Field(None, ge=0)


class QuoteCommunicationResponse(BaseSchema):
    """Communication record response schema."""

    id: int | None = None
    channel: CommunicationChannel
    recipient: str
    purpose: str
    subject: str | None = None
    body: str | None = None
    provider_status: str
    message_id: str | None = None
    media_url: str | None = None
    sent_at: datetime


class QuoteEventResponse(BaseSchema):
    """Audit trail entry."""

    id: int
    event: str
    from_status: str | None
    to_status: str | None
    actor: str
    details: dict | None
    created_at: datetime


class QuoteResponse(BaseSchema):
    """
    Quote response schema.

    `status` is the effective status: a sent quote past its expiry
    reports `expired`.
    """

    id: int
    owner_id: int
    customer_id: int
    quote_number: str
    title: str | None
    notes: str | None
    terms: str | None
    status: QuoteStatus
    expired: bool = False
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    margin: Decimal | None
    expires_at: datetime | None
    sent_at: datetime | None
    approved_at: datetime | None
    rejected_at: datetime | None
    scheduled_at: datetime | None
    converted_at: datetime | None
    signature_url: str | None
    signature_request_expires_at: datetime | None
    signature_id: str | None
    signed_by: str | None
    signed_at: datetime | None
    scheduled_date: date | None
    scheduled_time: str | None
    schedule_notes: str | None
    calendar_event_id: str | None
    job_id: int | None
    document_url: str | None
    accounting_export_id: str | None
    accounting_exported_at: datetime | None
    customer: CustomerSummary | None = None
    items: list[QuoteItemResponse]
    communications: list[QuoteCommunicationResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, quote: Quote, now: datetime | None = None) -> "QuoteResponse":
        response = cls.model_validate(quote)
        return response.model_copy(update={
            "status": quote.effective_status(now),
            "expired": quote.is_expired(now),
        })


class QuoteSummary(BaseSchema):
    """Quote summary for list views."""

    id: int
    quote_number: str
    customer_id: int
    title: str | None
    status: QuoteStatus
    total: Decimal
    expires_at: datetime | None
    created_at: datetime

    @classmethod
    def from_model(cls, quote: Quote, now: datetime | None = None) -> "QuoteSummary":
        response = cls.model_validate(quote)
        return response.model_copy(update={"status": quote.effective_status(now)})


class QuoteListResponse(PaginatedResponse):
    """Paginated quote list response."""

    items: list[QuoteSummary]
