"""
Quote model and its owned records.
A quote moves through the workflow draft -> sent -> approved/rejected/expired
-> scheduled -> converted. Expiry is derived from expires_at, never stored.
"""

from typing import Optional, List, TYPE_CHECKING
from decimal import Decimal, ROUND_HALF_UP
from datetime import date, datetime
from enum import Enum
from sqlalchemy import (
    String,
    Text,
    ForeignKey,
    Integer,
    Numeric,
    Date,
    DateTime,
    JSON,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, as_utc, utcnow

if TYPE_CHECKING:
    from app.models.customer import Customer
    from app.models.user import User


CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    """Round a numeric value to two decimal places."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


class QuoteStatus(str, Enum):
    """Quote status enumeration."""
    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    SCHEDULED = "scheduled"
    CONVERTED = "converted"  # Converted to a job, terminal


class CommunicationChannel(str, Enum):
    """Channel used to reach a customer."""
    SMS = "sms"
    EMAIL = "email"


class Quote(BaseModel):
    """
    Quote model.

    Attributes:
        owner_id: Foreign key to the business account
        customer_id: Foreign key to the customer
        quote_number: Human readable number (auto-generated)
        status: Stored workflow status (see effective_status for reads)
        subtotal: Sum of item totals
        tax_rate: Tax percentage applied to the subtotal
        tax: Tax amount
        total: Grand total (subtotal + tax)
        margin: Informational markup percentage
        expires_at: Set on send, quote is expired once reached
        signature_request_id: Pending e-signature request, if any
        signature_id, signed_by, signed_at: Completed signature metadata
        scheduled_date, scheduled_time, calendar_event_id: Set on schedule
        job_id: Set on conversion
    """

    __tablename__ = "quotes"
    __table_args__ = (
        UniqueConstraint("owner_id", "quote_number", name="uq_quotes_owner_number"),
    )

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

    # Quote info
    quote_number: Mapped[str] = mapped_column(
        String(50),
        index=True,
        nullable=False,
    )
    title: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    terms: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    status: Mapped[QuoteStatus] = mapped_column(
        SQLEnum(QuoteStatus),
        default=QuoteStatus.DRAFT,
        nullable=False,
        index=True,
    )

    # Totals (calculated from items)
    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    tax_rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    tax: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    total: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    margin: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=5, scale=2),
        nullable=True,
    )

    # Workflow timestamps
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    scheduled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    converted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # E-signature
    signature_request_id: Mapped[Optional[str]] = mapped_column(
        String(100),
        unique=True,
        index=True,
        nullable=True,
    )
    signature_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    signature_requested_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    signature_request_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    signature_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    signed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Scheduling
    scheduled_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    scheduled_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    schedule_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    calendar_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Conversion (jobs.quote_id holds the foreign key)
    job_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        index=True,
    )

    # Documents and accounting
    document_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    accounting_export_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    accounting_exported_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    owner: Mapped["User"] = relationship(
        "User",
        foreign_keys=[owner_id],
        lazy="selectin",
    )
    customer: Mapped["Customer"] = relationship(
        "Customer",
        foreign_keys=[customer_id],
        lazy="selectin",
    )
    items: Mapped[List["QuoteItem"]] = relationship(
        "QuoteItem",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItem.position",
        lazy="selectin",
    )
    communications: Mapped[List["QuoteCommunication"]] = relationship(
        "QuoteCommunication",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteCommunication.id",
        lazy="selectin",
    )
    events: Mapped[List["QuoteEvent"]] = relationship(
        "QuoteEvent",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteEvent.id",
        lazy="selectin",
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("status", QuoteStatus.DRAFT)
        kwargs.setdefault("tax_rate", Decimal("0.00"))
        super().__init__(**kwargs)
        self.calculate_totals()

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """A sent quote is expired once expires_at has been reached."""
        if self.status != QuoteStatus.SENT or self.expires_at is None:
            return False
        return (now or utcnow()) >= as_utc(self.expires_at)

    def effective_status(self, now: Optional[datetime] = None) -> QuoteStatus:
        """Status as seen by every read path and precondition check."""
        if self.is_expired(now):
            return QuoteStatus.EXPIRED
        return self.status

    @property
    def is_converted(self) -> bool:
        return self.status == QuoteStatus.CONVERTED or self.job_id is not None

    def calculate_totals(self) -> None:
        """Recalculate quote totals from items."""
        for position, item in enumerate(self.items):
            item.position = position
        self.subtotal = to_money(sum((item.total for item in self.items), Decimal("0")))
        self.tax = to_money(self.subtotal * Decimal(self.tax_rate or 0) / 100)
        self.total = self.subtotal + self.tax

    def __repr__(self) -> str:
        return f"<Quote(id={self.id}, number='{self.quote_number}', status={self.status}, total={self.total})>"


class QuoteItem(BaseModel):
    """
    Quote line item, owned by its quote.

    Attributes:
        quote_id: Foreign key to the quote
        position: Order within the quote
        name: Short item name
        description: Optional longer description
        quantity: Number of units (>= 0)
        unit_price: Price per unit (>= 0)
    """

    __tablename__ = "quote_items"

    quote_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("quotes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    quantity: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        default=Decimal("1.00"),
        nullable=False,
    )
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=False,
    )

    quote: Mapped["Quote"] = relationship(
        "Quote",
        back_populates="items",
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("quantity", Decimal("1.00"))
        kwargs.setdefault("position", 0)
        super().__init__(**kwargs)

    @property
    def total(self) -> Decimal:
        """Line total, always derived from quantity and unit price."""
        return to_money(Decimal(self.quantity) * Decimal(self.unit_price))

    def __repr__(self) -> str:
        return f"<QuoteItem(id={self.id}, name='{self.name[:30]}', total={self.total})>"


class QuoteCommunication(BaseModel):
    """
    Append-only record of a message sent to a customer about a quote.

    Attributes:
        channel: sms or email
        recipient: Phone number or email address
        purpose: quote, schedule_notification, follow_up or external
        provider_status: Status reported by the provider
        message_id: Provider message identifier
        media_url: Attached document URL, if any
    """

    __tablename__ = "quote_communications"

    quote_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("quotes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    channel: Mapped[CommunicationChannel] = mapped_column(
        SQLEnum(CommunicationChannel),
        nullable=False,
    )
    recipient: Mapped[str] = mapped_column(String(255), nullable=False)
    purpose: Mapped[str] = mapped_column(String(50), default="quote", nullable=False)
    subject: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    provider_status: Mapped[str] = mapped_column(String(50), nullable=False)
    message_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    media_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    quote: Mapped["Quote"] = relationship(
        "Quote",
        back_populates="communications",
    )

    def __repr__(self) -> str:
        return f"<QuoteCommunication(quote_id={self.quote_id}, channel={self.channel}, to='{self.recipient}')>"


class QuoteEvent(BaseModel):
    """Audit record of a committed workflow event."""

    __tablename__ = "quote_events"

    quote_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("quotes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event: Mapped[str] = mapped_column(String(50), nullable=False)
    from_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    to_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    actor: Mapped[str] = mapped_column(String(255), default="system", nullable=False)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    quote: Mapped["Quote"] = relationship(
        "Quote",
        back_populates="events",
    )

    def __repr__(self) -> str:
        return f"<QuoteEvent(quote_id={self.quote_id}, event='{self.event}', {self.from_status} -> {self.to_status})>"
