"""
Gateway interfaces consumed by the quote workflow engine.

Each gateway is a narrow abstraction over an external provider
(SMS/email, e-signature, document rendering, accounting, calendar).
The engine only depends on these classes; provider adapters live in
the sibling modules and are wired in app.api.deps.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from app.models.quote import Quote, CommunicationChannel


class GatewayUnavailable(Exception):
    """Raised by an adapter when its provider call failed."""


class DeliveryError(GatewayUnavailable):
    """A message could not be delivered to the provider."""


# =============================================================================
# COMMUNICATION
# =============================================================================

@dataclass
class Attachment:
    """A document attached to an outgoing message."""
    filename: str
    url: str
    content_type: str = "application/pdf"
    path: Optional[str] = None


@dataclass
class DeliveryReceipt:
    """Provider acknowledgement for a sent message."""
    message_id: str
    status: str
    sent_at: datetime


class CommunicationGateway(ABC):
    """Sends SMS or email messages to customers."""

    @abstractmethod
    async def send(
        self,
        channel: "CommunicationChannel",
        to: str,
        body: str,
        subject: Optional[str] = None,
        attachments: Optional[List[Attachment]] = None,
    ) -> DeliveryReceipt:
        """Deliver a message, raising DeliveryError on failure."""


# =============================================================================
# SIGNATURE
# =============================================================================

class SignatureState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    DECLINED = "declined"
    EXPIRED = "expired"


@dataclass
class Signer:
    name: str
    email: Optional[str] = None


@dataclass
class SignatureRequest:
    signature_id: str
    url: str
    expires_at: datetime


@dataclass
class SignatureStatus:
    signature_id: str
    status: SignatureState
    signed_by: Optional[str] = None
    signed_at: Optional[datetime] = None


class SignatureGateway(ABC):
    """Creates signable documents and reports their completion."""

    @abstractmethod
    async def create_request(self, quote: "Quote", signer: Signer) -> SignatureRequest:
        """Issue a signature request for a quote."""

    @abstractmethod
    async def check_status(self, signature_id: str) -> SignatureStatus:
        """Poll the state of a previously issued request."""


# =============================================================================
# DOCUMENT
# =============================================================================

@dataclass
class DocumentOptions:
    include_signature: bool = True
    include_terms: bool = True
    include_company_logo: bool = False


@dataclass
class RenderedDocument:
    document_url: str
    content_type: str
    filename: str
    path: Optional[str] = None


class DocumentGateway(ABC):
    """Renders a quote to a retrievable document."""

    @abstractmethod
    async def render(self, quote: "Quote", options: DocumentOptions) -> RenderedDocument:
        """Render the quote and return where it can be fetched."""


# =============================================================================
# ACCOUNTING
# =============================================================================

class ExportType(str, Enum):
    ESTIMATE = "estimate"
    INVOICE = "invoice"
    SALES_RECEIPT = "sales_receipt"


@dataclass
class ExportReceipt:
    export_id: str
    export_url: Optional[str] = None


class AccountingExportGateway(ABC):
    """Pushes one quote to an external ledger."""

    @abstractmethod
    async def export(self, quote: "Quote", export_type: ExportType) -> ExportReceipt:
        """Export a single quote; batch callers invoke this once per quote."""


# =============================================================================
# CALENDAR
# =============================================================================

@dataclass
class CalendarEvent:
    event_id: str
    details: Dict[str, Any] = field(default_factory=dict)


class CalendarGateway(ABC):
    """Books the scheduled visit on a calendar."""

    @abstractmethod
    async def create_event(
        self,
        quote: "Quote",
        scheduled_date: date,
        scheduled_time: str,
        notes: Optional[str] = None,
    ) -> CalendarEvent:
        """Create an event and return its identifier."""
