"""
Request/response schemas for quote workflow operations.
"""

from datetime import date, datetime
from decimal import Decimal
from pydantic import EmailStr, Field

from app.schemas.base import BaseSchema
from app.schemas.quote import QuoteCommunicationResponse
from app.models.quote import CommunicationChannel, QuoteStatus
from app.gateways.base import ExportType, SignatureState


class SendQuoteRequest(BaseSchema):
    """Send a draft quote. Recipient defaults to the customer's email, then phone."""

    recipient: str | None = Field(None, max_length=255)
    message: str | None = None
    channel: CommunicationChannel | None = None


class SendQuoteResponse(BaseSchema):
    quote_id: int
    status: QuoteStatus
    sent_at: datetime
    expires_at: datetime
    replayed: bool = False
    communication: QuoteCommunicationResponse | None = None


class SignatureRequestCreate(BaseSchema):
    signer_name: str = Field(..., min_length=1, max_length=255)
    signer_email: EmailStr | None = None


class SignatureRequestResponse(BaseSchema):
    quote_id: int
    signature_id: str
    signature_url: str
    expires_at: datetime
    replayed: bool = False


class SignatureCompletionRequest(BaseSchema):
    """Completion callback from the signing portal."""

    signed_by: str = Field(..., min_length=1, max_length=255)
    signed_at: datetime


class SignatureStatusResponse(BaseSchema):
    signature_id: str
    status: SignatureState
    signed_by: str | None = None
    signed_at: datetime | None = None


class ScheduleQuoteRequest(BaseSchema):
    scheduled_date: date
    scheduled_time: str = Field(..., description="24 hour HH:MM")
    notes: str | None = None
    notify: bool = False
    recipient: str | None = Field(None, max_length=255)
    channel: CommunicationChannel | None = None


class ScheduleQuoteResponse(BaseSchema):
    quote_id: int
    status: QuoteStatus
    calendar_event_id: str
    scheduled_date: date
    scheduled_time: str
    replayed: bool = False
    notification: QuoteCommunicationResponse | None = None


class ConversionResponse(BaseSchema):
    quote_id: int
    job_id: int
    converted_at: datetime


class DocumentRequest(BaseSchema):
    include_signature: bool = True
    include_terms: bool = True
    include_company_logo: bool = False


class DocumentResponse(BaseSchema):
    quote_id: int
    document_url: str
    content_type: str
    filename: str


class FollowUpRequest(BaseSchema):
    """Ad hoc message about a quote."""

    body: str = Field(..., min_length=1)
    subject: str | None = Field(None, max_length=255)
    recipient: str | None = Field(None, max_length=255)
    channel: CommunicationChannel | None = None


class CommunicationRecordCreate(BaseSchema):
    """A contact made outside the app, e.g. a call from the owner's phone."""

    channel: CommunicationChannel
    recipient: str = Field(..., min_length=1, max_length=255)
    provider_status: str = Field("delivered", min_length=1, max_length=50)
    message_id: str | None = Field(None, max_length=255)
    media_url: str | None = Field(None, max_length=500)
    subject: str | None = Field(None, max_length=255)
    body: str | None = None
    sent_at: datetime | None = None


class ExportRequest(BaseSchema):
    quote_ids: list[int]
    export_type: ExportType = ExportType.INVOICE


class SpreadsheetExportRequest(BaseSchema):
    quote_ids: list[int]


class ExportItemResponse(BaseSchema):
    quote_id: int
    success: bool
    export_id: str | None = None
    export_url: str | None = None
    error: str | None = None


class ExportResponse(BaseSchema):
    export_type: ExportType
    exported: int
    failed: int
    results: list[ExportItemResponse]


class WorkflowMetricsResponse(BaseSchema):
    """Durations are averages in days; null when nothing was measured."""

    avg_time_to_approval: float | None
    avg_time_to_schedule: float | None
    avg_time_to_conversion: float | None
    conversion_rate: float
    totals: dict[str, int]
    by_status: dict[str, int]
    pipeline_value: Decimal
    converted_value: Decimal


class ErrorDetail(BaseSchema):
    kind: str
    message: str
    field: str | None = None


class ErrorResponse(BaseSchema):
    """Body of every workflow error response."""

    detail: str
    error: ErrorDetail
