"""
Quote workflow engine.

The state machine for quotes and the orchestration of the gateway calls
tied to each transition. The engine talks to storage and providers only
through QuoteRepository, JobRepository and the gateway interfaces, so it
can run against in-memory fakes.

Every mutating operation runs load -> validate -> gateway calls -> apply
-> save while holding the quote's lock: an asyncio.Lock inside the
process, plus the row lock SQL stores take on load. Nothing is assigned
on the quote before its gateway calls have returned.
"""

import asyncio
import logging
import re
import weakref
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from app.core.contact import is_email, to_e164
from app.core.errors import (
    AlreadyConvertedError,
    GatewayError,
    InvalidStateError,
    NotFoundError,
    WorkflowValidationError,
)
from app.gateways.base import (
    AccountingExportGateway,
    Attachment,
    CalendarGateway,
    CommunicationGateway,
    DeliveryReceipt,
    DocumentGateway,
    DocumentOptions,
    ExportType,
    GatewayUnavailable,
    SignatureGateway,
    SignatureState,
    SignatureStatus,
    Signer,
)
from app.models.base import as_utc, utcnow
from app.models.quote import (
    CommunicationChannel,
    Quote,
    QuoteCommunication,
    QuoteEvent,
    QuoteStatus,
)
from app.repositories.job import JobRepository
from app.repositories.quote import QuoteRepository
from app.services.export import quotes_to_csv


logger = logging.getLogger(__name__)

T = TypeVar("T")

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


# =============================================================================
# STATE MACHINE
# =============================================================================

# event -> (allowed effective source statuses, target status)
TRANSITIONS: Dict[str, Tuple[frozenset, QuoteStatus]] = {
    "send": (frozenset({QuoteStatus.DRAFT}), QuoteStatus.SENT),
    "approve": (frozenset({QuoteStatus.SENT}), QuoteStatus.APPROVED),
    "reject": (frozenset({QuoteStatus.SENT}), QuoteStatus.REJECTED),
    "schedule": (frozenset({QuoteStatus.APPROVED}), QuoteStatus.SCHEDULED),
    "convert": (frozenset({QuoteStatus.APPROVED, QuoteStatus.SCHEDULED}), QuoteStatus.CONVERTED),
}

# Signing is a parallel track and never changes status
SIGNABLE_STATUSES = frozenset({QuoteStatus.SENT, QuoteStatus.APPROVED, QuoteStatus.SCHEDULED})
# A request can go out with the draft; completion waits for the quote to be sent
SIGNATURE_REQUEST_STATUSES = SIGNABLE_STATUSES | {QuoteStatus.DRAFT}

EXPORTABLE_STATUSES = frozenset({QuoteStatus.APPROVED, QuoteStatus.SCHEDULED, QuoteStatus.CONVERTED})


def can_transition(current: QuoteStatus, event: str) -> bool:
    """Check whether `event` is legal from the effective status `current`."""
    allowed, _ = TRANSITIONS[event]
    return current in allowed


# =============================================================================
# CONCURRENCY
# =============================================================================

class QuoteLockRegistry:
    """
    One asyncio.Lock per quote id.

    Locks are held weakly and disappear once no operation references them.
    Operations on different quotes never share a lock.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, quote_id: int) -> asyncio.Lock:
        lock = self._locks.get(quote_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[quote_id] = lock
        return lock


# Process wide registry shared by every request
quote_locks = QuoteLockRegistry()


# =============================================================================
# SETTINGS AND RESULTS
# =============================================================================

@dataclass
class WorkflowSettings:
    validity_days: int = 30
    gateway_timeout: float = 10.0
    attach_document_on_send: bool = True

    def __post_init__(self):
        if self.validity_days <= 0:
            raise ValueError("validity_days must be positive")
        if self.gateway_timeout <= 0:
            raise ValueError("gateway_timeout must be positive")

    @classmethod
    def from_settings(cls, settings) -> "WorkflowSettings":
        return cls(
            validity_days=settings.QUOTE_VALIDITY_DAYS,
            gateway_timeout=settings.GATEWAY_TIMEOUT_SECONDS,
            attach_document_on_send=settings.ATTACH_PDF_ON_SEND,
        )


@dataclass
class SendResult:
    sent_at: datetime
    expires_at: datetime
    communication: Optional[QuoteCommunication]
    replayed: bool = False


@dataclass
class SignatureRequestResult:
    signature_id: str
    signature_url: str
    expires_at: datetime
    replayed: bool = False


@dataclass
class ScheduleResult:
    calendar_event_id: str
    scheduled_date: date
    scheduled_time: str
    notification: Optional[QuoteCommunication] = None
    replayed: bool = False


@dataclass
class ConversionResult:
    job_id: int
    converted_at: datetime


@dataclass
class DocumentResult:
    document_url: str
    content_type: str
    filename: str


@dataclass
class ExportItemResult:
    quote_id: int
    success: bool
    export_id: Optional[str] = None
    export_url: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SpreadsheetExport:
    filename: str
    content: str
    exported_count: int
    exported_at: datetime
    content_type: str = "text/csv"


@dataclass
class WorkflowMetrics:
    """Aggregates over a set of quotes. Durations are in days."""
    avg_time_to_approval: Optional[float]
    avg_time_to_schedule: Optional[float]
    avg_time_to_conversion: Optional[float]
    conversion_rate: float
    totals: Dict[str, int] = field(default_factory=dict)
    by_status: Dict[str, int] = field(default_factory=dict)
    pipeline_value: Decimal = Decimal("0.00")
    converted_value: Decimal = Decimal("0.00")


# =============================================================================
# METRICS
# =============================================================================

def _days_between(start: datetime, end: datetime) -> float:
    return (as_utc(end) - as_utc(start)).total_seconds() / 86400


def _average(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return round(sum(values) / len(values), 1)


def compute_workflow_metrics(quotes: Sequence[Quote], now: Optional[datetime] = None) -> WorkflowMetrics:
    """
    Pure aggregation over stored quotes.

    Time to conversion is measured from scheduling, or from approval for
    quotes converted without being scheduled. Conversion rate is converted
    quotes over quotes that were ever sent.
    """
    now = now or utcnow()

    to_approval = [
        _days_between(q.sent_at, q.approved_at)
        for q in quotes
        if q.sent_at and q.approved_at
    ]
    to_schedule = [
        _days_between(q.approved_at, q.scheduled_at)
        for q in quotes
        if q.approved_at and q.scheduled_at
    ]
    to_conversion = [
        _days_between(q.scheduled_at or q.approved_at, q.converted_at)
        for q in quotes
        if q.converted_at and (q.scheduled_at or q.approved_at)
    ]

    by_status = Counter(q.effective_status(now).value for q in quotes)
    statuses = {s.value: by_status.get(s.value, 0) for s in QuoteStatus}

    ever_sent = sum(1 for q in quotes if q.sent_at is not None)
    converted = statuses[QuoteStatus.CONVERTED.value]
    conversion_rate = round(converted / ever_sent * 100, 2) if ever_sent else 0.0

    open_statuses = {QuoteStatus.SENT, QuoteStatus.APPROVED, QuoteStatus.SCHEDULED}
    pipeline_value = sum(
        (q.total for q in quotes if q.effective_status(now) in open_statuses),
        Decimal("0.00"),
    )
    converted_value = sum(
        (q.total for q in quotes if q.status == QuoteStatus.CONVERTED),
        Decimal("0.00"),
    )

    return WorkflowMetrics(
        avg_time_to_approval=_average(to_approval),
        avg_time_to_schedule=_average(to_schedule),
        avg_time_to_conversion=_average(to_conversion),
        conversion_rate=conversion_rate,
        totals={
            "quotes": len(quotes),
            "sent": ever_sent,
            "approved": sum(1 for q in quotes if q.approved_at is not None),
            "rejected": statuses[QuoteStatus.REJECTED.value],
            "expired": statuses[QuoteStatus.EXPIRED.value],
            "scheduled": sum(1 for q in quotes if q.scheduled_at is not None),
            "converted": converted,
        },
        by_status=statuses,
        pipeline_value=pipeline_value,
        converted_value=converted_value,
    )


# =============================================================================
# ENGINE
# =============================================================================

class QuoteWorkflowEngine:
    """
    Runs quote workflow operations.

    When constructed with an owner_id, quotes belonging to other owners
    are reported as not found.
    """

    def __init__(
        self,
        quotes: QuoteRepository,
        jobs: JobRepository,
        communication: CommunicationGateway,
        signature: SignatureGateway,
        documents: DocumentGateway,
        accounting: AccountingExportGateway,
        calendar: CalendarGateway,
        locks: Optional[QuoteLockRegistry] = None,
        settings: Optional[WorkflowSettings] = None,
        clock: Callable[[], datetime] = utcnow,
        owner_id: Optional[int] = None,
        actor: str = "system",
    ):
        self.quotes = quotes
        self.jobs = jobs
        self.communication = communication
        self.signature = signature
        self.documents = documents
        self.accounting = accounting
        self.calendar = calendar
        self.locks = locks or quote_locks
        self.settings = settings or WorkflowSettings()
        self.clock = clock
        self.owner_id = owner_id
        self.actor = actor

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _owns(self, quote: Quote) -> bool:
        return self.owner_id is None or quote.owner_id == self.owner_id

    async def _load(self, quote_id: int, for_update: bool = True) -> Quote:
        """
        Load an owned quote. Mutating paths lock the row as well as the
        in-process lock, so workers in other processes queue behind it.
        """
        if for_update:
            quote = await self.quotes.get_for_update(quote_id)
        else:
            quote = await self.quotes.get(quote_id)
        if quote is None or not self._owns(quote):
            raise NotFoundError(f"Quote {quote_id} not found", field="quote_id")
        return quote

    def _ensure_not_converted(self, quote: Quote) -> None:
        if quote.is_converted:
            logger.warning(f"Rejected operation on converted quote {quote.id}")
            raise AlreadyConvertedError(quote.id)

    def _require(self, quote: Quote, event: str, now: datetime) -> QuoteStatus:
        """Validate a transition against the effective status; returns it."""
        current = quote.effective_status(now)
        if not can_transition(current, event):
            if current == QuoteStatus.EXPIRED:
                message = (
                    f"Cannot {event} quote {quote.id}: quote expired on "
                    f"{as_utc(quote.expires_at).date().isoformat()}"
                )
            else:
                message = f"Cannot {event} quote {quote.id}: quote is {current.value}"
            logger.warning(message)
            raise InvalidStateError(message, field="status")
        return current

    async def _call(self, gateway: str, operation: Awaitable[T]) -> T:
        """Await a gateway call bounded by the configured timeout."""
        timeout = self.settings.gateway_timeout
        try:
            return await asyncio.wait_for(operation, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{gateway} gateway timed out after {timeout}s")
            raise GatewayError(gateway, f"timed out after {timeout}s")
        except GatewayUnavailable as e:
            logger.warning(f"{gateway} gateway failed: {e}")
            raise GatewayError(gateway, str(e)) from e
        except Exception as e:
            logger.exception(f"Unexpected {gateway} gateway error")
            raise GatewayError(gateway, f"unexpected error: {e}") from e

    def _record_event(
        self,
        quote: Quote,
        event: str,
        from_status: Optional[QuoteStatus],
        to_status: Optional[QuoteStatus],
        now: datetime,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        quote.events.append(QuoteEvent(
            event=event,
            from_status=from_status.value if from_status else None,
            to_status=to_status.value if to_status else None,
            actor=self.actor,
            details=details,
            created_at=now,
            updated_at=now,
        ))

    async def _commit(self, quote: Quote, now: datetime) -> Quote:
        quote.touch(now)
        return await self.quotes.save(quote)

    def _resolve_recipient(
        self,
        quote: Quote,
        recipient: Optional[str],
        channel: Optional[CommunicationChannel],
    ) -> Tuple[CommunicationChannel, str]:
        """
        Pick channel and address for a customer message.

        Falls back to the customer's email, then phone. The channel is
        inferred from the address when not given.
        """
        recipient = (recipient or "").strip()
        customer = quote.customer
        if not recipient and customer is not None:
            if channel == CommunicationChannel.SMS:
                recipient = customer.phone or ""
            elif channel == CommunicationChannel.EMAIL:
                recipient = customer.email or ""
            else:
                recipient = customer.email or customer.phone or ""

        if not recipient:
            raise WorkflowValidationError(
                "No recipient given and the customer has no email or phone on file",
                field="recipient",
            )

        if channel is None:
            channel = CommunicationChannel.EMAIL if "@" in recipient else CommunicationChannel.SMS

        if channel == CommunicationChannel.EMAIL:
            if not is_email(recipient):
                raise WorkflowValidationError(f"'{recipient}' is not a valid email address", field="recipient")
            return channel, recipient

        phone = to_e164(recipient)
        if phone is None:
            raise WorkflowValidationError(
                f"'{recipient}' is not a valid phone number (E.164, e.g. +12015550123)",
                field="recipient",
            )
        return channel, phone

    @staticmethod
    def _quote_subject(quote: Quote) -> str:
        business = quote.owner.display_name if quote.owner is not None else None
        if business:
            return f"Quote {quote.quote_number} from {business}"
        return f"Quote {quote.quote_number}"

    @staticmethod
    def _quote_message(quote: Quote, document_url: Optional[str]) -> str:
        message = f"Your quote #{quote.quote_number} for ${quote.total:,.2f} is ready."
        if document_url:
            message += f" View and sign here: {document_url}"
        return message

    @staticmethod
    def _schedule_message(quote: Quote, scheduled_date: date, scheduled_time: str) -> str:
        name = quote.customer.name if quote.customer is not None else "there"
        return (
            f"Hi {name}, your appointment for quote #{quote.quote_number} is scheduled "
            f"on {scheduled_date.strftime('%B %d, %Y')} at {scheduled_time}."
        )

    @staticmethod
    def _append_communication(
        quote: Quote,
        channel: CommunicationChannel,
        recipient: str,
        purpose: str,
        body: str,
        receipt: Optional[DeliveryReceipt],
        now: datetime,
        subject: Optional[str] = None,
        media_url: Optional[str] = None,
    ) -> QuoteCommunication:
        communication = QuoteCommunication(
            channel=channel,
            recipient=recipient,
            purpose=purpose,
            subject=subject,
            body=body,
            provider_status=receipt.status if receipt else "failed",
            message_id=receipt.message_id if receipt else None,
            media_url=media_url,
            sent_at=receipt.sent_at if receipt else now,
            created_at=now,
            updated_at=now,
        )
        quote.communications.append(communication)
        return communication

    @staticmethod
    def _last_communication(quote: Quote, purpose: str) -> Optional[QuoteCommunication]:
        matching = [c for c in quote.communications if c.purpose == purpose]
        return matching[-1] if matching else None

    # -------------------------------------------------------------------------
    # Send
    # -------------------------------------------------------------------------

    async def send_quote(
        self,
        quote_id: int,
        recipient: Optional[str] = None,
        message: Optional[str] = None,
        channel: Optional[CommunicationChannel] = None,
    ) -> SendResult:
        """
        Deliver a draft quote to the customer and move it to sent.

        Retrying after a committed send returns the original result
        without sending again.
        """
        async with self.locks.lock_for(quote_id):
            quote = await self._load(quote_id)
            now = self.clock()
            self._ensure_not_converted(quote)

            if quote.effective_status(now) == QuoteStatus.SENT and quote.sent_at is not None:
                logger.info(f"Quote {quote.id} already sent, returning previous result")
                return SendResult(
                    sent_at=as_utc(quote.sent_at),
                    expires_at=as_utc(quote.expires_at),
                    communication=self._last_communication(quote, "quote"),
                    replayed=True,
                )

            from_status = self._require(quote, "send", now)

            if not quote.items:
                raise WorkflowValidationError("Cannot send a quote without items", field="items")
            if quote.total <= 0:
                raise WorkflowValidationError("Quote total must be greater than zero", field="total")

            channel, to = self._resolve_recipient(quote, recipient, channel)

            document = None
            if self.settings.attach_document_on_send:
                document = await self._call("document", self.documents.render(quote, DocumentOptions()))

            document_url = document.document_url if document else None
            body = message or self._quote_message(quote, document_url)
            subject = self._quote_subject(quote) if channel == CommunicationChannel.EMAIL else None
            attachments = []
            if document:
                attachments.append(Attachment(
                    filename=document.filename,
                    url=document.document_url,
                    content_type=document.content_type,
                    path=document.path,
                ))

            receipt = await self._call(
                "communication",
                self.communication.send(channel, to, body, subject=subject, attachments=attachments),
            )

            quote.status = QuoteStatus.SENT
            quote.sent_at = now
            quote.expires_at = now + timedelta(days=self.settings.validity_days)
            if document_url:
                quote.document_url = document_url
            communication = self._append_communication(
                quote, channel, to, "quote", body, receipt, now,
                subject=subject,
                media_url=document_url,
            )
            self._record_event(quote, "sent", from_status, QuoteStatus.SENT, now, {
                "channel": channel.value,
                "recipient": to,
                "message_id": receipt.message_id,
            })
            await self._commit(quote, now)

            logger.info(f"Quote {quote.id} sent to {to} via {channel.value}")
            return SendResult(
                sent_at=now,
                expires_at=quote.expires_at,
                communication=communication,
            )

    # -------------------------------------------------------------------------
    # Signature
    # -------------------------------------------------------------------------

    async def request_signature(
        self,
        quote_id: int,
        signer_name: str,
        signer_email: Optional[str] = None,
    ) -> SignatureRequestResult:
        """Issue an e-signature request. An open request is returned as is."""
        signer_name = (signer_name or "").strip()
        if not signer_name:
            raise WorkflowValidationError("Signer name is required", field="signer_name")
        if signer_email and not is_email(signer_email):
            raise WorkflowValidationError(f"'{signer_email}' is not a valid email address", field="signer_email")

        async with self.locks.lock_for(quote_id):
            quote = await self._load(quote_id)
            now = self.clock()
            self._ensure_not_converted(quote)

            current = quote.effective_status(now)
            if current not in SIGNATURE_REQUEST_STATUSES:
                message = f"Cannot request a signature for quote {quote.id}: quote is {current.value}"
                logger.warning(message)
                raise InvalidStateError(message, field="status")
            if quote.signature_id:
                raise InvalidStateError(f"Quote {quote.id} has already been signed", field="signature_id")

            pending_expiry = as_utc(quote.signature_request_expires_at)
            if quote.signature_request_id and pending_expiry and pending_expiry > now:
                return SignatureRequestResult(
                    signature_id=quote.signature_request_id,
                    signature_url=quote.signature_url,
                    expires_at=pending_expiry,
                    replayed=True,
                )

            request = await self._call(
                "signature",
                self.signature.create_request(quote, Signer(name=signer_name, email=signer_email)),
            )

            quote.signature_request_id = request.signature_id
            quote.signature_url = request.url
            quote.signature_requested_at = now
            quote.signature_request_expires_at = request.expires_at
            self._record_event(quote, "signature_requested", current, current, now, {
                "signature_id": request.signature_id,
                "signer_name": signer_name,
            })
            await self._commit(quote, now)

            logger.info(f"Signature {request.signature_id} requested for quote {quote.id}")
            return SignatureRequestResult(
                signature_id=request.signature_id,
                signature_url=request.url,
                expires_at=request.expires_at,
            )

    def _apply_signature(
        self,
        quote: Quote,
        signature_id: str,
        signed_by: str,
        signed_at: datetime,
        now: datetime,
    ) -> bool:
        """
        Record completed signature metadata. Returns False when the same
        signature was already recorded.
        """
        signed_at = as_utc(signed_at)
        if quote.signature_id is not None:
            if (
                quote.signature_id == signature_id
                and quote.signed_by == signed_by
                and as_utc(quote.signed_at) == signed_at
            ):
                return False
            raise InvalidStateError(
                f"Quote {quote.id} already carries signature {quote.signature_id}",
                field="signature_id",
            )

        self._ensure_not_converted(quote)
        current = quote.effective_status(now)
        if current not in SIGNABLE_STATUSES:
            message = f"Cannot record a signature on quote {quote.id}: quote is {current.value}"
            logger.warning(message)
            raise InvalidStateError(message, field="status")

        quote.signature_id = signature_id
        quote.signed_by = signed_by
        quote.signed_at = signed_at
        self._record_event(quote, "signature_completed", current, current, now, {
            "signature_id": signature_id,
            "signed_by": signed_by,
        })
        return True

    async def record_signature_completion(
        self,
        signature_id: str,
        signed_by: str,
        signed_at: datetime,
    ) -> Quote:
        """
        Attach a completed signature to its quote.

        Status never changes. Recording the identical signature again is a no-op.
        """
        signed_by = (signed_by or "").strip()
        if not signed_by:
            raise WorkflowValidationError("Signer name is required", field="signed_by")

        quote = await self.quotes.get_by_signature_request(signature_id)
        if quote is None or not self._owns(quote):
            raise NotFoundError(f"Signature request {signature_id} not found", field="signature_id")

        async with self.locks.lock_for(quote.id):
            quote = await self._load(quote.id)
            if quote.signature_request_id != signature_id:
                raise NotFoundError(f"Signature request {signature_id} not found", field="signature_id")

            now = self.clock()
            if self._apply_signature(quote, signature_id, signed_by, signed_at, now):
                await self._commit(quote, now)
                logger.info(f"Signature {signature_id} recorded on quote {quote.id} by {signed_by}")
            return quote

    async def sync_signature_status(self, quote_id: int) -> SignatureStatus:
        """Poll the signature gateway and record a completion it reports."""
        async with self.locks.lock_for(quote_id):
            quote = await self._load(quote_id)
            if not quote.signature_request_id:
                raise InvalidStateError(
                    f"No signature request has been issued for quote {quote.id}",
                    field="signature_id",
                )
            if quote.signature_id:
                return SignatureStatus(
                    signature_id=quote.signature_id,
                    status=SignatureState.COMPLETED,
                    signed_by=quote.signed_by,
                    signed_at=as_utc(quote.signed_at),
                )

            status = await self._call("signature", self.signature.check_status(quote.signature_request_id))

            if status.status == SignatureState.COMPLETED and status.signed_by:
                now = self.clock()
                if self._apply_signature(
                    quote,
                    quote.signature_request_id,
                    status.signed_by,
                    status.signed_at or now,
                    now,
                ):
                    await self._commit(quote, now)
            return status

    # -------------------------------------------------------------------------
    # Decisions
    # -------------------------------------------------------------------------

    async def _decide(self, quote_id: int, event: str, timestamp_field: str) -> Quote:
        _, target = TRANSITIONS[event]
        async with self.locks.lock_for(quote_id):
            quote = await self._load(quote_id)
            now = self.clock()
            self._ensure_not_converted(quote)

            if quote.status == target:
                return quote

            from_status = self._require(quote, event, now)
            quote.status = target
            setattr(quote, timestamp_field, now)
            self._record_event(quote, target.value, from_status, target, now)
            await self._commit(quote, now)

            logger.info(f"Quote {quote.id} {from_status.value} -> {target.value}")
            return quote

    async def approve_quote(self, quote_id: int) -> Quote:
        """Approve a sent, unexpired quote."""
        return await self._decide(quote_id, "approve", "approved_at")

    async def reject_quote(self, quote_id: int) -> Quote:
        """Reject a sent, unexpired quote."""
        return await self._decide(quote_id, "reject", "rejected_at")

    # -------------------------------------------------------------------------
    # Schedule and convert
    # -------------------------------------------------------------------------

    async def schedule_quote(
        self,
        quote_id: int,
        scheduled_date: date,
        scheduled_time: str,
        notes: Optional[str] = None,
        notify: bool = False,
        recipient: Optional[str] = None,
        channel: Optional[CommunicationChannel] = None,
    ) -> ScheduleResult:
        """
        Book an approved quote on the calendar.

        The calendar event is required. The customer notification is best
        effort: a failed delivery is recorded but does not undo the booking.
        """
        if scheduled_date is None:
            raise WorkflowValidationError("Scheduled date is required", field="scheduled_date")
        scheduled_time = (scheduled_time or "").strip()
        if not TIME_PATTERN.match(scheduled_time):
            raise WorkflowValidationError(
                f"'{scheduled_time}' is not a valid time (HH:MM, 24 hour)",
                field="scheduled_time",
            )

        async with self.locks.lock_for(quote_id):
            quote = await self._load(quote_id)
            now = self.clock()
            self._ensure_not_converted(quote)

            if (
                quote.status == QuoteStatus.SCHEDULED
                and quote.scheduled_date == scheduled_date
                and quote.scheduled_time == scheduled_time
                and quote.calendar_event_id
            ):
                return ScheduleResult(
                    calendar_event_id=quote.calendar_event_id,
                    scheduled_date=quote.scheduled_date,
                    scheduled_time=quote.scheduled_time,
                    notification=self._last_communication(quote, "schedule_notification"),
                    replayed=True,
                )

            from_status = self._require(quote, "schedule", now)
            if scheduled_date < now.date():
                raise WorkflowValidationError(
                    f"Scheduled date {scheduled_date.isoformat()} is in the past",
                    field="scheduled_date",
                )

            event = await self._call(
                "calendar",
                self.calendar.create_event(quote, scheduled_date, scheduled_time, notes),
            )

            notification = None
            if notify:
                notification = await self._notify_schedule(
                    quote, scheduled_date, scheduled_time, recipient, channel, now,
                )

            quote.status = QuoteStatus.SCHEDULED
            quote.scheduled_at = now
            quote.scheduled_date = scheduled_date
            quote.scheduled_time = scheduled_time
            quote.schedule_notes = notes
            quote.calendar_event_id = event.event_id
            self._record_event(quote, "scheduled", from_status, QuoteStatus.SCHEDULED, now, {
                "calendar_event_id": event.event_id,
                "scheduled_date": scheduled_date.isoformat(),
                "scheduled_time": scheduled_time,
            })
            await self._commit(quote, now)

            logger.info(f"Quote {quote.id} scheduled for {scheduled_date} {scheduled_time}")
            return ScheduleResult(
                calendar_event_id=event.event_id,
                scheduled_date=scheduled_date,
                scheduled_time=scheduled_time,
                notification=notification,
            )

    async def _notify_schedule(
        self,
        quote: Quote,
        scheduled_date: date,
        scheduled_time: str,
        recipient: Optional[str],
        channel: Optional[CommunicationChannel],
        now: datetime,
    ) -> Optional[QuoteCommunication]:
        try:
            channel, to = self._resolve_recipient(quote, recipient, channel)
        except WorkflowValidationError as e:
            logger.warning(f"Schedule notification for quote {quote.id} skipped: {e.message}")
            return None

        body = self._schedule_message(quote, scheduled_date, scheduled_time)
        subject = f"Appointment scheduled for quote {quote.quote_number}"
        try:
            receipt = await self._call(
                "communication",
                self.communication.send(channel, to, body, subject=subject),
            )
        except GatewayError as e:
            logger.warning(f"Schedule notification for quote {quote.id} failed: {e.message}")
            receipt = None

        return self._append_communication(
            quote, channel, to, "schedule_notification", body, receipt, now,
            subject=subject if channel == CommunicationChannel.EMAIL else None,
        )

    async def convert_to_job(self, quote_id: int) -> ConversionResult:
        """Create the job for an approved or scheduled quote. Terminal."""
        async with self.locks.lock_for(quote_id):
            quote = await self._load(quote_id)
            now = self.clock()
            self._ensure_not_converted(quote)
            from_status = self._require(quote, "convert", now)

            job = await self.jobs.create_from_quote(quote)

            quote.job_id = job.id
            quote.status = QuoteStatus.CONVERTED
            quote.converted_at = now
            self._record_event(quote, "converted", from_status, QuoteStatus.CONVERTED, now, {
                "job_id": job.id,
            })
            await self._commit(quote, now)

            logger.info(f"Quote {quote.id} converted to job {job.id}")
            return ConversionResult(job_id=job.id, converted_at=now)

    # -------------------------------------------------------------------------
    # Side-effect operations
    # -------------------------------------------------------------------------

    async def generate_document(
        self,
        quote_id: int,
        options: Optional[DocumentOptions] = None,
    ) -> DocumentResult:
        """Render the quote; the URL of the latest document is kept on the quote."""
        async with self.locks.lock_for(quote_id):
            quote = await self._load(quote_id)
            now = self.clock()
            self._ensure_not_converted(quote)

            document = await self._call("document", self.documents.render(quote, options or DocumentOptions()))

            current = quote.effective_status(now)
            quote.document_url = document.document_url
            self._record_event(quote, "document_generated", current, current, now, {
                "document_url": document.document_url,
            })
            await self._commit(quote, now)

            return DocumentResult(
                document_url=document.document_url,
                content_type=document.content_type,
                filename=document.filename,
            )

    async def send_follow_up(
        self,
        quote_id: int,
        body: str,
        recipient: Optional[str] = None,
        channel: Optional[CommunicationChannel] = None,
        subject: Optional[str] = None,
    ) -> QuoteCommunication:
        """Send an ad hoc message about a quote. Status is untouched."""
        body = (body or "").strip()
        if not body:
            raise WorkflowValidationError("Message body is required", field="body")

        async with self.locks.lock_for(quote_id):
            quote = await self._load(quote_id)
            now = self.clock()
            self._ensure_not_converted(quote)

            channel, to = self._resolve_recipient(quote, recipient, channel)
            if channel == CommunicationChannel.EMAIL:
                subject = subject or self._quote_subject(quote)
            else:
                subject = None

            receipt = await self._call(
                "communication",
                self.communication.send(channel, to, body, subject=subject),
            )

            communication = self._append_communication(
                quote, channel, to, "follow_up", body, receipt, now, subject=subject,
            )
            current = quote.effective_status(now)
            self._record_event(quote, "follow_up_sent", current, current, now, {
                "channel": channel.value,
                "recipient": to,
            })
            await self._commit(quote, now)
            return communication

    async def record_communication(
        self,
        quote_id: int,
        channel: CommunicationChannel,
        recipient: str,
        provider_status: str,
        message_id: Optional[str] = None,
        media_url: Optional[str] = None,
        body: Optional[str] = None,
        subject: Optional[str] = None,
        sent_at: Optional[datetime] = None,
    ) -> QuoteCommunication:
        """
        Log a contact made outside the engine, e.g. from the owner's phone.

        Only appends to the history: no gateway call and no status change,
        so converted quotes accept it too.
        """
        provider_status = (provider_status or "").strip()
        if not provider_status:
            raise WorkflowValidationError("Delivery status is required", field="provider_status")
        if not (recipient or "").strip():
            raise WorkflowValidationError("Recipient is required", field="recipient")

        async with self.locks.lock_for(quote_id):
            quote = await self._load(quote_id)
            now = self.clock()
            channel, to = self._resolve_recipient(quote, recipient, channel)

            communication = QuoteCommunication(
                channel=channel,
                recipient=to,
                purpose="external",
                subject=subject if channel == CommunicationChannel.EMAIL else None,
                body=body,
                provider_status=provider_status,
                message_id=message_id,
                media_url=media_url,
                sent_at=as_utc(sent_at) if sent_at else now,
                created_at=now,
                updated_at=now,
            )
            quote.communications.append(communication)
            current = quote.effective_status(now)
            self._record_event(quote, "communication_recorded", current, current, now, {
                "channel": channel.value,
                "recipient": to,
                "status": provider_status,
            })
            await self._commit(quote, now)

            logger.info(f"Recorded {channel.value} contact with {to} on quote {quote.id}")
            return communication

    async def get_communication_history(self, quote_id: int) -> List[QuoteCommunication]:
        quote = await self._load(quote_id, for_update=False)
        return list(quote.communications)

    # -------------------------------------------------------------------------
    # Batch export
    # -------------------------------------------------------------------------

    async def _validate_batch(
        self,
        quote_ids: Sequence[int],
        now: datetime,
        eligible: Optional[frozenset] = None,
    ) -> List[Quote]:
        """
        Check every id of a batch before anything leaves the system.

        Rejects empty batches, duplicates, unknown or foreign quotes and,
        when `eligible` is given, quotes whose effective status is not in it.
        The error field names the offending position.
        """
        if not quote_ids:
            raise WorkflowValidationError("At least one quote id is required", field="quote_ids")

        quotes = []
        seen = set()
        for index, quote_id in enumerate(quote_ids):
            if quote_id in seen:
                raise WorkflowValidationError(
                    f"Quote {quote_id} appears more than once in the batch",
                    field=f"quote_ids[{index}]",
                )
            seen.add(quote_id)

            quote = await self.quotes.get(quote_id)
            if quote is None or not self._owns(quote):
                raise WorkflowValidationError(f"Quote {quote_id} does not exist", field=f"quote_ids[{index}]")
            current = quote.effective_status(now)
            if eligible is not None and current not in eligible:
                raise WorkflowValidationError(
                    f"Quote {quote_id} is {current.value}; only approved, scheduled "
                    f"or converted quotes can be exported",
                    field=f"quote_ids[{index}]",
                )
            quotes.append(quote)
        return quotes

    async def export_to_spreadsheet(self, quote_ids: Sequence[int]) -> SpreadsheetExport:
        """
        Export quotes as a CSV sheet, one row per quote in input order.

        Any status can be exported. The batch is validated as a whole and
        nothing is written to the quotes.
        """
        now = self.clock()
        quotes = await self._validate_batch(quote_ids, now)

        content = quotes_to_csv(quotes, now)
        filename = f"quotes_export_{now.strftime('%Y%m%d_%H%M%S')}.csv"

        logger.info(f"Spreadsheet export: {len(quotes)} quotes in {filename}")
        return SpreadsheetExport(
            filename=filename,
            content=content,
            exported_count=len(quotes),
            exported_at=now,
        )

    async def export_to_accounting(
        self,
        quote_ids: Sequence[int],
        export_type: ExportType,
    ) -> List[ExportItemResult]:
        """
        Export quotes to the ledger.

        The whole batch is validated first: any unknown or ineligible quote
        rejects the batch before the gateway is called. After that each
        quote is exported on its own and failures are reported per item,
        in input order.
        """
        try:
            export_type = ExportType(export_type)
        except ValueError:
            raise WorkflowValidationError(
                f"Unknown export type '{export_type}'",
                field="export_type",
            )

        await self._validate_batch(quote_ids, self.clock(), EXPORTABLE_STATUSES)

        results = []
        for quote_id in quote_ids:
            results.append(await self._export_one(quote_id, export_type))

        exported = sum(1 for r in results if r.success)
        logger.info(f"Accounting export ({export_type.value}): {exported}/{len(results)} quotes exported")
        return results

    async def _export_one(self, quote_id: int, export_type: ExportType) -> ExportItemResult:
        async with self.locks.lock_for(quote_id):
            try:
                quote = await self._load(quote_id)
            except NotFoundError as e:
                logger.warning(f"Quote {quote_id} disappeared before export")
                return ExportItemResult(quote_id=quote_id, success=False, error=e.message)
            now = self.clock()
            current = quote.effective_status(now)
            if current not in EXPORTABLE_STATUSES:
                return ExportItemResult(
                    quote_id=quote_id,
                    success=False,
                    error=f"Quote {quote_id} is {current.value} and can no longer be exported",
                )

            try:
                receipt = await self._call("accounting", self.accounting.export(quote, export_type))
            except GatewayError as e:
                return ExportItemResult(quote_id=quote_id, success=False, error=e.message)

            quote.accounting_export_id = receipt.export_id
            quote.accounting_exported_at = now
            self._record_event(quote, "exported", current, current, now, {
                "export_type": export_type.value,
                "export_id": receipt.export_id,
            })
            await self._commit(quote, now)

            return ExportItemResult(
                quote_id=quote_id,
                success=True,
                export_id=receipt.export_id,
                export_url=receipt.export_url,
            )

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    async def get_workflow_metrics(self, quotes: Optional[Sequence[Quote]] = None) -> WorkflowMetrics:
        if quotes is None:
            quotes = await self.quotes.list(owner_id=self.owner_id)
        return compute_workflow_metrics(quotes, self.clock())
