"""
Provider adapter tests. HTTP providers run against httpx.MockTransport.
"""

import json
from datetime import date, datetime, timezone

import httpx
import pytest

from app.core.config import Settings
from app.core.contact import is_e164, is_email, to_e164
from app.gateways.accounting import QuickBooksExportGateway
from app.gateways.base import (
    Attachment,
    DeliveryError,
    DocumentOptions,
    ExportType,
    GatewayUnavailable,
    SignatureState,
    Signer,
)
from app.gateways.calendar import GoogleCalendarGateway, LocalCalendarGateway, visit_window
from app.gateways.communication import ProviderCommunicationGateway, SmtpEmailSender, TwilioSmsSender
from app.gateways.document import PdfDocumentGateway
from app.gateways.signature import PortalSignatureGateway
from app.models.quote import CommunicationChannel
from app.services.pdf import QuotePDFRenderer

from tests.fakes import make_quote


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# =============================================================================
# CONTACT HELPERS
# =============================================================================

@pytest.mark.parametrize("raw,expected", [
    ("(201) 555-0123", "+12015550123"),
    ("1-201-555-0123", "+12015550123"),
    ("+44 121 234 5678", "+441212345678"),
    ("555-1234", None),
    ("not a phone", None),
    ("", None),
])
def test_to_e164(raw, expected):
    assert to_e164(raw) == expected


def test_to_e164_reads_national_numbers_in_the_given_region():
    assert to_e164("0121 234 5678", default_region="GB") == "+441212345678"


def test_is_e164():
    assert is_e164("+12015550123")
    assert not is_e164("2015550123")
    assert not is_e164("+1 201 555 0123")


@pytest.mark.parametrize("value,valid", [
    ("dana@example.com", True),
    ("dana@example", False),
    ("dana@example..com", False),
    ("a@b..com", False),
    ("+12015550123", False),
])
def test_is_email(value, valid):
    assert is_email(value) is valid


# =============================================================================
# ACCOUNTING
# =============================================================================

QUICKBOOKS_SETTINGS = dict(
    QUICKBOOKS_REALM_ID="9130",
    QUICKBOOKS_ACCESS_TOKEN="qb-token",
    QUICKBOOKS_DEFAULT_CUSTOMER_REF="58",
)


async def test_quickbooks_export_invoice():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"Invoice": {"Id": "145"}})

    quote = make_quote()
    quote.id = 7
    gateway = QuickBooksExportGateway(Settings(**QUICKBOOKS_SETTINGS), http_client=mock_client(handler))

    receipt = await gateway.export(quote, ExportType.INVOICE)

    assert receipt.export_id == "145"
    assert receipt.export_url == "https://app.sandbox.qbo.intuit.com/app/invoice?txnId=145"

    request = requests[0]
    assert str(request.url) == "https://sandbox-quickbooks.api.intuit.com/v3/company/9130/invoice"
    assert request.headers["Authorization"] == "Bearer qb-token"
    payload = json.loads(request.content)
    assert payload["CustomerRef"] == {"value": "58"}
    assert payload["DocNumber"] == "Q-2026-00001"
    assert payload["BillEmail"] == {"Address": "dana@example.com"}
    assert [line["Amount"] for line in payload["Line"]] == [100.0, 25.0]
    assert payload["TxnTaxDetail"] == {"TotalTax": 12.5}


async def test_quickbooks_sales_receipt_endpoint():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/salesreceipt")
        return httpx.Response(200, json={"SalesReceipt": {"Id": "9"}})

    gateway = QuickBooksExportGateway(Settings(**QUICKBOOKS_SETTINGS), http_client=mock_client(handler))

    receipt = await gateway.export(make_quote(), ExportType.SALES_RECEIPT)

    assert receipt.export_id == "9"


async def test_quickbooks_error_response():
    gateway = QuickBooksExportGateway(
        Settings(**QUICKBOOKS_SETTINGS),
        http_client=mock_client(lambda request: httpx.Response(400, json={"Fault": {}})),
    )

    with pytest.raises(GatewayUnavailable):
        await gateway.export(make_quote(), ExportType.ESTIMATE)


async def test_quickbooks_not_configured():
    gateway = QuickBooksExportGateway(Settings(QUICKBOOKS_REALM_ID=None))

    with pytest.raises(GatewayUnavailable):
        await gateway.export(make_quote(), ExportType.INVOICE)


# =============================================================================
# COMMUNICATION
# =============================================================================

TWILIO_SETTINGS = dict(
    TWILIO_ACCOUNT_SID="AC123",
    TWILIO_AUTH_TOKEN="secret",
    TWILIO_FROM_NUMBER="+12015550100",
)


async def test_twilio_sms():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201, json={"sid": "SM42", "status": "queued"})

    sender = TwilioSmsSender(Settings(**TWILIO_SETTINGS), http_client=mock_client(handler))

    receipt = await sender.send("+12015550123", "Your quote is ready", media_url="https://docs.test/q.pdf")

    assert receipt.message_id == "SM42"
    assert receipt.status == "queued"
    assert requests[0].url.path == "/2010-04-01/Accounts/AC123/Messages.json"
    assert b"To=%2B12015550123" in requests[0].content
    assert b"MediaUrl=" in requests[0].content


async def test_twilio_rejects_non_e164():
    sender = TwilioSmsSender(Settings(**TWILIO_SETTINGS))

    with pytest.raises(DeliveryError):
        await sender.send("555-1234", "Hello")


async def test_provider_routes_sms_with_document_link():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201, json={"sid": "SM1"})

    settings = Settings(**TWILIO_SETTINGS)
    gateway = ProviderCommunicationGateway(
        SmtpEmailSender(settings),
        TwilioSmsSender(settings, http_client=mock_client(handler)),
    )

    await gateway.send(
        CommunicationChannel.SMS,
        "+12015550123",
        "Quote ready",
        attachments=[Attachment(filename="q.pdf", url="https://docs.test/q.pdf")],
    )

    assert b"MediaUrl=https%3A%2F%2Fdocs.test%2Fq.pdf" in requests[0].content


async def test_email_not_configured():
    gateway = ProviderCommunicationGateway(
        SmtpEmailSender(Settings(SMTP_USER=None, SMTP_PASSWORD=None)),
        TwilioSmsSender(Settings()),
    )

    with pytest.raises(DeliveryError):
        await gateway.send(CommunicationChannel.EMAIL, "dana@example.com", "Hi", subject="Quote")


# =============================================================================
# CALENDAR
# =============================================================================

def test_visit_window():
    start, end = visit_window(date(2026, 3, 10), "09:30")

    assert start == datetime(2026, 3, 10, 9, 30)
    assert (end - start).total_seconds() == 3600


async def test_google_calendar_event():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"id": "evt_1", "htmlLink": "https://calendar.test/evt_1"})

    gateway = GoogleCalendarGateway(
        Settings(GOOGLE_CALENDAR_ACCESS_TOKEN="g-token", GOOGLE_CALENDAR_TIMEZONE="America/Chicago"),
        http_client=mock_client(handler),
    )

    event = await gateway.create_event(make_quote(), date(2026, 3, 10), "09:00", notes="Gate code 1234")

    assert event.event_id == "evt_1"
    body = json.loads(requests[0].content)
    assert body["summary"] == "Spring cleanup - Dana Rivera"
    assert body["start"] == {"dateTime": "2026-03-10T09:00:00", "timeZone": "America/Chicago"}
    assert "Gate code 1234" in body["description"]


async def test_google_calendar_failure():
    gateway = GoogleCalendarGateway(
        Settings(GOOGLE_CALENDAR_ACCESS_TOKEN="g-token"),
        http_client=mock_client(lambda request: httpx.Response(500)),
    )

    with pytest.raises(GatewayUnavailable):
        await gateway.create_event(make_quote(), date(2026, 3, 10), "09:00")


async def test_local_calendar_event():
    event = await LocalCalendarGateway().create_event(make_quote(), date(2026, 3, 10), "16:00")

    assert event.event_id.startswith("cal_")
    assert event.details["end"] == "2026-03-10T17:00:00"


# =============================================================================
# SIGNATURE AND DOCUMENTS
# =============================================================================

async def test_portal_signature_request():
    gateway = PortalSignatureGateway(Settings(FRONTEND_URL="https://portal.test/"))

    request = await gateway.create_request(make_quote(), Signer(name="Dana Rivera"))
    status = await gateway.check_status(request.signature_id)

    assert request.url == f"https://portal.test/sign/{request.signature_id}"
    assert request.expires_at > datetime.now(timezone.utc)
    assert status.status == SignatureState.PENDING


async def test_pdf_renderer_writes_file(tmp_path):
    renderer = QuotePDFRenderer(str(tmp_path / "quotes"))
    generated_at = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    path = await renderer.render(make_quote(notes="Bring ladder", terms="Net 15"), DocumentOptions(), generated_at)

    assert path.name == "quote_Q-2026-00001_20260302090000.pdf"
    assert path.read_bytes().startswith(b"%PDF")


async def test_pdf_document_gateway(tmp_path):
    gateway = PdfDocumentGateway(Settings(DOCUMENT_STORAGE_PATH=str(tmp_path), API_BASE_URL="http://api.test/"))

    document = await gateway.render(make_quote(), DocumentOptions(include_signature=False))

    assert document.content_type == "application/pdf"
    assert document.document_url == f"http://api.test/documents/{document.filename}"
    assert (tmp_path / document.filename).exists()


def test_format_currency():
    assert QuotePDFRenderer.format_currency(make_quote().total) == "$137.50"
