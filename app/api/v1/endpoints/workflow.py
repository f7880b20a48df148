"""
Quote workflow endpoints.
One POST per workflow operation; errors are returned as typed workflow errors.
"""

from fastapi import APIRouter, status
from fastapi.responses import StreamingResponse

from app.api.deps import WorkflowEngine
from app.gateways.base import DocumentOptions
from app.models.quote import QuoteStatus
from app.schemas.quote import QuoteResponse, QuoteCommunicationResponse
from app.schemas.workflow import (
    SendQuoteRequest,
    SendQuoteResponse,
    SignatureRequestCreate,
    SignatureRequestResponse,
    SignatureCompletionRequest,
    SignatureStatusResponse,
    ScheduleQuoteRequest,
    ScheduleQuoteResponse,
    ConversionResponse,
    DocumentRequest,
    DocumentResponse,
    FollowUpRequest,
    CommunicationRecordCreate,
    ExportRequest,
    ExportItemResponse,
    ExportResponse,
    SpreadsheetExportRequest,
    WorkflowMetricsResponse,
    ErrorResponse,
)


router = APIRouter(
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)


def _communication(communication) -> QuoteCommunicationResponse | None:
    if communication is None:
        return None
    return QuoteCommunicationResponse.model_validate(communication)


@router.post(
    "/quotes/{quote_id}/send",
    response_model=SendQuoteResponse,
    summary="Send a quote",
    description="Deliver a draft quote by email or SMS and mark it sent",
)
async def send_quote(
    quote_id: int,
    data: SendQuoteRequest,
    engine: WorkflowEngine,
) -> SendQuoteResponse:
    result = await engine.send_quote(
        quote_id,
        recipient=data.recipient,
        message=data.message,
        channel=data.channel,
    )
    return SendQuoteResponse(
        quote_id=quote_id,
        status=QuoteStatus.SENT,
        sent_at=result.sent_at,
        expires_at=result.expires_at,
        replayed=result.replayed,
        communication=_communication(result.communication),
    )


@router.post(
    "/quotes/{quote_id}/signature",
    response_model=SignatureRequestResponse,
    summary="Request a signature",
)
async def request_signature(
    quote_id: int,
    data: SignatureRequestCreate,
    engine: WorkflowEngine,
) -> SignatureRequestResponse:
    result = await engine.request_signature(quote_id, data.signer_name, data.signer_email)
    return SignatureRequestResponse(
        quote_id=quote_id,
        signature_id=result.signature_id,
        signature_url=result.signature_url,
        expires_at=result.expires_at,
        replayed=result.replayed,
    )


@router.post(
    "/quotes/{quote_id}/signature/sync",
    response_model=SignatureStatusResponse,
    summary="Poll signature status",
)
async def sync_signature_status(
    quote_id: int,
    engine: WorkflowEngine,
) -> SignatureStatusResponse:
    status = await engine.sync_signature_status(quote_id)
    return SignatureStatusResponse.model_validate(status)


@router.post(
    "/signatures/{signature_id}/complete",
    response_model=QuoteResponse,
    summary="Record a completed signature",
    description="Completion callback; does not change the quote status",
)
async def record_signature_completion(
    signature_id: str,
    data: SignatureCompletionRequest,
    engine: WorkflowEngine,
) -> QuoteResponse:
    quote = await engine.record_signature_completion(signature_id, data.signed_by, data.signed_at)
    return QuoteResponse.from_model(quote)


@router.post(
    "/quotes/{quote_id}/approve",
    response_model=QuoteResponse,
    summary="Approve a quote",
)
async def approve_quote(
    quote_id: int,
    engine: WorkflowEngine,
) -> QuoteResponse:
    quote = await engine.approve_quote(quote_id)
    return QuoteResponse.from_model(quote)


@router.post(
    "/quotes/{quote_id}/reject",
    response_model=QuoteResponse,
    summary="Reject a quote",
)
async def reject_quote(
    quote_id: int,
    engine: WorkflowEngine,
) -> QuoteResponse:
    quote = await engine.reject_quote(quote_id)
    return QuoteResponse.from_model(quote)


@router.post(
    "/quotes/{quote_id}/schedule",
    response_model=ScheduleQuoteResponse,
    summary="Schedule an approved quote",
)
async def schedule_quote(
    quote_id: int,
    data: ScheduleQuoteRequest,
    engine: WorkflowEngine,
) -> ScheduleQuoteResponse:
    result = await engine.schedule_quote(
        quote_id,
        data.scheduled_date,
        data.scheduled_time,
        notes=data.notes,
        notify=data.notify,
        recipient=data.recipient,
        channel=data.channel,
    )
    return ScheduleQuoteResponse(
        quote_id=quote_id,
        status=QuoteStatus.SCHEDULED,
        calendar_event_id=result.calendar_event_id,
        scheduled_date=result.scheduled_date,
        scheduled_time=result.scheduled_time,
        replayed=result.replayed,
        notification=_communication(result.notification),
    )


@router.post(
    "/quotes/{quote_id}/convert",
    response_model=ConversionResponse,
    summary="Convert a quote to a job",
)
async def convert_to_job(
    quote_id: int,
    engine: WorkflowEngine,
) -> ConversionResponse:
    result = await engine.convert_to_job(quote_id)
    return ConversionResponse(
        quote_id=quote_id,
        job_id=result.job_id,
        converted_at=result.converted_at,
    )


@router.post(
    "/quotes/{quote_id}/document",
    response_model=DocumentResponse,
    summary="Generate the quote document",
)
async def generate_document(
    quote_id: int,
    data: DocumentRequest,
    engine: WorkflowEngine,
) -> DocumentResponse:
    result = await engine.generate_document(quote_id, DocumentOptions(**data.model_dump()))
    return DocumentResponse(
        quote_id=quote_id,
        document_url=result.document_url,
        content_type=result.content_type,
        filename=result.filename,
    )


@router.post(
    "/quotes/{quote_id}/follow-up",
    response_model=QuoteCommunicationResponse,
    summary="Send a follow-up message",
)
async def send_follow_up(
    quote_id: int,
    data: FollowUpRequest,
    engine: WorkflowEngine,
) -> QuoteCommunicationResponse:
    communication = await engine.send_follow_up(
        quote_id,
        data.body,
        recipient=data.recipient,
        channel=data.channel,
        subject=data.subject,
    )
    return QuoteCommunicationResponse.model_validate(communication)


@router.post(
    "/quotes/{quote_id}/communications",
    response_model=QuoteCommunicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a communication",
    description="Log a contact made outside the app; the history is append-only",
)
async def record_communication(
    quote_id: int,
    data: CommunicationRecordCreate,
    engine: WorkflowEngine,
) -> QuoteCommunicationResponse:
    communication = await engine.record_communication(
        quote_id,
        data.channel,
        data.recipient,
        data.provider_status,
        message_id=data.message_id,
        media_url=data.media_url,
        body=data.body,
        subject=data.subject,
        sent_at=data.sent_at,
    )
    return QuoteCommunicationResponse.model_validate(communication)


@router.post(
    "/export",
    response_model=ExportResponse,
    summary="Export quotes to accounting",
    description="The batch is rejected as a whole if any quote is unknown or ineligible",
)
async def export_to_accounting(
    data: ExportRequest,
    engine: WorkflowEngine,
) -> ExportResponse:
    results = await engine.export_to_accounting(data.quote_ids, data.export_type)
    exported = sum(1 for r in results if r.success)
    return ExportResponse(
        export_type=data.export_type,
        exported=exported,
        failed=len(results) - exported,
        results=[ExportItemResponse.model_validate(r) for r in results],
    )


@router.post(
    "/export/spreadsheet",
    summary="Export quotes to a spreadsheet",
    description="CSV download, one row per quote. The batch is rejected as a whole if any quote is unknown",
    response_class=StreamingResponse,
)
async def export_to_spreadsheet(
    data: SpreadsheetExportRequest,
    engine: WorkflowEngine,
) -> StreamingResponse:
    export = await engine.export_to_spreadsheet(data.quote_ids)
    return StreamingResponse(
        iter([export.content]),
        media_type=export.content_type,
        headers={
            "Content-Disposition": f"attachment; filename={export.filename}",
            "Cache-Control": "no-cache",
        },
    )


@router.get(
    "/metrics",
    response_model=WorkflowMetricsResponse,
    summary="Workflow metrics",
)
async def get_workflow_metrics(
    engine: WorkflowEngine,
) -> WorkflowMetricsResponse:
    metrics = await engine.get_workflow_metrics()
    return WorkflowMetricsResponse.model_validate(metrics)
