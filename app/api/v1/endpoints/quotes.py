"""
Quote endpoints.
Draft creation and editing, listing with effective status, history.
"""

from fastapi import APIRouter, Query, status

from app.api.deps import DbSession, CurrentUser, WorkflowEngine
from app.models.base import utcnow
from app.models.quote import QuoteStatus
from app.schemas.base import page_count
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
from app.services.quote import QuoteService


router = APIRouter()


@router.post(
    "",
    response_model=QuoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a draft quote",
)
async def create_quote(
    data: QuoteCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> QuoteResponse:
    service = QuoteService(db)
    quote = await service.create(current_user, data)
    return QuoteResponse.from_model(quote)


@router.get(
    "",
    response_model=QuoteListResponse,
    summary="List quotes",
    description="Paginated list; the status filter applies to the effective status",
)
async def list_quotes(
    current_user: CurrentUser,
    db: DbSession,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    status: QuoteStatus | None = Query(None, description="Filter by status (expired included)"),
    customer_id: int | None = Query(None, description="Filter by customer"),
) -> QuoteListResponse:
    service = QuoteService(db)
    skip = (page - 1) * per_page

    quotes, total = await service.list(
        owner_id=current_user.id,
        skip=skip,
        limit=per_page,
        status=status,
        customer_id=customer_id,
    )

    now = utcnow()
    pages = page_count(total, per_page)

    return QuoteListResponse(
        items=[QuoteSummary.from_model(q, now) for q in quotes],
        total=total,
        page=page,
        per_page=per_page,
        pages=pages,
    )


@router.get(
    "/{quote_id}",
    response_model=QuoteResponse,
    summary="Quote details",
)
async def get_quote(
    quote_id: int,
    current_user: CurrentUser,
    db: DbSession,
) -> QuoteResponse:
    service = QuoteService(db)
    quote = await service.get_or_404(quote_id, current_user.id)
    return QuoteResponse.from_model(quote)


@router.patch(
    "/{quote_id}",
    response_model=QuoteResponse,
    summary="Update a draft quote",
)
async def update_quote(
    quote_id: int,
    data: QuoteUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> QuoteResponse:
    service = QuoteService(db)
    quote = await service.update(quote_id, current_user.id, data)
    return QuoteResponse.from_model(quote)


@router.post(
    "/{quote_id}/items",
    response_model=QuoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a line item",
)
async def add_quote_item(
    quote_id: int,
    data: QuoteItemCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> QuoteResponse:
    service = QuoteService(db)
    quote = await service.add_item(quote_id, current_user.id, data)
    return QuoteResponse.from_model(quote)


@router.patch(
    "/{quote_id}/items/{item_id}",
    response_model=QuoteResponse,
    summary="Update a line item",
)
async def update_quote_item(
    quote_id: int,
    item_id: int,
    data: QuoteItemUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> QuoteResponse:
    service = QuoteService(db)
    quote = await service.update_item(quote_id, current_user.id, item_id, data)
    return QuoteResponse.from_model(quote)


@router.delete(
    "/{quote_id}/items/{item_id}",
    response_model=QuoteResponse,
    summary="Remove a line item",
)
async def remove_quote_item(
    quote_id: int,
    item_id: int,
    current_user: CurrentUser,
    db: DbSession,
) -> QuoteResponse:
    service = QuoteService(db)
    quote = await service.remove_item(quote_id, current_user.id, item_id)
    return QuoteResponse.from_model(quote)


@router.get(
    "/{quote_id}/communications",
    response_model=list[QuoteCommunicationResponse],
    summary="Communication history",
)
async def get_communication_history(
    quote_id: int,
    engine: WorkflowEngine,
) -> list[QuoteCommunicationResponse]:
    communications = await engine.get_communication_history(quote_id)
    return [QuoteCommunicationResponse.model_validate(c) for c in communications]


@router.get(
    "/{quote_id}/events",
    response_model=list[QuoteEventResponse],
    summary="Workflow audit trail",
)
async def get_quote_events(
    quote_id: int,
    current_user: CurrentUser,
    db: DbSession,
) -> list[QuoteEventResponse]:
    service = QuoteService(db)
    quote = await service.get_or_404(quote_id, current_user.id)
    return [QuoteEventResponse.model_validate(e) for e in quote.events]
