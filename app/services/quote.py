"""
Quote service.
Handles draft quotes: creation, header fields and line items.

Status changes go through the workflow engine; edits here take the same
per-quote lock and are only allowed while the quote is a draft.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import AlreadyConvertedError, InvalidStateError, NotFoundError
from app.models.base import utcnow
from app.models.quote import Quote, QuoteItem, QuoteStatus
from app.models.user import User
from app.repositories.quote import SQLQuoteRepository
from app.schemas.quote import (
    QuoteCreate,
    QuoteUpdate,
    QuoteItemCreate,
    QuoteItemUpdate,
)
from app.services.customer import CustomerService
from app.services.workflow import QuoteLockRegistry, quote_locks


logger = logging.getLogger(__name__)


class QuoteService:
    """Service for draft quote operations."""

    def __init__(
        self,
        db: AsyncSession,
        locks: QuoteLockRegistry | None = None,
        default_tax_rate: Decimal | None = None,
    ):
        self.db = db
        self.repository = SQLQuoteRepository(db)
        self.customers = CustomerService(db)
        self.locks = locks or quote_locks
        if default_tax_rate is None:
            default_tax_rate = Decimal(str(settings.DEFAULT_TAX_RATE))
        self.default_tax_rate = default_tax_rate

    async def _generate_quote_number(self, owner_id: int) -> str:
        """
        Generate the next quote number for an owner.
        Format: Q-{year}-{sequence}
        """
        prefix = f"Q-{date.today().year}-"
        count = await self.repository.count_for_prefix(owner_id, prefix)
        return f"{prefix}{str(count + 1).zfill(5)}"

    async def create(self, owner: User, data: QuoteCreate) -> Quote:
        """Create a draft quote with its initial items."""
        await self.customers.get_or_404(data.customer_id, owner.id)

        quote = Quote(
            owner_id=owner.id,
            customer_id=data.customer_id,
            quote_number=await self._generate_quote_number(owner.id),
            title=data.title,
            notes=data.notes,
            terms=data.terms,
            tax_rate=data.tax_rate if data.tax_rate is not None else self.default_tax_rate,
            margin=data.margin,
            status=QuoteStatus.DRAFT,
            items=[QuoteItem(**item.model_dump()) for item in data.items],
        )
        quote.calculate_totals()

        await self.repository.save(quote)
        logger.info(f"Quote {quote.quote_number} created for customer {data.customer_id}")

        return await self.get_or_404(quote.id, owner.id)

    async def get_or_404(self, quote_id: int, owner_id: int, for_update: bool = False) -> Quote:
        if for_update:
            quote = await self.repository.get_for_update(quote_id)
        else:
            quote = await self.repository.get(quote_id)
        if quote is None or quote.owner_id != owner_id:
            raise NotFoundError(f"Quote {quote_id} not found", field="quote_id")
        return quote

    async def list(
        self,
        owner_id: int,
        skip: int = 0,
        limit: int = 20,
        status: QuoteStatus | None = None,
        customer_id: int | None = None,
    ) -> tuple[list[Quote], int]:
        """List quotes with pagination, filtering on effective status."""
        return await self.repository.search(
            owner_id=owner_id,
            skip=skip,
            limit=limit,
            status=status,
            customer_id=customer_id,
            now=utcnow(),
        )

    async def _edit_draft(self, quote_id: int, owner_id: int, mutate: Callable[[Quote], None]) -> Quote:
        """Apply `mutate` to a draft under its locks and re-derive totals."""
        async with self.locks.lock_for(quote_id):
            quote = await self.get_or_404(quote_id, owner_id, for_update=True)
            if quote.is_converted:
                raise AlreadyConvertedError(quote.id)
            if quote.status != QuoteStatus.DRAFT:
                raise InvalidStateError(
                    f"Quote {quote.id} is {quote.effective_status().value}; only drafts can be edited",
                    field="status",
                )

            mutate(quote)
            quote.calculate_totals()
            quote.touch()
            await self.repository.save(quote)

        return await self.get_or_404(quote_id, owner_id)

    async def update(self, quote_id: int, owner_id: int, data: QuoteUpdate) -> Quote:
        """Update draft header fields."""
        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("customer_id") is not None:
            await self.customers.get_or_404(update_data["customer_id"], owner_id)
        elif "customer_id" in update_data:
            del update_data["customer_id"]
        if "tax_rate" in update_data and update_data["tax_rate"] is None:
            update_data["tax_rate"] = self.default_tax_rate

        def apply(quote: Quote) -> None:
            for field, value in update_data.items():
                setattr(quote, field, value)

        return await self._edit_draft(quote_id, owner_id, apply)

    async def add_item(self, quote_id: int, owner_id: int, data: QuoteItemCreate) -> Quote:
        def apply(quote: Quote) -> None:
            quote.items.append(QuoteItem(position=len(quote.items), **data.model_dump()))

        return await self._edit_draft(quote_id, owner_id, apply)

    @staticmethod
    def _find_item(quote: Quote, item_id: int) -> QuoteItem:
        item = next((i for i in quote.items if i.id == item_id), None)
        if item is None:
            raise NotFoundError(f"Item {item_id} not found on quote {quote.id}", field="item_id")
        return item

    async def update_item(
        self,
        quote_id: int,
        owner_id: int,
        item_id: int,
        data: QuoteItemUpdate,
    ) -> Quote:
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)

        def apply(quote: Quote) -> None:
            item = self._find_item(quote, item_id)
            for field, value in update_data.items():
                setattr(item, field, value)

        return await self._edit_draft(quote_id, owner_id, apply)

    async def remove_item(self, quote_id: int, owner_id: int, item_id: int) -> Quote:
        def apply(quote: Quote) -> None:
            quote.items.remove(self._find_item(quote, item_id))

        return await self._edit_draft(quote_id, owner_id, apply)
