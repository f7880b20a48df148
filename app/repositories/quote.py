"""
Quote repository - storage operations for quotes.

QuoteRepository is the store interface the workflow engine depends on;
SQLQuoteRepository implements it on an AsyncSession.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.quote import Quote, QuoteStatus


class QuoteRepository(ABC):
    """Store of Quote records (get/save/list)."""

    @abstractmethod
    async def get(self, quote_id: int) -> Optional[Quote]:
        """Load a quote with items, communications and events."""

    async def get_for_update(self, quote_id: int) -> Optional[Quote]:
        """
        Load a quote for modification, locking its row until the caller's
        transaction ends. Stores without row locks fall back to get().
        """
        return await self.get(quote_id)

    @abstractmethod
    async def get_by_signature_request(self, signature_id: str) -> Optional[Quote]:
        """Find the quote a signature request was issued for."""

    @abstractmethod
    async def list(self, owner_id: Optional[int] = None) -> List[Quote]:
        """All quotes, optionally limited to one owner."""

    @abstractmethod
    async def save(self, quote: Quote) -> Quote:
        """Persist a new or modified quote."""


def effective_status_filter(status: QuoteStatus, now: datetime):
    """SQL condition matching quotes whose effective status is `status`."""
    if status == QuoteStatus.EXPIRED:
        return and_(
            Quote.status == QuoteStatus.SENT,
            Quote.expires_at.is_not(None),
            Quote.expires_at <= now,
        )
    if status == QuoteStatus.SENT:
        return and_(
            Quote.status == QuoteStatus.SENT,
            or_(Quote.expires_at.is_(None), Quote.expires_at > now),
        )
    return Quote.status == status


def select_quote_for_update(quote_id: int):
    """
    SELECT ... FOR UPDATE on the quote row. Concurrent workers modifying
    the same quote queue on the row until the holder commits.
    """
    return (
        select(Quote)
        .where(Quote.id == quote_id)
        .with_for_update(of=Quote)
        .execution_options(populate_existing=True)
    )


class SQLQuoteRepository(QuoteRepository):
    """QuoteRepository backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, quote_id: int) -> Optional[Quote]:
        result = await self.db.execute(
            select(Quote)
            .where(Quote.id == quote_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, quote_id: int) -> Optional[Quote]:
        result = await self.db.execute(select_quote_for_update(quote_id))
        return result.scalar_one_or_none()

    async def get_by_signature_request(self, signature_id: str) -> Optional[Quote]:
        result = await self.db.execute(
            select(Quote).where(Quote.signature_request_id == signature_id)
        )
        return result.scalar_one_or_none()

    async def list(self, owner_id: Optional[int] = None) -> List[Quote]:
        query = select(Quote)
        if owner_id is not None:
            query = query.where(Quote.owner_id == owner_id)
        result = await self.db.execute(query.order_by(Quote.id))
        return list(result.scalars().all())

    async def save(self, quote: Quote) -> Quote:
        """
        Flush and commit so the change is durable before the
        caller releases the quote's lock.
        """
        self.db.add(quote)
        await self.db.flush()
        await self.db.commit()
        return quote

    async def search(
        self,
        owner_id: int,
        skip: int = 0,
        limit: int = 20,
        status: QuoteStatus | None = None,
        customer_id: int | None = None,
        now: datetime | None = None,
    ) -> Tuple[List[Quote], int]:
        """List quotes with pagination, filtering on effective status."""
        now = now or utcnow()
        conditions = [Quote.owner_id == owner_id]

        if status:
            conditions.append(effective_status_filter(status, now))

        if customer_id:
            conditions.append(Quote.customer_id == customer_id)

        total_result = await self.db.execute(
            select(func.count(Quote.id)).where(*conditions)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Quote)
            .where(*conditions)
            .order_by(Quote.created_at.desc(), Quote.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def count_for_prefix(self, owner_id: int, prefix: str) -> int:
        result = await self.db.execute(
            select(func.count(Quote.id)).where(
                Quote.owner_id == owner_id,
                Quote.quote_number.like(f"{prefix}%"),
            )
        )
        return result.scalar() or 0
