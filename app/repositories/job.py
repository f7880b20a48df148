"""
Job repository - creates jobs from converted quotes.
"""

from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.job import Job, JobStatus
from app.models.quote import Quote


def job_from_quote(quote: Quote) -> Job:
    """Build the job record a quote converts into."""
    return Job(
        owner_id=quote.owner_id,
        customer_id=quote.customer_id,
        quote_id=quote.id,
        title=quote.title or f"Job for quote {quote.quote_number}",
        status=JobStatus.SCHEDULED if quote.scheduled_date else JobStatus.UNSCHEDULED,
        scheduled_date=quote.scheduled_date,
        scheduled_time=quote.scheduled_time,
        total=quote.total,
        notes=quote.schedule_notes or quote.notes,
    )


class JobRepository(ABC):
    """Store of jobs created by quote conversion."""

    @abstractmethod
    async def create_from_quote(self, quote: Quote) -> Job:
        """Create the job for a quote and return it with its id assigned."""


class SQLJobRepository(JobRepository):
    """JobRepository backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_from_quote(self, quote: Quote) -> Job:
        job = job_from_quote(quote)
        self.db.add(job)
        await self.db.flush()
        return job

    async def get(self, job_id: int, owner_id: int) -> Optional[Job]:
        result = await self.db.execute(
            select(Job).where(Job.id == job_id, Job.owner_id == owner_id)
        )
        return result.scalar_one_or_none()

    async def list(
        self,
        owner_id: int,
        skip: int = 0,
        limit: int = 20,
        status: JobStatus | None = None,
    ) -> tuple[list[Job], int]:
        query = select(Job).where(Job.owner_id == owner_id)
        count_query = select(func.count(Job.id)).where(Job.owner_id == owner_id)

        if status:
            query = query.where(Job.status == status)
            count_query = count_query.where(Job.status == status)

        total_result = await self.db.execute(count_query)
        total = total_result.scalar() or 0

        result = await self.db.execute(
            query.order_by(Job.scheduled_date.desc(), Job.id.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total
