"""
Job endpoints.
Jobs are created by converting quotes; these routes only read them.
"""

from fastapi import APIRouter, Query

from app.api.deps import DbSession, CurrentUser
from app.core.errors import NotFoundError
from app.models.job import JobStatus
from app.repositories.job import SQLJobRepository
from app.schemas.base import page_count
from app.schemas.job import JobResponse, JobListResponse


router = APIRouter()


@router.get(
    "",
    response_model=JobListResponse,
    summary="List jobs",
)
async def list_jobs(
    current_user: CurrentUser,
    db: DbSession,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    status: JobStatus | None = Query(None),
) -> JobListResponse:
    repository = SQLJobRepository(db)
    jobs, total = await repository.list(
        owner_id=current_user.id,
        skip=(page - 1) * per_page,
        limit=per_page,
        status=status,
    )
    pages = page_count(total, per_page)

    return JobListResponse(
        items=[JobResponse.model_validate(j) for j in jobs],
        total=total,
        page=page,
        per_page=per_page,
        pages=pages,
    )


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    summary="Job details",
)
async def get_job(
    job_id: int,
    current_user: CurrentUser,
    db: DbSession,
) -> JobResponse:
    job = await SQLJobRepository(db).get(job_id, current_user.id)
    if job is None:
        raise NotFoundError(f"Job {job_id} not found", field="job_id")
    return JobResponse.model_validate(job)
