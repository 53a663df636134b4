"""Job status routes."""
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from roofdesk.api.deps import get_tenant
from roofdesk.errors import NotFoundError
from roofdesk.models.base import get_db
from roofdesk.models.job import Job
from roofdesk.services.rbac import TenantContext

router = APIRouter()


class JobResponse(BaseModel):
    id: int
    org_id: Optional[int]
    claim_id: Optional[int]
    vendor_id: Optional[int]
    job_type: str
    state: str
    progress: float
    progress_message: Optional[str]
    params_json: Optional[Dict[str, Any]]
    result_json: Optional[Dict[str, Any]]
    error_message: Optional[str]
    created_at: datetime
    started_at: Optional[datetime]
    finished_at: Optional[datetime]


def to_job_response(job: Job) -> JobResponse:
    return JobResponse(
        id=job.id,
        org_id=job.org_id,
        claim_id=job.claim_id,
        vendor_id=job.vendor_id,
        job_type=job.job_type.value,
        state=job.state.value,
        progress=job.progress or 0.0,
        progress_message=job.progress_message,
        params_json=job.params_json,
        result_json=job.result_json,
        error_message=job.error_message,
        created_at=job.created_at,
        started_at=job.started_at,
        finished_at=job.finished_at,
    )


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: int,
    ctx: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Job).where(Job.id == job_id, Job.org_id == ctx.org_id))
    job = result.scalar_one_or_none()
    if not job:
        raise NotFoundError("Job not found")
    return to_job_response(job)
