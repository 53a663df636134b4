"""Shared route dependencies: tenant context, permission checks, job dispatch."""
from typing import Any, Dict, Iterable, Optional

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from roofdesk.errors import InvalidArgumentError, PermissionDeniedError, UnauthenticatedError
from roofdesk.logging_config import get_logger
from roofdesk.models.base import get_db
from roofdesk.models.job import Job, JobState, JobType
from roofdesk.models.organization import OrgMember
from roofdesk.services.rbac import TenantContext, require_permission
from roofdesk.services.storage import PacketStorage

logger = get_logger(__name__)


async def get_tenant(
    x_org_id: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> TenantContext:
    """Resolve the caller's org membership from the X-Org-Id / X-User-Id headers."""
    if not x_org_id or not x_user_id:
        raise UnauthenticatedError("X-Org-Id and X-User-Id headers are required")
    try:
        org_id = int(x_org_id)
    except ValueError:
        raise UnauthenticatedError("X-Org-Id must be an integer")

    result = await db.execute(
        select(OrgMember).where(OrgMember.org_id == org_id, OrgMember.user_id == x_user_id)
    )
    member = result.scalar_one_or_none()
    if not member:
        raise PermissionDeniedError("Not a member of this organization", details={"org_id": org_id})
    return TenantContext(org_id=org_id, user_id=x_user_id, role=member.role)


def permission(name: str):
    """Dependency factory: tenant context that must hold ``name``."""

    async def dependency(ctx: TenantContext = Depends(get_tenant)) -> TenantContext:
        require_permission(ctx, name)
        return ctx

    return dependency


def get_storage() -> PacketStorage:
    return PacketStorage()


def dispatch_job(job: Job) -> None:
    """Hand a queued job to its Celery task."""
    from roofdesk.workers import tasks

    task_by_type = {
        JobType.build_packet: tasks.build_claim_packet,
        JobType.analyze_damage: tasks.analyze_claim_photos,
        JobType.generate_narratives: tasks.generate_claim_narratives,
        JobType.vendor_sync: tasks.sync_vendor_catalog,
    }
    task_by_type[job.job_type].delay(job.id)


async def enqueue_job(
    db: AsyncSession,
    ctx: TenantContext,
    job_type: JobType,
    *,
    claim_id: Optional[int] = None,
    vendor_id: Optional[int] = None,
    params: Optional[Dict[str, Any]] = None,
) -> Job:
    job = Job(
        org_id=ctx.org_id,
        claim_id=claim_id,
        vendor_id=vendor_id,
        job_type=job_type,
        state=JobState.queued,
        params_json=params or {},
        created_by=ctx.user_id,
    )
    db.add(job)
    await db.commit()
    await db.refresh(job)

    dispatch_job(job)
    logger.info("Queued %s job %s for org %s", job_type.value, job.id, ctx.org_id)
    return job


def apply_updates(record: Any, data: Dict[str, Any], required: Iterable[str] = ()) -> None:
    """Copy PATCH fields that were explicitly sent onto ``record``.

    Fields in ``required`` may be changed but not cleared; an explicit null
    for one of them is rejected before anything is written.
    """
    cleared = sorted(key for key in required if key in data and data[key] is None)
    if cleared:
        raise InvalidArgumentError(
            f"{', '.join(cleared)} cannot be null",
            details={"fields": cleared},
        )
    for key, value in data.items():
        setattr(record, key, value)
