"""Callable functions: ``POST /functions/{name}`` with ``{"data": {...}}`` -> ``{"result": ...}``.

Each callable runs with the caller's tenant context and the same checks as
the matching REST route.
"""
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from roofdesk.api.claims import (
    AnalyzeRequest,
    NarrativesRequest,
    PacketRequest,
    claim_readiness,
    start_damage_job,
    start_narratives_job,
    start_packet_job,
)
from roofdesk.api.deps import get_tenant
from roofdesk.api.jobs import to_job_response
from roofdesk.api.vendors import start_vendor_sync
from roofdesk.errors import InvalidArgumentError, NotFoundError
from roofdesk.logging_config import get_logger
from roofdesk.models.base import get_db
from roofdesk.services.rbac import TenantContext, require_permission

logger = get_logger(__name__)

router = APIRouter()

Callable_ = Callable[[AsyncSession, TenantContext, Dict[str, Any]], Awaitable[Any]]


class CallRequest(BaseModel):
    data: Dict[str, Any] = Field(default_factory=dict)


class CallResponse(BaseModel):
    result: Any


def _int_arg(data: Dict[str, Any], name: str, camel: str) -> int:
    value: Optional[Any] = data.get(name, data.get(camel))
    if value is None:
        raise InvalidArgumentError(f"'{camel}' is required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"'{camel}' must be an integer")


def _job_result(job) -> Dict[str, Any]:
    return to_job_response(job).model_dump(mode="json")


async def generate_claim_packet(db: AsyncSession, ctx: TenantContext, data: Dict[str, Any]):
    require_permission(ctx, "reports:create")
    claim_id = _int_arg(data, "claim_id", "claimId")
    request = PacketRequest(
        mode=data.get("mode"),
        sections=data.get("sections"),
        org_template_id=data.get("org_template_id", data.get("orgTemplateId")),
    )
    return _job_result(await start_packet_job(db, ctx, claim_id, request))


async def analyze_claim_photos(db: AsyncSession, ctx: TenantContext, data: Dict[str, Any]):
    require_permission(ctx, "claims:edit")
    claim_id = _int_arg(data, "claim_id", "claimId")
    request = AnalyzeRequest(photo_ids=data.get("photo_ids", data.get("photoIds")))
    return _job_result(await start_damage_job(db, ctx, claim_id, request))


async def generate_claim_narratives(db: AsyncSession, ctx: TenantContext, data: Dict[str, Any]):
    require_permission(ctx, "claims:edit")
    claim_id = _int_arg(data, "claim_id", "claimId")
    request = NarrativesRequest(kinds=data.get("kinds"))
    return _job_result(await start_narratives_job(db, ctx, claim_id, request))


async def sync_vendor_catalog(db: AsyncSession, ctx: TenantContext, data: Dict[str, Any]):
    require_permission(ctx, "vendors:edit")
    vendor_id = _int_arg(data, "vendor_id", "vendorId")
    return _job_result(await start_vendor_sync(db, ctx, vendor_id))


async def get_claim_readiness(db: AsyncSession, ctx: TenantContext, data: Dict[str, Any]):
    require_permission(ctx, "claims:view")
    claim_id = _int_arg(data, "claim_id", "claimId")
    return await claim_readiness(db, ctx.org_id, claim_id)


CALLABLES: Dict[str, Callable_] = {
    "generateClaimPacket": generate_claim_packet,
    "analyzeClaimPhotos": analyze_claim_photos,
    "generateClaimNarratives": generate_claim_narratives,
    "syncVendorCatalog": sync_vendor_catalog,
    "getClaimReadiness": get_claim_readiness,
}


@router.post("/{name}", response_model=CallResponse)
async def call_function(
    name: str,
    body: CallRequest,
    ctx: TenantContext = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
):
    handler = CALLABLES.get(name)
    if handler is None:
        raise NotFoundError(f"Unknown function: {name}", details={"available": sorted(CALLABLES)})
    logger.info("Callable %s invoked by %s in org %s", name, ctx.user_id, ctx.org_id)
    return CallResponse(result=await handler(db, ctx, body.data))
