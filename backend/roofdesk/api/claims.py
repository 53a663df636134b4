"""Claim routes - CRUD, evidence, scope, timeline, readiness and async workflows."""
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from roofdesk.api.contacts import get_org_contact, get_org_property
from roofdesk.api.deps import apply_updates, enqueue_job, permission
from roofdesk.api.jobs import JobResponse, to_job_response
from roofdesk.errors import AlreadyExistsError, FailedPreconditionError, InvalidArgumentError, NotFoundError
from roofdesk.logging_config import get_logger
from roofdesk.models.base import get_db
from roofdesk.models.claim import (
    Claim,
    ClaimEvent,
    ClaimLineItem,
    ClaimPhoto,
    ClaimSignature,
    ClaimStatus,
)
from roofdesk.models.job import JobType
from roofdesk.models.packet import GeneratedPacket
from roofdesk.services.claim_folder import assemble_claim_folder
from roofdesk.services.narratives import NARRATIVE_KINDS
from roofdesk.services.packets.registry import resolve_sections
from roofdesk.services.rbac import TenantContext

logger = get_logger(__name__)

router = APIRouter()

CLAIM_NUMBER_RE = re.compile(r"^C(\d{6,})$")


# ============================================================================
# Pydantic Schemas
# ============================================================================

class ClaimCreate(BaseModel):
    title: str = Field(min_length=1)
    claim_number: Optional[str] = None
    contact_id: Optional[int] = None
    property_id: Optional[int] = None
    description: Optional[str] = None
    status: ClaimStatus = ClaimStatus.intake
    carrier: Optional[str] = None
    policy_number: Optional[str] = None
    insured_name: Optional[str] = None
    adjuster_name: Optional[str] = None
    adjuster_email: Optional[str] = None
    date_of_loss: Optional[datetime] = None
    storm_type: Optional[str] = None
    hail_size: Optional[str] = None
    wind_speed: Optional[float] = None
    weather_summary: Optional[str] = None
    weather_verified: bool = False
    inspection_date: Optional[datetime] = None
    inspector_name: Optional[str] = None
    overall_condition: Optional[str] = None


class ClaimUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    contact_id: Optional[int] = None
    property_id: Optional[int] = None
    description: Optional[str] = None
    status: Optional[ClaimStatus] = None
    carrier: Optional[str] = None
    policy_number: Optional[str] = None
    insured_name: Optional[str] = None
    adjuster_name: Optional[str] = None
    adjuster_email: Optional[str] = None
    date_of_loss: Optional[datetime] = None
    storm_type: Optional[str] = None
    hail_size: Optional[str] = None
    wind_speed: Optional[float] = None
    weather_summary: Optional[str] = None
    weather_verified: Optional[bool] = None
    inspection_date: Optional[datetime] = None
    inspector_name: Optional[str] = None
    overall_condition: Optional[str] = None
    narratives: Optional[Dict[str, Any]] = None


class ClaimResponse(BaseModel):
    id: int
    org_id: int
    contact_id: Optional[int]
    property_id: Optional[int]
    claim_number: str
    title: str
    description: Optional[str]
    status: ClaimStatus
    carrier: Optional[str]
    policy_number: Optional[str]
    insured_name: Optional[str]
    adjuster_name: Optional[str]
    adjuster_email: Optional[str]
    date_of_loss: Optional[datetime]
    storm_type: Optional[str]
    hail_size: Optional[str]
    wind_speed: Optional[float]
    weather_summary: Optional[str]
    weather_verified: Optional[bool]
    inspection_date: Optional[datetime]
    inspector_name: Optional[str]
    overall_condition: Optional[str]
    narratives: Optional[Dict[str, Any]]
    damage_summary: Optional[Dict[str, Any]]
    created_by: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class PhotoCreate(BaseModel):
    url: str = Field(min_length=1)
    caption: Optional[str] = None
    elevation: Optional[str] = None


class PhotoResponse(BaseModel):
    id: int
    claim_id: int
    url: str
    caption: Optional[str]
    elevation: Optional[str]
    analysis_json: Optional[Dict[str, Any]]
    analyzed_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class LineItemCreate(BaseModel):
    code: Optional[str] = None
    description: str = Field(min_length=1)
    quantity: float = Field(default=0.0, ge=0)
    unit: str = "EA"
    unit_price: float = Field(default=0.0, ge=0)
    category: str = "general"


class LineItemResponse(BaseModel):
    id: int
    claim_id: int
    code: Optional[str]
    description: str
    quantity: float
    unit: str
    unit_price: float
    category: str
    total: float

    class Config:
        from_attributes = True


class EventCreate(BaseModel):
    event: str = Field(min_length=1)
    occurred_at: Optional[datetime] = None
    category: str = "other"
    details: Optional[str] = None


class EventResponse(BaseModel):
    id: int
    claim_id: int
    occurred_at: datetime
    event: str
    category: Optional[str]
    details: Optional[str]

    class Config:
        from_attributes = True


class SignatureCreate(BaseModel):
    signer_name: str = Field(min_length=1)
    signer_role: str = Field(min_length=1)


class SignatureResponse(BaseModel):
    id: int
    claim_id: int
    signer_name: str
    signer_role: str
    signed_at: datetime
    ip_address: Optional[str]

    class Config:
        from_attributes = True


class PacketRequest(BaseModel):
    mode: Optional[str] = None
    sections: Optional[List[str]] = None
    org_template_id: Optional[int] = None


class PacketResponse(BaseModel):
    id: int
    org_id: int
    claim_id: int
    public_id: str
    mode: Optional[str]
    sections: List[str]
    page_count: int
    size_bytes: int
    readiness_score: Optional[int]
    url: Optional[str]
    created_by: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class AnalyzeRequest(BaseModel):
    photo_ids: Optional[List[int]] = None


class NarrativesRequest(BaseModel):
    kinds: Optional[List[str]] = None


# ============================================================================
# Helpers
# ============================================================================

async def next_claim_number(db: AsyncSession, org_id: int) -> str:
    """``C`` + zero-padded number one past the org's highest, soft-deleted claims included.

    Caller-supplied numbers in another shape (``CARRIER-77``) are ignored.
    """
    result = await db.execute(
        select(Claim.claim_number).where(Claim.org_id == org_id, Claim.claim_number.like("C%"))
    )
    highest = 0
    for number in result.scalars():
        match = CLAIM_NUMBER_RE.match(number)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"C{highest + 1:06d}"


async def ensure_claim_number_free(db: AsyncSession, org_id: int, claim_number: str) -> None:
    result = await db.execute(
        select(Claim.id).where(Claim.org_id == org_id, Claim.claim_number == claim_number)
    )
    existing = result.scalar_one_or_none()
    if existing is not None:
        raise AlreadyExistsError(
            f"Claim number {claim_number} is already in use",
            details={"claim_number": claim_number, "claim_id": existing},
        )


async def insert_claim(db: AsyncSession, claim: Claim) -> None:
    """Add and flush a new claim; a lost race on (org_id, claim_number) becomes already-exists."""
    claim_number, org_id = claim.claim_number, claim.org_id
    db.add(claim)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        logger.warning("Claim number %s collided in org %s", claim_number, org_id)
        raise AlreadyExistsError(
            f"Claim number {claim_number} is already in use",
            details={"claim_number": claim_number},
        )


async def get_org_claim(db: AsyncSession, org_id: int, claim_id: int) -> Claim:
    result = await db.execute(
        select(Claim).where(
            Claim.id == claim_id,
            Claim.org_id == org_id,
            Claim.deleted_at.is_(None),
        )
    )
    claim = result.scalar_one_or_none()
    if not claim:
        raise NotFoundError("Claim not found")
    return claim


async def load_claim_full(db: AsyncSession, org_id: int, claim_id: int) -> Claim:
    """Claim with every relationship the folder assembler reads."""
    result = await db.execute(
        select(Claim)
        .options(
            selectinload(Claim.property),
            selectinload(Claim.contact),
            selectinload(Claim.photos),
            selectinload(Claim.line_items),
            selectinload(Claim.events),
            selectinload(Claim.signatures),
        )
        .where(Claim.id == claim_id, Claim.org_id == org_id, Claim.deleted_at.is_(None))
    )
    claim = result.scalar_one_or_none()
    if not claim:
        raise NotFoundError("Claim not found")
    return claim


async def claim_readiness(db: AsyncSession, org_id: int, claim_id: int) -> Dict[str, Any]:
    claim = await load_claim_full(db, org_id, claim_id)
    folder = assemble_claim_folder(claim)
    payload = folder.readiness.to_dict()
    payload["claim_id"] = claim.id
    payload["checklist"] = [
        {"section": c.section, "item": c.item, "complete": c.complete, "required": c.required}
        for c in folder.checklist
    ]
    return payload


async def _check_links(db: AsyncSession, org_id: int, contact_id: Optional[int], property_id: Optional[int]) -> None:
    if contact_id is not None:
        await get_org_contact(db, org_id, contact_id)
    if property_id is not None:
        await get_org_property(db, org_id, property_id)


# ============================================================================
# Claim CRUD
# ============================================================================

@router.post("", response_model=ClaimResponse)
async def create_claim(
    data: ClaimCreate,
    ctx: TenantContext = Depends(permission("claims:create")),
    db: AsyncSession = Depends(get_db),
):
    await _check_links(db, ctx.org_id, data.contact_id, data.property_id)
    if data.claim_number:
        await ensure_claim_number_free(db, ctx.org_id, data.claim_number)
    fields = data.model_dump(exclude={"claim_number"})
    claim = Claim(
        org_id=ctx.org_id,
        claim_number=data.claim_number or await next_claim_number(db, ctx.org_id),
        created_by=ctx.user_id,
        narratives={},
        damage_summary={},
        **fields,
    )
    await insert_claim(db, claim)
    db.add(ClaimEvent(claim_id=claim.id, event="Claim created", category="claim"))
    await db.commit()
    await db.refresh(claim)
    return claim


@router.get("", response_model=List[ClaimResponse])
async def list_claims(
    status: Optional[ClaimStatus] = None,
    contact_id: Optional[int] = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    query = select(Claim).where(Claim.org_id == ctx.org_id, Claim.deleted_at.is_(None))
    if status is not None:
        query = query.where(Claim.status == status)
    if contact_id is not None:
        query = query.where(Claim.contact_id == contact_id)
    result = await db.execute(query.order_by(Claim.created_at.desc(), Claim.id.desc()).limit(limit).offset(offset))
    return result.scalars().all()


@router.get("/{claim_id}", response_model=ClaimResponse)
async def get_claim(
    claim_id: int,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    return await get_org_claim(db, ctx.org_id, claim_id)


@router.patch("/{claim_id}", response_model=ClaimResponse)
async def update_claim(
    claim_id: int,
    data: ClaimUpdate,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    claim = await get_org_claim(db, ctx.org_id, claim_id)
    updates = data.model_dump(exclude_unset=True)
    await _check_links(db, ctx.org_id, updates.get("contact_id"), updates.get("property_id"))

    previous_status = claim.status
    apply_updates(claim, updates, required=("title", "status"))
    if "status" in updates and updates["status"] != previous_status:
        db.add(
            ClaimEvent(
                claim_id=claim.id,
                event=f"Status changed to {claim.status.value}",
                category="claim",
                details=f"From {previous_status.value}",
            )
        )
    await db.commit()
    await db.refresh(claim)
    return claim


@router.delete("/{claim_id}")
async def delete_claim(
    claim_id: int,
    ctx: TenantContext = Depends(permission("claims:delete")),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete: the claim disappears from lists and lookups but keeps its rows."""
    claim = await get_org_claim(db, ctx.org_id, claim_id)
    claim.deleted_at = datetime.utcnow()
    await db.commit()
    return {"deleted": True}


# ============================================================================
# Photos
# ============================================================================

@router.post("/{claim_id}/photos", response_model=PhotoResponse)
async def add_photo(
    claim_id: int,
    data: PhotoCreate,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    claim = await get_org_claim(db, ctx.org_id, claim_id)
    photo = ClaimPhoto(org_id=ctx.org_id, claim_id=claim.id, **data.model_dump())
    db.add(photo)
    await db.commit()
    await db.refresh(photo)
    return photo


@router.get("/{claim_id}/photos", response_model=List[PhotoResponse])
async def list_photos(
    claim_id: int,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    await get_org_claim(db, ctx.org_id, claim_id)
    result = await db.execute(
        select(ClaimPhoto).where(ClaimPhoto.claim_id == claim_id).order_by(ClaimPhoto.id)
    )
    return result.scalars().all()


# ============================================================================
# Scope line items
# ============================================================================

@router.post("/{claim_id}/line-items", response_model=LineItemResponse)
async def add_line_item(
    claim_id: int,
    data: LineItemCreate,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    claim = await get_org_claim(db, ctx.org_id, claim_id)
    item = ClaimLineItem(claim_id=claim.id, **data.model_dump())
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return item


@router.get("/{claim_id}/line-items", response_model=List[LineItemResponse])
async def list_line_items(
    claim_id: int,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    await get_org_claim(db, ctx.org_id, claim_id)
    result = await db.execute(
        select(ClaimLineItem).where(ClaimLineItem.claim_id == claim_id).order_by(ClaimLineItem.id)
    )
    return result.scalars().all()


@router.delete("/{claim_id}/line-items/{item_id}")
async def delete_line_item(
    claim_id: int,
    item_id: int,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    await get_org_claim(db, ctx.org_id, claim_id)
    result = await db.execute(
        select(ClaimLineItem).where(ClaimLineItem.id == item_id, ClaimLineItem.claim_id == claim_id)
    )
    item = result.scalar_one_or_none()
    if not item:
        raise NotFoundError("Line item not found")
    await db.delete(item)
    await db.commit()
    return {"deleted": True}


# ============================================================================
# Timeline and signatures
# ============================================================================

@router.post("/{claim_id}/events", response_model=EventResponse)
async def add_event(
    claim_id: int,
    data: EventCreate,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    claim = await get_org_claim(db, ctx.org_id, claim_id)
    event = ClaimEvent(
        claim_id=claim.id,
        event=data.event,
        occurred_at=data.occurred_at or datetime.utcnow(),
        category=data.category,
        details=data.details,
    )
    db.add(event)
    await db.commit()
    await db.refresh(event)
    return event


@router.get("/{claim_id}/events", response_model=List[EventResponse])
async def list_events(
    claim_id: int,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    await get_org_claim(db, ctx.org_id, claim_id)
    result = await db.execute(
        select(ClaimEvent).where(ClaimEvent.claim_id == claim_id).order_by(ClaimEvent.occurred_at, ClaimEvent.id)
    )
    return result.scalars().all()


@router.post("/{claim_id}/signatures", response_model=SignatureResponse)
async def add_signature(
    claim_id: int,
    data: SignatureCreate,
    request: Request,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    claim = await get_org_claim(db, ctx.org_id, claim_id)
    signature = ClaimSignature(
        claim_id=claim.id,
        signer_name=data.signer_name,
        signer_role=data.signer_role.strip().lower(),
        ip_address=request.client.host if request.client else None,
    )
    db.add(signature)
    db.add(
        ClaimEvent(
            claim_id=claim.id,
            event=f"Signed by {data.signer_name}",
            category="claim",
            details=data.signer_role,
        )
    )
    await db.commit()
    await db.refresh(signature)
    return signature


@router.get("/{claim_id}/signatures", response_model=List[SignatureResponse])
async def list_signatures(
    claim_id: int,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    await get_org_claim(db, ctx.org_id, claim_id)
    result = await db.execute(
        select(ClaimSignature).where(ClaimSignature.claim_id == claim_id).order_by(ClaimSignature.id)
    )
    return result.scalars().all()


# ============================================================================
# Readiness, packets and AI workflows
# ============================================================================

async def start_packet_job(db: AsyncSession, ctx: TenantContext, claim_id: int, data: PacketRequest):
    """Queue a packet build. Section names are checked now so bad requests never reach the worker."""
    await get_org_claim(db, ctx.org_id, claim_id)
    if data.sections:
        resolve_sections(requested=data.sections)
    elif not data.org_template_id:
        resolve_sections(mode=data.mode)
    return await enqueue_job(
        db,
        ctx,
        JobType.build_packet,
        claim_id=claim_id,
        params=data.model_dump(exclude_none=True),
    )


async def start_damage_job(db: AsyncSession, ctx: TenantContext, claim_id: int, data: AnalyzeRequest):
    await get_org_claim(db, ctx.org_id, claim_id)
    count = await db.execute(select(func.count(ClaimPhoto.id)).where(ClaimPhoto.claim_id == claim_id))
    if not count.scalar():
        raise FailedPreconditionError("Claim has no photos to analyze")
    return await enqueue_job(
        db,
        ctx,
        JobType.analyze_damage,
        claim_id=claim_id,
        params=data.model_dump(exclude_none=True),
    )


async def start_narratives_job(db: AsyncSession, ctx: TenantContext, claim_id: int, data: NarrativesRequest):
    await get_org_claim(db, ctx.org_id, claim_id)
    kinds = data.kinds or NARRATIVE_KINDS
    unknown = [kind for kind in kinds if kind not in NARRATIVE_KINDS]
    if unknown:
        raise InvalidArgumentError(
            f"Unknown narrative kind(s): {', '.join(unknown)}", details={"kinds": NARRATIVE_KINDS}
        )
    return await enqueue_job(
        db,
        ctx,
        JobType.generate_narratives,
        claim_id=claim_id,
        params={"kinds": kinds},
    )


@router.get("/{claim_id}/readiness")
async def get_readiness(
    claim_id: int,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    """Readiness breakdown: per-category scores, overall 0-100, grade and next step."""
    return await claim_readiness(db, ctx.org_id, claim_id)


@router.post("/{claim_id}/packets", response_model=JobResponse)
async def request_packet(
    claim_id: int,
    data: Optional[PacketRequest] = None,
    ctx: TenantContext = Depends(permission("reports:create")),
    db: AsyncSession = Depends(get_db),
):
    job = await start_packet_job(db, ctx, claim_id, data or PacketRequest())
    return to_job_response(job)


@router.get("/{claim_id}/packets", response_model=List[PacketResponse])
async def list_packets(
    claim_id: int,
    ctx: TenantContext = Depends(permission("reports:view")),
    db: AsyncSession = Depends(get_db),
):
    await get_org_claim(db, ctx.org_id, claim_id)
    result = await db.execute(
        select(GeneratedPacket)
        .where(GeneratedPacket.claim_id == claim_id, GeneratedPacket.org_id == ctx.org_id)
        .order_by(GeneratedPacket.created_at.desc(), GeneratedPacket.id.desc())
    )
    return result.scalars().all()


@router.post("/{claim_id}/damage:analyze", response_model=JobResponse)
async def analyze_damage(
    claim_id: int,
    data: Optional[AnalyzeRequest] = None,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    job = await start_damage_job(db, ctx, claim_id, data or AnalyzeRequest())
    return to_job_response(job)


@router.post("/{claim_id}/narratives:generate", response_model=JobResponse)
async def generate_narratives(
    claim_id: int,
    data: Optional[NarrativesRequest] = None,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    job = await start_narratives_job(db, ctx, claim_id, data or NarrativesRequest())
    return to_job_response(job)
