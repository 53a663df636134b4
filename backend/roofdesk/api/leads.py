"""Lead pipeline routes, including lead -> claim conversion."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from roofdesk.api.claims import ClaimResponse, insert_claim, next_claim_number
from roofdesk.api.contacts import ContactCreate, get_org_contact, get_org_property
from roofdesk.api.deps import apply_updates, permission
from roofdesk.errors import FailedPreconditionError, InvalidArgumentError, NotFoundError
from roofdesk.logging_config import get_logger
from roofdesk.models.base import get_db
from roofdesk.models.claim import Claim, ClaimEvent, ClaimStatus
from roofdesk.models.crm import Contact, Lead, LeadStage
from roofdesk.services.rbac import TenantContext

logger = get_logger(__name__)

router = APIRouter()


# ============================================================================
# Pydantic Schemas
# ============================================================================

class LeadCreate(BaseModel):
    title: str = Field(min_length=1)
    contact_id: Optional[int] = None
    contact: Optional[ContactCreate] = None
    description: Optional[str] = None
    source: Optional[str] = None
    stage: LeadStage = LeadStage.new
    temperature: str = "warm"
    value: Optional[float] = None
    probability: Optional[float] = None
    assigned_to: Optional[str] = None
    follow_up_date: Optional[datetime] = None
    trade_type: Optional[str] = None
    urgency: Optional[str] = None
    is_insurance_claim: bool = False


class LeadUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    source: Optional[str] = None
    stage: Optional[LeadStage] = None
    temperature: Optional[str] = None
    value: Optional[float] = None
    probability: Optional[float] = None
    assigned_to: Optional[str] = None
    follow_up_date: Optional[datetime] = None
    trade_type: Optional[str] = None
    urgency: Optional[str] = None
    is_insurance_claim: Optional[bool] = None


class LeadResponse(BaseModel):
    id: int
    org_id: int
    contact_id: int
    title: str
    description: Optional[str]
    source: Optional[str]
    stage: LeadStage
    temperature: Optional[str]
    value: Optional[float]
    probability: Optional[float]
    assigned_to: Optional[str]
    follow_up_date: Optional[datetime]
    trade_type: Optional[str]
    urgency: Optional[str]
    is_insurance_claim: bool
    claim_id: Optional[int]
    closed_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class LeadConvertRequest(BaseModel):
    property_id: Optional[int] = None
    carrier: Optional[str] = None
    policy_number: Optional[str] = None
    date_of_loss: Optional[datetime] = None


class LeadConvertResponse(BaseModel):
    lead: LeadResponse
    claim: ClaimResponse


async def get_org_lead(db: AsyncSession, org_id: int, lead_id: int) -> Lead:
    result = await db.execute(select(Lead).where(Lead.id == lead_id, Lead.org_id == org_id))
    lead = result.scalar_one_or_none()
    if not lead:
        raise NotFoundError("Lead not found")
    return lead


# ============================================================================
# Lead CRUD
# ============================================================================

@router.post("", response_model=LeadResponse)
async def create_lead(
    data: LeadCreate,
    ctx: TenantContext = Depends(permission("claims:create")),
    db: AsyncSession = Depends(get_db),
):
    """Create a lead for an existing contact, or create the contact inline."""
    if data.contact_id is not None:
        contact = await get_org_contact(db, ctx.org_id, data.contact_id)
    elif data.contact is not None:
        contact = Contact(org_id=ctx.org_id, **data.contact.model_dump())
        db.add(contact)
        await db.flush()
    else:
        raise InvalidArgumentError("Either contact_id or contact is required")

    lead = Lead(
        org_id=ctx.org_id,
        contact_id=contact.id,
        **data.model_dump(exclude={"contact_id", "contact"}),
    )
    db.add(lead)
    await db.commit()
    await db.refresh(lead)
    return lead


@router.get("", response_model=List[LeadResponse])
async def list_leads(
    stage: Optional[LeadStage] = None,
    source: Optional[str] = None,
    assigned_to: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    query = select(Lead).where(Lead.org_id == ctx.org_id)
    if stage is not None:
        query = query.where(Lead.stage == stage)
    if source:
        query = query.where(Lead.source == source)
    if assigned_to:
        query = query.where(Lead.assigned_to == assigned_to)
    result = await db.execute(query.order_by(Lead.created_at.desc(), Lead.id.desc()).limit(limit).offset(offset))
    return result.scalars().all()


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: int,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    return await get_org_lead(db, ctx.org_id, lead_id)


@router.patch("/{lead_id}", response_model=LeadResponse)
async def update_lead(
    lead_id: int,
    data: LeadUpdate,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    lead = await get_org_lead(db, ctx.org_id, lead_id)
    updates = data.model_dump(exclude_unset=True)
    apply_updates(lead, updates, required=("title", "stage"))
    if updates.get("stage") in (LeadStage.won, LeadStage.lost) and lead.closed_at is None:
        lead.closed_at = datetime.utcnow()
    await db.commit()
    await db.refresh(lead)
    return lead


@router.delete("/{lead_id}")
async def delete_lead(
    lead_id: int,
    ctx: TenantContext = Depends(permission("claims:delete")),
    db: AsyncSession = Depends(get_db),
):
    lead = await get_org_lead(db, ctx.org_id, lead_id)
    await db.delete(lead)
    await db.commit()
    return {"deleted": True}


# ============================================================================
# Conversion
# ============================================================================

@router.post("/{lead_id}/convert", response_model=LeadConvertResponse)
async def convert_lead(
    lead_id: int,
    data: Optional[LeadConvertRequest] = None,
    ctx: TenantContext = Depends(permission("claims:create")),
    db: AsyncSession = Depends(get_db),
):
    """Turn a lead into a claim. The lead is marked won and linked to the claim."""
    data = data or LeadConvertRequest()
    lead = await get_org_lead(db, ctx.org_id, lead_id)
    if lead.claim_id is not None:
        raise FailedPreconditionError(
            "Lead has already been converted", details={"claim_id": lead.claim_id}
        )
    if data.property_id is not None:
        await get_org_property(db, ctx.org_id, data.property_id)

    contact = await get_org_contact(db, ctx.org_id, lead.contact_id)
    claim = Claim(
        org_id=ctx.org_id,
        contact_id=contact.id,
        property_id=data.property_id,
        claim_number=await next_claim_number(db, ctx.org_id),
        title=lead.title,
        description=lead.description,
        status=ClaimStatus.intake,
        carrier=data.carrier,
        policy_number=data.policy_number,
        date_of_loss=data.date_of_loss,
        insured_name=contact.full_name,
        created_by=ctx.user_id,
        narratives={},
        damage_summary={},
    )
    await insert_claim(db, claim)

    db.add(
        ClaimEvent(
            claim_id=claim.id,
            event="Converted from lead",
            category="claim",
            details=f"Lead #{lead.id}: {lead.title}",
        )
    )
    now = datetime.utcnow()
    lead.stage = LeadStage.won
    lead.closed_at = now
    lead.claim_id = claim.id
    await db.commit()
    await db.refresh(lead)
    await db.refresh(claim)

    logger.info("Lead %s converted to claim %s (%s)", lead.id, claim.id, claim.claim_number)
    return LeadConvertResponse(
        lead=LeadResponse.model_validate(lead),
        claim=ClaimResponse.model_validate(claim),
    )
