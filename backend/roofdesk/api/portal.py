"""Homeowner-facing client portal. No tenant headers: orgs are addressed by slug."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from roofdesk.api.deps import get_storage
from roofdesk.errors import NotFoundError
from roofdesk.logging_config import get_logger
from roofdesk.models.base import get_db
from roofdesk.models.claim import Claim
from roofdesk.models.crm import Contact, Lead, LeadStage
from roofdesk.models.organization import Organization
from roofdesk.models.packet import GeneratedPacket
from roofdesk.models.trades import TradesCompany
from roofdesk.services.storage import PacketStorage

logger = get_logger(__name__)

router = APIRouter()


class PublicCompany(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str]
    trade_types: List[str]
    license_number: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    website: Optional[str]
    city: Optional[str]
    state: Optional[str]
    service_zips: List[str]
    rating: Optional[float]

    class Config:
        from_attributes = True


class PublicProfile(BaseModel):
    org_slug: str
    org_name: str
    companies: List[PublicCompany]


class WorkRequestCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    trade_type: Optional[str] = None
    description: Optional[str] = None
    urgency: Optional[str] = None
    is_insurance_claim: bool = False


class WorkRequestResponse(BaseModel):
    lead_id: int
    contact_id: int
    status: str
    submitted_at: datetime


class PublicPacket(BaseModel):
    public_id: str
    claim_number: Optional[str]
    page_count: int
    sections: List[str]
    created_at: datetime
    url: str


async def _get_org_by_slug(db: AsyncSession, org_slug: str) -> Organization:
    result = await db.execute(select(Organization).where(Organization.slug == org_slug))
    org = result.scalar_one_or_none()
    if not org:
        raise NotFoundError("Company not found")
    return org


@router.get("/find-a-pro", response_model=List[PublicCompany])
async def find_a_pro(
    trade: Optional[str] = None,
    state: Optional[str] = None,
    city: Optional[str] = None,
    zip_code: Optional[str] = Query(default=None, alias="zip"),
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """Search public trades companies by trade, state, city or service zip."""
    query = select(TradesCompany).where(TradesCompany.is_public.is_(True))
    if state:
        query = query.where(TradesCompany.state == state.strip().upper())
    if city:
        query = query.where(func.lower(TradesCompany.city) == city.strip().lower())
    result = await db.execute(query.order_by(TradesCompany.rating.desc(), TradesCompany.name))
    companies = result.scalars().all()

    # trade_types and service_zips are JSON lists, filtered here.
    if trade:
        wanted = trade.strip().lower()
        companies = [c for c in companies if wanted in (c.trade_types or [])]
    if zip_code:
        companies = [c for c in companies if zip_code.strip() in (c.service_zips or [])]
    return companies[:limit]


@router.get("/packets/{public_id}", response_model=PublicPacket)
async def get_public_packet(
    public_id: str,
    db: AsyncSession = Depends(get_db),
    storage: PacketStorage = Depends(get_storage),
):
    result = await db.execute(
        select(GeneratedPacket, Claim.claim_number)
        .join(Claim, Claim.id == GeneratedPacket.claim_id)
        .where(GeneratedPacket.public_id == public_id, Claim.deleted_at.is_(None))
    )
    row = result.first()
    if not row:
        raise NotFoundError("Packet not found")
    packet, claim_number = row
    return PublicPacket(
        public_id=packet.public_id,
        claim_number=claim_number,
        page_count=packet.page_count or 0,
        sections=list(packet.sections or []),
        created_at=packet.created_at,
        url=storage.presigned_url(packet.storage_key),
    )


@router.get("/{org_slug}", response_model=PublicProfile)
async def get_public_profile(org_slug: str, db: AsyncSession = Depends(get_db)):
    org = await _get_org_by_slug(db, org_slug)
    result = await db.execute(
        select(TradesCompany)
        .where(TradesCompany.org_id == org.id, TradesCompany.is_public.is_(True))
        .order_by(TradesCompany.name)
    )
    return PublicProfile(
        org_slug=org.slug,
        org_name=org.name,
        companies=[PublicCompany.model_validate(c) for c in result.scalars().all()],
    )


@router.post("/{org_slug}/work-requests", response_model=WorkRequestResponse)
async def submit_work_request(
    org_slug: str,
    data: WorkRequestCreate,
    db: AsyncSession = Depends(get_db),
):
    """A homeowner asks for work: creates a contact and a new lead for the org."""
    org = await _get_org_by_slug(db, org_slug)
    contact = Contact(
        org_id=org.id,
        first_name=data.first_name.strip(),
        last_name=data.last_name.strip(),
        email=data.email,
        phone=data.phone,
        street=data.street,
        city=data.city,
        state=data.state,
        zip_code=data.zip_code,
    )
    db.add(contact)
    await db.flush()

    trade = (data.trade_type or "service").strip()
    lead = Lead(
        org_id=org.id,
        contact_id=contact.id,
        title=f"{trade.title()} request - {contact.full_name}",
        description=data.description,
        source="client_portal",
        stage=LeadStage.new,
        trade_type=data.trade_type,
        urgency=data.urgency,
        is_insurance_claim=data.is_insurance_claim,
    )
    db.add(lead)
    await db.commit()
    await db.refresh(lead)

    logger.info("Portal work request for org %s created lead %s", org.slug, lead.id)
    return WorkRequestResponse(
        lead_id=lead.id,
        contact_id=contact.id,
        status=lead.stage.value,
        submitted_at=lead.created_at,
    )
