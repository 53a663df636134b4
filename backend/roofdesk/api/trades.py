"""Trades company profiles shown in the client portal."""
import re
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from roofdesk.api.deps import apply_updates, permission
from roofdesk.errors import NotFoundError
from roofdesk.models.base import get_db
from roofdesk.models.organization import TeamRole
from roofdesk.models.trades import TradesCompany
from roofdesk.services.rbac import TenantContext, require_role

router = APIRouter()


class TradesCompanyCreate(BaseModel):
    name: str = Field(min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    trade_types: List[str] = Field(default_factory=list)
    license_number: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    service_zips: List[str] = Field(default_factory=list)
    is_public: bool = True


class TradesCompanyUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    trade_types: Optional[List[str]] = None
    license_number: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    service_zips: Optional[List[str]] = None
    is_public: Optional[bool] = None


class TradesCompanyResponse(BaseModel):
    id: int
    org_id: int
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
    is_public: bool
    created_at: datetime

    class Config:
        from_attributes = True


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "company"


async def _get_company(db: AsyncSession, org_id: int, company_id: int) -> TradesCompany:
    result = await db.execute(
        select(TradesCompany).where(TradesCompany.id == company_id, TradesCompany.org_id == org_id)
    )
    company = result.scalar_one_or_none()
    if not company:
        raise NotFoundError("Trades company not found")
    return company


@router.post("", response_model=TradesCompanyResponse)
async def create_company(
    data: TradesCompanyCreate,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    require_role(ctx, TeamRole.manager)
    fields = data.model_dump(exclude={"slug"})
    fields["trade_types"] = [t.strip().lower() for t in data.trade_types if t.strip()]
    fields["state"] = data.state.strip().upper() if data.state else None
    company = TradesCompany(org_id=ctx.org_id, slug=slugify(data.slug or data.name), **fields)
    db.add(company)
    await db.commit()
    await db.refresh(company)
    return company


@router.get("", response_model=List[TradesCompanyResponse])
async def list_companies(
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(TradesCompany).where(TradesCompany.org_id == ctx.org_id).order_by(TradesCompany.name)
    )
    return result.scalars().all()


@router.get("/{company_id}", response_model=TradesCompanyResponse)
async def get_company(
    company_id: int,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    return await _get_company(db, ctx.org_id, company_id)


@router.patch("/{company_id}", response_model=TradesCompanyResponse)
async def update_company(
    company_id: int,
    data: TradesCompanyUpdate,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    require_role(ctx, TeamRole.manager)
    company = await _get_company(db, ctx.org_id, company_id)
    updates = data.model_dump(exclude_unset=True)
    if updates.get("trade_types") is not None:
        updates["trade_types"] = [t.strip().lower() for t in updates["trade_types"] if t.strip()]
    if updates.get("state"):
        updates["state"] = updates["state"].strip().upper()
    apply_updates(company, updates, required=("name", "trade_types", "service_zips", "is_public"))
    await db.commit()
    await db.refresh(company)
    return company
