"""Vendor directory, synced product catalogs and manual catalog sync."""
from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from roofdesk.api.deps import apply_updates, enqueue_job, permission
from roofdesk.api.jobs import JobResponse, to_job_response
from roofdesk.api.trades import slugify
from roofdesk.errors import FailedPreconditionError, NotFoundError, PermissionDeniedError
from roofdesk.models.base import get_db
from roofdesk.models.job import JobType
from roofdesk.models.vendor import Vendor, VendorProduct, VendorSyncStatus
from roofdesk.services.rbac import TenantContext

router = APIRouter()


class VendorCreate(BaseModel):
    name: str = Field(min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    category: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    feed_url: Optional[str] = None
    auto_sync: bool = False


class VendorUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    website: Optional[str] = None
    category: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    feed_url: Optional[str] = None
    auto_sync: Optional[bool] = None


class VendorResponse(BaseModel):
    id: int
    org_id: Optional[int]
    slug: str
    name: str
    description: Optional[str]
    website: Optional[str]
    category: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    feed_url: Optional[str]
    auto_sync: bool
    last_sync_at: Optional[datetime]
    last_sync_status: Optional[VendorSyncStatus]
    last_sync_error: Optional[str]
    last_sync_count: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class ProductResponse(BaseModel):
    id: int
    vendor_id: int
    external_id: str
    sku: Optional[str]
    name: str
    category: Optional[str]
    description: Optional[str]
    unit: Optional[str]
    price: Optional[float]
    currency: Optional[str]
    colors: Optional[List[Any]]
    data_sheet_url: Optional[str]
    image_url: Optional[str]
    synced_at: Optional[datetime]

    class Config:
        from_attributes = True


def _visible(org_id: int):
    """Network vendors (no org) plus the caller's own."""
    return or_(Vendor.org_id.is_(None), Vendor.org_id == org_id)


async def get_visible_vendor(db: AsyncSession, org_id: int, vendor_id: int) -> Vendor:
    result = await db.execute(select(Vendor).where(Vendor.id == vendor_id, _visible(org_id)))
    vendor = result.scalar_one_or_none()
    if not vendor:
        raise NotFoundError("Vendor not found")
    return vendor


async def _get_own_vendor(db: AsyncSession, org_id: int, vendor_id: int) -> Vendor:
    vendor = await get_visible_vendor(db, org_id, vendor_id)
    if vendor.org_id != org_id:
        raise PermissionDeniedError("Network vendors are read-only")
    return vendor


# ============================================================================
# Vendors
# ============================================================================

@router.post("", response_model=VendorResponse)
async def create_vendor(
    data: VendorCreate,
    ctx: TenantContext = Depends(permission("vendors:create")),
    db: AsyncSession = Depends(get_db),
):
    vendor = Vendor(
        org_id=ctx.org_id,
        slug=slugify(data.slug or data.name),
        last_sync_status=VendorSyncStatus.never,
        **data.model_dump(exclude={"slug"}),
    )
    db.add(vendor)
    await db.commit()
    await db.refresh(vendor)
    return vendor


@router.get("", response_model=List[VendorResponse])
async def list_vendors(
    q: Optional[str] = None,
    category: Optional[str] = None,
    ctx: TenantContext = Depends(permission("vendors:view")),
    db: AsyncSession = Depends(get_db),
):
    query = select(Vendor).where(_visible(ctx.org_id))
    if q:
        query = query.where(Vendor.name.ilike(f"%{q.strip()}%"))
    if category:
        query = query.where(Vendor.category == category)
    result = await db.execute(query.order_by(Vendor.name))
    return result.scalars().all()


@router.get("/{vendor_id}", response_model=VendorResponse)
async def get_vendor(
    vendor_id: int,
    ctx: TenantContext = Depends(permission("vendors:view")),
    db: AsyncSession = Depends(get_db),
):
    return await get_visible_vendor(db, ctx.org_id, vendor_id)


@router.patch("/{vendor_id}", response_model=VendorResponse)
async def update_vendor(
    vendor_id: int,
    data: VendorUpdate,
    ctx: TenantContext = Depends(permission("vendors:edit")),
    db: AsyncSession = Depends(get_db),
):
    vendor = await _get_own_vendor(db, ctx.org_id, vendor_id)
    apply_updates(vendor, data.model_dump(exclude_unset=True), required=("name", "auto_sync"))
    await db.commit()
    await db.refresh(vendor)
    return vendor


@router.delete("/{vendor_id}")
async def delete_vendor(
    vendor_id: int,
    ctx: TenantContext = Depends(permission("vendors:delete")),
    db: AsyncSession = Depends(get_db),
):
    vendor = await _get_own_vendor(db, ctx.org_id, vendor_id)
    await db.delete(vendor)
    await db.commit()
    return {"deleted": True}


async def start_vendor_sync(db: AsyncSession, ctx: TenantContext, vendor_id: int):
    vendor = await _get_own_vendor(db, ctx.org_id, vendor_id)
    if not vendor.feed_url:
        raise FailedPreconditionError("Vendor has no feed_url configured")
    return await enqueue_job(db, ctx, JobType.vendor_sync, vendor_id=vendor.id)


@router.post("/{vendor_id}/sync", response_model=JobResponse)
async def sync_vendor(
    vendor_id: int,
    ctx: TenantContext = Depends(permission("vendors:edit")),
    db: AsyncSession = Depends(get_db),
):
    """Queue a manual catalog sync for one vendor."""
    job = await start_vendor_sync(db, ctx, vendor_id)
    return to_job_response(job)


# ============================================================================
# Products
# ============================================================================

@router.get("/{vendor_id}/products", response_model=List[ProductResponse])
async def list_products(
    vendor_id: int,
    q: Optional[str] = None,
    category: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    ctx: TenantContext = Depends(permission("products:view")),
    db: AsyncSession = Depends(get_db),
):
    await get_visible_vendor(db, ctx.org_id, vendor_id)
    query = select(VendorProduct).where(VendorProduct.vendor_id == vendor_id)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.where(or_(VendorProduct.name.ilike(pattern), VendorProduct.sku.ilike(pattern)))
    if category:
        query = query.where(VendorProduct.category == category)
    result = await db.execute(query.order_by(VendorProduct.name).limit(limit).offset(offset))
    return result.scalars().all()


@router.get("/{vendor_id}/products/{product_id}", response_model=ProductResponse)
async def get_product(
    vendor_id: int,
    product_id: int,
    ctx: TenantContext = Depends(permission("products:view")),
    db: AsyncSession = Depends(get_db),
):
    await get_visible_vendor(db, ctx.org_id, vendor_id)
    result = await db.execute(
        select(VendorProduct).where(VendorProduct.id == product_id, VendorProduct.vendor_id == vendor_id)
    )
    product = result.scalar_one_or_none()
    if not product:
        raise NotFoundError("Product not found")
    return product
