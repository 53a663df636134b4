"""Contact and property routes."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from roofdesk.api.deps import apply_updates, permission
from roofdesk.errors import FailedPreconditionError, NotFoundError
from roofdesk.models.base import get_db
from roofdesk.models.claim import Claim
from roofdesk.models.crm import Contact, Lead, Property
from roofdesk.services.rbac import TenantContext

router = APIRouter()
property_router = APIRouter()


# ============================================================================
# Pydantic Schemas
# ============================================================================

class ContactCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    notes: Optional[str] = None


class ContactUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    notes: Optional[str] = None


class ContactResponse(BaseModel):
    id: int
    org_id: int
    first_name: str
    last_name: str
    full_name: str
    email: Optional[str]
    phone: Optional[str]
    company: Optional[str]
    street: Optional[str]
    city: Optional[str]
    state: Optional[str]
    zip_code: Optional[str]
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class PropertyCreate(BaseModel):
    contact_id: Optional[int] = None
    street: str = Field(min_length=1)
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    year_built: Optional[int] = None
    roof_type: Optional[str] = None
    roof_pitch: Optional[str] = None
    roof_age: Optional[int] = None


class PropertyUpdate(BaseModel):
    contact_id: Optional[int] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    year_built: Optional[int] = None
    roof_type: Optional[str] = None
    roof_pitch: Optional[str] = None
    roof_age: Optional[int] = None


class PropertyResponse(BaseModel):
    id: int
    org_id: int
    contact_id: Optional[int]
    street: str
    city: Optional[str]
    state: Optional[str]
    zip_code: Optional[str]
    address_line: str
    year_built: Optional[int]
    roof_type: Optional[str]
    roof_pitch: Optional[str]
    roof_age: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


async def get_org_contact(db: AsyncSession, org_id: int, contact_id: int) -> Contact:
    result = await db.execute(
        select(Contact).where(Contact.id == contact_id, Contact.org_id == org_id)
    )
    contact = result.scalar_one_or_none()
    if not contact:
        raise NotFoundError("Contact not found")
    return contact


async def get_org_property(db: AsyncSession, org_id: int, property_id: int) -> Property:
    result = await db.execute(
        select(Property).where(Property.id == property_id, Property.org_id == org_id)
    )
    prop = result.scalar_one_or_none()
    if not prop:
        raise NotFoundError("Property not found")
    return prop


# ============================================================================
# Contacts
# ============================================================================

@router.post("", response_model=ContactResponse)
async def create_contact(
    data: ContactCreate,
    ctx: TenantContext = Depends(permission("claims:create")),
    db: AsyncSession = Depends(get_db),
):
    contact = Contact(org_id=ctx.org_id, **data.model_dump())
    db.add(contact)
    await db.commit()
    await db.refresh(contact)
    return contact


@router.get("", response_model=List[ContactResponse])
async def list_contacts(
    q: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    """List contacts, optionally matching ``q`` against name, email or phone."""
    query = select(Contact).where(Contact.org_id == ctx.org_id)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.where(
            or_(
                Contact.first_name.ilike(pattern),
                Contact.last_name.ilike(pattern),
                Contact.email.ilike(pattern),
                Contact.phone.ilike(pattern),
            )
        )
    result = await db.execute(
        query.order_by(Contact.last_name, Contact.first_name).limit(limit).offset(offset)
    )
    return result.scalars().all()


@router.get("/{contact_id}", response_model=ContactResponse)
async def get_contact(
    contact_id: int,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    return await get_org_contact(db, ctx.org_id, contact_id)


@router.patch("/{contact_id}", response_model=ContactResponse)
async def update_contact(
    contact_id: int,
    data: ContactUpdate,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    contact = await get_org_contact(db, ctx.org_id, contact_id)
    apply_updates(contact, data.model_dump(exclude_unset=True), required=("first_name", "last_name"))
    await db.commit()
    await db.refresh(contact)
    return contact


@router.delete("/{contact_id}")
async def delete_contact(
    contact_id: int,
    ctx: TenantContext = Depends(permission("claims:delete")),
    db: AsyncSession = Depends(get_db),
):
    contact = await get_org_contact(db, ctx.org_id, contact_id)

    # Soft-deleted claims keep their foreign key, so they block the delete too.
    references = {
        "lead_ids": (await db.execute(select(Lead.id).where(Lead.contact_id == contact.id))).scalars().all(),
        "claim_ids": (await db.execute(select(Claim.id).where(Claim.contact_id == contact.id))).scalars().all(),
        "property_ids": (
            await db.execute(select(Property.id).where(Property.contact_id == contact.id))
        ).scalars().all(),
    }
    references = {key: sorted(ids) for key, ids in references.items() if ids}
    if references:
        raise FailedPreconditionError(
            "Contact is still referenced; reassign or delete these records first",
            details=references,
        )

    await db.delete(contact)
    await db.commit()
    return {"deleted": True}


# ============================================================================
# Properties
# ============================================================================

@property_router.post("", response_model=PropertyResponse)
async def create_property(
    data: PropertyCreate,
    ctx: TenantContext = Depends(permission("claims:create")),
    db: AsyncSession = Depends(get_db),
):
    if data.contact_id is not None:
        await get_org_contact(db, ctx.org_id, data.contact_id)
    prop = Property(org_id=ctx.org_id, **data.model_dump())
    db.add(prop)
    await db.commit()
    await db.refresh(prop)
    return prop


@property_router.get("", response_model=List[PropertyResponse])
async def list_properties(
    contact_id: Optional[int] = None,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    query = select(Property).where(Property.org_id == ctx.org_id)
    if contact_id is not None:
        query = query.where(Property.contact_id == contact_id)
    result = await db.execute(query.order_by(Property.id))
    return result.scalars().all()


@property_router.get("/{property_id}", response_model=PropertyResponse)
async def get_property(
    property_id: int,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    return await get_org_property(db, ctx.org_id, property_id)


@property_router.patch("/{property_id}", response_model=PropertyResponse)
async def update_property(
    property_id: int,
    data: PropertyUpdate,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    prop = await get_org_property(db, ctx.org_id, property_id)
    updates = data.model_dump(exclude_unset=True)
    if updates.get("contact_id") is not None:
        await get_org_contact(db, ctx.org_id, updates["contact_id"])
    apply_updates(prop, updates, required=("street",))
    await db.commit()
    await db.refresh(prop)
    return prop
