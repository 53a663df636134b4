"""Packet templates: the global catalog and each org's selections."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from roofdesk.api.deps import permission
from roofdesk.errors import NotFoundError
from roofdesk.models.base import get_db
from roofdesk.models.template import OrgTemplate, Template
from roofdesk.models.organization import TeamRole
from roofdesk.services.packets.registry import MODE_PRESETS, SECTION_TITLES, resolve_sections
from roofdesk.services.rbac import TenantContext, require_role

router = APIRouter()
org_router = APIRouter()


class TemplateCreate(BaseModel):
    name: str = Field(min_length=1)
    category: str = "claims"
    description: Optional[str] = None
    section_keys: List[str]
    is_public: bool = True


class TemplateResponse(BaseModel):
    id: int
    name: str
    category: Optional[str]
    description: Optional[str]
    section_keys: List[str]
    is_public: bool
    created_at: datetime

    class Config:
        from_attributes = True


class OrgTemplateCreate(BaseModel):
    template_id: int
    name: Optional[str] = None
    section_keys: Optional[List[str]] = None
    branding: Dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False


class OrgTemplateUpdate(BaseModel):
    name: Optional[str] = None
    section_keys: Optional[List[str]] = None
    branding: Optional[Dict[str, Any]] = None
    is_default: Optional[bool] = None


class OrgTemplateResponse(BaseModel):
    id: int
    org_id: int
    template_id: int
    name: Optional[str]
    section_keys: Optional[List[str]]
    effective_sections: List[str]
    branding: Dict[str, Any]
    is_default: bool
    created_at: datetime

    class Config:
        from_attributes = True


# ============================================================================
# Global catalog
# ============================================================================

@router.get("/sections")
async def list_sections(ctx: TenantContext = Depends(permission("reports:view"))):
    """Available packet section names and the built-in mode presets."""
    return {
        "sections": [{"name": name, "title": title} for name, title in SECTION_TITLES.items()],
        "modes": MODE_PRESETS,
    }


@router.get("", response_model=List[TemplateResponse])
async def list_templates(
    category: Optional[str] = None,
    ctx: TenantContext = Depends(permission("reports:view")),
    db: AsyncSession = Depends(get_db),
):
    query = select(Template).where(Template.is_public.is_(True))
    if category:
        query = query.where(Template.category == category)
    result = await db.execute(query.order_by(Template.name))
    return result.scalars().all()


@router.post("", response_model=TemplateResponse)
async def create_template(
    data: TemplateCreate,
    ctx: TenantContext = Depends(permission("reports:create")),
    db: AsyncSession = Depends(get_db),
):
    require_role(ctx, TeamRole.admin)
    template = Template(
        name=data.name,
        category=data.category,
        description=data.description,
        section_keys=resolve_sections(requested=data.section_keys),
        is_public=data.is_public,
    )
    db.add(template)
    await db.commit()
    await db.refresh(template)
    return template


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: int,
    ctx: TenantContext = Depends(permission("reports:view")),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Template).where(Template.id == template_id))
    template = result.scalar_one_or_none()
    if not template:
        raise NotFoundError("Template not found")
    return template


# ============================================================================
# Org selections
# ============================================================================

async def _get_org_template(db: AsyncSession, org_id: int, org_template_id: int) -> OrgTemplate:
    result = await db.execute(
        select(OrgTemplate)
        .options(selectinload(OrgTemplate.template))
        .where(OrgTemplate.id == org_template_id, OrgTemplate.org_id == org_id)
        .execution_options(populate_existing=True)
    )
    org_template = result.scalar_one_or_none()
    if not org_template:
        raise NotFoundError("Org template not found")
    return org_template


async def _clear_default(db: AsyncSession, org_id: int) -> None:
    await db.execute(
        update(OrgTemplate).where(OrgTemplate.org_id == org_id).values(is_default=False)
    )


@org_router.get("", response_model=List[OrgTemplateResponse])
async def list_org_templates(
    ctx: TenantContext = Depends(permission("reports:view")),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(OrgTemplate)
        .options(selectinload(OrgTemplate.template))
        .where(OrgTemplate.org_id == ctx.org_id)
        .order_by(OrgTemplate.id)
    )
    return result.scalars().all()


@org_router.post("", response_model=OrgTemplateResponse)
async def add_org_template(
    data: OrgTemplateCreate,
    ctx: TenantContext = Depends(permission("reports:create")),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Template).where(Template.id == data.template_id))
    if not result.scalar_one_or_none():
        raise NotFoundError("Template not found")
    section_keys = resolve_sections(requested=data.section_keys) if data.section_keys else None
    if data.is_default:
        await _clear_default(db, ctx.org_id)

    org_template = OrgTemplate(
        org_id=ctx.org_id,
        template_id=data.template_id,
        name=data.name,
        section_keys=section_keys,
        branding=data.branding,
        is_default=data.is_default,
    )
    db.add(org_template)
    await db.commit()
    return await _get_org_template(db, ctx.org_id, org_template.id)


@org_router.patch("/{org_template_id}", response_model=OrgTemplateResponse)
async def update_org_template(
    org_template_id: int,
    data: OrgTemplateUpdate,
    ctx: TenantContext = Depends(permission("reports:create")),
    db: AsyncSession = Depends(get_db),
):
    org_template = await _get_org_template(db, ctx.org_id, org_template_id)
    updates = data.model_dump(exclude_unset=True)
    if updates.get("section_keys"):
        org_template.section_keys = resolve_sections(requested=updates["section_keys"])
    elif "section_keys" in updates:
        org_template.section_keys = None
    if "name" in updates:
        org_template.name = updates["name"]
    if updates.get("branding") is not None:
        org_template.branding = updates["branding"]
    if updates.get("is_default"):
        await _clear_default(db, ctx.org_id)
        org_template.is_default = True
    elif updates.get("is_default") is False:
        org_template.is_default = False
    await db.commit()
    return await _get_org_template(db, ctx.org_id, org_template_id)


@org_router.delete("/{org_template_id}")
async def delete_org_template(
    org_template_id: int,
    ctx: TenantContext = Depends(permission("reports:create")),
    db: AsyncSession = Depends(get_db),
):
    org_template = await _get_org_template(db, ctx.org_id, org_template_id)
    await db.delete(org_template)
    await db.commit()
    return {"deleted": True}
