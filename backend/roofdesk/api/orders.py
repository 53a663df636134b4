"""Material orders against vendor catalogs, and homeowner design boards."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from roofdesk.api.claims import get_org_claim
from roofdesk.api.deps import apply_updates, permission
from roofdesk.api.vendors import get_visible_vendor
from roofdesk.errors import FailedPreconditionError, InvalidArgumentError, NotFoundError
from roofdesk.models.base import get_db
from roofdesk.models.order import DesignBoardItem, MaterialOrder, MaterialOrderItem, OrderStatus
from roofdesk.models.vendor import VendorProduct
from roofdesk.services.rbac import TenantContext

router = APIRouter()
board_router = APIRouter()

# Allowed forward moves; cancelled and delivered are terminal.
ORDER_TRANSITIONS = {
    OrderStatus.draft: {OrderStatus.submitted, OrderStatus.cancelled},
    OrderStatus.submitted: {OrderStatus.confirmed, OrderStatus.cancelled},
    OrderStatus.confirmed: {OrderStatus.delivered, OrderStatus.cancelled},
    OrderStatus.delivered: set(),
    OrderStatus.cancelled: set(),
}


class OrderItemCreate(BaseModel):
    product_id: Optional[int] = None
    name: Optional[str] = None
    quantity: float = Field(default=1.0, gt=0)
    unit: Optional[str] = None
    unit_price: Optional[float] = Field(default=None, ge=0)


class OrderCreate(BaseModel):
    vendor_id: int
    claim_id: Optional[int] = None
    notes: Optional[str] = None
    delivery_address: Optional[str] = None
    delivery_date: Optional[datetime] = None
    items: List[OrderItemCreate] = Field(min_length=1)


class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    notes: Optional[str] = None
    delivery_address: Optional[str] = None
    delivery_date: Optional[datetime] = None


class OrderItemResponse(BaseModel):
    id: int
    product_id: Optional[int]
    name: str
    quantity: float
    unit: Optional[str]
    unit_price: float
    line_total: float

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    org_id: int
    vendor_id: int
    claim_id: Optional[int]
    status: OrderStatus
    notes: Optional[str]
    delivery_address: Optional[str]
    delivery_date: Optional[datetime]
    total: float
    created_by: Optional[str]
    created_at: datetime
    items: List[OrderItemResponse]

    class Config:
        from_attributes = True


class BoardItemCreate(BaseModel):
    title: str = Field(min_length=1)
    claim_id: Optional[int] = None
    lead_id: Optional[int] = None
    product_id: Optional[int] = None
    image_url: Optional[str] = None
    color_name: Optional[str] = None
    notes: Optional[str] = None
    position: int = 0


class BoardItemUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    image_url: Optional[str] = None
    color_name: Optional[str] = None
    notes: Optional[str] = None
    position: Optional[int] = None


class BoardItemResponse(BaseModel):
    id: int
    org_id: int
    claim_id: Optional[int]
    lead_id: Optional[int]
    product_id: Optional[int]
    title: str
    image_url: Optional[str]
    color_name: Optional[str]
    notes: Optional[str]
    position: int
    created_at: datetime

    class Config:
        from_attributes = True


async def _get_order(db: AsyncSession, org_id: int, order_id: int) -> MaterialOrder:
    result = await db.execute(
        select(MaterialOrder)
        .options(selectinload(MaterialOrder.items))
        .where(MaterialOrder.id == order_id, MaterialOrder.org_id == org_id)
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise NotFoundError("Order not found")
    return order


# ============================================================================
# Orders
# ============================================================================

@router.post("", response_model=OrderResponse)
async def create_order(
    data: OrderCreate,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    """Create a draft order. Items referencing a product default to its name, unit and price."""
    await get_visible_vendor(db, ctx.org_id, data.vendor_id)
    if data.claim_id is not None:
        await get_org_claim(db, ctx.org_id, data.claim_id)

    product_ids = [item.product_id for item in data.items if item.product_id is not None]
    products = {}
    if product_ids:
        result = await db.execute(
            select(VendorProduct).where(
                VendorProduct.id.in_(product_ids), VendorProduct.vendor_id == data.vendor_id
            )
        )
        products = {p.id: p for p in result.scalars().all()}

    order = MaterialOrder(
        org_id=ctx.org_id,
        vendor_id=data.vendor_id,
        claim_id=data.claim_id,
        status=OrderStatus.draft,
        notes=data.notes,
        delivery_address=data.delivery_address,
        delivery_date=data.delivery_date,
        created_by=ctx.user_id,
    )
    for item in data.items:
        product = products.get(item.product_id) if item.product_id is not None else None
        if item.product_id is not None and product is None:
            raise InvalidArgumentError(
                "Product does not belong to this vendor", details={"product_id": item.product_id}
            )
        name = item.name or (product.name if product else None)
        if not name:
            raise InvalidArgumentError("Order items need a name or a product_id")
        unit_price = item.unit_price
        if unit_price is None:
            unit_price = (product.price if product else None) or 0.0
        order.items.append(
            MaterialOrderItem(
                product_id=item.product_id,
                name=name,
                quantity=item.quantity,
                unit=item.unit or (product.unit if product else None),
                unit_price=unit_price,
            )
        )
    order.total = round(sum(i.line_total for i in order.items), 2)

    db.add(order)
    await db.commit()
    return await _get_order(db, ctx.org_id, order.id)


@router.get("", response_model=List[OrderResponse])
async def list_orders(
    status: Optional[OrderStatus] = None,
    claim_id: Optional[int] = None,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    query = (
        select(MaterialOrder)
        .options(selectinload(MaterialOrder.items))
        .where(MaterialOrder.org_id == ctx.org_id)
    )
    if status is not None:
        query = query.where(MaterialOrder.status == status)
    if claim_id is not None:
        query = query.where(MaterialOrder.claim_id == claim_id)
    result = await db.execute(query.order_by(MaterialOrder.created_at.desc(), MaterialOrder.id.desc()))
    return result.scalars().all()


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    return await _get_order(db, ctx.org_id, order_id)


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: int,
    data: OrderUpdate,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    order = await _get_order(db, ctx.org_id, order_id)
    updates = data.model_dump(exclude_unset=True)
    new_status = updates.get("status")
    if new_status is not None and new_status != order.status:
        if new_status not in ORDER_TRANSITIONS[order.status]:
            raise FailedPreconditionError(
                f"Cannot move order from {order.status.value} to {new_status.value}",
                details={"allowed": sorted(s.value for s in ORDER_TRANSITIONS[order.status])},
            )
    apply_updates(order, updates, required=("status",))
    await db.commit()
    return await _get_order(db, ctx.org_id, order_id)


# ============================================================================
# Design board
# ============================================================================

@board_router.post("", response_model=BoardItemResponse)
async def add_board_item(
    data: BoardItemCreate,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    if data.claim_id is not None:
        await get_org_claim(db, ctx.org_id, data.claim_id)
    item = DesignBoardItem(org_id=ctx.org_id, **data.model_dump())
    if data.product_id is not None and not data.image_url:
        result = await db.execute(select(VendorProduct).where(VendorProduct.id == data.product_id))
        product = result.scalar_one_or_none()
        if not product:
            raise NotFoundError("Product not found")
        item.image_url = product.image_url
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return item


@board_router.get("", response_model=List[BoardItemResponse])
async def list_board_items(
    claim_id: Optional[int] = None,
    lead_id: Optional[int] = None,
    ctx: TenantContext = Depends(permission("claims:view")),
    db: AsyncSession = Depends(get_db),
):
    query = select(DesignBoardItem).where(DesignBoardItem.org_id == ctx.org_id)
    if claim_id is not None:
        query = query.where(DesignBoardItem.claim_id == claim_id)
    if lead_id is not None:
        query = query.where(DesignBoardItem.lead_id == lead_id)
    result = await db.execute(query.order_by(DesignBoardItem.position, DesignBoardItem.id))
    return result.scalars().all()


async def _get_board_item(db: AsyncSession, org_id: int, item_id: int) -> DesignBoardItem:
    result = await db.execute(
        select(DesignBoardItem).where(DesignBoardItem.id == item_id, DesignBoardItem.org_id == org_id)
    )
    item = result.scalar_one_or_none()
    if not item:
        raise NotFoundError("Design board item not found")
    return item


@board_router.patch("/{item_id}", response_model=BoardItemResponse)
async def update_board_item(
    item_id: int,
    data: BoardItemUpdate,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    item = await _get_board_item(db, ctx.org_id, item_id)
    apply_updates(item, data.model_dump(exclude_unset=True), required=("title",))
    await db.commit()
    await db.refresh(item)
    return item


@board_router.delete("/{item_id}")
async def delete_board_item(
    item_id: int,
    ctx: TenantContext = Depends(permission("claims:edit")),
    db: AsyncSession = Depends(get_db),
):
    item = await _get_board_item(db, ctx.org_id, item_id)
    await db.delete(item)
    await db.commit()
    return {"deleted": True}
