"""Material orders placed against vendor catalogs, and design-board picks."""
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Enum, Float
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from roofdesk.models.base import Base


class OrderStatus(enum.Enum):
    draft = "draft"
    submitted = "submitted"
    confirmed = "confirmed"
    delivered = "delivered"
    cancelled = "cancelled"


class MaterialOrder(Base):
    __tablename__ = "material_orders"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=True)

    status = Column(Enum(OrderStatus), default=OrderStatus.draft, nullable=False)
    notes = Column(Text, nullable=True)
    delivery_address = Column(String(500), nullable=True)
    delivery_date = Column(DateTime, nullable=True)
    total = Column(Float, default=0.0)

    created_by = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("Vendor")
    items = relationship("MaterialOrderItem", back_populates="order", cascade="all, delete-orphan")


class MaterialOrderItem(Base):
    __tablename__ = "material_order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("material_orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("vendor_products.id"), nullable=True)

    name = Column(String(500), nullable=False)
    quantity = Column(Float, default=1.0)
    unit = Column(String(40), nullable=True)
    unit_price = Column(Float, default=0.0)

    order = relationship("MaterialOrder", back_populates="items")

    @property
    def line_total(self) -> float:
        return round(float(self.quantity or 0) * float(self.unit_price or 0), 2)


class DesignBoardItem(Base):
    """A product or inspiration image pinned to a homeowner's design board."""
    __tablename__ = "design_board_items"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=True)
    lead_id = Column(Integer, ForeignKey("leads.id"), nullable=True)
    product_id = Column(Integer, ForeignKey("vendor_products.id"), nullable=True)

    title = Column(String(255), nullable=False)
    image_url = Column(String(1000), nullable=True)
    color_name = Column(String(120), nullable=True)
    notes = Column(Text, nullable=True)
    position = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
