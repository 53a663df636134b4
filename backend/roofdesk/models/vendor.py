"""Vendor models - suppliers/manufacturers and their synced product catalogs."""
from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, ForeignKey, Enum, Boolean, Float, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from roofdesk.models.base import Base


class VendorSyncStatus(enum.Enum):
    never = "never"
    running = "running"
    success = "success"
    failed = "failed"


class Vendor(Base):
    """A supplier or manufacturer. ``org_id`` is null for network-wide vendors."""
    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)

    slug = Column(String(160), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    website = Column(String(500), nullable=True)
    category = Column(String(120), nullable=True)  # Distributor, Roofing Manufacturer, ...
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)

    # Catalog feed
    feed_url = Column(String(1000), nullable=True)
    auto_sync = Column(Boolean, default=False)

    # Last sync bookkeeping
    last_sync_at = Column(DateTime, nullable=True)
    last_sync_status = Column(Enum(VendorSyncStatus), default=VendorSyncStatus.never)
    last_sync_error = Column(Text, nullable=True)
    last_sync_count = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    products = relationship("VendorProduct", back_populates="vendor", cascade="all, delete-orphan")


class VendorProduct(Base):
    """A catalog product, keyed by the vendor's own external id."""
    __tablename__ = "vendor_products"
    __table_args__ = (UniqueConstraint("vendor_id", "external_id", name="uq_vendor_product_external"),)

    id = Column(Integer, primary_key=True, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    external_id = Column(String(255), nullable=False)

    sku = Column(String(120), nullable=True)
    name = Column(String(500), nullable=False)
    category = Column(String(120), nullable=True)
    description = Column(Text, nullable=True)
    unit = Column(String(40), nullable=True)
    price = Column(Float, nullable=True)
    currency = Column(String(8), default="USD")
    colors = Column(JSON, default=list)  # [{"name": "Charcoal", "hex": "#333"}]
    data_sheet_url = Column(String(1000), nullable=True)
    image_url = Column(String(1000), nullable=True)

    raw_json = Column(JSON, nullable=True)
    synced_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("Vendor", back_populates="products")
