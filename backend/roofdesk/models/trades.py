"""Trades company profiles - what the client portal lists."""
from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, ForeignKey, Boolean, Float
from datetime import datetime

from roofdesk.models.base import Base


class TradesCompany(Base):
    __tablename__ = "trades_companies"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    slug = Column(String(160), nullable=False, index=True)
    description = Column(Text, nullable=True)
    trade_types = Column(JSON, default=list)  # ["roofing", "gutters", ...]
    license_number = Column(String(120), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(500), nullable=True)

    city = Column(String(120), nullable=True)
    state = Column(String(40), nullable=True)
    service_zips = Column(JSON, default=list)

    rating = Column(Float, nullable=True)
    is_public = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
