"""Claim models - the insurance claim and everything hanging off it."""
from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, ForeignKey, Enum, Float, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from roofdesk.models.base import Base


class ClaimStatus(enum.Enum):
    intake = "intake"
    open = "open"
    inspected = "inspected"
    submitted = "submitted"
    approved = "approved"
    denied = "denied"
    closed = "closed"


class Claim(Base):
    __tablename__ = "claims"
    __table_args__ = (UniqueConstraint("org_id", "claim_number", name="uq_claim_org_number"),)

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=True)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=True)

    claim_number = Column(String(80), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(Enum(ClaimStatus), default=ClaimStatus.intake, nullable=False)

    # Insurance
    carrier = Column(String(255), nullable=True)
    policy_number = Column(String(120), nullable=True)
    insured_name = Column(String(255), nullable=True)
    adjuster_name = Column(String(255), nullable=True)
    adjuster_email = Column(String(255), nullable=True)
    date_of_loss = Column(DateTime, nullable=True)

    # Cause of loss
    storm_type = Column(String(40), nullable=True)  # hail, wind, tornado, hurricane, other
    hail_size = Column(String(40), nullable=True)  # "1.25 inch"
    wind_speed = Column(Float, nullable=True)  # mph
    weather_summary = Column(Text, nullable=True)
    weather_verified = Column(Boolean, default=False)

    # Inspection
    inspection_date = Column(DateTime, nullable=True)
    inspector_name = Column(String(255), nullable=True)
    overall_condition = Column(String(20), nullable=True)  # good, fair, poor, critical

    # AI output
    # {"repair_justification": {...}, "contractor_summary": {...}, "adjuster_cover_letter": {...},
    #  "executive_summary": {...}}
    narratives = Column(JSON, default=dict)
    # {"fields": {...}, "summary": {...}, "analyzed_at": "..."}
    damage_summary = Column(JSON, default=dict)

    created_by = Column(String(128), nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    property = relationship("Property")
    contact = relationship("Contact")
    photos = relationship("ClaimPhoto", back_populates="claim", cascade="all, delete-orphan")
    line_items = relationship("ClaimLineItem", back_populates="claim", cascade="all, delete-orphan")
    events = relationship("ClaimEvent", back_populates="claim", cascade="all, delete-orphan")
    signatures = relationship("ClaimSignature", back_populates="claim", cascade="all, delete-orphan")
    packets = relationship("GeneratedPacket", back_populates="claim", cascade="all, delete-orphan")


class ClaimPhoto(Base):
    __tablename__ = "claim_photos"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)

    url = Column(String(1000), nullable=False)
    caption = Column(Text, nullable=True)
    elevation = Column(String(20), nullable=True)  # north, east, south, west, roof

    analysis_json = Column(JSON, nullable=True)
    analyzed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    claim = relationship("Claim", back_populates="photos")


class ClaimLineItem(Base):
    """Xactimate-style scope line."""
    __tablename__ = "claim_line_items"

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)

    code = Column(String(40), nullable=True)
    description = Column(String(500), nullable=False)
    quantity = Column(Float, default=0.0)
    unit = Column(String(20), default="EA")
    unit_price = Column(Float, default=0.0)
    category = Column(String(80), default="general")

    created_at = Column(DateTime, default=datetime.utcnow)

    claim = relationship("Claim", back_populates="line_items")

    @property
    def total(self) -> float:
        return round(float(self.quantity or 0) * float(self.unit_price or 0), 2)


class ClaimEvent(Base):
    """Timeline entry for a claim."""
    __tablename__ = "claim_events"

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)

    occurred_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    event = Column(String(255), nullable=False)
    category = Column(String(40), default="other")  # loss, inspection, weather, claim, adjuster, supplement, other
    details = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    claim = relationship("Claim", back_populates="events")


class ClaimSignature(Base):
    __tablename__ = "claim_signatures"

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)

    signer_name = Column(String(255), nullable=False)
    signer_role = Column(String(40), nullable=False)  # contractor, homeowner, witness
    signed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    ip_address = Column(String(64), nullable=True)

    claim = relationship("Claim", back_populates="signatures")
