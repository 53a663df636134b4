"""CRM models - contacts, properties, leads."""
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Enum, Float, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from roofdesk.models.base import Base


class LeadStage(enum.Enum):
    new = "new"
    contacted = "contacted"
    qualified = "qualified"
    proposal = "proposal"
    won = "won"
    lost = "lost"


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    company = Column(String(255), nullable=True)

    street = Column(String(255), nullable=True)
    city = Column(String(120), nullable=True)
    state = Column(String(40), nullable=True)
    zip_code = Column(String(20), nullable=True)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    properties = relationship("Property", back_populates="contact")
    leads = relationship("Lead", back_populates="contact")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Property(Base):
    """A physical property (usually the insured home) tied to a contact."""
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=True)

    street = Column(String(255), nullable=False)
    city = Column(String(120), nullable=True)
    state = Column(String(40), nullable=True)
    zip_code = Column(String(20), nullable=True)

    year_built = Column(Integer, nullable=True)
    roof_type = Column(String(120), nullable=True)
    roof_pitch = Column(String(20), nullable=True)  # "6/12"
    roof_age = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    contact = relationship("Contact", back_populates="properties")

    @property
    def address_line(self) -> str:
        tail = " ".join(part for part in [self.state, self.zip_code] if part)
        return ", ".join(part for part in [self.street, self.city, tail] if part)


class Lead(Base):
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=False)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    source = Column(String(80), nullable=True)  # referral, door_knock, client_portal, ...
    stage = Column(Enum(LeadStage), default=LeadStage.new, nullable=False)
    temperature = Column(String(20), default="warm")
    value = Column(Float, nullable=True)
    probability = Column(Float, nullable=True)
    assigned_to = Column(String(128), nullable=True)
    follow_up_date = Column(DateTime, nullable=True)

    # Portal intake fields
    trade_type = Column(String(80), nullable=True)
    urgency = Column(String(20), nullable=True)
    is_insurance_claim = Column(Boolean, default=False)

    # Set once the lead is converted
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=True)
    closed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    contact = relationship("Contact", back_populates="leads")
    claim = relationship("Claim", foreign_keys=[claim_id])
