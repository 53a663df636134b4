"""Packet templates - global catalog plus per-org selections."""
from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, ForeignKey, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime

from roofdesk.models.base import Base


class Template(Base):
    """A named, ordered list of packet sections available to every org."""
    __tablename__ = "templates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(80), default="claims")
    description = Column(Text, nullable=True)
    section_keys = Column(JSON, default=list)  # ["cover-sheet", "executive-summary", ...]
    is_public = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)


class OrgTemplate(Base):
    """An org's copy of a template, with optional section override and branding."""
    __tablename__ = "org_templates"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("templates.id"), nullable=False)

    name = Column(String(255), nullable=True)
    section_keys = Column(JSON, nullable=True)  # overrides template.section_keys when set
    # {"company_name": "...", "license": "...", "phone": "...", "email": "...", "prepared_by": "..."}
    branding = Column(JSON, default=dict)
    is_default = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    template = relationship("Template")

    @property
    def effective_sections(self) -> list:
        if self.section_keys:
            return list(self.section_keys)
        return list(self.template.section_keys or []) if self.template else []
