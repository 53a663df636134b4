"""Generated packet metadata - the PDF itself lives in object storage."""
from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from roofdesk.models.base import Base


class GeneratedPacket(Base):
    __tablename__ = "generated_packets"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)

    public_id = Column(String(64), nullable=False, unique=True, index=True)
    mode = Column(String(20), nullable=True)
    sections = Column(JSON, default=list)
    page_count = Column(Integer, default=0)
    size_bytes = Column(Integer, default=0)
    readiness_score = Column(Integer, nullable=True)

    storage_key = Column(String(1000), nullable=False)
    url = Column(String(2000), nullable=True)

    created_by = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    claim = relationship("Claim", back_populates="packets")
