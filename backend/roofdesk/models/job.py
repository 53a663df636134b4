"""Job model - async work handed to Celery."""
from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, ForeignKey, Enum, Float
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from roofdesk.models.base import Base


class JobType(enum.Enum):
    build_packet = "build_packet"
    analyze_damage = "analyze_damage"
    generate_narratives = "generate_narratives"
    vendor_sync = "vendor_sync"


class JobState(enum.Enum):
    queued = "queued"
    running = "running"
    completed = "completed"
    failed = "failed"


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=True)  # Nullable for vendor jobs
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=True)

    job_type = Column(Enum(JobType), nullable=False)
    state = Column(Enum(JobState), default=JobState.queued)

    # Inputs and results
    params_json = Column(JSON, nullable=True)
    result_json = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)

    # Progress tracking (0.0 - 1.0)
    progress = Column(Float, default=0.0)
    progress_message = Column(String(255), nullable=True)

    created_by = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    started_at = Column(DateTime, nullable=True)
    finished_at = Column(DateTime, nullable=True)

    claim = relationship("Claim")
    vendor = relationship("Vendor")
