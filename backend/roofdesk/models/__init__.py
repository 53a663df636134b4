from roofdesk.models.base import Base
from roofdesk.models.organization import Organization, OrgMember, TeamRole
from roofdesk.models.crm import Contact, Property, Lead, LeadStage
from roofdesk.models.claim import (
    Claim,
    ClaimStatus,
    ClaimPhoto,
    ClaimLineItem,
    ClaimEvent,
    ClaimSignature,
)
from roofdesk.models.trades import TradesCompany
from roofdesk.models.template import Template, OrgTemplate
from roofdesk.models.vendor import Vendor, VendorProduct, VendorSyncStatus
from roofdesk.models.order import MaterialOrder, MaterialOrderItem, OrderStatus, DesignBoardItem
from roofdesk.models.packet import GeneratedPacket
from roofdesk.models.job import Job, JobType, JobState

__all__ = [
    "Base",
    # Tenancy
    "Organization", "OrgMember", "TeamRole",
    # CRM
    "Contact", "Property", "Lead", "LeadStage",
    "Claim", "ClaimStatus", "ClaimPhoto", "ClaimLineItem", "ClaimEvent", "ClaimSignature",
    "TradesCompany",
    # Documents
    "Template", "OrgTemplate", "GeneratedPacket",
    # Vendors
    "Vendor", "VendorProduct", "VendorSyncStatus",
    "MaterialOrder", "MaterialOrderItem", "OrderStatus", "DesignBoardItem",
    # Jobs
    "Job", "JobType", "JobState",
]
