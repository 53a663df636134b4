"""Packet builder: ordered sections -> one PDF page each -> object storage -> metadata row.

There is no partial success. If a renderer, the upload or the commit fails,
the exception propagates to the caller and no ``GeneratedPacket`` is kept.
"""
from __future__ import annotations

import io
import uuid
from typing import Any, Dict, List, Optional, Tuple

from reportlab.lib.pagesizes import LETTER
from reportlab.pdfgen import canvas
from sqlalchemy.orm import Session

from roofdesk.logging_config import get_logger
from roofdesk.models.claim import Claim
from roofdesk.models.packet import GeneratedPacket
from roofdesk.models.template import OrgTemplate
from roofdesk.services.claim_folder import ClaimFolder, assemble_claim_folder
from roofdesk.services.packets.registry import SECTION_TITLES, load_section_renderer, resolve_sections
from roofdesk.services.packets.sections.page import PageWriter
from roofdesk.services.storage import PacketStorage

logger = get_logger(__name__)


def build_packet_pdf(sections: List[str], folder: ClaimFolder) -> Tuple[bytes, int]:
    """Render ``sections`` in order, one Letter page per section."""
    # Resolve every renderer first so an unknown name fails before drawing.
    renderers = [(name, load_section_renderer(name)) for name in sections]

    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=LETTER)
    pdf.setTitle(f"Claim {folder.cover_sheet.claim_number}")
    pdf.setAuthor(folder.cover_sheet.contractor_name)

    total = len(renderers)
    for number, (name, render) in enumerate(renderers, start=1):
        page = PageWriter(
            pdf,
            title=SECTION_TITLES.get(name, name),
            page_number=number,
            total_pages=total,
            branding=folder.branding,
            packet_sections=sections,
        )
        render(page, folder)
        page.finish()
        if page.truncated:
            logger.info("Section %s truncated for claim %s", name, folder.claim_id)
        pdf.showPage()

    pdf.save()
    return buffer.getvalue(), total


def find_org_template(db: Session, org_id: int, org_template_id: Optional[int] = None) -> Optional[OrgTemplate]:
    query = db.query(OrgTemplate).filter(OrgTemplate.org_id == org_id)
    if org_template_id is not None:
        return query.filter(OrgTemplate.id == org_template_id).first()
    return query.filter(OrgTemplate.is_default.is_(True)).order_by(OrgTemplate.id.desc()).first()


def generate_packet(
    db: Session,
    claim: Claim,
    *,
    sections: Optional[List[str]] = None,
    mode: Optional[str] = None,
    org_template_id: Optional[int] = None,
    created_by: Optional[str] = None,
    storage: Optional[PacketStorage] = None,
) -> GeneratedPacket:
    template = find_org_template(db, claim.org_id, org_template_id)
    branding: Dict[str, Any] = dict(template.branding or {}) if template else {}
    ordered = resolve_sections(
        requested=sections,
        template_sections=template.effective_sections if template else None,
        mode=mode,
    )

    folder = assemble_claim_folder(claim, branding)
    data, page_count = build_packet_pdf(ordered, folder)

    storage = storage or PacketStorage()
    public_id = uuid.uuid4().hex
    key = storage.packet_key(claim.org_id, claim.id, public_id)
    storage.put_pdf(key, data, filename=f"claim-{claim.claim_number}.pdf")
    url = storage.presigned_url(key)

    packet = GeneratedPacket(
        org_id=claim.org_id,
        claim_id=claim.id,
        public_id=public_id,
        mode=mode or ("custom" if sections else ("template" if template else "standard")),
        sections=ordered,
        page_count=page_count,
        size_bytes=len(data),
        readiness_score=folder.readiness.overall if folder.readiness else None,
        storage_key=key,
        url=url,
        created_by=created_by,
    )
    db.add(packet)
    db.commit()
    db.refresh(packet)
    logger.info(
        "Generated packet %s for claim %s: %s pages, %s bytes", public_id, claim.id, page_count, len(data)
    )
    return packet
