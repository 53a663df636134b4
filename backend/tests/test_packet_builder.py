import io
import re

import pytest
from reportlab.lib.pagesizes import LETTER
from reportlab.pdfgen import canvas

from roofdesk.errors import InvalidArgumentError
from roofdesk.models.claim import Claim, ClaimLineItem, ClaimPhoto
from roofdesk.models.organization import Organization
from roofdesk.models.packet import GeneratedPacket
from roofdesk.models.template import OrgTemplate, Template
from roofdesk.services.claim_folder import assemble_claim_folder
from roofdesk.services.packets.builder import build_packet_pdf, find_org_template, generate_packet
from roofdesk.services.packets.registry import (
    MODE_PRESETS,
    SECTION_REGISTRY,
    load_section_renderer,
    resolve_sections,
)
from roofdesk.services.packets.sections.page import PageWriter

PAGE_PATTERN = re.compile(rb"/Type /Page\b")


def _page_count(data: bytes) -> int:
    return len(PAGE_PATTERN.findall(data))


@pytest.fixture
def saved_claim(sync_db):
    sync_db.add(Organization(id=1, name="Summit Roofing", slug="summit-roofing"))
    claim = Claim(
        org_id=1,
        claim_number="C000042",
        title="Hail claim",
        storm_type="hail",
        weather_verified=True,
        narratives={"repair_justification": {"text": "Replace the roof."}},
        damage_summary={},
    )
    claim.photos.append(ClaimPhoto(org_id=1, url="https://cdn.test/1.jpg", caption="North slope"))
    claim.line_items.append(ClaimLineItem(description="Shingles", quantity=30, unit="SQ", unit_price=250.0))
    sync_db.add(claim)
    sync_db.commit()
    return claim


def test_resolve_sections_precedence_and_dedupe():
    assert resolve_sections() == MODE_PRESETS["standard"]
    assert resolve_sections(mode="quick") == MODE_PRESETS["quick"]
    assert resolve_sections(template_sections=["timeline", "cover-sheet"], mode="full") == [
        "timeline",
        "cover-sheet",
    ]
    assert resolve_sections(
        requested=["cover-sheet", "timeline", "cover-sheet"], template_sections=["claim-checklist"]
    ) == ["cover-sheet", "timeline"]


def test_resolve_sections_rejects_bad_input():
    with pytest.raises(InvalidArgumentError) as excinfo:
        resolve_sections(requested=["cover-sheet", "horoscope"])
    assert excinfo.value.details == {"unknown": ["horoscope"]}
    with pytest.raises(InvalidArgumentError):
        resolve_sections(mode="deluxe")


def test_every_registered_section_has_a_renderer():
    for name in SECTION_REGISTRY:
        assert callable(load_section_renderer(name))
    with pytest.raises(InvalidArgumentError):
        load_section_renderer("nope")


def test_full_packet_has_one_letter_page_per_section(claim_factory):
    folder = assemble_claim_folder(
        claim_factory(photos=12, line_items=40, signatures=("homeowner",), events=3),
        branding={"company_name": "Summit Roofing", "phone": "555-0100"},
    )
    sections = MODE_PRESETS["full"]
    data, page_count = build_packet_pdf(sections, folder)
    assert data.startswith(b"%PDF")
    assert page_count == len(sections) == 15
    assert _page_count(data) == 15
    assert b"612 792" in data


def test_unknown_section_fails_before_drawing(claim_factory):
    folder = assemble_claim_folder(claim_factory())
    with pytest.raises(InvalidArgumentError):
        build_packet_pdf(["cover-sheet", "bogus"], folder)


def test_page_writer_truncates_overflow_with_marker():
    pdf = canvas.Canvas(io.BytesIO(), pagesize=LETTER)
    page = PageWriter(pdf, title="Scope", page_number=1, total_pages=1)
    assert page.paragraph("short")
    assert not page.truncated
    assert not page.paragraph("\n".join(f"line {i}" for i in range(200)))
    assert page.truncated
    assert not page.heading("After the fold")
    page.finish()


def test_generate_packet_uploads_and_records(sync_db, saved_claim, storage):
    packet = generate_packet(sync_db, saved_claim, mode="quick", created_by="u-admin", storage=storage)

    assert packet.mode == "quick"
    assert packet.sections == MODE_PRESETS["quick"]
    assert packet.page_count == 4
    assert len(packet.public_id) == 32
    assert packet.storage_key == f"packets/1/{saved_claim.id}/{packet.public_id}.pdf"
    assert packet.url.startswith("https://storage.test/packets/1/")
    stored = storage.objects[packet.storage_key]
    assert stored["filename"] == "claim-C000042.pdf"
    assert _page_count(stored["data"]) == 4
    assert packet.size_bytes == len(stored["data"])
    assert packet.readiness_score is not None


def test_generate_packet_uses_default_org_template(sync_db, saved_claim, storage):
    template = Template(name="Carrier", section_keys=["cover-sheet", "scope-pricing", "timeline"])
    sync_db.add(template)
    sync_db.flush()
    sync_db.add(OrgTemplate(org_id=1, template_id=template.id, is_default=False, section_keys=["timeline"]))
    default = OrgTemplate(
        org_id=1, template_id=template.id, is_default=True, branding={"company_name": "Summit"}
    )
    sync_db.add(default)
    sync_db.commit()

    assert find_org_template(sync_db, 1).id == default.id
    packet = generate_packet(sync_db, saved_claim, storage=storage)
    assert packet.mode == "template"
    assert packet.sections == ["cover-sheet", "scope-pricing", "timeline"]

    custom = generate_packet(sync_db, saved_claim, sections=["claim-checklist"], storage=storage)
    assert custom.mode == "custom"
    assert custom.page_count == 1


def test_failed_packet_leaves_no_row_and_no_upload(sync_db, saved_claim, storage):
    with pytest.raises(InvalidArgumentError):
        generate_packet(sync_db, saved_claim, sections=["cover-sheet", "bogus"], storage=storage)
    assert storage.objects == {}
    assert sync_db.query(GeneratedPacket).count() == 0
