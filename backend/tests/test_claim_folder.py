from roofdesk.models.claim import ClaimLineItem
from roofdesk.services.claim_folder import (
    assemble_claim_folder,
    build_code_compliance,
    build_scope_pricing,
)


def test_code_compliance_adds_ice_barrier_in_cold_states():
    assert [c["code"] for c in build_code_compliance("TX")] == [
        "IRC R905.2.3",
        "IRC R905.2.7",
        "IRC R905.2.8.5",
    ]
    cold = build_code_compliance(" mn ")
    assert cold[-1]["code"] == "IRC R905.2.7.1"
    assert all(c["source"] == "irc" for c in cold)


def test_scope_pricing_applies_fixed_rates():
    assert build_scope_pricing([]) is None
    scope = build_scope_pricing(
        [
            ClaimLineItem(code="RFG300", description="Shingles", quantity=2, unit="SQ", unit_price=100.0),
            ClaimLineItem(description="Drip edge", quantity=1, unit_price=50.0),
        ]
    )
    assert scope.subtotal == 250.0
    assert scope.labor_total == 100.0
    assert scope.removal_total == 37.5
    assert scope.accessories_total == 25.0
    assert scope.overhead_profit_percentage == 20
    assert scope.overhead_profit_amount == 50.0
    assert scope.grand_total == 300.0
    assert scope.line_items[1]["unit"] == "EA"


def test_sparse_claim_scores_low_and_asks_for_photos(claim_factory):
    folder = assemble_claim_folder(claim_factory())
    readiness = folder.readiness
    assert readiness.categories["weather"].status == "complete"
    assert readiness.categories["photos"].status == "missing"
    assert readiness.categories["codes"].score == 8
    assert readiness.overall == 26
    assert readiness.grade == "F"
    assert readiness.recommendation == "Upload more photos to document damage thoroughly."


def test_complete_claim_is_carrier_ready(claim_factory):
    narratives = {
        "repair_justification": {"text": "Replace the roof."},
        "contractor_summary": {"text": "We inspected."},
        "adjuster_cover_letter": "Dear adjuster,",
    }
    folder = assemble_claim_folder(
        claim_factory(
            state="MN",
            photos=10,
            line_items=10,
            narratives=narratives,
            signatures=("homeowner", "contractor"),
            events=2,
        ),
        branding={"company_name": "Summit Roofing"},
    )
    assert folder.ice_water_shield_required
    assert len(folder.codes) == 4
    assert folder.cover_sheet.contractor_name == "Summit Roofing"
    assert folder.cover_sheet.policyholder_name == "Dana Reyes"
    assert folder.cover_sheet.property_address == "12 Oak St, Austin, MN 78701"
    assert folder.readiness.overall == 93
    assert folder.readiness.grade == "A"
    assert folder.readiness.recommendation == "Your folder is carrier-ready!"
    assert all(item.complete for item in folder.checklist)


def test_folder_timeline_and_photos_are_ordered(claim_factory):
    folder = assemble_claim_folder(claim_factory(photos=2, events=2))
    assert [e["event"] for e in folder.timeline] == ["Date of Loss", "Event 0", "Event 1"]
    assert [p.ai_caption for p in folder.photos] == ["AI caption 0", "AI caption 1"]


def test_blank_narratives_are_ignored(claim_factory):
    folder = assemble_claim_folder(claim_factory(narratives={"repair_justification": {"text": "  "}}))
    assert folder.narratives == {}
    assert folder.readiness.categories["narratives"].status == "missing"
