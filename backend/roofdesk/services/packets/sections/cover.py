from roofdesk.services.claim_folder import ClaimFolder
from roofdesk.services.packets.sections.page import PageWriter, fmt_date


def render_cover_sheet(page: PageWriter, folder: ClaimFolder) -> None:
    cover = folder.cover_sheet
    page.heading("Insurance Claim Documentation Packet", size=16)
    page.space(6)
    page.field("Property", cover.property_address)
    page.field("Policyholder", cover.policyholder_name)
    page.field("Claim Number", cover.claim_number)
    page.field("Date of Loss", fmt_date(cover.date_of_loss))
    page.field("Carrier", cover.carrier)
    page.field("Policy Number", cover.policy_number)
    page.field("Adjuster", cover.adjuster_name)
    page.space(12)
    page.heading("Prepared By")
    page.field("Contractor", cover.contractor_name)
    page.field("License", folder.branding.get("license"))
    page.field("Phone", folder.branding.get("phone"))
    page.field("Email", folder.branding.get("email"))
    page.field("Prepared By", cover.prepared_by)
    page.field("Generated", fmt_date(cover.generated_at))
    if folder.readiness:
        page.space(12)
        page.field("Readiness Score", f"{folder.readiness.overall}/100 (grade {folder.readiness.grade})")


def render_table_of_contents(page: PageWriter, folder: ClaimFolder) -> None:
    from roofdesk.services.packets.registry import SECTION_TITLES

    page.heading("Contents")
    for number, name in enumerate(page.packet_sections, start=1):
        if not page.row([SECTION_TITLES.get(name, name), f"Page {number}"], [0.8, 0.2]):
            break


def render_executive_summary(page: PageWriter, folder: ClaimFolder) -> None:
    page.heading("Summary")
    page.paragraph(folder.executive_summary or "Executive summary has not been generated for this claim.")
    if folder.readiness:
        page.space(10)
        page.heading("Folder Readiness")
        page.field("Overall", f"{folder.readiness.overall}/100")
        page.field("Grade", folder.readiness.grade)
        page.paragraph(folder.readiness.recommendation, color="light_text")
    summary = (folder.damage_summary or {}).get("summary") or {}
    if summary:
        page.space(10)
        page.heading("Damage Overview")
        page.field("Photos analyzed", summary.get("analyzed_photos"))
        page.field("Highest severity", summary.get("highest_severity"))
        types = summary.get("aggregated_damage_types") or []
        page.field("Damage types", ", ".join(t.replace("_", " ") for t in types))
