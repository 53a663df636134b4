from roofdesk.services.claim_folder import ClaimFolder
from roofdesk.services.packets.sections.page import PageWriter, fmt_date


def render_timeline(page: PageWriter, folder: ClaimFolder) -> None:
    if not folder.timeline:
        page.paragraph("No timeline events recorded.")
        return
    widths = [0.25, 0.3, 0.45]
    page.row(["Date", "Event", "Details"], widths, bold=True)
    for event in folder.timeline:
        if not page.row([fmt_date(event["date"]), event["event"], event.get("details") or ""], widths):
            return


def render_signatures(page: PageWriter, folder: ClaimFolder) -> None:
    page.paragraph(
        "The undersigned confirm that the information in this packet is accurate to the best of their knowledge."
    )
    page.space(12)
    if not folder.signatures:
        for role in ("Homeowner", "Contractor"):
            page.field(role, "______________________________")
            page.field("Date", "____________")
            page.space(10)
        return
    for signature in folder.signatures:
        page.field(str(signature["signer_role"]).title(), signature["signer_name"])
        page.field("Signed", fmt_date(signature["signed_at"]))
        page.space(8)


def render_checklist(page: PageWriter, folder: ClaimFolder) -> None:
    for item in folder.checklist:
        suffix = "" if item.required else " (optional)"
        if not page.status_line(f"{item.section}: {item.item}{suffix}", item.complete):
            return
    if folder.readiness:
        page.space(14)
        page.heading("Readiness", size=11)
        for name, category in folder.readiness.categories.items():
            page.field(name.title(), f"{category.score}/{category.max_score} ({category.status})")
        page.field("Overall", f"{folder.readiness.overall}/100 - grade {folder.readiness.grade}")
