from roofdesk.services.claim_folder import ClaimFolder
from roofdesk.services.packets.sections.page import PageWriter

MISSING = "This narrative has not been generated yet."


def render_repair_justification(page: PageWriter, folder: ClaimFolder) -> None:
    page.paragraph(folder.narratives.get("repair_justification") or MISSING)
    if folder.codes:
        page.space(10)
        page.heading("Supporting Codes", size=11)
        page.bullets([f"{code['code']}: {code['requirement']}" for code in folder.codes])


def render_contractor_summary(page: PageWriter, folder: ClaimFolder) -> None:
    page.paragraph(folder.narratives.get("contractor_summary") or MISSING)


def render_adjuster_cover_letter(page: PageWriter, folder: ClaimFolder) -> None:
    page.paragraph(folder.narratives.get("adjuster_cover_letter") or MISSING)
