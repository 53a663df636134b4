"""Evidence sections: weather, inspection, damage findings and photos."""
from roofdesk.services.claim_folder import ClaimFolder
from roofdesk.services.packets.sections.page import PageWriter, fmt_date


def render_weather(page: PageWriter, folder: ClaimFolder) -> None:
    weather = folder.weather
    if weather is None:
        page.paragraph("No weather data has been recorded for this claim.")
        return
    page.heading("Storm Event")
    page.field("Date of Loss", fmt_date(folder.cover_sheet.date_of_loss))
    page.field("Storm Type", weather.storm_type)
    page.field("Hail Size", weather.hail_size)
    page.field("Wind Speed", f"{weather.wind_speed:.0f} mph" if weather.wind_speed else None)
    page.field("Verified", "Yes" if weather.verified else "No")
    if weather.summary:
        page.space(10)
        page.heading("Weather Summary")
        page.paragraph(weather.summary)


def render_inspection_overview(page: PageWriter, folder: ClaimFolder) -> None:
    inspection = folder.inspection
    page.heading("Inspection Details")
    page.field("Inspection Date", fmt_date(inspection.inspection_date))
    page.field("Inspector", inspection.inspector_name)
    page.field("Roof Type", inspection.roof_type)
    page.field("Roof Pitch", inspection.roof_pitch)
    page.field("Roof Age", f"{inspection.roof_age} years" if inspection.roof_age else None)
    page.field("Overall Condition", inspection.overall_condition)
    if inspection.notes:
        page.space(10)
        page.heading("Notes")
        page.paragraph(inspection.notes)


def render_damage_assessment(page: PageWriter, folder: ClaimFolder) -> None:
    findings = [(photo, damage) for photo in folder.photos for damage in photo.damages]
    if not findings:
        page.paragraph("No damage findings have been recorded. Run photo analysis to populate this section.")
        return
    page.heading("Findings")
    widths = [0.25, 0.12, 0.13, 0.5]
    page.row(["Damage Type", "Severity", "Confidence", "Description"], widths, bold=True)
    for _photo, damage in findings:
        confidence = damage.get("confidence")
        ok = page.row(
            [
                str(damage.get("damage_type") or "").replace("_", " "),
                damage.get("severity"),
                f"{float(confidence):.0%}" if confidence is not None else "-",
                damage.get("description"),
            ],
            widths,
        )
        if not ok:
            return
    bullets = ((folder.damage_summary or {}).get("fields") or {}).get("scope_bullets") or {}
    if bullets.get("value"):
        page.space(10)
        page.heading("Recommended Scope")
        page.bullets(bullets["value"])


def render_photo_evidence(page: PageWriter, folder: ClaimFolder) -> None:
    if not folder.photos:
        page.paragraph("No photos have been uploaded for this claim.")
        return
    for number, photo in enumerate(folder.photos, start=1):
        label = f"Photo {number}"
        if photo.elevation:
            label += f" ({photo.elevation})"
        if not page.heading(label, size=11):
            return
        page.paragraph(photo.ai_caption or photo.caption or "No caption", size=9)
        if photo.annotations:
            page.paragraph(
                "Annotations: " + ", ".join(f"{a.get('label')} ({a.get('severity')})" for a in photo.annotations),
                size=8,
                color="light_text",
            )
        page.paragraph(photo.url, size=7, color="light_text")
