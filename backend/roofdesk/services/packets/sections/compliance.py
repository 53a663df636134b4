from roofdesk.services.claim_folder import ClaimFolder
from roofdesk.services.packets.sections.page import PageWriter, fmt_money


def render_code_compliance(page: PageWriter, folder: ClaimFolder) -> None:
    page.heading("Applicable Building Codes")
    for code in folder.codes:
        if not page.heading(f"{code['code']} - {code['title']}", size=11):
            return
        page.paragraph(code["requirement"])
        page.space(4)
    page.space(8)
    page.field("Permit Required", "Yes")
    page.field("Ice & Water Shield", "Required" if folder.ice_water_shield_required else "Not required")


def render_scope_pricing(page: PageWriter, folder: ClaimFolder) -> None:
    scope = folder.scope
    if scope is None:
        page.paragraph("No scope line items have been entered for this claim.")
        return
    widths = [0.12, 0.43, 0.1, 0.08, 0.13, 0.14]
    page.row(["Code", "Description", "Qty", "Unit", "Unit Price", "Total"], widths, bold=True)
    for item in scope.line_items:
        ok = page.row(
            [
                item["code"],
                item["description"],
                f"{item['quantity']:g}",
                item["unit"],
                fmt_money(item["unit_price"]),
                fmt_money(item["total"]),
            ],
            widths,
        )
        if not ok:
            break
    page.space(12)
    page.field("Subtotal", fmt_money(scope.subtotal))
    page.field("Labor (included)", fmt_money(scope.labor_total))
    page.field("Removal (included)", fmt_money(scope.removal_total))
    page.field("Accessories (included)", fmt_money(scope.accessories_total))
    page.field(f"Overhead & Profit ({scope.overhead_profit_percentage}%)", fmt_money(scope.overhead_profit_amount))
    page.field("Grand Total", fmt_money(scope.grand_total))
