"""Single-page drawing helper shared by the section renderers.

Every section owns exactly one US Letter page. Content that would run past the
bottom margin is dropped and a single "continued in attachments" marker is
drawn instead.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.units import inch
from reportlab.lib.utils import simpleSplit

PAGE_WIDTH, PAGE_HEIGHT = LETTER

MARGIN = 0.75 * inch
HEADER_HEIGHT = 0.9 * inch
FOOTER_HEIGHT = 0.6 * inch
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN

COLORS = {
    "primary": colors.HexColor("#1E3A5F"),
    "accent": colors.HexColor("#F59E0B"),
    "text": colors.HexColor("#1F2937"),
    "light_text": colors.HexColor("#6B7280"),
    "rule": colors.HexColor("#D1D5DB"),
    "ok": colors.HexColor("#22C55E"),
    "missing": colors.HexColor("#EF4444"),
}

CONTINUED_MARKER = "Continued in attachments"


class PageWriter:
    """Cursor-based writer over one reportlab canvas page."""

    def __init__(
        self,
        pdf,
        *,
        title: str,
        page_number: int,
        total_pages: int,
        branding: Optional[Dict[str, Any]] = None,
        packet_sections: Optional[List[str]] = None,
    ) -> None:
        self.pdf = pdf
        self.title = title
        self.page_number = page_number
        self.total_pages = total_pages
        self.branding = branding or {}
        self.packet_sections = list(packet_sections or [])
        self.y = PAGE_HEIGHT - MARGIN - HEADER_HEIGHT
        self.bottom = MARGIN + FOOTER_HEIGHT
        self.truncated = False
        self._draw_header()

    def _draw_header(self) -> None:
        pdf = self.pdf
        pdf.setFillColor(COLORS["primary"])
        pdf.rect(0, PAGE_HEIGHT - HEADER_HEIGHT, PAGE_WIDTH, HEADER_HEIGHT, stroke=0, fill=1)
        pdf.setFillColor(colors.white)
        pdf.setFont("Helvetica-Bold", 18)
        pdf.drawString(MARGIN, PAGE_HEIGHT - HEADER_HEIGHT / 2 - 6, self.title)
        company = self.branding.get("company_name")
        if company:
            pdf.setFont("Helvetica", 9)
            pdf.drawRightString(PAGE_WIDTH - MARGIN, PAGE_HEIGHT - HEADER_HEIGHT / 2 - 4, str(company))

    def _fits(self, height: float) -> bool:
        if self.truncated:
            return False
        if self.y - height < self.bottom + 14:
            self._mark_truncated()
            return False
        return True

    def _mark_truncated(self) -> None:
        if self.truncated:
            return
        self.truncated = True
        self.pdf.setFont("Helvetica-Oblique", 9)
        self.pdf.setFillColor(COLORS["light_text"])
        self.pdf.drawString(MARGIN, self.bottom + 2, CONTINUED_MARKER)

    def space(self, height: float = 8) -> None:
        if not self.truncated:
            self.y -= height

    def heading(self, text: str, size: int = 13) -> bool:
        if not self._fits(size + 10):
            return False
        self.y -= size + 4
        self.pdf.setFont("Helvetica-Bold", size)
        self.pdf.setFillColor(COLORS["primary"])
        self.pdf.drawString(MARGIN, self.y, text)
        self.y -= 6
        return True

    def paragraph(self, text: Optional[str], size: int = 10, color: str = "text", indent: float = 0) -> bool:
        """Wrap ``text`` to the content width; stops at the bottom margin."""
        leading = size * 1.4
        width = CONTENT_WIDTH - indent
        for block in str(text or "").split("\n"):
            lines = simpleSplit(block, "Helvetica", size, width) or [""]
            for line in lines:
                if not self._fits(leading):
                    return False
                self.y -= leading
                self.pdf.setFont("Helvetica", size)
                self.pdf.setFillColor(COLORS[color])
                self.pdf.drawString(MARGIN + indent, self.y, line)
        return True

    def bullets(self, items: Sequence[str], size: int = 10) -> bool:
        for item in items:
            if not self._fits(size * 1.4):
                return False
            self.pdf.setFont("Helvetica", size)
            self.pdf.setFillColor(COLORS["accent"])
            self.pdf.drawString(MARGIN + 4, self.y - size * 1.4, "•")
            if not self.paragraph(item, size=size, indent=16):
                return False
        return True

    def field(self, label: str, value: Any, size: int = 10) -> bool:
        if not self._fits(size * 1.6):
            return False
        self.y -= size * 1.6
        self.pdf.setFont("Helvetica-Bold", size)
        self.pdf.setFillColor(COLORS["light_text"])
        self.pdf.drawString(MARGIN, self.y, f"{label}:")
        self.pdf.setFont("Helvetica", size)
        self.pdf.setFillColor(COLORS["text"])
        text = "-" if value in (None, "") else str(value)
        clipped = simpleSplit(text, "Helvetica", size, CONTENT_WIDTH - 150)
        self.pdf.drawString(MARGIN + 150, self.y, clipped[0] if clipped else "")
        return True

    def row(self, cells: Sequence[Any], widths: Sequence[float], bold: bool = False, size: int = 9) -> bool:
        """One table row; ``widths`` are fractions of the content width."""
        if not self._fits(size * 1.8):
            return False
        self.y -= size * 1.8
        self.pdf.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        self.pdf.setFillColor(COLORS["text"])
        x = MARGIN
        for cell, fraction in zip(cells, widths):
            col_width = CONTENT_WIDTH * fraction
            lines = simpleSplit(str(cell if cell is not None else ""), "Helvetica", size, col_width - 4)
            self.pdf.drawString(x, self.y, lines[0] if lines else "")
            x += col_width
        if bold:
            self.pdf.setStrokeColor(COLORS["rule"])
            self.pdf.setLineWidth(0.5)
            self.pdf.line(MARGIN, self.y - 4, MARGIN + CONTENT_WIDTH, self.y - 4)
        return True

    def status_line(self, label: str, complete: bool, size: int = 10) -> bool:
        if not self._fits(size * 1.6):
            return False
        self.y -= size * 1.6
        self.pdf.setFillColor(COLORS["ok"] if complete else COLORS["missing"])
        self.pdf.circle(MARGIN + 5, self.y + 3, 4, stroke=0, fill=1)
        self.pdf.setFont("Helvetica", size)
        self.pdf.setFillColor(COLORS["text"])
        self.pdf.drawString(MARGIN + 16, self.y, label)
        return True

    def finish(self) -> None:
        pdf = self.pdf
        pdf.setStrokeColor(COLORS["rule"])
        pdf.setLineWidth(0.5)
        pdf.line(MARGIN, MARGIN + 0.3 * inch, PAGE_WIDTH - MARGIN, MARGIN + 0.3 * inch)
        pdf.setFont("Helvetica", 8)
        pdf.setFillColor(COLORS["light_text"])
        footer = " | ".join(
            str(part) for part in (self.branding.get("company_name"), self.branding.get("phone")) if part
        )
        if footer:
            pdf.drawString(MARGIN, MARGIN + 0.1 * inch, footer)
        pdf.drawRightString(
            PAGE_WIDTH - MARGIN, MARGIN + 0.1 * inch, f"Page {self.page_number} of {self.total_pages}"
        )


def fmt_date(value) -> str:
    if value is None:
        return "-"
    try:
        return value.strftime("%B %d, %Y")
    except AttributeError:
        return str(value)


def fmt_money(value: Optional[float]) -> str:
    return f"${float(value or 0):,.2f}"
