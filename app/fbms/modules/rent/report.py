"""PDF rendering of the rent payments report (landscape A4, fpdf2 core fonts)."""

from __future__ import annotations

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from app.fbms.modules.rent.service import REPORT_HEADERS, RentReport, format_rupees

# Sums to the 267mm between the 15mm margins of landscape A4.
COLUMN_WIDTHS = (34, 40, 55, 30, 22, 27, 27, 32)
ROW_HEIGHT = 7
HEADER_FILL = (59, 130, 246)
STRIPE_FILL = (248, 250, 252)


def _latin1(text: str) -> str:
    # Core fonts only cover Latin-1.
    return text.encode("latin-1", "replace").decode("latin-1")


def _fit(pdf: FPDF, text: str, width: float) -> str:
    text = _latin1(text)
    room = width - 2 * pdf.c_margin
    if pdf.get_string_width(text) <= room:
        return text
    while text and pdf.get_string_width(text + "...") > room:
        text = text[:-1]
    return text + "..."


class _ReportPDF(FPDF):
    def footer(self) -> None:
        self.set_y(-12)
        self.set_font("Helvetica", size=8)
        self.cell(0, 8, f"Page {self.page_no()} of {{nb}}", align="C")


def _heading(pdf: FPDF, text: str) -> None:
    pdf.ln(4)
    pdf.set_font("Helvetica", "B", 14)
    pdf.cell(0, 9, text, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font("Helvetica", size=10)


def _bullet(pdf: FPDF, text: str) -> None:
    pdf.cell(0, 6, _latin1(f"- {text}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)


def _table_header(pdf: FPDF) -> None:
    pdf.set_font("Helvetica", "B", 10)
    pdf.set_fill_color(*HEADER_FILL)
    pdf.set_text_color(255, 255, 255)
    for width, title in zip(COLUMN_WIDTHS, REPORT_HEADERS):
        pdf.cell(width, ROW_HEIGHT + 1, title, align="C", fill=True)
    pdf.ln(ROW_HEIGHT + 1)
    pdf.set_text_color(0, 0, 0)
    pdf.set_fill_color(*STRIPE_FILL)
    pdf.set_font("Helvetica", size=9)


def render_rent_report(report: RentReport) -> bytes:
    pdf = _ReportPDF(orientation="L", unit="mm", format="A4")
    pdf.set_margins(15, 15, 15)
    pdf.set_auto_page_break(auto=True, margin=18)
    pdf.set_title("Rent Payments Report")
    pdf.add_page()

    pdf.set_font("Helvetica", "B", 20)
    pdf.cell(0, 12, "Rent Payments Report", align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font("Helvetica", size=10)
    pdf.cell(0, 6, f"Generated on: {report.generated_at:%d %B %Y %H:%M} UTC", align="R",
             new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    _heading(pdf, "Filter Summary")
    for line in report.filters or ["No filters applied - showing all payments"]:
        _bullet(pdf, line)

    s = report.stats
    _heading(pdf, "Summary Statistics")
    _bullet(pdf, f"Total Payments: {s.total_payments}")
    _bullet(pdf, f"Paid: {s.paid_payments}")
    _bullet(pdf, f"Pending: {s.pending_payments}")
    _bullet(pdf, f"Overdue: {s.overdue_payments}")
    _bullet(pdf, f"Total Amount Collected: {format_rupees(s.total_collected)}")

    _heading(pdf, "Payment Details")
    if not report.rows:
        pdf.cell(0, 8, "No payments match the selected filters.", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        return bytes(pdf.output())

    _table_header(pdf)
    for i, row in enumerate(report.rows):
        if pdf.will_page_break(ROW_HEIGHT):
            pdf.add_page()
            _table_header(pdf)
        for width, value in zip(COLUMN_WIDTHS, row):
            pdf.cell(width, ROW_HEIGHT, _fit(pdf, value, width), border="B", fill=i % 2 == 1)
        pdf.ln(ROW_HEIGHT)
    return bytes(pdf.output())
