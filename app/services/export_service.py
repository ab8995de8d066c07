"""
Receipt and analytics exports (CSV and PDF).
"""
import csv
import io
from datetime import date, datetime
from typing import Iterable, List, Optional

from reportlab.lib.pagesizes import letter
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas

from app.core.categories import UNKNOWN_MERCHANT
from app.models.receipt import Receipt
from app.schemas.analytics import AnalyticsSummary
from app.services.receipt_normalizer import extract_amount, extract_date

EXPORT_COLUMNS: List[str] = [
    "Date",
    "Merchant",
    "Amount",
    "Currency",
    "Category",
    "Payment Method",
    "Subtotal",
    "Tax",
    "File Name",
    "Status",
    "Created At",
]

DEFAULT_CURRENCY = "$"
PDF_TOP_MERCHANTS = 5


def _optional(value) -> str:
    return "" if value is None else str(value)


def _amount(value: Optional[float]) -> str:
    return f"{value or 0:,.2f}"


def _period(date_from: date, date_to: date) -> str:
    return f"{date_from.strftime('%b %d, %Y')} - {date_to.strftime('%b %d, %Y')}"


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def receipt_to_row(receipt: Receipt) -> dict:
    """Flatten one receipt into an export row; missing fields become blanks."""
    extracted_date = extract_date(receipt.receipt_date)
    created_at = receipt.created_at
    status = receipt.status.value if receipt.status is not None else ""

    return {
        "Date": extracted_date.value.isoformat() if extracted_date.present else "",
        "Merchant": receipt.merchant or "",
        "Amount": extract_amount(receipt.total).or_default(0.0),
        "Currency": receipt.currency or DEFAULT_CURRENCY,
        "Category": receipt.category or "",
        "Payment Method": receipt.payment_method or "",
        "Subtotal": _optional(receipt.subtotal),
        "Tax": _optional(receipt.tax),
        "File Name": receipt.file_name or "",
        "Status": status,
        "Created At": created_at.strftime("%Y-%m-%d %H:%M:%S") if isinstance(created_at, datetime) else "",
    }


def export_receipts_csv(receipts: Iterable[Receipt]) -> str:
    """Render receipts as CSV text with a header row."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    for receipt in receipts:
        writer.writerow(receipt_to_row(receipt))
    return buffer.getvalue()


class _PdfWriter:
    """Top-to-bottom text layout on letter pages, breaking pages as needed."""

    def __init__(self, buffer: io.BytesIO, title: str):
        self.canvas = canvas.Canvas(buffer, pagesize=letter)
        self.canvas.setTitle(title)
        self.width, self.height = letter
        self.y = self.height - 1 * inch

    def ensure_space(self, needed: float = 0.3 * inch) -> None:
        if self.y - needed < 0.8 * inch:
            self.canvas.showPage()
            self.y = self.height - 1 * inch

    def line(self, text: str, size: int = 10, bold: bool = False, gap: float = 0.2 * inch) -> None:
        self.ensure_space(gap)
        self.canvas.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        self.canvas.drawString(1 * inch, self.y, text)
        self.y -= gap

    def heading(self, text: str) -> None:
        self.y -= 0.1 * inch
        self.line(text, size=13, bold=True, gap=0.28 * inch)

    def save(self) -> None:
        self.canvas.showPage()
        self.canvas.save()


def export_receipts_pdf(receipts: Iterable[Receipt], generated_on: Optional[date] = None) -> bytes:
    """Receipt summary PDF: totals, then a Date/Merchant/Category/Amount table."""
    receipts = list(receipts)
    generated_on = generated_on or date.today()
    total_amount = sum(extract_amount(r.total).or_default(0.0) for r in receipts)

    buffer = io.BytesIO()
    pdf = _PdfWriter(buffer, "Receipt Summary")
    pdf.line("Receipt Summary", size=18, bold=True, gap=0.3 * inch)
    pdf.line(f"Generated: {generated_on.strftime('%B %d, %Y')}", gap=0.4 * inch)
    pdf.line(f"Total Receipts: {len(receipts)}", size=12, bold=True, gap=0.25 * inch)
    pdf.line(f"Total Amount: {_amount(total_amount)}", size=12, bold=True, gap=0.4 * inch)

    c = pdf.canvas

    def table_header():
        c.setFont("Helvetica-Bold", 9)
        c.drawString(1.00 * inch, pdf.y, "Date")
        c.drawString(2.10 * inch, pdf.y, "Merchant")
        c.drawString(4.30 * inch, pdf.y, "Category")
        c.drawRightString(7.50 * inch, pdf.y, "Amount")
        pdf.y -= 0.15 * inch
        c.line(1.0 * inch, pdf.y, 7.6 * inch, pdf.y)
        pdf.y -= 0.15 * inch
        c.setFont("Helvetica", 9)

    table_header()
    for receipt in receipts:
        if pdf.y < 0.8 * inch:
            c.showPage()
            pdf.y = pdf.height - 1 * inch
            table_header()

        extracted_date = extract_date(receipt.receipt_date)
        amount = extract_amount(receipt.total).or_default(0.0)
        currency = receipt.currency or DEFAULT_CURRENCY

        c.drawString(1.00 * inch, pdf.y, extracted_date.value.strftime("%m/%d/%Y") if extracted_date.present else "N/A")
        c.drawString(2.10 * inch, pdf.y, _truncate(receipt.merchant or UNKNOWN_MERCHANT, 28))
        c.drawString(4.30 * inch, pdf.y, _truncate(receipt.category or "N/A", 18))
        c.drawRightString(7.50 * inch, pdf.y, f"{currency}{amount:,.2f}")
        pdf.y -= 0.18 * inch

    pdf.save()
    return buffer.getvalue()


def export_analytics_csv(summary: AnalyticsSummary) -> str:
    """Analytics report as a sectioned CSV (summary, categories, merchants, tax)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)

    writer.writerow(["Analytics Report"])
    writer.writerow([])
    writer.writerow(["Period", _period(summary.date_from, summary.date_to)])
    writer.writerow([])
    writer.writerow(["Summary"])
    writer.writerow(["Total Spending", f"{summary.total_spending:.2f}"])
    writer.writerow(["Transaction Count", summary.transaction_count])
    writer.writerow(["Average Transaction", f"{summary.average_transaction:.2f}"])
    writer.writerow([])

    writer.writerow(["Category Breakdown"])
    writer.writerow(["Category", "Amount", "Count", "Percentage"])
    for cat in summary.category_breakdown:
        writer.writerow([cat.category, f"{cat.amount:.2f}", cat.count, f"{cat.percentage:.1f}%"])
    writer.writerow([])

    writer.writerow(["Top Merchants"])
    writer.writerow(["Merchant", "Amount", "Visits", "Last Visit"])
    for merchant in summary.top_merchants:
        writer.writerow([
            merchant.merchant,
            f"{merchant.amount:.2f}",
            merchant.count,
            merchant.last_visit.isoformat(),
        ])
    writer.writerow([])

    writer.writerow(["Tax-Deductible Expenses"])
    writer.writerow(["Total Amount", f"{summary.tax_deductible.total_amount:.2f}"])
    writer.writerow(["Count", summary.tax_deductible.count])
    writer.writerow([])
    writer.writerow(["By Category"])
    for name, amount in summary.tax_deductible.categories.items():
        writer.writerow([name, f"{amount:.2f}"])

    return buffer.getvalue()


def export_analytics_pdf(summary: AnalyticsSummary) -> bytes:
    """Analytics report PDF with summary, categories, top 5 merchants and tax totals."""
    buffer = io.BytesIO()
    pdf = _PdfWriter(buffer, "Analytics Report")
    pdf.line("Analytics Report", size=18, bold=True, gap=0.3 * inch)
    pdf.line(f"Period: {_period(summary.date_from, summary.date_to)}", gap=0.3 * inch)

    pdf.heading("Summary")
    pdf.line(f"Total Spending: {_amount(summary.total_spending)}")
    pdf.line(f"Transaction Count: {summary.transaction_count}")
    pdf.line(f"Average Transaction: {_amount(summary.average_transaction)}")

    pdf.heading("Category Breakdown")
    for cat in summary.category_breakdown:
        pdf.line(f"{cat.category}: {_amount(cat.amount)} ({cat.percentage:.1f}%)")

    if summary.top_merchants:
        pdf.heading("Top Merchants")
        for merchant in summary.top_merchants[:PDF_TOP_MERCHANTS]:
            pdf.line(f"{merchant.merchant}: {_amount(merchant.amount)} ({merchant.count} visits)")

    if summary.tax_deductible.total_amount > 0:
        pdf.heading("Tax-Deductible Expenses")
        pdf.line(
            f"Total: {_amount(summary.tax_deductible.total_amount)} "
            f"({summary.tax_deductible.count} expenses)"
        )

    pdf.save()
    return buffer.getvalue()
