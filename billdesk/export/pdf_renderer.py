"""PDF rendering for single bills and bill reports"""

import logging
import math
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO
from typing import List, Optional, Sequence

from reportlab.pdfgen import canvas
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.colors import black, white, Color

from billdesk.engine.totals import recover_tax_rate
from billdesk.formatting import format_date, format_plain_amount
from billdesk.models.bill import Bill, BillSettings, BillStatus, LineItem
from billdesk.models.decimal_wire import decimal_to_wire

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
LEFT = 20 * mm
BOTTOM_MARGIN = 35 * mm
ROW_HEIGHT = 8 * mm

LIGHT_GREY = Color(245 / 255, 245 / 255, 245 / 255)
REPORT_BLUE = Color(59 / 255, 130 / 255, 246 / 255)

ITEM_COLUMNS = [
    ("Description", 80 * mm),
    ("Qty", 30 * mm),
    ("Rate", 30 * mm),
    ("Amount", 30 * mm),
]

REPORT_COLUMNS = [
    ("Bill Number", 32 * mm),
    ("Customer", 40 * mm),
    ("Created", 24 * mm),
    ("Due Date", 24 * mm),
    ("Amount", 28 * mm),
    ("Status", 22 * mm),
]


def top(y_mm: float) -> float:
    """Convert a distance from the top edge (mm) to reportlab's bottom-up points"""
    return PAGE_HEIGHT - y_mm * mm


def bill_filename(bill: Bill, extension: str) -> str:
    return f"invoice-{bill.bill_number}.{extension}"


def report_filename(extension: str, today: Optional[date] = None) -> str:
    return f"bills-report-{(today or date.today()).isoformat()}.{extension}"


def payment_term_days(bill: Bill) -> int:
    """Days from creation to due date, rounded up"""
    created = bill.created_at or datetime.utcnow()
    due = datetime.combine(bill.due_date, datetime.min.time())
    return max(0, math.ceil((due - created).total_seconds() / 86400))


def tax_percentage(bill: Bill) -> Decimal:
    return recover_tax_rate(bill.subtotal, bill.tax_amount, Decimal("0"))


class BillPDFRenderer:
    """Renders a finalized bill (or a list of bills) to PDF bytes"""

    def __init__(self, bill_settings: Optional[BillSettings] = None):
        """
        Initialize PDF renderer

        Args:
            bill_settings: Company name and currency printed on the documents
        """
        self.bill_settings = bill_settings or BillSettings()

    def render_bill(self, bill: Bill, generated_at: Optional[datetime] = None) -> bytes:
        """
        Render one bill as an invoice PDF

        Layout: header block, bill metadata, customer block, item table,
        totals, terms and a footer with the generation timestamp.

        Args:
            bill: Finalized bill
            generated_at: Timestamp for the footer (defaults to now)

        Returns:
            PDF bytes
        """
        generated_at = generated_at or datetime.now()
        buffer = BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=A4)
        pdf.setTitle(f"Invoice {bill.bill_number}")

        self._draw_invoice_header(pdf)
        self._draw_bill_metadata(pdf, bill)
        self._draw_customer_block(pdf, bill)
        y = self._draw_table(pdf, ITEM_COLUMNS, self._item_rows(bill.items), top(120), header_fill=black)
        self._draw_totals(pdf, bill, y - 15 * mm)
        self._draw_footer(pdf, generated_at)

        pdf.save()
        logger.info(f"Rendered PDF for bill {bill.bill_number}")
        return buffer.getvalue()

    def render_report(self, bills: Sequence[Bill], generated_at: Optional[datetime] = None) -> bytes:
        """
        Render a bills report: summary counts followed by one row per bill

        Args:
            bills: Bills to list (usually the filtered view)
            generated_at: Report timestamp (defaults to now)

        Returns:
            PDF bytes
        """
        generated_at = generated_at or datetime.now()
        currency = self.bill_settings.currency
        buffer = BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=A4)
        pdf.setTitle("Bills Report")

        self._draw_report_header(pdf, "Bills Report", generated_at)

        total_amount = sum((bill.total_amount for bill in bills), Decimal("0"))
        paid = sum(1 for bill in bills if bill.effective_status == BillStatus.PAID)

        pdf.setFont("Helvetica", 12)
        pdf.drawString(LEFT, top(60), f"Total Bills: {len(bills)}")
        pdf.drawString(LEFT, top(70), f"Paid Bills: {paid}")
        pdf.drawString(LEFT, top(80), f"Pending Bills: {len(bills) - paid}")
        pdf.drawString(LEFT, top(90), f"Total Amount: {format_plain_amount(total_amount, currency)}")

        rows = [
            [
                bill.bill_number,
                bill.customer_name,
                format_date(bill.created_at, self.bill_settings.date_format),
                format_date(bill.due_date, self.bill_settings.date_format),
                format_plain_amount(bill.total_amount, currency),
                bill.effective_status.value.upper(),
            ]
            for bill in bills
        ]
        self._draw_table(pdf, REPORT_COLUMNS, rows, top(100), header_fill=REPORT_BLUE, font_size=8)

        pdf.save()
        logger.info(f"Rendered bills report PDF with {len(bills)} bill(s)")
        return buffer.getvalue()

    def _draw_invoice_header(self, pdf: canvas.Canvas):
        """Black company band at the top"""
        pdf.setFillColor(black)
        pdf.rect(LEFT, top(50), 170 * mm, 40 * mm, fill=1, stroke=0)

        pdf.setFillColor(white)
        pdf.setFont("Helvetica-Bold", 24)
        pdf.drawString(25 * mm, top(30), self.bill_settings.company_name)
        pdf.setFont("Helvetica", 12)
        pdf.drawString(25 * mm, top(42), "Premium Business Accounting System")
        pdf.setFillColor(black)

    def _draw_report_header(self, pdf: canvas.Canvas, title: str, generated_at: datetime):
        pdf.setFillColor(REPORT_BLUE)
        pdf.rect(LEFT, top(40), 170 * mm, 30 * mm, fill=1, stroke=0)

        pdf.setFillColor(white)
        pdf.setFont("Helvetica-Bold", 16)
        pdf.drawString(25 * mm, top(25), self.bill_settings.company_name)
        pdf.setFont("Helvetica", 12)
        pdf.drawString(25 * mm, top(35), title)

        pdf.setFont("Helvetica", 10)
        pdf.drawString(140 * mm, top(25), f"Generated on: {format_date(generated_at, self.bill_settings.date_format)}")
        pdf.setFillColor(black)

    def _draw_bill_metadata(self, pdf: canvas.Canvas, bill: Bill):
        date_format = self.bill_settings.date_format
        pdf.setFont("Helvetica-Bold", 12)
        pdf.drawString(LEFT, top(70), f"INVOICE NO: {bill.bill_number}")

        pdf.setFont("Helvetica", 12)
        pdf.drawString(LEFT, top(85), f"Generated Date: {format_date(bill.created_at or datetime.now(), date_format)}")
        pdf.drawString(LEFT, top(95), f"Due Date: {format_date(bill.due_date, date_format)}")
        pdf.drawString(LEFT, top(105), f"Payment Terms: Net {payment_term_days(bill)} days")

    def _draw_customer_block(self, pdf: canvas.Canvas, bill: Bill):
        pdf.setFont("Helvetica-Bold", 12)
        pdf.drawString(120 * mm, top(70), "BILL TO:")

        pdf.setFont("Helvetica", 12)
        pdf.drawString(120 * mm, top(85), bill.customer_name)
        if bill.customer_email:
            pdf.drawString(120 * mm, top(95), f"Email: {bill.customer_email}")
        if bill.customer_phone:
            pdf.drawString(120 * mm, top(105), f"Phone: {bill.customer_phone}")

    def _item_rows(self, items: List[LineItem]) -> List[List[str]]:
        currency = self.bill_settings.currency
        return [
            [
                item.description,
                decimal_to_wire(item.quantity) if item.quantity is not None else "0",
                format_plain_amount(item.rate, currency),
                format_plain_amount(item.amount, currency),
            ]
            for item in items
        ]

    def _draw_table(
        self,
        pdf: canvas.Canvas,
        columns,
        rows: List[List[str]],
        y: float,
        header_fill: Color,
        font_size: int = 10
    ) -> float:
        """
        Draw a header row plus body rows, starting a new page when needed

        Returns:
            y coordinate just below the last row
        """
        def draw_header(y_pos: float) -> float:
            pdf.setFillColor(header_fill)
            pdf.rect(LEFT, y_pos - ROW_HEIGHT, sum(w for _, w in columns), ROW_HEIGHT, fill=1, stroke=0)
            pdf.setFillColor(white)
            pdf.setFont("Helvetica-Bold", font_size)
            x = LEFT
            for title, width in columns:
                pdf.drawString(x + 2 * mm, y_pos - ROW_HEIGHT + 2.5 * mm, title)
                x += width
            pdf.setFillColor(black)
            return y_pos - ROW_HEIGHT

        y = draw_header(y)
        pdf.setFont("Helvetica", font_size)
        for index, row in enumerate(rows):
            if y - ROW_HEIGHT < BOTTOM_MARGIN:
                pdf.showPage()
                y = draw_header(top(20))
                pdf.setFont("Helvetica", font_size)

            if index % 2 == 1:
                pdf.setFillColor(LIGHT_GREY)
                pdf.rect(LEFT, y - ROW_HEIGHT, sum(w for _, w in columns), ROW_HEIGHT, fill=1, stroke=0)
                pdf.setFillColor(black)

            x = LEFT
            for (_, width), value in zip(columns, row):
                text = str(value)
                max_chars = int(width / (font_size * 0.5)) or 1
                if len(text) > max_chars:
                    text = text[: max_chars - 3] + "..."
                pdf.drawString(x + 2 * mm, y - ROW_HEIGHT + 2.5 * mm, text)
                x += width
            y -= ROW_HEIGHT
        return y

    def _draw_totals(self, pdf: canvas.Canvas, bill: Bill, y: float):
        if y < BOTTOM_MARGIN + 30 * mm:
            pdf.showPage()
            y = top(30)

        currency = self.bill_settings.currency
        pdf.setLineWidth(0.3)
        pdf.line(120 * mm, y + 5 * mm, 190 * mm, y + 5 * mm)

        pdf.setFont("Helvetica", 12)
        pdf.drawString(140 * mm, y, f"Subtotal: {format_plain_amount(bill.subtotal, currency)}")
        pdf.drawString(
            140 * mm,
            y - 10 * mm,
            f"Tax ({tax_percentage(bill):.1f}%): {format_plain_amount(bill.tax_amount, currency)}"
        )
        pdf.setFont("Helvetica-Bold", 12)
        pdf.drawString(140 * mm, y - 25 * mm, f"TOTAL: {format_plain_amount(bill.total_amount, currency)}")

        terms_y = y - 45 * mm
        if terms_y > BOTTOM_MARGIN:
            pdf.setFont("Helvetica-Bold", 10)
            pdf.drawString(LEFT, terms_y, "Terms & Conditions:")
            pdf.setFont("Helvetica", 8)
            pdf.drawString(LEFT, terms_y - 6 * mm, "1. Payment is due within the specified payment terms")
            pdf.drawString(LEFT, terms_y - 11 * mm, "2. Please include invoice number in payment reference")

    def _draw_footer(self, pdf: canvas.Canvas, generated_at: datetime):
        pdf.setLineWidth(0.5)
        pdf.roundRect(LEFT, 10 * mm, 170 * mm, 20 * mm, 3 * mm, stroke=1, fill=0)
        pdf.setFont("Helvetica", 10)
        pdf.drawString(
            25 * mm,
            18 * mm,
            f"Generated by {self.bill_settings.company_name} on {generated_at.strftime('%d/%m/%Y, %H:%M:%S')}"
        )
