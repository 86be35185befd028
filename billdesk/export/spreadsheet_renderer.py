"""Spreadsheet (xlsx) rendering for single bills and bill reports"""

import logging
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import Optional, Sequence

import openpyxl
from openpyxl.styles import Font, PatternFill

from billdesk.formatting import format_date
from billdesk.models.bill import Bill, BillSettings, BillStatus

logger = logging.getLogger(__name__)

INVOICE_SHEET = "Invoice"
SUMMARY_SHEET = "Summary"
BILLS_SHEET = "Bills"

ITEM_HEADERS = ["Description", "Quantity", "Rate", "Amount"]

REPORT_HEADERS = [
    "Bill Number",
    "Customer Name",
    "Customer Email",
    "Customer Phone",
    "Created Date",
    "Due Date",
    "Subtotal",
    "Tax Amount",
    "Total Amount",
    "Status",
]

HEADER_FONT = Font(bold=True)
HEADER_FILL = PatternFill(start_color="DDDDDD", end_color="DDDDDD", fill_type="solid")


def _to_bytes(workbook: openpyxl.Workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _style_header(ws, row: int, columns: int):
    for col in range(1, columns + 1):
        cell = ws.cell(row=row, column=col)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL


class BillSpreadsheetRenderer:
    """Renders bills to xlsx workbooks"""

    def __init__(self, bill_settings: Optional[BillSettings] = None):
        self.bill_settings = bill_settings or BillSettings()

    def render_bill(self, bill: Bill) -> bytes:
        """
        Render one bill as a single "Invoice" sheet

        Key/value metadata rows, then the item table, then Subtotal, Tax and
        Total rows with the value in the last item column.
        """
        date_format = self.bill_settings.date_format
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = INVOICE_SHEET

        rows = [
            ["Invoice Details"],
            ["Bill Number", bill.bill_number],
            ["Customer", bill.customer_name],
            ["Email", bill.customer_email or ""],
            ["Phone", bill.customer_phone or ""],
            ["Date", format_date(bill.created_at, date_format)],
            ["Due Date", format_date(bill.due_date, date_format)],
            ["Status", bill.effective_status.value.upper()],
            [],
            ["Items"],
            ITEM_HEADERS,
        ]
        for row in rows:
            ws.append(row)
        header_row = ws.max_row
        ws.cell(row=1, column=1).font = HEADER_FONT
        ws.cell(row=header_row - 1, column=1).font = HEADER_FONT
        _style_header(ws, header_row, len(ITEM_HEADERS))

        for item in bill.items:
            ws.append([
                item.description,
                item.quantity if item.quantity is not None else Decimal("0"),
                item.rate if item.rate is not None else Decimal("0"),
                item.amount,
            ])

        ws.append([])
        ws.append(["Subtotal", "", "", bill.subtotal])
        ws.append(["Tax", "", "", bill.tax_amount])
        ws.append(["Total", "", "", bill.total_amount])
        ws.cell(row=ws.max_row, column=1).font = HEADER_FONT
        ws.cell(row=ws.max_row, column=4).font = HEADER_FONT

        ws.column_dimensions["A"].width = 30
        for column in ("B", "C", "D"):
            ws.column_dimensions[column].width = 16

        logger.info(f"Rendered spreadsheet for bill {bill.bill_number}")
        return _to_bytes(wb)

    def render_report(self, bills: Sequence[Bill], generated_at: Optional[datetime] = None) -> bytes:
        """
        Render a bills workbook: a "Summary" sheet and a "Bills" sheet with one row per bill
        """
        generated_at = generated_at or datetime.now()
        date_format = self.bill_settings.date_format

        total_amount = sum((bill.total_amount for bill in bills), Decimal("0"))
        paid = sum(1 for bill in bills if bill.effective_status == BillStatus.PAID)

        wb = openpyxl.Workbook()
        summary = wb.active
        summary.title = SUMMARY_SHEET
        for row in [
            ["Bills Report Summary"],
            ["Generated on", format_date(generated_at, date_format)],
            [],
            ["Total Bills", len(bills)],
            ["Paid Bills", paid],
            ["Pending Bills", len(bills) - paid],
            ["Total Amount", total_amount],
        ]:
            summary.append(row)
        summary.cell(row=1, column=1).font = HEADER_FONT
        summary.column_dimensions["A"].width = 24
        summary.column_dimensions["B"].width = 18

        sheet = wb.create_sheet(BILLS_SHEET)
        sheet.append(REPORT_HEADERS)
        _style_header(sheet, 1, len(REPORT_HEADERS))
        for bill in bills:
            sheet.append([
                bill.bill_number,
                bill.customer_name,
                bill.customer_email or "",
                bill.customer_phone or "",
                format_date(bill.created_at, date_format),
                format_date(bill.due_date, date_format),
                bill.subtotal,
                bill.tax_amount,
                bill.total_amount,
                bill.effective_status.value.upper(),
            ])

        logger.info(f"Rendered bills report workbook with {len(bills)} bill(s)")
        return _to_bytes(wb)
