"""Unit tests for bill import"""

import io
import json
from datetime import date
from decimal import Decimal

import openpyxl
import pytest

from billdesk.exceptions import BillImportError
from billdesk.ingestion.import_service import BillImporter, ImportService
from billdesk.models.bill import BillStatus


TODAY = date(2024, 6, 15)


def _xlsx(rows) -> bytes:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.mark.unit
class TestBillImporter:
    """Parsing import files into bills"""

    @pytest.fixture
    def importer(self):
        return BillImporter(max_file_size_mb=1, due_days=30)

    def test_validate_file(self, importer):
        assert importer.validate_file(b"{}", "bill.json") == (True, None)
        assert importer.validate_file(b"x", "bill.csv")[0] is False
        assert importer.validate_file(b"", "bill.json") == (False, "File is empty")
        assert importer.validate_file(b"x" * (2 * 1024 * 1024), "bill.xlsx")[0] is False

    def test_first_spreadsheet_row_only(self, importer):
        content = _xlsx([
            ["Bill Number", "Customer Name", "Customer Phone", "Description", "Quantity", "Rate",
             "Amount", "Subtotal", "Tax Amount", "Total Amount"],
            ["BILL-20240101-001", "Acme Traders", "9876543210", "Widget", 3, 100, 1, 300, 54, 354],
            ["BILL-20240101-002", "Globex", "", "Gadget", 1, 5, 5, 5, 0, 5],
        ])
        bill = importer.parse(content, "bills.xlsx", "owner-1", today=TODAY)

        assert bill.bill_number == "BILL-20240101-001"
        assert bill.customer_name == "Acme Traders"
        assert len(bill.items) == 1
        assert bill.items[0].amount == Decimal("300")
        assert bill.subtotal == Decimal("300")
        assert bill.tax_amount == Decimal("54")
        assert bill.total_amount == Decimal("354")
        assert bill.due_date == date(2024, 7, 15)

    def test_spreadsheet_defaults(self, importer):
        content = _xlsx([["Customer Name", "Rate"], ["Acme", 40]])
        bill = importer.parse(content, "bill.xlsx", "owner-1", today=TODAY)

        assert bill.items[0].description == "Imported Item"
        assert bill.items[0].quantity == Decimal("1")
        assert bill.tax_amount == Decimal("0")
        assert bill.bill_number == ""

    def test_explicit_tax_rate_wins(self, importer):
        content = _xlsx([
            ["Customer Name", "Description", "Quantity", "Rate", "Tax Rate", "Subtotal", "Tax Amount"],
            ["Acme", "Widget", 2, 50, 5, 100, 18],
        ])
        bill = importer.parse(content, "bill.xlsx", "owner-1", today=TODAY)
        assert bill.tax_amount == Decimal("5")

    def test_json_amounts_are_rederived(self, importer):
        content = json.dumps({
            "bill_number": "BILL-X",
            "customer_name": "Acme",
            "customer_email": "a@acme.example",
            "due_date": "2024-08-01",
            "items": [
                {"description": "Widget", "quantity": "3", "rate": "100", "amount": "1"},
                {"description": "", "quantity": "1", "rate": "999"},
            ],
            "subtotal": "300",
            "tax_amount": "54",
            "total_amount": "1",
            "status": "paid",
        }).encode("utf-8")
        bill = importer.parse(content, "bill.json", "owner-1", today=TODAY)

        assert bill.status == BillStatus.DRAFT
        assert bill.due_date == date(2024, 8, 1)
        assert [i.description for i in bill.items] == ["Widget"]
        assert bill.total_amount == Decimal("354")

    @pytest.mark.parametrize("content", [b"{broken", b"[1, 2]", b"\xff\xfe"])
    def test_malformed_json(self, importer, content):
        with pytest.raises(BillImportError):
            importer.parse(content, "bill.json", "owner-1")

    def test_malformed_spreadsheet(self, importer):
        with pytest.raises(BillImportError) as exc_info:
            importer.parse(b"not a workbook", "bill.xlsx", "owner-1")
        assert exc_info.value.user_message == "Error processing import file. Please check the format."

    def test_spreadsheet_without_rows(self, importer):
        with pytest.raises(BillImportError):
            importer.parse(_xlsx([["Customer Name"]]), "bill.xlsx", "owner-1")


@pytest.mark.unit
@pytest.mark.requires_db
class TestImportService:

    @pytest.mark.asyncio
    async def test_import_stores_one_draft(self, bill_service):
        content = json.dumps({"customer_name": "Acme", "items": [
            {"description": "Widget", "quantity": 3, "rate": 100},
        ]}).encode("utf-8")

        bill = await ImportService(bill_service).import_bill(content, "bill.json", today=TODAY)

        assert bill.status == BillStatus.DRAFT
        assert bill.bill_number == "BILL-20240615-001"
        assert [b.id for b in bill_service.bills] == [bill.id]

    @pytest.mark.asyncio
    async def test_failed_import_commits_nothing(self, bill_service):
        with pytest.raises(BillImportError):
            await ImportService(bill_service).import_bill(b"{broken", "bill.json")
        assert await bill_service.refresh() == []
