"""Bill import from spreadsheet or JSON files"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple
import json
import logging

import pandas as pd

from billdesk.config import settings
from billdesk.engine.totals import build_bill_amounts, recover_tax_rate
from billdesk.exceptions import BillImportError
from billdesk.models.bill import Bill, LineItem
from billdesk.models.decimal_wire import wire_to_decimal
from billdesk.services.bill_service import BillService

logger = logging.getLogger(__name__)

SPREADSHEET_EXTENSIONS = (".xlsx", ".xls")
JSON_EXTENSIONS = (".json",)

ZERO = Decimal("0")

# Spreadsheet column -> bill field
SPREADSHEET_COLUMNS = {
    "bill_number": "Bill Number",
    "customer_name": "Customer Name",
    "customer_email": "Customer Email",
    "customer_phone": "Customer Phone",
    "description": "Description",
    "quantity": "Quantity",
    "rate": "Rate",
    "subtotal": "Subtotal",
    "tax_amount": "Tax Amount",
    "tax_rate": "Tax Rate",
    "due_date": "Due Date",
}


def _text(value: Any) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def _parse_due_date(value: Any, today: date, due_days: int) -> date:
    """Due date from the file, or ``due_days`` after today when missing"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _text(value)
    if not text:
        return today + timedelta(days=due_days)
    return pd.to_datetime(text, dayfirst=False).date()


class BillImporter:
    """Turns one uploaded file into one new draft bill"""

    def __init__(
        self,
        max_file_size_mb: Optional[int] = None,
        due_days: Optional[int] = None
    ):
        """
        Initialize importer

        Args:
            max_file_size_mb: Upload size limit (defaults to MAX_IMPORT_SIZE_MB)
            due_days: Days until due when the file has no due date
        """
        self.max_file_size_mb = max_file_size_mb or settings.MAX_IMPORT_SIZE_MB
        self.max_file_size_bytes = self.max_file_size_mb * 1024 * 1024
        self.due_days = due_days if due_days is not None else settings.DEFAULT_DUE_DAYS

    def validate_file(self, file_content: bytes, file_name: str) -> Tuple[bool, Optional[str]]:
        """
        Validate an import file before parsing

        Returns:
            Tuple of (is_valid, error_message)
        """
        name = (file_name or "").lower()
        if not name.endswith(SPREADSHEET_EXTENSIONS + JSON_EXTENSIONS):
            return False, "File must be .xlsx, .xls or .json"

        file_size = len(file_content)
        if file_size == 0:
            return False, "File is empty"

        if file_size > self.max_file_size_bytes:
            return False, (
                f"File size ({file_size / 1024 / 1024:.2f} MB) exceeds "
                f"maximum allowed size ({self.max_file_size_mb} MB)"
            )

        return True, None

    def parse(self, file_content: bytes, file_name: str, owner_id: str, today: Optional[date] = None) -> Bill:
        """
        Build a bill from file contents without storing it

        Amounts are always rederived from quantity and rate; whatever the
        file says for amount, subtotal or total is ignored.

        Raises:
            BillImportError: the file is unsupported or malformed
        """
        is_valid, error_message = self.validate_file(file_content, file_name)
        if not is_valid:
            raise BillImportError(error_message)

        today = today or date.today()
        try:
            if file_name.lower().endswith(JSON_EXTENSIONS):
                record = self._read_json(file_content)
            else:
                record = self._read_spreadsheet(file_content)
            return self._build_bill(record, owner_id, today)
        except BillImportError:
            raise
        except Exception as e:
            logger.error(f"Error processing import file {file_name}: {e}", exc_info=True)
            raise BillImportError() from e

    def _read_spreadsheet(self, file_content: bytes) -> Dict[str, Any]:
        """First data row of the first sheet; later rows are not read"""
        frame = pd.read_excel(BytesIO(file_content), sheet_name=0, nrows=1, dtype=object)
        if frame.empty:
            raise BillImportError("Import file has no rows")

        row = frame.iloc[0].to_dict()
        record = {field: row.get(column) for field, column in SPREADSHEET_COLUMNS.items()}
        record["items"] = [{
            "description": _text(record.pop("description")) or "Imported Item",
            "quantity": record.pop("quantity"),
            "rate": record.pop("rate"),
        }]
        return record

    def _read_json(self, file_content: bytes) -> Dict[str, Any]:
        data = json.loads(file_content.decode("utf-8"))
        if not isinstance(data, dict):
            raise BillImportError("JSON import must contain a single bill object")
        return data

    def _parse_items(self, raw_items: Any) -> List[LineItem]:
        if not isinstance(raw_items, list):
            return []

        items = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                continue
            quantity = raw.get("quantity")
            items.append(LineItem(
                description=_text(raw.get("description")),
                quantity=wire_to_decimal(quantity, default=Decimal("1")) if _text(quantity) else Decimal("1"),
                rate=wire_to_decimal(raw.get("rate"), default=ZERO),
            ))
        return items

    def _tax_rate(self, record: Dict[str, Any]) -> Decimal:
        """Explicit tax rate, else tax amount / subtotal, else 0"""
        explicit = wire_to_decimal(_text(record.get("tax_rate")))
        if explicit is not None:
            return explicit
        return recover_tax_rate(
            wire_to_decimal(_text(record.get("subtotal")), default=ZERO),
            wire_to_decimal(_text(record.get("tax_amount")), default=ZERO),
            ZERO,
        )

    def _build_bill(self, record: Dict[str, Any], owner_id: str, today: date) -> Bill:
        items, totals = build_bill_amounts(self._parse_items(record.get("items")), self._tax_rate(record))

        return Bill(
            owner_id=owner_id,
            bill_number=_text(record.get("bill_number")),
            customer_name=_text(record.get("customer_name")),
            customer_email=_text(record.get("customer_email")) or None,
            customer_phone=_text(record.get("customer_phone")) or None,
            items=items,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            total_amount=totals.total_amount,
            due_date=_parse_due_date(record.get("due_date"), today, self.due_days),
        )


class ImportService:
    """Imports a file as a new draft bill for the service's owner"""

    def __init__(self, bill_service: BillService, importer: Optional[BillImporter] = None):
        self.bill_service = bill_service
        self.importer = importer or BillImporter()

    async def import_bill(self, file_content: bytes, file_name: str, today: Optional[date] = None) -> Bill:
        """
        Parse ``file_content`` and store it as one new draft bill

        Raises:
            BillImportError: parse failure; nothing was stored
            PersistenceError: the insert failed
        """
        bill = self.importer.parse(file_content, file_name, self.bill_service.owner_id, today=today)
        stored = await self.bill_service.create_bill(bill)
        logger.info(f"Imported bill {stored.bill_number} from {file_name}")
        return stored
