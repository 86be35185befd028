"""Utilities for converting between Pydantic and SQLAlchemy bill models"""

from decimal import Decimal
from typing import Any, Dict, List, Optional
import json

from .bill import Bill as BillPydantic, LineItem as LineItemPydantic, BillStatus
from .db_models import Bill as BillDB
from .decimal_wire import decimal_to_wire, wire_to_decimal


def line_items_to_json(items: List[LineItemPydantic]) -> List[Dict[str, Any]]:
    """Convert LineItem models to a JSON-serializable list (decimals as strings)"""
    return [
        {
            "description": item.description,
            "quantity": decimal_to_wire(item.quantity),
            "rate": decimal_to_wire(item.rate),
            "amount": decimal_to_wire(item.amount),
        }
        for item in items or []
    ]


def json_to_line_items(data: Optional[Any]) -> List[LineItemPydantic]:
    """Convert stored JSON back to LineItem models"""
    if not data:
        return []
    if isinstance(data, str):
        data = json.loads(data)
    return [
        LineItemPydantic(
            description=item.get("description") or "",
            quantity=wire_to_decimal(item.get("quantity")),
            rate=wire_to_decimal(item.get("rate")),
            amount=wire_to_decimal(item.get("amount"), default=Decimal("0")),
        )
        for item in data
    ]


def pydantic_to_db_bill(bill: BillPydantic) -> BillDB:
    """Convert a Pydantic Bill to a new ORM row. ``display_status`` is never stored."""
    bill_db = BillDB(
        owner_id=bill.owner_id,
        bill_number=bill.bill_number,
        customer_name=bill.customer_name,
        customer_email=bill.customer_email,
        customer_phone=bill.customer_phone,
        items=line_items_to_json(bill.items),
        subtotal=bill.subtotal,
        tax_amount=bill.tax_amount,
        total_amount=bill.total_amount,
        status=bill.status.value,
        due_date=bill.due_date,
    )
    if bill.id:
        bill_db.id = bill.id
    if bill.created_at:
        bill_db.created_at = bill.created_at
    return bill_db


def db_to_pydantic_bill(bill_db: BillDB) -> BillPydantic:
    """Convert an ORM row to a Pydantic Bill"""
    return BillPydantic(
        id=bill_db.id,
        owner_id=bill_db.owner_id,
        bill_number=bill_db.bill_number,
        customer_name=bill_db.customer_name,
        customer_email=bill_db.customer_email,
        customer_phone=bill_db.customer_phone,
        items=json_to_line_items(bill_db.items),
        subtotal=bill_db.subtotal if bill_db.subtotal is not None else Decimal("0"),
        tax_amount=bill_db.tax_amount if bill_db.tax_amount is not None else Decimal("0"),
        total_amount=bill_db.total_amount if bill_db.total_amount is not None else Decimal("0"),
        status=BillStatus(bill_db.status),
        due_date=bill_db.due_date,
        created_at=bill_db.created_at,
        updated_at=bill_db.updated_at,
    )


def bill_patch_to_columns(patch: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a partial bill update into column values"""
    columns: Dict[str, Any] = {}
    for key, value in patch.items():
        if key == "items":
            columns["items"] = line_items_to_json(
                [v if isinstance(v, LineItemPydantic) else LineItemPydantic(**v) for v in value]
            )
        elif key == "status":
            columns["status"] = value.value if isinstance(value, BillStatus) else BillStatus(value).value
        elif key in ("id", "owner_id", "created_at", "updated_at", "display_status"):
            continue
        else:
            columns[key] = value
    return columns
