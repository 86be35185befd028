"""Bill form state

Holds what the user is typing into the create/edit form. Every item edit runs
the line-item calculator and commits the recomputed list only when an amount
actually moved, so an edit never cascades into a second write.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, List, Optional
import logging

from billdesk.models.bill import Bill, BillDraft, BillSettings, BillTotals, LineItem
from billdesk.models.decimal_wire import wire_to_decimal
from .line_items import apply_line_item_amounts
from .totals import compute_totals, recover_tax_rate

logger = logging.getLogger(__name__)

DEFAULT_DUE_DAYS = 30


def default_due_date(today: Optional[date] = None, days: int = DEFAULT_DUE_DAYS) -> date:
    return (today or date.today()) + timedelta(days=days)


def blank_item() -> LineItem:
    return LineItem(description="", quantity=Decimal("1"), rate=Decimal("0"), amount=Decimal("0"))


class BillForm:
    """Create/edit form for one bill"""
    
    def __init__(
        self,
        bill_settings: Optional[BillSettings] = None,
        draft: Optional[BillDraft] = None,
        today: Optional[date] = None
    ):
        self.bill_settings = bill_settings or BillSettings()
        draft = draft or BillDraft()
        
        self.customer_name = draft.customer_name
        self.customer_email = draft.customer_email
        self.customer_phone = draft.customer_phone
        self.due_date = draft.due_date or default_due_date(today)
        self.tax_rate = draft.tax_rate if draft.tax_rate is not None else self.bill_settings.default_tax_rate
        
        items, _ = apply_line_item_amounts(list(draft.items) or [blank_item()])
        self.items: List[LineItem] = items
        # Number of times an edit made the calculator write recomputed amounts back
        self.amount_commits = 0
    
    @classmethod
    def from_bill(
        cls,
        bill: Bill,
        bill_settings: Optional[BillSettings] = None,
        today: Optional[date] = None,
        fresh_due_date: bool = False
    ) -> "BillForm":
        """
        Prefill the form from a stored bill.
        
        Args:
            bill: Source bill
            bill_settings: Settings (default tax rate when it cannot be recovered)
            today: Reference day for a fresh due date
            fresh_due_date: Use a due date 30 days out instead of the bill's (duplicate)
        """
        bill_settings = bill_settings or BillSettings()
        draft = BillDraft(
            customer_name=bill.customer_name,
            customer_email=bill.customer_email,
            customer_phone=bill.customer_phone,
            due_date=default_due_date(today) if fresh_due_date else bill.due_date,
            tax_rate=recover_tax_rate(bill.subtotal, bill.tax_amount, bill_settings.default_tax_rate),
            items=[item.model_copy() for item in bill.items],
        )
        return cls(bill_settings=bill_settings, draft=draft, today=today)
    
    def _recalculate(self) -> bool:
        items, changed = apply_line_item_amounts(self.items)
        if changed:
            self.items = items
            self.amount_commits += 1
        return changed
    
    def add_item(self) -> None:
        self.items = self.items + [blank_item()]
        self._recalculate()
    
    def remove_item(self, index: int) -> None:
        """Remove an item; the last remaining item is kept"""
        if len(self.items) <= 1:
            return
        self.items = [item for i, item in enumerate(self.items) if i != index]
        self._recalculate()
    
    def update_item(self, index: int, **changes: Any) -> bool:
        """
        Apply an edit to one item (description, quantity, rate).
        
        Returns:
            True when the recomputed amounts had to be committed
        """
        changes.pop("amount", None)  # amount is derived, never typed in
        for field in ("quantity", "rate"):
            if field in changes:
                changes[field] = wire_to_decimal(changes[field])
        current = self.items[index]
        self.items[index] = current.model_copy(update=changes)
        return self._recalculate()
    
    def set_items(self, items: List[LineItem]) -> bool:
        self.items = list(items) or [blank_item()]
        return self._recalculate()
    
    def preview_totals(self) -> BillTotals:
        """Live subtotal/tax/total as shown under the item table"""
        return compute_totals(self.items, self.tax_rate)
    
    def to_draft(self) -> BillDraft:
        return BillDraft(
            customer_name=self.customer_name,
            customer_email=self.customer_email,
            customer_phone=self.customer_phone,
            due_date=self.due_date,
            tax_rate=self.tax_rate,
            items=list(self.items),
        )
