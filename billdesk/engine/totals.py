"""Subtotal, tax and grand total computation"""

from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from billdesk.models.bill import LineItem, BillTotals
from .line_items import recompute_amounts, ZERO

HUNDRED = Decimal("100")


def finalize_items(items: Sequence[LineItem]) -> List[LineItem]:
    """Drop items whose description is empty or whitespace, rederive the rest"""
    kept = [item for item in items if (item.description or "").strip() != ""]
    return recompute_amounts(kept)


def compute_totals(items: Sequence[LineItem], tax_rate: Optional[Decimal]) -> BillTotals:
    """
    Compute bill totals from line items and a tax rate percentage.
    
    No rounding happens here; range checks on ``tax_rate`` belong to form
    validation.
    
    Args:
        items: Line items (blank descriptions are ignored)
        tax_rate: Percentage, e.g. Decimal("18"); None counts as 0
        
    Returns:
        BillTotals with subtotal, tax_amount and total_amount
    """
    kept = finalize_items(items)
    rate = tax_rate if tax_rate is not None else ZERO
    
    subtotal = sum((item.amount for item in kept), ZERO)
    tax_amount = subtotal * rate / HUNDRED
    return BillTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        total_amount=subtotal + tax_amount,
    )


def build_bill_amounts(
    items: Sequence[LineItem],
    tax_rate: Optional[Decimal]
) -> Tuple[List[LineItem], BillTotals]:
    """Finalized items plus their totals, as stored on submission"""
    return finalize_items(items), compute_totals(items, tax_rate)


def recover_tax_rate(
    subtotal: Optional[Decimal],
    tax_amount: Optional[Decimal],
    default: Decimal
) -> Decimal:
    """
    Tax rate percentage implied by stored totals.
    
    Only tax_amount is persisted, so editing or duplicating a bill has to work
    the rate back out. A zero subtotal carries no information and yields
    ``default``.
    """
    if not subtotal:
        return default
    return (tax_amount or ZERO) / subtotal * HUNDRED
