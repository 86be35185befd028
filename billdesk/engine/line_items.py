"""Line-item amount derivation

``amount`` is a pure function of quantity and rate. The calculator is run on
every item edit, so it has to be idempotent and tell its caller whether a
write is needed at all; committing an unchanged list would just trigger
another edit event.
"""

from decimal import Decimal
from typing import List, Sequence, Tuple

from billdesk.models.bill import LineItem

ZERO = Decimal("0")


def compute_amount(item: LineItem) -> Decimal:
    """quantity * rate, with a missing quantity or rate counted as 0"""
    quantity = item.quantity if item.quantity is not None else ZERO
    rate = item.rate if item.rate is not None else ZERO
    return quantity * rate


def recompute_amounts(items: Sequence[LineItem]) -> List[LineItem]:
    """Return new items whose amount equals quantity * rate; descriptions untouched"""
    return [item.model_copy(update={"amount": compute_amount(item)}) for item in items]


def amounts_changed(before: Sequence[LineItem], after: Sequence[LineItem]) -> bool:
    """True when the two sequences differ in length or in any amount"""
    if len(before) != len(after):
        return True
    return any(old.amount != new.amount for old, new in zip(before, after))


def apply_line_item_amounts(items: Sequence[LineItem]) -> Tuple[List[LineItem], bool]:
    """
    Recompute amounts and report whether anything changed.
    
    Args:
        items: Items as currently held by the caller
        
    Returns:
        (items, changed). When nothing changed the caller's own items are
        returned (as a list) and ``changed`` is False, so the caller can skip
        its write.
    """
    recomputed = recompute_amounts(items)
    if amounts_changed(items, recomputed):
        return recomputed, True
    return list(items), False


def line_items_subtotal(items: Sequence[LineItem]) -> Decimal:
    """Sum of item amounts, rederived from quantity and rate first"""
    return sum((compute_amount(item) for item in items), ZERO)
