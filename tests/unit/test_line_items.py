"""Unit tests for line-item amount derivation"""

import pytest
from decimal import Decimal

from billdesk.engine.line_items import (
    apply_line_item_amounts,
    compute_amount,
    line_items_subtotal,
    recompute_amounts,
)
from billdesk.models.bill import LineItem


@pytest.mark.unit
class TestLineItemCalculator:
    """Amount is always quantity * rate"""

    def test_amount_is_quantity_times_rate(self):
        item = LineItem(description="Widget", quantity=Decimal("3"), rate=Decimal("100"), amount=Decimal("0"))
        assert compute_amount(item) == Decimal("300")

    def test_missing_quantity_or_rate_counts_as_zero(self):
        assert compute_amount(LineItem(description="A", quantity=None, rate=Decimal("5"))) == Decimal("0")
        assert compute_amount(LineItem(description="B", quantity=Decimal("2"), rate=None)) == Decimal("0")

    def test_stale_amount_is_overwritten(self):
        items = [LineItem(description="Widget", quantity=Decimal("2"), rate=Decimal("12.5"), amount=Decimal("999"))]
        result = recompute_amounts(items)
        assert result[0].amount == Decimal("25.0")
        assert result[0].description == "Widget"
        # Input is left alone
        assert items[0].amount == Decimal("999")

    def test_apply_reports_change(self):
        items = [LineItem(description="Widget", quantity=Decimal("2"), rate=Decimal("10"), amount=Decimal("0"))]
        result, changed = apply_line_item_amounts(items)
        assert changed is True
        assert result[0].amount == Decimal("20")

    def test_apply_is_idempotent(self):
        """A second pass over a correct list reports no change, so the caller skips its write"""
        items = [
            LineItem(description="Widget", quantity=Decimal("3"), rate=Decimal("100")),
            LineItem(description="Service", quantity=Decimal("1.5"), rate=Decimal("40")),
        ]
        first, changed_first = apply_line_item_amounts(items)
        second, changed_second = apply_line_item_amounts(first)

        assert changed_first is True
        assert changed_second is False
        assert [i.amount for i in second] == [i.amount for i in first]

    def test_subtotal_rederives_amounts(self):
        items = [
            LineItem(description="A", quantity=Decimal("2"), rate=Decimal("10"), amount=Decimal("1")),
            LineItem(description="B", quantity=Decimal("1"), rate=Decimal("5"), amount=Decimal("1")),
        ]
        assert line_items_subtotal(items) == Decimal("25")
