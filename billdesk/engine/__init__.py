"""Bill engine: line-item amounts, totals and the status lifecycle"""

from .line_items import (
    compute_amount,
    recompute_amounts,
    apply_line_item_amounts,
)
from .totals import compute_totals, finalize_items, build_bill_amounts, recover_tax_rate
from .lifecycle import LifecycleManager, derive_display_status, project_display_statuses
from .bill_number import generate_bill_number
from .form import BillForm, default_due_date

__all__ = [
    "compute_amount",
    "recompute_amounts",
    "apply_line_item_amounts",
    "compute_totals",
    "finalize_items",
    "build_bill_amounts",
    "recover_tax_rate",
    "LifecycleManager",
    "derive_display_status",
    "project_display_statuses",
    "generate_bill_number",
    "BillForm",
    "default_due_date",
]
