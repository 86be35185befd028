"""Errors raised by the bill engine and its collaborators

Every error carries a ``user_message`` that is safe to show as-is; the
technical cause stays on ``__cause__`` and in the logs.
"""

from typing import Dict, Optional


class BillDeskError(Exception):
    """Base class for all bill engine errors"""
    
    default_message = "Something went wrong. Please try again."
    
    def __init__(self, user_message: Optional[str] = None):
        self.user_message = user_message or self.default_message
        super().__init__(self.user_message)


class PersistenceError(BillDeskError):
    """A create/update/delete/list call to the data store failed"""
    
    default_message = "Error saving bill. Please try again."


class BillNotFoundError(BillDeskError):
    """The bill does not exist for the current owner"""
    
    def __init__(self, bill_id: str):
        self.bill_id = bill_id
        super().__init__(f"Bill {bill_id} not found")


class BillValidationError(BillDeskError):
    """Form input failed validation; nothing was submitted"""
    
    def __init__(self, field_errors: Dict[str, str]):
        self.field_errors = dict(field_errors)
        super().__init__("Please fix the highlighted fields: " + ", ".join(sorted(self.field_errors)))


class BillImportError(BillDeskError):
    """An import file could not be turned into a bill"""
    
    default_message = "Error processing import file. Please check the format."


class PreconditionError(BillDeskError):
    """An action was refused because something it needs is missing"""


class IllegalTransitionError(BillDeskError):
    """A status change the lifecycle does not allow (strict mode only)"""
    
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot change a {current} bill to {target}")
