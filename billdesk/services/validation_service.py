"""Form validation for bill drafts

Runs before anything is sent to the persistence service. Each rule reports
errors keyed by form field so they can be shown inline.
"""

from typing import Dict, List, Any
from decimal import Decimal
import logging
import re

from billdesk.exceptions import BillValidationError
from billdesk.models.bill import BillDraft

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ValidationRule:
    """Base class for validation rules"""
    
    def __init__(self, name: str):
        """
        Initialize validation rule
        
        Args:
            name: Rule name/description
        """
        self.name = name
    
    def validate(self, draft: BillDraft) -> Dict[str, str]:
        """
        Validate a draft against this rule
        
        Returns:
            Field name -> error message (empty when valid)
        """
        raise NotImplementedError()


class CustomerNameRequired(ValidationRule):
    def __init__(self):
        super().__init__("Customer name required")
    
    def validate(self, draft: BillDraft) -> Dict[str, str]:
        if not (draft.customer_name or "").strip():
            return {"customer_name": "Customer name is required"}
        return {}


class DueDateRequired(ValidationRule):
    def __init__(self):
        super().__init__("Due date required")
    
    def validate(self, draft: BillDraft) -> Dict[str, str]:
        if draft.due_date is None:
            return {"due_date": "Due date is required"}
        return {}


class TaxRateInRange(ValidationRule):
    """Tax rate must be a percentage between 0 and 100"""
    
    def __init__(self, minimum: Decimal = Decimal("0"), maximum: Decimal = Decimal("100")):
        super().__init__("Tax rate in range")
        self.minimum = minimum
        self.maximum = maximum
    
    def validate(self, draft: BillDraft) -> Dict[str, str]:
        if draft.tax_rate is None:
            return {"tax_rate": "Tax rate is required"}
        if draft.tax_rate < self.minimum or draft.tax_rate > self.maximum:
            return {"tax_rate": f"Tax rate must be between {self.minimum} and {self.maximum}"}
        return {}


class CustomerEmailFormat(ValidationRule):
    def __init__(self):
        super().__init__("Customer email format")
    
    def validate(self, draft: BillDraft) -> Dict[str, str]:
        email = (draft.customer_email or "").strip()
        if email and not EMAIL_PATTERN.match(email):
            return {"customer_email": "Invalid email address"}
        return {}


class LineItemsPresent(ValidationRule):
    """At least one item must survive the blank-description filter"""
    
    def __init__(self):
        super().__init__("Line items present")
    
    def validate(self, draft: BillDraft) -> Dict[str, str]:
        if not any((item.description or "").strip() for item in draft.items):
            return {"items": "Add at least one item with a description"}
        return {}


class LineItemBounds(ValidationRule):
    """Quantity at least 1 and rate not negative, for every item that will be kept"""
    
    def __init__(self, min_quantity: Decimal = Decimal("1"), min_rate: Decimal = Decimal("0")):
        super().__init__("Line item bounds")
        self.min_quantity = min_quantity
        self.min_rate = min_rate
    
    def validate(self, draft: BillDraft) -> Dict[str, str]:
        errors = {}
        for idx, item in enumerate(draft.items):
            if not (item.description or "").strip():
                continue  # dropped on submit
            if item.quantity is None or item.quantity < self.min_quantity:
                errors[f"items.{idx}.quantity"] = f"Quantity must be at least {self.min_quantity}"
            if item.rate is None or item.rate < self.min_rate:
                errors[f"items.{idx}.rate"] = "Rate cannot be negative"
        return errors


class ValidationService:
    """Service for validating bill drafts before submission"""
    
    def __init__(self):
        """Initialize validation service with default rules"""
        self.rules: List[ValidationRule] = [
            CustomerNameRequired(),
            CustomerEmailFormat(),
            DueDateRequired(),
            TaxRateInRange(),
            LineItemsPresent(),
            LineItemBounds(),
        ]
    
    def add_rule(self, rule: ValidationRule):
        """Add a custom validation rule"""
        self.rules.append(rule)
    
    def validate(self, draft: BillDraft) -> Dict[str, Any]:
        """
        Validate a draft against all rules
        
        Returns:
            {
                "is_valid": bool,
                "errors": {field: message},
                "failed_rules": [str],
                "total_rules": int
            }
        """
        errors: Dict[str, str] = {}
        failed_rules = []
        
        for rule in self.rules:
            rule_errors = rule.validate(draft)
            if rule_errors:
                failed_rules.append(rule.name)
                for field, message in rule_errors.items():
                    errors.setdefault(field, message)
        
        return {
            "is_valid": not errors,
            "errors": errors,
            "failed_rules": failed_rules,
            "total_rules": len(self.rules),
        }
    
    def ensure_valid(self, draft: BillDraft) -> None:
        """
        Raise if the draft has any field error
        
        Raises:
            BillValidationError: with the per-field errors
        """
        result = self.validate(draft)
        if not result["is_valid"]:
            logger.info(f"Bill draft rejected: {', '.join(result['failed_rules'])}")
            raise BillValidationError(result["errors"])
