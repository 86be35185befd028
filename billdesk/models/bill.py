"""Bill data models"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field
from enum import Enum


class BillStatus(str, Enum):
    """Bill lifecycle states.

    OVERDUE is only ever derived on read (sent + past due); it is never
    written by a user action.
    """
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"


class LineItem(BaseModel):
    """One billable entry. ``amount`` is always rederived from quantity and rate."""
    description: str = ""
    quantity: Optional[Decimal] = Decimal("1")
    rate: Optional[Decimal] = Decimal("0")
    amount: Decimal = Decimal("0")


class BillTotals(BaseModel):
    """Derived money fields of a bill"""
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal


class Bill(BaseModel):
    """Bill as stored for one owner"""
    id: Optional[str] = None
    owner_id: str
    bill_number: str
    
    # Customer
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    
    items: List[LineItem] = Field(default_factory=list)
    
    # Derived totals
    subtotal: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    
    status: BillStatus = BillStatus.DRAFT
    due_date: date
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    
    # Read-time projection, never persisted
    display_status: Optional[BillStatus] = None
    
    @property
    def effective_status(self) -> BillStatus:
        """Status to show and aggregate on: the projection when present, else the stored one"""
        return self.display_status or self.status


class BillDraft(BaseModel):
    """What the bill form submits on create or edit"""
    customer_name: str = ""
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    due_date: Optional[date] = None
    tax_rate: Optional[Decimal] = None
    items: List[LineItem] = Field(default_factory=lambda: [LineItem()])


class BillSettings(BaseModel):
    """Per-owner presentation settings handed to renderers and messaging"""
    company_name: str = "Finora"
    currency: str = "INR"
    date_format: str = "DD/MM/YYYY"
    default_tax_rate: Decimal = Decimal("18")
    
    @classmethod
    def from_app_settings(cls, app_settings) -> "BillSettings":
        return cls(
            company_name=app_settings.COMPANY_NAME,
            currency=app_settings.CURRENCY,
            date_format=app_settings.DATE_FORMAT,
            default_tax_rate=Decimal(str(app_settings.DEFAULT_TAX_RATE)),
        )


class OwnerSession(BaseModel):
    """Identity every bill operation is scoped to"""
    owner_id: str = Field(min_length=1)


class BillSummary(BaseModel):
    """Aggregates over a (filtered) bill list, computed on display status"""
    count: int = 0
    total_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")
    pending_amount: Decimal = Decimal("0")
    overdue_amount: Decimal = Decimal("0")
