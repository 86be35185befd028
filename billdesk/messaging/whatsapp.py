"""Share a bill with the customer over WhatsApp

Only builds the templated message and the ``wa.me`` deep link; opening it (and
attaching the exported document) is up to the caller.
"""

from typing import Optional
from urllib.parse import quote
import logging
import re

from pydantic import BaseModel

from billdesk.exceptions import PreconditionError
from billdesk.formatting import format_currency, format_date
from billdesk.models.bill import Bill, BillSettings

logger = logging.getLogger(__name__)

WHATSAPP_BASE_URL = "https://wa.me"
MISSING_PHONE_MESSAGE = "Customer phone number is required for WhatsApp sharing"


class ShareLink(BaseModel):
    """A ready-to-open share link"""
    phone: str
    message: str
    url: str


def build_share_message(
    bill: Bill,
    bill_settings: Optional[BillSettings] = None,
    document_format: str = "pdf"
) -> str:
    """Message text embedding customer name, bill number, total and due date"""
    bill_settings = bill_settings or BillSettings()
    return (
        f"Hi {bill.customer_name},\n"
        f"\n"
        f"Your invoice {bill.bill_number} is ready!\n"
        f"\n"
        f"Amount: {format_currency(bill.total_amount, bill_settings.currency)}\n"
        f"Due Date: {format_date(bill.due_date, bill_settings.date_format)}\n"
        f"\n"
        f"Please find the attached {document_format.upper()} file.\n"
        f"\n"
        f"Thank you for your business!\n"
        f"\n"
        f"Best regards,\n"
        f"{bill_settings.company_name}"
    )


def build_share_link(
    bill: Bill,
    bill_settings: Optional[BillSettings] = None,
    document_format: str = "pdf",
    phone: Optional[str] = None
) -> ShareLink:
    """
    Build the WhatsApp deep link for a bill
    
    Args:
        bill: Bill to share
        bill_settings: Currency/date/company settings for the message
        document_format: "pdf" or "xlsx", mentioned in the message
        phone: Target number; defaults to the bill's customer phone
        
    Returns:
        ShareLink with the digits-only phone, the message and the URL
        
    Raises:
        PreconditionError: no usable phone number
    """
    digits = re.sub(r"\D", "", phone or bill.customer_phone or "")
    if not digits:
        raise PreconditionError(MISSING_PHONE_MESSAGE)
    
    message = build_share_message(bill, bill_settings, document_format)
    url = f"{WHATSAPP_BASE_URL}/{digits}?text={quote(message, safe='')}"
    logger.info(f"Built share link for bill {bill.bill_number}")
    return ShareLink(phone=digits, message=message, url=url)
