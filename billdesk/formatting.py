"""Currency and date formatting for documents and messages"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "AED": "AED ",
    "CAD": "CA$",
    "AUD": "A$",
}

DATE_FORMATS = {
    "DD/MM/YYYY": "%d/%m/%Y",
    "MM/DD/YYYY": "%m/%d/%Y",
    "YYYY-MM-DD": "%Y-%m-%d",
    "DD-MM-YYYY": "%d-%m-%Y",
}

CENT = Decimal("0.01")


def _group_indian(digits: str) -> str:
    """12345678 -> 1,23,45,678 (last three, then pairs)"""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_amount(amount: Union[Decimal, int, float, None]) -> str:
    """Two decimals with en-IN digit grouping, e.g. 123456.5 -> '1,23,456.50'"""
    value = Decimal(str(amount if amount is not None else 0)).quantize(CENT, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    whole, fraction = f"{abs(value):f}".split(".")
    return f"{sign}{_group_indian(whole)}.{fraction}"


def format_currency(amount: Union[Decimal, int, float, None], currency: str = "INR") -> str:
    """Amount with the currency symbol, falling back to the ISO code"""
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), f"{currency.upper()} ")
    formatted = format_amount(amount)
    if formatted.startswith("-"):
        return f"-{symbol}{formatted[1:]}"
    return f"{symbol}{formatted}"


def format_plain_amount(amount: Union[Decimal, int, float, None], currency: str = "INR") -> str:
    """'INR 354.00' style used in the PDF, where the core fonts lack most currency glyphs"""
    value = Decimal(str(amount if amount is not None else 0)).quantize(CENT, rounding=ROUND_HALF_UP)
    return f"{currency} {value:f}"


def format_date(value: Optional[Union[date, datetime]], date_format: str = "DD/MM/YYYY") -> str:
    if value is None:
        return ""
    return value.strftime(DATE_FORMATS.get(date_format, "%d/%m/%Y"))
