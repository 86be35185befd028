"""Decimal wire serialization utilities

Line items live in a JSON column, so every Decimal crosses the wire as a
plain string. Form and import input arrives as str/int/float and is parsed
back through here too.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional
import logging

logger = logging.getLogger(__name__)


def decimal_to_wire(d: Optional[Decimal]) -> Optional[str]:
    """
    Convert Decimal to a wire-safe string without scientific notation.
    
    Examples:
        >>> decimal_to_wire(Decimal("123.4500"))
        '123.45'
        >>> decimal_to_wire(Decimal("1E+2"))
        '100'
        >>> decimal_to_wire(None) is None
        True
    """
    if d is None:
        return None
    
    s = format(d, 'f')
    if '.' in s:
        s = s.rstrip('0').rstrip('.')
    return s if s not in ('', '-0') else '0'


def wire_to_decimal(x: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Parse a wire/form value to Decimal, falling back to ``default``.
    
    Empty strings, None and unparseable values all yield ``default``;
    thousands separators are tolerated.
    
    Examples:
        >>> wire_to_decimal("1,250.50")
        Decimal('1250.50')
        >>> wire_to_decimal(3)
        Decimal('3')
        >>> wire_to_decimal("", default=Decimal("0"))
        Decimal('0')
    """
    if x is None or isinstance(x, bool):
        return default
    
    if isinstance(x, Decimal):
        return x if x.is_finite() else default
    
    text = str(x).strip().replace(",", "")
    if text == "":
        return default
    
    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError, TypeError):
        logger.warning(f"Failed to parse value as Decimal: {x!r}")
        return default
    
    if not value.is_finite():
        logger.warning(f"Ignoring non-finite numeric value: {x!r}")
        return default
    return value
