"""Bill number generation"""

from datetime import date
from typing import Optional
import random

from billdesk.config import settings


def generate_bill_number(
    prefix: Optional[str] = None,
    today: Optional[date] = None,
    rng: Optional[random.Random] = None
) -> str:
    """
    Build a bill number like ``BILL-20240115-042``.
    
    Date stamp plus a 3-digit random suffix; two bills on the same day can
    collide, which the (owner, bill_number) unique constraint turns into a
    save error the user can retry.
    """
    prefix = prefix or settings.BILL_NUMBER_PREFIX
    today = today or date.today()
    suffix = (rng or random).randint(0, 999)
    return f"{prefix}-{today:%Y%m%d}-{suffix:03d}"
