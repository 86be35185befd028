"""Bill status state machine and the read-time overdue rule

    draft -> sent -> paid
             sent -> overdue (derived on read) -> paid

paid is terminal. overdue is never stored: ``derive_display_status`` works
it out from the stored status and the due date on every fetch.
"""

from datetime import date, datetime, time, timezone
from typing import Dict, FrozenSet, Iterable, List, Optional, Union
import logging

from billdesk.exceptions import IllegalTransitionError
from billdesk.models.bill import Bill, BillStatus

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[BillStatus, FrozenSet[BillStatus]] = {
    BillStatus.DRAFT: frozenset({BillStatus.SENT}),
    BillStatus.SENT: frozenset({BillStatus.PAID, BillStatus.OVERDUE}),
    BillStatus.OVERDUE: frozenset({BillStatus.PAID}),
    BillStatus.PAID: frozenset(),
}

# Statuses a user may write. OVERDUE only ever comes from the projection.
USER_SETTABLE: FrozenSet[BillStatus] = frozenset({BillStatus.DRAFT, BillStatus.SENT, BillStatus.PAID})


def derive_display_status(bill: Bill, now: Union[datetime, date]) -> BillStatus:
    """
    Status to show for a bill at ``now``.
    
    Returns OVERDUE iff the stored status is SENT and the due date is strictly
    before ``now``; otherwise the stored status. A due date counts from the
    start of its day, so with a datetime ``now`` a bill is overdue once its due
    day has begun; with a plain date ``now`` it is overdue from the day after.
    An aware ``now`` is converted to UTC first, as stored timestamps are naive UTC.
    """
    if bill.status != BillStatus.SENT:
        return bill.status
    
    if isinstance(now, datetime):
        due = datetime.combine(bill.due_date, time.min)
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc).replace(tzinfo=None)
    else:
        due = bill.due_date
    
    return BillStatus.OVERDUE if due < now else bill.status


def project_display_statuses(bills: Iterable[Bill], now: Union[datetime, date]) -> List[Bill]:
    """Copies of ``bills`` with ``display_status`` filled in; stored status untouched"""
    return [
        bill.model_copy(update={"display_status": derive_display_status(bill, now)})
        for bill in bills
    ]


class LifecycleManager:
    """Owns which status a bill may move to.
    
    Permissive by default: status updates are plain overwrites and an
    illegal move (e.g. draft -> paid) is only logged. With ``strict=True``
    illegal moves raise IllegalTransitionError instead.
    """
    
    def __init__(self, strict: bool = False):
        self.strict = strict
    
    @staticmethod
    def initial_status() -> BillStatus:
        """Every new bill starts as a draft, whatever its source said"""
        return BillStatus.DRAFT
    
    @staticmethod
    def can_transition(current: BillStatus, target: BillStatus) -> bool:
        if current == target:
            return True
        return target in ALLOWED_TRANSITIONS[current]
    
    def check_transition(
        self,
        current: BillStatus,
        target: Union[BillStatus, str],
        bill_id: Optional[str] = None
    ) -> BillStatus:
        """
        Validate a user-requested status change.
        
        Args:
            current: Status the user sees (display status)
            target: Requested status
            bill_id: Used for logging only
            
        Returns:
            The status to persist
            
        Raises:
            IllegalTransitionError: target is OVERDUE, or strict mode and the
                move is not in ALLOWED_TRANSITIONS
        """
        target = BillStatus(target)
        if target not in USER_SETTABLE:
            raise IllegalTransitionError(current.value, target.value)
        
        if self.can_transition(current, target):
            return target
        
        if self.strict:
            raise IllegalTransitionError(current.value, target.value)
        
        logger.warning(
            f"Bill {bill_id or '?'}: allowing {current.value} -> {target.value} "
            f"outside the normal lifecycle"
        )
        return target
