"""Bill service: the bill engine as seen by one signed-in owner

Holds the owner's in-memory bill list and selection. The list is only ever
replaced by a successful refetch, so a failed create/update/delete leaves it
exactly as it was. A refetch that fails after a committed write is logged
and the write still reports success.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.config import settings
from billdesk.engine.bill_number import generate_bill_number
from billdesk.engine.form import BillForm
from billdesk.engine.lifecycle import LifecycleManager, derive_display_status, project_display_statuses
from billdesk.engine.totals import build_bill_amounts
from billdesk.exceptions import BillNotFoundError, PersistenceError
from billdesk.messaging.whatsapp import ShareLink, build_share_link
from billdesk.models.bill import (
    Bill,
    BillDraft,
    BillSettings,
    BillStatus,
    BillSummary,
    OwnerSession,
)
from billdesk.services.db_service import DatabaseService
from billdesk.services.validation_service import ValidationService

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
PENDING_STATUSES = (BillStatus.SENT, BillStatus.OVERDUE)


class BillService:
    """Create, edit, status-update, delete and list bills for one owner"""

    def __init__(
        self,
        session: OwnerSession,
        bill_settings: Optional[BillSettings] = None,
        db: Optional[AsyncSession] = None,
        lifecycle: Optional[LifecycleManager] = None,
        validator: Optional[ValidationService] = None,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        """
        Initialize bill service

        Args:
            session: Owner every operation is scoped to
            bill_settings: Company/currency/tax defaults (defaults to app settings)
            db: Async database session (optional, one per call otherwise)
            lifecycle: LifecycleManager (strictness from STRICT_STATUS_TRANSITIONS)
            validator: ValidationService for drafts
            clock: Returns "now" for the overdue projection
        """
        self.session = session
        self.bill_settings = bill_settings or BillSettings.from_app_settings(settings)
        self.db = db
        self.lifecycle = lifecycle or LifecycleManager(strict=settings.STRICT_STATUS_TRANSITIONS)
        self.validator = validator or ValidationService()
        self.clock = clock

        self.bills: List[Bill] = []
        self.selected_ids: List[str] = []

    @property
    def owner_id(self) -> str:
        return self.session.owner_id

    async def _call_store(
        self,
        user_message: str,
        operation: Callable[..., Awaitable[Any]],
        *args: Any,
        **kwargs: Any
    ) -> Any:
        """Run a persistence call, turning any failure into a PersistenceError"""
        try:
            return await operation(*args, db=self.db, **kwargs)
        except Exception as e:
            logger.error(
                f"{getattr(operation, '__name__', 'store call')} failed for owner {self.owner_id}: {e}",
                exc_info=True
            )
            raise PersistenceError(user_message) from e

    async def refresh(self) -> List[Bill]:
        """
        Refetch the owner's bills and recompute display statuses

        Overdue is projected onto ``display_status`` only; nothing is written
        back to the store. Selected ids that no longer exist are dropped.

        Returns:
            The new in-memory list, newest first
        """
        rows = await self._call_store(
            "Error loading bills. Please try again.",
            DatabaseService.list_bills,
            self.owner_id,
        )
        self.bills = project_display_statuses(rows, self.clock())

        present = {bill.id for bill in self.bills}
        self.selected_ids = [bill_id for bill_id in self.selected_ids if bill_id in present]

        logger.debug(f"Refreshed {len(self.bills)} bill(s) for owner {self.owner_id}")
        return self.bills

    async def _refresh_after_write(self) -> bool:
        """
        Refetch after a committed write

        The write already succeeded, so a failed refetch is logged and the
        previous list is kept until the next refresh.
        """
        try:
            await self.refresh()
        except PersistenceError:
            logger.warning(f"Bill saved for owner {self.owner_id}, but the list could not be reloaded")
            return False
        return True

    def _written(self, bill: Bill, patch: Dict[str, Any], refreshed: bool) -> Bill:
        """The bill as just written: from the reloaded list, else the patch applied locally"""
        if refreshed:
            for current in self.bills:
                if current.id == bill.id:
                    return current
        written = bill.model_copy(update=patch)
        return written.model_copy(update={"display_status": derive_display_status(written, self.clock())})

    async def get(self, bill_id: str) -> Bill:
        """
        One bill, from the in-memory list or the store

        Raises:
            BillNotFoundError: no such bill for this owner
        """
        for bill in self.bills:
            if bill.id == bill_id:
                return bill

        bill = await self._call_store(
            "Error loading bill. Please try again.",
            DatabaseService.get_bill,
            bill_id,
            self.owner_id,
        )
        if bill is None:
            raise BillNotFoundError(bill_id)
        return bill.model_copy(update={"display_status": derive_display_status(bill, self.clock())})

    def filter_bills(
        self,
        search: str = "",
        status: Optional[Union[BillStatus, str]] = None,
        month: Optional[str] = None,
        bills: Optional[Iterable[Bill]] = None
    ) -> List[Bill]:
        """
        Filter the list the way the bills page does

        Args:
            search: Case-insensitive match on customer name or bill number
            status: Display status to keep; None or "all" keeps everything
            month: "YYYY-MM" creation month; None keeps every month
            bills: Bills to filter (defaults to the in-memory list)
        """
        term = (search or "").strip().lower()
        wanted = None if status in (None, "", "all") else BillStatus(status)

        result = []
        for bill in self.bills if bills is None else bills:
            if term and term not in bill.customer_name.lower() and term not in bill.bill_number.lower():
                continue
            if wanted is not None and bill.effective_status != wanted:
                continue
            if month:
                created_month = bill.created_at.strftime("%Y-%m") if bill.created_at else None
                if created_month != month:
                    continue
            result.append(bill)
        return result

    def summarize(self, bills: Optional[Iterable[Bill]] = None) -> BillSummary:
        """Totals by display status: all, paid, pending (sent + overdue), overdue"""
        bills = list(self.bills if bills is None else bills)

        def total(matching: Iterable[Bill]) -> Decimal:
            return sum((bill.total_amount for bill in matching), ZERO)

        return BillSummary(
            count=len(bills),
            total_amount=total(bills),
            paid_amount=total(b for b in bills if b.effective_status == BillStatus.PAID),
            pending_amount=total(b for b in bills if b.effective_status in PENDING_STATUSES),
            overdue_amount=total(b for b in bills if b.effective_status == BillStatus.OVERDUE),
        )

    async def create(self, draft: BillDraft) -> Bill:
        """
        Validate a submitted form and store it as a new draft bill

        Raises:
            BillValidationError: the draft is invalid; nothing was sent
            PersistenceError: the insert failed; the list is unchanged
        """
        self.validator.ensure_valid(draft)
        items, totals = build_bill_amounts(draft.items, draft.tax_rate)

        bill = Bill(
            owner_id=self.owner_id,
            bill_number=generate_bill_number(),
            customer_name=draft.customer_name.strip(),
            customer_email=draft.customer_email or None,
            customer_phone=draft.customer_phone or None,
            items=items,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            total_amount=totals.total_amount,
            due_date=draft.due_date,
        )
        return await self.create_bill(bill)

    async def create_bill(self, bill: Bill) -> Bill:
        """
        Store an already-built bill (import path) as a new draft

        Whatever status, id or owner the source carried is replaced: new
        bills always start as drafts of the current owner.
        """
        record = bill.model_copy(update={
            "id": None,
            "owner_id": self.owner_id,
            "bill_number": bill.bill_number or generate_bill_number(),
            "status": self.lifecycle.initial_status(),
            "display_status": None,
            "created_at": None,
            "updated_at": None,
        })
        stored = await self._call_store(
            "Error saving bill. Please try again.",
            DatabaseService.insert_bill,
            record,
        )
        await self._refresh_after_write()
        return stored

    async def edit(self, bill_id: str, draft: BillDraft) -> Bill:
        """
        Overwrite a bill with the edit form's values

        The bill number is kept. Saving an edit puts the bill back to draft,
        so a changed bill has to be sent again. Last writer wins: no check is
        made against changes that happened after the form was opened.
        """
        self.validator.ensure_valid(draft)
        existing = await self.get(bill_id)
        items, totals = build_bill_amounts(draft.items, draft.tax_rate)

        patch: Dict[str, Any] = {
            "customer_name": draft.customer_name.strip(),
            "customer_email": draft.customer_email or None,
            "customer_phone": draft.customer_phone or None,
            "items": items,
            "subtotal": totals.subtotal,
            "tax_amount": totals.tax_amount,
            "total_amount": totals.total_amount,
            "due_date": draft.due_date,
            "status": self.lifecycle.initial_status(),
        }
        updated = await self._call_store(
            "Error saving bill. Please try again.",
            DatabaseService.update_bill,
            existing.id,
            self.owner_id,
            patch,
        )
        if not updated:
            raise BillNotFoundError(bill_id)

        refreshed = await self._refresh_after_write()
        return self._written(existing, patch, refreshed)

    async def update_status(self, bill_id: str, status: Union[BillStatus, str]) -> Bill:
        """
        Change a bill's stored status

        Raises:
            IllegalTransitionError: target is overdue, or strict mode rejects the move
            BillNotFoundError: no such bill
            PersistenceError: the update failed
        """
        bill = await self.get(bill_id)
        target = self.lifecycle.check_transition(bill.effective_status, status, bill_id=bill_id)

        updated = await self._call_store(
            "Error updating bill status. Please try again.",
            DatabaseService.update_bill,
            bill_id,
            self.owner_id,
            {"status": target},
        )
        if not updated:
            raise BillNotFoundError(bill_id)

        refreshed = await self._refresh_after_write()
        return self._written(bill, {"status": target}, refreshed)

    async def mark_sent(self, bill_id: str) -> Bill:
        return await self.update_status(bill_id, BillStatus.SENT)

    async def mark_paid(self, bill_id: str) -> Bill:
        return await self.update_status(bill_id, BillStatus.PAID)

    async def delete(self, bill_id: str) -> int:
        """
        Delete one bill

        Returns:
            Rows removed. A missing id removes nothing and leaves the list
            untouched (no refetch).
        """
        deleted = await self._call_store(
            "Error deleting bill. Please try again.",
            DatabaseService.delete_bill,
            bill_id,
            self.owner_id,
        )
        if deleted:
            await self._refresh_after_write()
        return deleted

    async def bulk_delete(self, bill_ids: Optional[Iterable[str]] = None) -> int:
        """
        Delete several bills in one request and clear the selection

        Args:
            bill_ids: Ids to delete (defaults to the current selection)

        Returns:
            Rows removed; an empty id set is a no-op

        Raises:
            PersistenceError: the batch failed as a whole; selection is kept
        """
        ids = list(self.selected_ids if bill_ids is None else bill_ids)
        if not ids:
            return 0

        deleted = await self._call_store(
            "Error deleting bills. Please try again.",
            DatabaseService.delete_bills,
            ids,
            self.owner_id,
        )
        if deleted:
            await self._refresh_after_write()
        self.clear_selection()
        return deleted

    async def duplicate(self, bill_id: str, today: Optional[date] = None) -> Bill:
        """New draft copy of a bill with a new number and a due date 30 days out"""
        draft = await self.draft_from_bill(bill_id, duplicate=True, today=today)
        return await self.create(draft)

    async def draft_from_bill(
        self,
        bill_id: str,
        duplicate: bool = False,
        today: Optional[date] = None
    ) -> BillDraft:
        """Form values to prefill for editing (or duplicating) a bill"""
        bill = await self.get(bill_id)
        form = BillForm.from_bill(bill, self.bill_settings, today=today, fresh_due_date=duplicate)
        return form.to_draft()

    async def share(
        self,
        bill_id: str,
        document_format: str = "pdf",
        phone: Optional[str] = None
    ) -> ShareLink:
        """WhatsApp link for a bill (PreconditionError when no phone is known)"""
        bill = await self.get(bill_id)
        return build_share_link(bill, self.bill_settings, document_format, phone=phone)

    def toggle_selection(self, bill_id: str) -> None:
        if bill_id in self.selected_ids:
            self.selected_ids = [i for i in self.selected_ids if i != bill_id]
        else:
            self.selected_ids = self.selected_ids + [bill_id]

    def select_all(self, bills: Optional[Iterable[Bill]] = None) -> None:
        """Select every bill of ``bills`` (the filtered view), or of the whole list"""
        source = self.bills if bills is None else bills
        self.selected_ids = [bill.id for bill in source if bill.id]

    def clear_selection(self) -> None:
        self.selected_ids = []
