"""Unit tests for the bill service"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch

from billdesk.engine.lifecycle import LifecycleManager
from billdesk.exceptions import (
    BillNotFoundError,
    BillValidationError,
    IllegalTransitionError,
    PersistenceError,
    PreconditionError,
)
from billdesk.models.bill import BillDraft, BillStatus, LineItem
from billdesk.services.bill_service import BillService
from billdesk.services.db_service import DatabaseService

from conftest import FIXED_NOW


@pytest.mark.unit
@pytest.mark.requires_db
class TestBillServiceCreate:

    @pytest.mark.asyncio
    async def test_create_computes_totals_and_starts_as_draft(self, bill_service, widget_draft):
        bill = await bill_service.create(widget_draft)

        assert bill.status == BillStatus.DRAFT
        assert bill.bill_number == "BILL-20240615-001"
        assert bill.subtotal == Decimal("300")
        assert bill.tax_amount == Decimal("54")
        assert bill.total_amount == Decimal("354")
        assert [b.id for b in bill_service.bills] == [bill.id]

    @pytest.mark.asyncio
    async def test_blank_items_are_dropped(self, bill_service, widget_draft):
        draft = widget_draft.model_copy(update={
            "items": widget_draft.items + [LineItem(description=" ", quantity=Decimal("9"), rate=Decimal("9"))]
        })
        bill = await bill_service.create(draft)
        assert len(bill.items) == 1
        assert bill.subtotal == Decimal("300")

    @pytest.mark.asyncio
    async def test_invalid_draft_is_never_sent(self, bill_service):
        with patch.object(DatabaseService, "insert_bill", new_callable=AsyncMock) as mock_insert:
            with pytest.raises(BillValidationError):
                await bill_service.create(BillDraft(customer_name=""))
            mock_insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_bill_forces_draft_and_owner(self, bill_service, sample_bill):
        stored = await bill_service.create_bill(
            sample_bill.model_copy(update={"status": BillStatus.PAID, "owner_id": "someone-else"})
        )
        assert stored.status == BillStatus.DRAFT
        assert stored.owner_id == "owner-1"
        assert stored.id != "bill-123"
        assert stored.bill_number == "BILL-20240601-042"

    @pytest.mark.asyncio
    async def test_persistence_failure_leaves_list_unchanged(self, bill_service, widget_draft):
        existing = await bill_service.create(widget_draft)
        before = list(bill_service.bills)

        with patch.object(
            DatabaseService, "insert_bill", new_callable=AsyncMock, side_effect=RuntimeError("db down")
        ):
            with pytest.raises(PersistenceError) as exc_info:
                await bill_service.create(widget_draft)

        assert exc_info.value.user_message == "Error saving bill. Please try again."
        assert bill_service.bills == before
        assert [b.id for b in bill_service.bills] == [existing.id]

    @pytest.mark.asyncio
    async def test_failed_reload_after_insert_still_reports_saved(self, bill_service, widget_draft):
        existing = await bill_service.create(widget_draft)
        before = list(bill_service.bills)

        with patch.object(
            DatabaseService, "list_bills", new_callable=AsyncMock, side_effect=RuntimeError("db down")
        ):
            stored = await bill_service.create(widget_draft)

        assert stored.id is not None
        assert stored.bill_number == "BILL-20240615-002"
        assert bill_service.bills == before

        rows = await DatabaseService.list_bills("owner-1", db=bill_service.db)
        assert {b.id for b in rows} == {existing.id, stored.id}


@pytest.mark.unit
@pytest.mark.requires_db
class TestBillServiceLifecycle:

    @pytest.mark.asyncio
    async def test_sent_and_past_due_is_displayed_overdue(self, bill_service, widget_draft):
        yesterday = FIXED_NOW.date() - timedelta(days=1)
        bill = await bill_service.create(widget_draft.model_copy(update={"due_date": yesterday}))
        await bill_service.mark_sent(bill.id)

        shown = await bill_service.get(bill.id)
        assert shown.status == BillStatus.SENT
        assert shown.display_status == BillStatus.OVERDUE

        stored = await DatabaseService.get_bill(bill.id, "owner-1", db=bill_service.db)
        assert stored.status == BillStatus.SENT

    @pytest.mark.asyncio
    async def test_paid_past_due_stays_paid(self, bill_service, widget_draft):
        bill = await bill_service.create(widget_draft.model_copy(update={"due_date": date(2024, 1, 1)}))
        await bill_service.mark_sent(bill.id)
        paid = await bill_service.mark_paid(bill.id)

        assert paid.display_status == BillStatus.PAID

    @pytest.mark.asyncio
    async def test_mark_sent_is_idempotent(self, bill_service, widget_draft):
        bill = await bill_service.create(widget_draft)
        await bill_service.mark_sent(bill.id)
        again = await bill_service.mark_sent(bill.id)
        assert again.status == BillStatus.SENT

    @pytest.mark.asyncio
    async def test_overdue_cannot_be_set_by_user(self, bill_service, widget_draft):
        bill = await bill_service.create(widget_draft)
        with pytest.raises(IllegalTransitionError):
            await bill_service.update_status(bill.id, BillStatus.OVERDUE)

    @pytest.mark.asyncio
    async def test_strict_mode_rejects_draft_to_paid(self, db_session, owner, sequential_bill_numbers, widget_draft):
        service = BillService(owner, db=db_session, lifecycle=LifecycleManager(strict=True), clock=lambda: FIXED_NOW)
        bill = await service.create(widget_draft)

        with pytest.raises(IllegalTransitionError):
            await service.mark_paid(bill.id)
        assert (await service.get(bill.id)).status == BillStatus.DRAFT

    @pytest.mark.asyncio
    async def test_edit_keeps_number_and_resets_to_draft(self, bill_service, widget_draft):
        bill = await bill_service.create(widget_draft)
        await bill_service.mark_sent(bill.id)

        edited = await bill_service.edit(bill.id, widget_draft.model_copy(update={
            "customer_name": "Acme Ltd",
            "tax_rate": Decimal("0"),
        }))

        assert edited.bill_number == bill.bill_number
        assert edited.customer_name == "Acme Ltd"
        assert edited.status == BillStatus.DRAFT
        assert edited.total_amount == Decimal("300")

    @pytest.mark.asyncio
    async def test_edit_missing_bill(self, bill_service, widget_draft):
        with pytest.raises(BillNotFoundError):
            await bill_service.edit("missing", widget_draft)

    @pytest.mark.asyncio
    async def test_sent_on_due_day_is_displayed_overdue(self, bill_service, widget_draft):
        bill = await bill_service.create(widget_draft.model_copy(update={"due_date": FIXED_NOW.date()}))
        sent = await bill_service.mark_sent(bill.id)

        assert sent.status == BillStatus.SENT
        assert sent.display_status == BillStatus.OVERDUE

    @pytest.mark.asyncio
    async def test_failed_reload_after_status_update_returns_new_status(self, bill_service, widget_draft):
        bill = await bill_service.create(widget_draft)

        with patch.object(
            DatabaseService, "list_bills", new_callable=AsyncMock, side_effect=RuntimeError("db down")
        ):
            sent = await bill_service.mark_sent(bill.id)

        assert sent.status == BillStatus.SENT
        assert sent.display_status == BillStatus.SENT
        stored = await DatabaseService.get_bill(bill.id, "owner-1", db=bill_service.db)
        assert stored.status == BillStatus.SENT

    @pytest.mark.asyncio
    async def test_failed_reload_after_edit_returns_edited_bill(self, bill_service, widget_draft):
        bill = await bill_service.create(widget_draft)

        with patch.object(
            DatabaseService, "list_bills", new_callable=AsyncMock, side_effect=RuntimeError("db down")
        ):
            edited = await bill_service.edit(bill.id, widget_draft.model_copy(update={"customer_name": "Acme Ltd"}))

        assert edited.customer_name == "Acme Ltd"
        assert edited.bill_number == bill.bill_number


@pytest.mark.unit
@pytest.mark.requires_db
class TestBillServiceDelete:

    @pytest.mark.asyncio
    async def test_delete_missing_is_a_no_op(self, bill_service, widget_draft):
        await bill_service.create(widget_draft)
        before = list(bill_service.bills)

        with patch.object(bill_service, "refresh", new_callable=AsyncMock) as mock_refresh:
            assert await bill_service.delete("missing") == 0
            mock_refresh.assert_not_called()
        assert bill_service.bills == before

    @pytest.mark.asyncio
    async def test_bulk_delete_clears_selection(self, bill_service, widget_draft):
        created = [await bill_service.create(widget_draft) for _ in range(4)]
        for bill in created[:3]:
            bill_service.toggle_selection(bill.id)

        deleted = await bill_service.bulk_delete()

        assert deleted == 3
        assert bill_service.selected_ids == []
        assert [b.id for b in bill_service.bills] == [created[3].id]

    @pytest.mark.asyncio
    async def test_bulk_delete_empty_set_is_a_no_op(self, bill_service):
        with patch.object(DatabaseService, "delete_bills", new_callable=AsyncMock) as mock_delete:
            assert await bill_service.bulk_delete([]) == 0
            mock_delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_bulk_delete_failure_keeps_selection(self, bill_service, widget_draft):
        bill = await bill_service.create(widget_draft)
        bill_service.toggle_selection(bill.id)

        with patch.object(
            DatabaseService, "delete_bills", new_callable=AsyncMock, side_effect=RuntimeError("db down")
        ):
            with pytest.raises(PersistenceError):
                await bill_service.bulk_delete()

        assert bill_service.selected_ids == [bill.id]
        assert len(bill_service.bills) == 1

    @pytest.mark.asyncio
    async def test_failed_reload_after_delete_reports_rows_removed(self, bill_service, widget_draft):
        bill = await bill_service.create(widget_draft)
        bill_service.toggle_selection(bill.id)

        with patch.object(
            DatabaseService, "list_bills", new_callable=AsyncMock, side_effect=RuntimeError("db down")
        ):
            assert await bill_service.bulk_delete() == 1

        assert bill_service.selected_ids == []
        assert await DatabaseService.list_bills("owner-1", db=bill_service.db) == []


@pytest.mark.unit
@pytest.mark.requires_db
class TestBillServiceDuplicateAndShare:

    @pytest.mark.asyncio
    async def test_duplicate_paid_bill_is_new_draft(self, bill_service, widget_draft):
        original = await bill_service.create(widget_draft)
        await bill_service.mark_sent(original.id)
        await bill_service.mark_paid(original.id)

        copy = await bill_service.duplicate(original.id, today=date(2024, 6, 15))

        assert copy.id != original.id
        assert copy.bill_number != original.bill_number
        assert copy.status == BillStatus.DRAFT
        assert copy.due_date == date(2024, 7, 15)
        assert copy.total_amount == original.total_amount

    @pytest.mark.asyncio
    async def test_share_needs_phone(self, bill_service, widget_draft):
        bill = await bill_service.create(widget_draft.model_copy(update={"customer_phone": None}))
        with pytest.raises(PreconditionError):
            await bill_service.share(bill.id)

        link = await bill_service.share(bill.id, phone="+91 90000 00000")
        assert link.url.startswith("https://wa.me/919000000000?text=")


@pytest.mark.unit
class TestBillServiceViews:
    """Filtering, summaries and selection over the in-memory list"""

    @pytest.fixture
    def service(self, owner, sample_bill):
        service = BillService(owner)
        service.bills = [
            sample_bill.model_copy(update={"id": "a", "display_status": BillStatus.OVERDUE}),
            sample_bill.model_copy(update={
                "id": "b",
                "bill_number": "BILL-20240520-007",
                "customer_name": "Globex",
                "status": BillStatus.PAID,
                "created_at": sample_bill.created_at.replace(month=5),
                "total_amount": Decimal("100"),
            }),
            sample_bill.model_copy(update={
                "id": "c",
                "bill_number": "BILL-20240602-001",
                "customer_name": "Initech",
                "status": BillStatus.DRAFT,
                "total_amount": Decimal("50"),
            }),
        ]
        return service

    def test_search_matches_name_or_number(self, service):
        assert [b.id for b in service.filter_bills(search="globex")] == ["b"]
        assert [b.id for b in service.filter_bills(search="20240602")] == ["c"]

    def test_status_filter_uses_display_status(self, service):
        assert [b.id for b in service.filter_bills(status="overdue")] == ["a"]
        assert [b.id for b in service.filter_bills(status="sent")] == []
        assert len(service.filter_bills(status="all")) == 3

    def test_month_filter(self, service):
        assert [b.id for b in service.filter_bills(month="2024-05")] == ["b"]

    def test_summary(self, service):
        summary = service.summarize()
        assert summary.count == 3
        assert summary.total_amount == Decimal("799.59")
        assert summary.paid_amount == Decimal("100")
        assert summary.pending_amount == Decimal("649.59")
        assert summary.overdue_amount == Decimal("649.59")

    def test_selection(self, service):
        service.toggle_selection("a")
        service.toggle_selection("b")
        service.toggle_selection("a")
        assert service.selected_ids == ["b"]

        service.select_all(service.filter_bills(search="initech"))
        assert service.selected_ids == ["c"]

        service.clear_selection()
        assert service.selected_ids == []
