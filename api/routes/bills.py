"""API routes for bills"""

from datetime import date
from decimal import Decimal
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, File, Header, HTTPException, Query, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from billdesk.engine.form import BillForm
from billdesk.exceptions import (
    BillDeskError,
    BillImportError,
    BillNotFoundError,
    BillValidationError,
    IllegalTransitionError,
    PersistenceError,
    PreconditionError,
)
from billdesk.export.pdf_renderer import BillPDFRenderer, bill_filename, report_filename
from billdesk.export.spreadsheet_renderer import BillSpreadsheetRenderer
from billdesk.ingestion.import_service import ImportService
from billdesk.models.bill import Bill, BillDraft, BillStatus, LineItem, OwnerSession
from billdesk.models.database import get_db
from billdesk.services.bill_service import BillService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bills", tags=["bills"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ERROR_STATUS = [
    (BillNotFoundError, 404),
    (BillValidationError, 422),
    (IllegalTransitionError, 409),
    (BillImportError, 400),
    (PreconditionError, 400),
    (PersistenceError, 502),
]


class BillRequest(BaseModel):
    """Request model for creating or editing a bill"""
    customer_name: str = ""
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    due_date: Optional[date] = None
    tax_rate: Optional[Decimal] = None
    items: List[LineItem] = Field(default_factory=list)


class StatusUpdateRequest(BaseModel):
    """Request model for a status change"""
    status: str


class BulkDeleteRequest(BaseModel):
    """Request model for deleting several bills at once"""
    bill_ids: List[str] = Field(default_factory=list)


def http_error(e: BillDeskError) -> HTTPException:
    """Map an engine error to the HTTP status the client sees"""
    status_code = 500
    for error_type, code in ERROR_STATUS:
        if isinstance(e, error_type):
            status_code = code
            break

    if isinstance(e, BillValidationError):
        return HTTPException(
            status_code=status_code,
            detail={"message": e.user_message, "errors": e.field_errors}
        )
    return HTTPException(status_code=status_code, detail=e.user_message)


async def get_owner(x_owner_id: Optional[str] = Header(None)) -> OwnerSession:
    """Owner the request acts for, taken from the X-Owner-Id header"""
    if not x_owner_id or not x_owner_id.strip():
        raise HTTPException(status_code=401, detail="X-Owner-Id header is required")
    return OwnerSession(owner_id=x_owner_id.strip())


async def get_bill_service(
    owner: OwnerSession = Depends(get_owner),
    db: AsyncSession = Depends(get_db)
) -> BillService:
    """Bill service for the request's owner, with a freshly loaded list"""
    service = BillService(owner, db=db)
    try:
        await service.refresh()
    except BillDeskError as e:
        raise http_error(e)
    return service


def to_draft(request: BillRequest, service: BillService) -> BillDraft:
    """Run the submitted values through the bill form so defaults and amounts apply"""
    draft = BillDraft(**request.model_dump(exclude={"items"}), items=request.items or [LineItem()])
    return BillForm(service.bill_settings, draft).to_draft()


def filtered(service: BillService, search: str, status: Optional[str], month: Optional[str]) -> List[Bill]:
    try:
        return service.filter_bills(search=search, status=status, month=month)
    except ValueError:
        valid = ", ".join(s.value for s in BillStatus)
        raise HTTPException(status_code=400, detail=f"Invalid status: {status}. Must be one of: all, {valid}")


@router.get("")
async def list_bills(
    search: str = Query("", description="Customer name or bill number"),
    status: Optional[str] = Query(None, description="Display status, or 'all'"),
    month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$", description="Creation month YYYY-MM"),
    service: BillService = Depends(get_bill_service)
):
    """
    List the owner's bills, newest first

    Overdue is reported in ``display_status``; the stored ``status`` stays sent.
    """
    bills = filtered(service, search, status, month)
    return {"bills": bills, "count": len(bills)}


@router.get("/summary")
async def bills_summary(
    search: str = Query(""),
    status: Optional[str] = Query(None),
    month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$"),
    service: BillService = Depends(get_bill_service)
):
    """Totals by display status over the (filtered) list"""
    return service.summarize(filtered(service, search, status, month))


@router.get("/export/pdf")
async def export_bills_pdf(
    search: str = Query(""),
    status: Optional[str] = Query(None),
    month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$"),
    service: BillService = Depends(get_bill_service)
):
    """PDF report of the (filtered) bills"""
    bills = filtered(service, search, status, month)
    try:
        content = BillPDFRenderer(service.bill_settings).render_report(bills)
    except Exception as e:
        logger.error(f"Error exporting bills PDF: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to export PDF")

    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{report_filename("pdf")}"'}
    )


@router.get("/export/xlsx")
async def export_bills_xlsx(
    search: str = Query(""),
    status: Optional[str] = Query(None),
    month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$"),
    service: BillService = Depends(get_bill_service)
):
    """Workbook (Summary + Bills sheets) of the (filtered) bills"""
    bills = filtered(service, search, status, month)
    try:
        content = BillSpreadsheetRenderer(service.bill_settings).render_report(bills)
    except Exception as e:
        logger.error(f"Error exporting bills workbook: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to export Excel file")

    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{report_filename("xlsx")}"'}
    )


@router.post("", status_code=201)
async def create_bill(
    request: BillRequest,
    service: BillService = Depends(get_bill_service)
):
    """Create a new draft bill from form values"""
    try:
        return await service.create(to_draft(request, service))
    except BillDeskError as e:
        raise http_error(e)


@router.post("/import", status_code=201)
async def import_bill(
    file: UploadFile = File(...),
    service: BillService = Depends(get_bill_service)
):
    """
    Import one bill from an .xlsx/.xls (first row) or .json file

    The imported bill is always stored as a draft.
    """
    content = await file.read()
    try:
        return await ImportService(service).import_bill(content, file.filename or "")
    except BillDeskError as e:
        raise http_error(e)


@router.post("/bulk-delete")
async def bulk_delete_bills(
    request: BulkDeleteRequest,
    service: BillService = Depends(get_bill_service)
):
    """Delete several bills in one batch"""
    try:
        deleted = await service.bulk_delete(request.bill_ids)
    except BillDeskError as e:
        raise http_error(e)
    return {"success": True, "deleted": deleted}


@router.get("/{bill_id}")
async def get_bill(
    bill_id: str,
    service: BillService = Depends(get_bill_service)
):
    try:
        return await service.get(bill_id)
    except BillDeskError as e:
        raise http_error(e)


@router.get("/{bill_id}/form")
async def get_bill_form(
    bill_id: str,
    duplicate: bool = Query(False, description="Prefill for a duplicate instead of an edit"),
    service: BillService = Depends(get_bill_service)
):
    """Form values to prefill when editing or duplicating a bill"""
    try:
        return await service.draft_from_bill(bill_id, duplicate=duplicate)
    except BillDeskError as e:
        raise http_error(e)


@router.put("/{bill_id}")
async def update_bill(
    bill_id: str,
    request: BillRequest,
    service: BillService = Depends(get_bill_service)
):
    """Save an edited bill (it goes back to draft)"""
    try:
        return await service.edit(bill_id, to_draft(request, service))
    except BillDeskError as e:
        raise http_error(e)


@router.patch("/{bill_id}/status")
async def update_bill_status(
    bill_id: str,
    request: StatusUpdateRequest,
    service: BillService = Depends(get_bill_service)
):
    """Mark a bill as draft, sent or paid"""
    try:
        target = BillStatus(request.status.lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid status: {request.status}")

    try:
        return await service.update_status(bill_id, target)
    except BillDeskError as e:
        raise http_error(e)


@router.delete("/{bill_id}")
async def delete_bill(
    bill_id: str,
    service: BillService = Depends(get_bill_service)
):
    """Delete one bill; an unknown id deletes nothing"""
    try:
        deleted = await service.delete(bill_id)
    except BillDeskError as e:
        raise http_error(e)
    return {"success": True, "deleted": deleted}


@router.post("/{bill_id}/duplicate", status_code=201)
async def duplicate_bill(
    bill_id: str,
    service: BillService = Depends(get_bill_service)
):
    """Copy a bill into a new draft with a new number and due date"""
    try:
        return await service.duplicate(bill_id)
    except BillDeskError as e:
        raise http_error(e)


@router.get("/{bill_id}/pdf")
async def get_bill_pdf(
    bill_id: str,
    service: BillService = Depends(get_bill_service)
):
    try:
        bill = await service.get(bill_id)
    except BillDeskError as e:
        raise http_error(e)

    try:
        content = BillPDFRenderer(service.bill_settings).render_bill(bill)
    except Exception as e:
        logger.error(f"Error generating PDF for bill {bill_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate PDF")

    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{bill_filename(bill, "pdf")}"'}
    )


@router.get("/{bill_id}/xlsx")
async def get_bill_xlsx(
    bill_id: str,
    service: BillService = Depends(get_bill_service)
):
    try:
        bill = await service.get(bill_id)
    except BillDeskError as e:
        raise http_error(e)

    try:
        content = BillSpreadsheetRenderer(service.bill_settings).render_bill(bill)
    except Exception as e:
        logger.error(f"Error generating spreadsheet for bill {bill_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate Excel file")

    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{bill_filename(bill, "xlsx")}"'}
    )


@router.get("/{bill_id}/share")
async def share_bill(
    bill_id: str,
    format: str = Query("pdf", pattern="^(pdf|xlsx)$"),
    phone: Optional[str] = Query(None, description="Overrides the customer's phone"),
    service: BillService = Depends(get_bill_service)
):
    """WhatsApp deep link carrying the templated bill message"""
    try:
        return await service.share(bill_id, document_format=format, phone=phone)
    except BillDeskError as e:
        raise http_error(e)
