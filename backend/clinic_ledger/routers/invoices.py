from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from clinic_ledger.core.database import get_db
from clinic_ledger.repositories.invoice_repository import InvoiceRepository
from clinic_ledger.schemas.invoice import InvoiceDraftCreate, InvoiceDraftResponse
from clinic_ledger.services.invoice_service import InvoiceService

router = APIRouter()


@router.post(
    "/",
    response_model=InvoiceDraftResponse,
    status_code=201,
    summary="Create an invoice draft from invoice lines",
    responses={422: {"description": "Unknown lines or lines from another clinic"}},
)
async def create_invoice_draft(
    data: InvoiceDraftCreate,
    db: Session = Depends(get_db),
) -> InvoiceDraftResponse:
    """Aggregate lines into a draft with totals.

    With ``assign_number`` the draft is numbered in the same call, otherwise
    numbering is a separate step through ``POST /{draft_id}/number``.
    """
    service = InvoiceService(db)
    draft = service.create_draft(data.clinic_id, data.line_ids)
    if data.assign_number:
        draft = service.assign_number(draft.id)
    return InvoiceDraftResponse.model_validate(draft)


@router.get(
    "/",
    response_model=list[InvoiceDraftResponse],
    summary="List invoice drafts of a clinic",
)
async def list_invoice_drafts(
    clinic_id: str,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[InvoiceDraftResponse]:
    drafts = InvoiceRepository(db).get_all(clinic_id, skip=skip, limit=limit)
    return [InvoiceDraftResponse.model_validate(d) for d in drafts]


@router.get(
    "/{draft_id}",
    response_model=InvoiceDraftResponse,
    summary="Get invoice draft",
    responses={404: {"description": "Invoice draft not found"}},
)
async def get_invoice_draft(
    draft_id: UUID,
    db: Session = Depends(get_db),
) -> InvoiceDraftResponse:
    draft = InvoiceRepository(db).get_by_id(draft_id)
    if not draft:
        raise HTTPException(status_code=404, detail="Invoice draft not found")
    return InvoiceDraftResponse.model_validate(draft)


@router.post(
    "/{draft_id}/number",
    response_model=InvoiceDraftResponse,
    summary="Assign an invoice number",
    responses={404: {"description": "Invoice draft not found"}},
)
async def assign_invoice_number(
    draft_id: UUID,
    db: Session = Depends(get_db),
) -> InvoiceDraftResponse:
    """Assign the next clinic invoice number. Calling again returns the same number."""
    if not InvoiceRepository(db).get_by_id(draft_id):
        raise HTTPException(status_code=404, detail="Invoice draft not found")
    draft = InvoiceService(db).assign_number(draft_id)
    return InvoiceDraftResponse.model_validate(draft)
