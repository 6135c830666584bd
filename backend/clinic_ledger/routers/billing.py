"""Billing endpoints: line previews, billing commits, reversals and estimates."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from clinic_ledger.core.database import get_db
from clinic_ledger.repositories.invoice_line_repository import InvoiceLineRepository
from clinic_ledger.schemas.invoice_line import (
    BillPendingResponse,
    CompensateLineRequest,
    ComputeLinesRequest,
    CostEstimateResponse,
    InvoiceLinePreview,
    InvoiceLineResponse,
)
from clinic_ledger.services.billing_service import BillingService
from clinic_ledger.services.tariff_catalog import default_catalog
from clinic_ledger.services.tooth_classifier import validate_teeth

router = APIRouter()


@router.post(
    "/lines/compute",
    response_model=list[InvoiceLinePreview],
    summary="Preview invoice lines for completed treatments",
    responses={
        409: {"description": "A treatment is not completed or already billed"},
        422: {"description": "A treatment cannot be priced"},
    },
)
async def compute_invoice_lines(
    data: ComputeLinesRequest,
    db: Session = Depends(get_db),
) -> list[InvoiceLinePreview]:
    """Price treatments without saving anything or flagging them billed."""
    lines = BillingService(db).preview(data.treatment_ids)
    return [InvoiceLinePreview.model_validate(line) for line in lines]


@router.post(
    "/treatments/{treatment_id}/bill",
    response_model=InvoiceLineResponse,
    status_code=201,
    summary="Bill a completed treatment",
    responses={
        409: {"description": "Treatment not completed, already billed, or billed concurrently"},
        422: {"description": "Treatment not found or cannot be priced"},
    },
)
async def bill_treatment(
    treatment_id: UUID,
    db: Session = Depends(get_db),
) -> InvoiceLineResponse:
    line = BillingService(db).bill_treatment(treatment_id)
    return InvoiceLineResponse.model_validate(line)


@router.post(
    "/clinics/{clinic_id}/bill_pending",
    response_model=BillPendingResponse,
    summary="Bill every completed, unbilled treatment of a clinic",
)
async def bill_pending(
    clinic_id: str,
    db: Session = Depends(get_db),
) -> BillPendingResponse:
    run = BillingService(db).bill_pending(clinic_id)
    return BillPendingResponse(
        billed=[InvoiceLineResponse.model_validate(line) for line in run.billed],
        skipped=run.skipped,
    )


@router.get(
    "/lines",
    response_model=list[InvoiceLineResponse],
    summary="List invoice lines of a clinic",
)
async def list_invoice_lines(
    clinic_id: str,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[InvoiceLineResponse]:
    lines = InvoiceLineRepository(db).get_all(clinic_id, skip=skip, limit=limit)
    return [InvoiceLineResponse.model_validate(line) for line in lines]


@router.get(
    "/lines/{line_id}",
    response_model=InvoiceLineResponse,
    summary="Get invoice line",
    responses={404: {"description": "Invoice line not found"}},
)
async def get_invoice_line(
    line_id: str,
    db: Session = Depends(get_db),
) -> InvoiceLineResponse:
    line = InvoiceLineRepository(db).get_by_id(line_id)
    if not line:
        raise HTTPException(status_code=404, detail="Invoice line not found")
    return InvoiceLineResponse.model_validate(line)


@router.post(
    "/lines/{line_id}/compensate",
    response_model=InvoiceLineResponse,
    status_code=201,
    summary="Reverse an invoice line",
    responses={
        404: {"description": "Invoice line not found"},
        409: {"description": "Line already reversed or is itself a reversal"},
    },
)
async def compensate_invoice_line(
    line_id: str,
    data: CompensateLineRequest,
    db: Session = Depends(get_db),
) -> InvoiceLineResponse:
    if not InvoiceLineRepository(db).get_by_id(line_id):
        raise HTTPException(status_code=404, detail="Invoice line not found")
    line = BillingService(db).compensate_line(line_id, data.actor, data.reason)
    return InvoiceLineResponse.model_validate(line)


@router.get(
    "/estimate",
    response_model=CostEstimateResponse,
    summary="Estimate the cost of a planned procedure",
    responses={422: {"description": "Unknown procedure or invalid tooth identifier"}},
)
async def estimate_cost(
    procedure_id: str,
    teeth: list[int] = Query(default=[]),
) -> CostEstimateResponse:
    validate_teeth(teeth)
    estimate = default_catalog.estimate(procedure_id, teeth)
    return CostEstimateResponse(
        procedure_id=default_catalog.resolve(procedure_id, teeth).procedure.value,
        teeth=teeth,
        subtotal=estimate.subtotal,
        tax=estimate.tax,
        total=estimate.total,
    )
