"""Settlement API endpoints: day ledger, verification, close and reports."""

import logging
from datetime import date
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from clinic_ledger.core.database import get_db
from clinic_ledger.repositories.settlement_repository import SettlementRepository
from clinic_ledger.schemas.audit_entry import AuditEntryResponse
from clinic_ledger.schemas.settlement import (
    SettlementCloseRequest,
    SettlementCorrectionCreate,
    SettlementStatusResponse,
)
from clinic_ledger.schemas.transaction import (
    TransactionCreate,
    TransactionResponse,
    TransactionVerify,
)
from clinic_ledger.services.audit_service import AuditService
from clinic_ledger.services.report_service import SettlementReportService
from clinic_ledger.services.settlement_engine import SettlementEngine
from clinic_ledger.services.transaction_ledger import TransactionLedger
from clinic_ledger.tasks import enqueue_settlement_report

logger = logging.getLogger(__name__)

router = APIRouter()


async def _enqueue_report(clinic_id: str, business_date: date) -> None:
    """Enqueue report rendering; a failure here never affects the close."""
    try:
        await enqueue_settlement_report(clinic_id, business_date)
    except Exception:
        logger.exception(
            "Failed to enqueue settlement report for %s on %s", clinic_id, business_date
        )


@router.post(
    "/transactions/{transaction_id}/verify",
    response_model=TransactionResponse,
    summary="Verify a transaction",
    responses={404: {"description": "Transaction not found"}},
)
async def verify_transaction(
    transaction_id: UUID,
    data: TransactionVerify,
    db: Session = Depends(get_db),
) -> TransactionResponse:
    """Mark a payment verified. Verifying an already verified payment changes nothing."""
    ledger = TransactionLedger(db)
    if not ledger.repo.get_by_id(transaction_id):
        raise HTTPException(status_code=404, detail="Transaction not found")
    transaction = ledger.verify(transaction_id, data.actor)
    return TransactionResponse.model_validate(transaction)


@router.get(
    "/{clinic_id}",
    response_model=list[SettlementStatusResponse],
    summary="List settlements of a clinic",
)
async def list_settlements(
    clinic_id: str,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[SettlementStatusResponse]:
    engine = SettlementEngine(db)
    records = SettlementRepository(db).get_all(clinic_id, skip=skip, limit=limit)
    return [
        SettlementStatusResponse.model_validate(engine.status(clinic_id, r.business_date))
        for r in records
    ]


@router.post(
    "/{clinic_id}/{business_date}/transactions",
    response_model=TransactionResponse,
    status_code=201,
    summary="Record a payment",
    responses={
        409: {"description": "Settlement for the day is closed"},
        422: {"description": "Invalid amount or channel"},
    },
)
async def append_transaction(
    clinic_id: str,
    business_date: date,
    data: TransactionCreate,
    db: Session = Depends(get_db),
) -> TransactionResponse:
    transaction = TransactionLedger(db).append(
        clinic_id,
        business_date,
        data.channel,
        data.amount,
        recorded_by=data.recorded_by,
        reference=data.reference,
    )
    return TransactionResponse.model_validate(transaction)


@router.get(
    "/{clinic_id}/{business_date}/transactions",
    response_model=list[TransactionResponse],
    summary="List payments of a day",
)
async def list_transactions(
    clinic_id: str,
    business_date: date,
    db: Session = Depends(get_db),
) -> list[TransactionResponse]:
    transactions = TransactionLedger(db).list(clinic_id, business_date)
    return [TransactionResponse.model_validate(t) for t in transactions]


@router.get(
    "/{clinic_id}/{business_date}",
    response_model=SettlementStatusResponse,
    summary="Get settlement status with live totals",
)
async def get_settlement_status(
    clinic_id: str,
    business_date: date,
    db: Session = Depends(get_db),
) -> SettlementStatusResponse:
    return SettlementStatusResponse.model_validate(
        SettlementEngine(db).status(clinic_id, business_date)
    )


@router.post(
    "/{clinic_id}/{business_date}/close",
    response_model=SettlementStatusResponse,
    summary="Close the day",
    responses={
        409: {
            "description": "No transactions, unverified transactions, already closed, "
            "or lost a concurrent close"
        },
    },
)
async def close_settlement(
    clinic_id: str,
    business_date: date,
    data: SettlementCloseRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> SettlementStatusResponse:
    """Freeze the day's totals. A closed day cannot be reopened."""
    view = SettlementEngine(db).close(clinic_id, business_date, data.actor)
    background_tasks.add_task(_enqueue_report, clinic_id, business_date)
    return SettlementStatusResponse.model_validate(view)


@router.post(
    "/{clinic_id}/{business_date}/corrections",
    response_model=AuditEntryResponse,
    status_code=201,
    summary="Record a post-close correction",
    responses={409: {"description": "Settlement is not closed"}},
)
async def record_correction(
    clinic_id: str,
    business_date: date,
    data: SettlementCorrectionCreate,
    db: Session = Depends(get_db),
) -> AuditEntryResponse:
    """Record an administrative correction in the audit trail. Totals stay frozen."""
    entry = SettlementEngine(db).record_correction(
        clinic_id,
        business_date,
        actor=data.actor,
        channel=data.channel,
        amount=data.amount,
        reason=data.reason,
    )
    return AuditEntryResponse.model_validate(entry)


@router.get(
    "/{clinic_id}/{business_date}/audit",
    response_model=list[AuditEntryResponse],
    summary="Get the audit trail of a day",
)
async def get_settlement_audit_trail(
    clinic_id: str,
    business_date: date,
    db: Session = Depends(get_db),
) -> list[AuditEntryResponse]:
    entries = AuditService(db).settlement_history(clinic_id, business_date)
    return [AuditEntryResponse.model_validate(e) for e in entries]


@router.get(
    "/{clinic_id}/{business_date}/report",
    summary="Download the settlement report",
    responses={200: {"content": {"application/pdf": {}, "text/html": {}}}},
)
async def get_settlement_report(
    clinic_id: str,
    business_date: date,
    format: str = Query(default="pdf", pattern="^(pdf|html)$"),
    db: Session = Depends(get_db),
) -> Response:
    view = SettlementEngine(db).status(clinic_id, business_date)
    transactions = TransactionLedger(db).list(clinic_id, business_date)
    service = SettlementReportService()
    if format == "html":
        return HTMLResponse(content=service.render_html(view, transactions))

    pdf_bytes = service.render_pdf(view, transactions)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{service.filename(view)}"'},
    )
