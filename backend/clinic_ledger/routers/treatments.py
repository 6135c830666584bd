"""Treatment record API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from clinic_ledger.core.database import get_db
from clinic_ledger.models.treatment import TreatmentStatus
from clinic_ledger.repositories.treatment_repository import TreatmentRepository
from clinic_ledger.schemas.treatment import (
    TreatmentCreate,
    TreatmentResponse,
    TreatmentStatusUpdate,
)
from clinic_ledger.services.treatment_service import TreatmentService

router = APIRouter()


@router.post(
    "/",
    response_model=TreatmentResponse,
    status_code=201,
    summary="Record a planned treatment",
    responses={422: {"description": "Unknown procedure or invalid tooth identifier"}},
)
async def create_treatment(
    data: TreatmentCreate,
    db: Session = Depends(get_db),
) -> TreatmentResponse:
    treatment = TreatmentService(db).create(data)
    return TreatmentResponse.model_validate(treatment)


@router.get(
    "/",
    response_model=list[TreatmentResponse],
    summary="List treatments",
)
async def list_treatments(
    clinic_id: str | None = None,
    status: TreatmentStatus | None = None,
    billed: bool | None = None,
    patient_id: str | None = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[TreatmentResponse]:
    repo = TreatmentRepository(db)
    treatments = repo.get_all(
        clinic_id=clinic_id,
        status=status,
        billed=billed,
        patient_id=patient_id,
        skip=skip,
        limit=limit,
    )
    return [TreatmentResponse.model_validate(t) for t in treatments]


@router.get(
    "/{treatment_id}",
    response_model=TreatmentResponse,
    summary="Get treatment",
    responses={404: {"description": "Treatment not found"}},
)
async def get_treatment(
    treatment_id: UUID,
    db: Session = Depends(get_db),
) -> TreatmentResponse:
    treatment = TreatmentRepository(db).get_by_id(treatment_id)
    if not treatment:
        raise HTTPException(status_code=404, detail="Treatment not found")
    return TreatmentResponse.model_validate(treatment)


@router.post(
    "/{treatment_id}/status",
    response_model=TreatmentResponse,
    summary="Change treatment status",
    responses={
        404: {"description": "Treatment not found"},
        409: {"description": "Transition not allowed from the current status"},
    },
)
async def update_treatment_status(
    treatment_id: UUID,
    data: TreatmentStatusUpdate,
    db: Session = Depends(get_db),
) -> TreatmentResponse:
    if not TreatmentRepository(db).get_by_id(treatment_id):
        raise HTTPException(status_code=404, detail="Treatment not found")
    treatment = TreatmentService(db).transition(treatment_id, data.status, data.completed_at)
    return TreatmentResponse.model_validate(treatment)
