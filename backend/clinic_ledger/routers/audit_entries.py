"""Audit entry API endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clinic_ledger.core.database import get_db
from clinic_ledger.repositories.audit_entry_repository import AuditEntryRepository
from clinic_ledger.schemas.audit_entry import AuditEntryResponse

router = APIRouter()


@router.get(
    "/",
    response_model=list[AuditEntryResponse],
    summary="List audit entries",
)
async def list_audit_entries(
    clinic_id: str,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    resource_type: str | None = None,
    resource_id: str | None = None,
    event: str | None = None,
    actor: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    db: Session = Depends(get_db),
) -> list[AuditEntryResponse]:
    """List audit entries with optional filters, newest first."""
    repo = AuditEntryRepository(db)
    if resource_id is not None and resource_type is not None:
        entries = repo.get_by_resource(resource_type, resource_id, skip=skip, limit=limit)
        return [AuditEntryResponse.model_validate(e) for e in entries]
    return [
        AuditEntryResponse.model_validate(e)
        for e in repo.get_all(
            clinic_id,
            skip=skip,
            limit=limit,
            resource_type=resource_type,
            event=event,
            actor=actor,
            start_date=start_date,
            end_date=end_date,
        )
    ]
