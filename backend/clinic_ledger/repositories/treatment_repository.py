"""Treatment record repository for data access."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from clinic_ledger.models.treatment import TreatmentRecord, TreatmentStatus
from clinic_ledger.schemas.treatment import TreatmentCreate


class TreatmentRepository:
    """Repository for TreatmentRecord model."""

    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        clinic_id: str | None = None,
        status: TreatmentStatus | None = None,
        billed: bool | None = None,
        patient_id: str | None = None,
        skip: int = 0,
        limit: int | None = 100,
    ) -> list[TreatmentRecord]:
        """Get treatments filtered by clinic, status and billed flag, oldest first."""
        query = self.db.query(TreatmentRecord)

        if clinic_id is not None:
            query = query.filter(TreatmentRecord.clinic_id == clinic_id)
        if status is not None:
            query = query.filter(TreatmentRecord.status == status.value)
        if billed is not None:
            query = query.filter(TreatmentRecord.billed.is_(billed))
        if patient_id is not None:
            query = query.filter(TreatmentRecord.patient_id == patient_id)

        return (
            query.order_by(TreatmentRecord.created_at.asc(), TreatmentRecord.id.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count(self, clinic_id: str | None = None) -> int:
        query = self.db.query(func.count(TreatmentRecord.id))
        if clinic_id is not None:
            query = query.filter(TreatmentRecord.clinic_id == clinic_id)
        return int(query.scalar() or 0)

    def get_by_id(self, treatment_id: UUID) -> TreatmentRecord | None:
        return self.db.query(TreatmentRecord).filter(TreatmentRecord.id == treatment_id).first()

    def create(self, data: TreatmentCreate) -> TreatmentRecord:
        treatment = TreatmentRecord(
            clinic_id=data.clinic_id,
            patient_id=data.patient_id,
            procedure_id=data.procedure_id,
            teeth=list(data.teeth),
            teeth_count=len(data.teeth),
            status=TreatmentStatus.PLANNED.value,
            billed=False,
            notes=data.notes,
        )
        self.db.add(treatment)
        self.db.commit()
        self.db.refresh(treatment)
        return treatment

    def set_status(
        self,
        treatment: TreatmentRecord,
        status: TreatmentStatus,
        completed_at: datetime | None = None,
    ) -> TreatmentRecord:
        treatment.status = status.value  # type: ignore[assignment]
        if completed_at is not None:
            treatment.completed_at = completed_at  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(treatment)
        return treatment

    def mark_billed(self, treatment_id: UUID, invoice_line_id: str) -> bool:
        """Flip ``billed`` false -> true for a completed treatment.

        Conditional update; returns False when another writer got there first.
        Does not commit.
        """
        result = self.db.execute(
            update(TreatmentRecord)
            .where(
                TreatmentRecord.id == treatment_id,
                TreatmentRecord.billed.is_(False),
                TreatmentRecord.status == TreatmentStatus.COMPLETED.value,
            )
            .values(billed=True, invoice_line_id=invoice_line_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]
