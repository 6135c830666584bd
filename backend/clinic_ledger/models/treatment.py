"""TreatmentRecord model for clinical work that feeds billing."""

from enum import Enum

from sqlalchemy import JSON, Boolean, Column, Integer, String, Text, func

from clinic_ledger.core.database import Base
from clinic_ledger.models.shared import UTCDateTime, UUIDType, generate_uuid


class TreatmentStatus(str, Enum):
    """Treatment status enum."""

    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Completed is terminal.
ALLOWED_TRANSITIONS: dict[TreatmentStatus, frozenset[TreatmentStatus]] = {
    TreatmentStatus.PLANNED: frozenset({TreatmentStatus.IN_PROGRESS, TreatmentStatus.COMPLETED}),
    TreatmentStatus.IN_PROGRESS: frozenset({TreatmentStatus.COMPLETED}),
    TreatmentStatus.COMPLETED: frozenset(),
}


class TreatmentRecord(Base):
    """TreatmentRecord model - one planned or performed clinical procedure."""

    __tablename__ = "treatment_records"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    clinic_id = Column(String(100), nullable=False, index=True)
    patient_id = Column(String(100), nullable=True, index=True)

    procedure_id = Column(String(50), nullable=False)
    teeth = Column(JSON, nullable=False, default=list)
    teeth_count = Column(Integer, nullable=False, default=0)

    status = Column(String(20), nullable=False, default=TreatmentStatus.PLANNED.value, index=True)
    completed_at = Column(UTCDateTime, nullable=True)

    # Billing integration; both written once, in the same transaction
    billed = Column(Boolean, nullable=False, default=False, index=True)
    invoice_line_id = Column(String(64), nullable=True)

    notes = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())
