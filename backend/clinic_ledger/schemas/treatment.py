"""Treatment record schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from clinic_ledger.models.treatment import TreatmentStatus


class TreatmentCreate(BaseModel):
    """Schema for recording a planned treatment."""

    clinic_id: str = Field(min_length=1, max_length=100)
    patient_id: str | None = Field(default=None, max_length=100)
    procedure_id: str = Field(min_length=1, max_length=50)
    teeth: list[int] = Field(default_factory=list)
    notes: str | None = None


class TreatmentStatusUpdate(BaseModel):
    status: TreatmentStatus
    completed_at: datetime | None = None


class TreatmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: str
    patient_id: str | None
    procedure_id: str
    teeth: list[int]
    teeth_count: int
    status: TreatmentStatus
    completed_at: datetime | None
    billed: bool
    invoice_line_id: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime
