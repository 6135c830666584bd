from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class InvoiceDraftCreate(BaseModel):
    clinic_id: str = Field(min_length=1, max_length=100)
    line_ids: list[str] = Field(min_length=1)
    assign_number: bool = False


class InvoiceDraftResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: str
    line_ids: list[str]
    subtotal: int
    tax: int
    total: int
    invoice_number: str | None
    numbered_at: datetime | None
    created_at: datetime
