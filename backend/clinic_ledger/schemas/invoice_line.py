from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class InvoiceLinePreview(BaseModel):
    """A computed but unsaved invoice line."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    clinic_id: str
    treatment_id: str | None
    procedure_id: str
    description: str
    unit_cost: int
    tax_rate: int
    quantity: int
    subtotal: int
    tax: int
    metadata: dict[str, Any]


class InvoiceLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    clinic_id: str
    treatment_id: UUID | None
    compensates_line_id: str | None
    procedure_id: str
    description: str
    unit_cost: int
    tax_rate: int
    quantity: int
    line_metadata: dict[str, Any]
    created_at: datetime


class ComputeLinesRequest(BaseModel):
    treatment_ids: list[UUID] = Field(min_length=1)


class CompensateLineRequest(BaseModel):
    actor: str = Field(min_length=1, max_length=255)
    reason: str = Field(min_length=1)


class CostEstimateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    procedure_id: str
    teeth: list[int]
    subtotal: int
    tax: int
    total: int


class BillPendingResponse(BaseModel):
    billed: list[InvoiceLineResponse]
    skipped: dict[str, str]
