"""Ledger transaction schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from clinic_ledger.models.transaction import PaymentChannel


class TransactionCreate(BaseModel):
    """Schema for recording a payment received at the front desk."""

    channel: PaymentChannel
    amount: int
    reference: str | None = Field(default=None, max_length=100)
    recorded_by: str | None = Field(default=None, max_length=255)


class TransactionVerify(BaseModel):
    actor: str = Field(min_length=1, max_length=255)


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: str
    business_date: date
    channel: PaymentChannel
    amount: int
    reference: str | None
    recorded_by: str | None
    is_verified: bool
    verified_by: str | None
    verified_at: datetime | None
    created_at: datetime
