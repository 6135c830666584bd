"""Settlement schemas."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from clinic_ledger.models.settlement import SettlementStatus
from clinic_ledger.models.transaction import PaymentChannel


class ChannelTotalsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    cash: int
    upi: int
    card: int
    total: int


class SettlementStatusResponse(BaseModel):
    """Settlement state of a clinic day.

    ``totals`` is the frozen figure and is only present once the day is CLOSED;
    ``live_totals`` is recomputed from the current transactions on every read.
    """

    model_config = ConfigDict(from_attributes=True)

    clinic_id: str
    business_date: date
    status: SettlementStatus
    transaction_count: int
    verified_count: int
    unverified_count: int
    totals: ChannelTotalsResponse | None
    live_totals: ChannelTotalsResponse
    closed_by: str | None
    closed_at: datetime | None


class SettlementCloseRequest(BaseModel):
    actor: str = Field(min_length=1, max_length=255)


class SettlementCorrectionCreate(BaseModel):
    """Post-close adjustment, recorded in the audit trail only."""

    actor: str = Field(min_length=1, max_length=255)
    channel: PaymentChannel
    amount: int
    reason: str = Field(min_length=1)
