"""SettlementRecord model for the end-of-day close of a clinic's ledger."""

from datetime import date
from enum import Enum

from sqlalchemy import Column, Date, Integer, String, UniqueConstraint, func

from clinic_ledger.core.database import Base
from clinic_ledger.models.shared import UTCDateTime, UUIDType, generate_uuid


class SettlementStatus(str, Enum):
    """Settlement status enum. CLOSED is terminal."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"


def settlement_key(clinic_id: str, business_date: date) -> str:
    """Stable identifier for a (clinic, date) settlement, used in errors and audit entries."""
    return f"{clinic_id}:{business_date.isoformat()}"


class SettlementRecord(Base):
    """SettlementRecord model - exactly one per (clinic, business date)."""

    __tablename__ = "settlement_records"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    clinic_id = Column(String(100), nullable=False, index=True)
    business_date = Column(Date, nullable=False)
    status = Column(String(10), nullable=False, default=SettlementStatus.OPEN.value)

    # Bumped on every append; a close only succeeds against the count it summed
    transaction_count = Column(Integer, nullable=False, default=0)

    # Frozen at close, null while OPEN
    total_cash = Column(Integer, nullable=True)
    total_upi = Column(Integer, nullable=True)
    total_card = Column(Integer, nullable=True)
    total_revenue = Column(Integer, nullable=True)

    closed_by = Column(String(255), nullable=True)
    closed_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("clinic_id", "business_date", name="uq_settlement_clinic_date"),
    )
