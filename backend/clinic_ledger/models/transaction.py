"""Transaction model for front-desk payment records."""

from enum import Enum

from sqlalchemy import Boolean, Column, Date, Index, Integer, String, func

from clinic_ledger.core.database import Base
from clinic_ledger.models.shared import UTCDateTime, UUIDType, generate_uuid, utc_now


class PaymentChannel(str, Enum):
    """Payment channel enum."""

    CASH = "CASH"
    UPI = "UPI"
    CARD = "CARD"


class Transaction(Base):
    """Transaction model - one payment received on a clinic's business day."""

    __tablename__ = "ledger_transactions"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    clinic_id = Column(String(100), nullable=False)
    business_date = Column(Date, nullable=False)

    channel = Column(String(10), nullable=False)
    amount = Column(Integer, nullable=False)
    reference = Column(String(100), nullable=True)
    recorded_by = Column(String(255), nullable=True)

    # Verification flips false -> true exactly once
    is_verified = Column(Boolean, nullable=False, default=False)
    verified_by = Column(String(255), nullable=True)
    verified_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, default=utc_now, server_default=func.now())

    __table_args__ = (Index("ix_ledger_transactions_clinic_date", "clinic_id", "business_date"),)
