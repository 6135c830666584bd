from sqlalchemy import JSON, Column, Integer, String, UniqueConstraint, func

from clinic_ledger.core.database import Base
from clinic_ledger.models.shared import UTCDateTime, UUIDType, generate_uuid


class InvoiceDraft(Base):
    __tablename__ = "invoice_drafts"
    __table_args__ = (
        UniqueConstraint("clinic_id", "invoice_number", name="uq_invoice_drafts_clinic_number"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    clinic_id = Column(String(100), nullable=False, index=True)

    # Ordered invoice line ids
    line_ids = Column(JSON, nullable=False, default=list)

    # Amounts in minor currency units
    subtotal = Column(Integer, nullable=False, default=0)
    tax = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False, default=0)

    # Written once by the numbering service; unique within a clinic
    invoice_number = Column(String(50), index=True, nullable=True)
    numbered_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())


class InvoiceNumberSeries(Base):
    """Clinic-scoped, monotonically increasing invoice counter."""

    __tablename__ = "invoice_number_series"

    clinic_id = Column(String(100), primary_key=True)
    prefix = Column(String(20), nullable=False)
    next_number = Column(Integer, nullable=False)
    padding = Column(Integer, nullable=False, default=6)
