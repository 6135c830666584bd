"""InvoiceLine model - immutable priced line derived from a completed treatment."""

from sqlalchemy import JSON, Column, ForeignKey, Integer, String, func

from clinic_ledger.core.database import Base
from clinic_ledger.models.shared import UTCDateTime, UUIDType, utc_now


class InvoiceLine(Base):
    """InvoiceLine model.

    Clinical lines are keyed ``auto_<treatment id>``; compensating lines reverse
    an earlier line and are keyed ``comp_<original line id>``. Rows are never
    updated after insert.
    """

    __tablename__ = "invoice_lines"

    id = Column(String(64), primary_key=True)
    clinic_id = Column(String(100), nullable=False, index=True)
    treatment_id = Column(
        UUIDType,
        ForeignKey("treatment_records.id", ondelete="RESTRICT"),
        nullable=True,
        unique=True,
    )
    compensates_line_id = Column(
        String(64),
        ForeignKey("invoice_lines.id", ondelete="RESTRICT"),
        nullable=True,
        unique=True,
    )

    procedure_id = Column(String(50), nullable=False)
    description = Column(String(500), nullable=False)
    unit_cost = Column(Integer, nullable=False)
    tax_rate = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)

    line_metadata = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(UTCDateTime, default=utc_now, server_default=func.now())
