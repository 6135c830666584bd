"""Invoice line repository. Lines are insert-only."""

from sqlalchemy.orm import Session

from clinic_ledger.models.invoice_line import InvoiceLine
from clinic_ledger.services.billing_calculator import InvoiceLineData


class InvoiceLineRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, line_id: str) -> InvoiceLine | None:
        return self.db.query(InvoiceLine).filter(InvoiceLine.id == line_id).first()

    def get_by_ids(self, line_ids: list[str]) -> list[InvoiceLine]:
        """Fetch lines preserving the requested order; missing ids are skipped."""
        if not line_ids:
            return []
        found = {
            str(line.id): line
            for line in self.db.query(InvoiceLine).filter(InvoiceLine.id.in_(line_ids)).all()
        }
        return [found[line_id] for line_id in line_ids if line_id in found]

    def get_all(self, clinic_id: str, skip: int = 0, limit: int = 100) -> list[InvoiceLine]:
        return (
            self.db.query(InvoiceLine)
            .filter(InvoiceLine.clinic_id == clinic_id)
            .order_by(InvoiceLine.created_at.asc(), InvoiceLine.id.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_compensation_for(self, line_id: str) -> InvoiceLine | None:
        return (
            self.db.query(InvoiceLine).filter(InvoiceLine.compensates_line_id == line_id).first()
        )

    def add(self, data: InvoiceLineData, compensates_line_id: str | None = None) -> InvoiceLine:
        """Stage a line in the current transaction. Caller commits."""
        line = InvoiceLine(
            id=data.id,
            clinic_id=data.clinic_id,
            treatment_id=data.treatment_id,
            compensates_line_id=compensates_line_id,
            procedure_id=data.procedure_id,
            description=data.description,
            unit_cost=data.unit_cost,
            tax_rate=data.tax_rate,
            quantity=data.quantity,
            line_metadata=dict(data.metadata),
        )
        self.db.add(line)
        self.db.flush()
        return line
