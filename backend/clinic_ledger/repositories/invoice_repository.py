from datetime import datetime
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from clinic_ledger.models.invoice import InvoiceDraft, InvoiceNumberSeries
from clinic_ledger.services.invoice_aggregator import InvoiceTotals


class InvoiceRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, draft_id: UUID, clinic_id: str | None = None) -> InvoiceDraft | None:
        query = self.db.query(InvoiceDraft).filter(InvoiceDraft.id == draft_id)
        if clinic_id is not None:
            query = query.filter(InvoiceDraft.clinic_id == clinic_id)
        return query.first()

    def get_all(self, clinic_id: str, skip: int = 0, limit: int = 100) -> list[InvoiceDraft]:
        return (
            self.db.query(InvoiceDraft)
            .filter(InvoiceDraft.clinic_id == clinic_id)
            .order_by(InvoiceDraft.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def create(self, clinic_id: str, line_ids: list[str], totals: InvoiceTotals) -> InvoiceDraft:
        draft = InvoiceDraft(
            clinic_id=clinic_id,
            line_ids=list(line_ids),
            subtotal=totals.subtotal,
            tax=totals.tax,
            total=totals.total,
        )
        self.db.add(draft)
        self.db.commit()
        self.db.refresh(draft)
        return draft

    def reserve_number(
        self, clinic_id: str, prefix: str, start: int, padding: int
    ) -> tuple[InvoiceNumberSeries, int]:
        """Take the next counter value for a clinic under a row lock. Does not commit.

        The series is created on first use with the given prefix, start and padding.
        """
        series = (
            self.db.query(InvoiceNumberSeries)
            .filter(InvoiceNumberSeries.clinic_id == clinic_id)
            .with_for_update()
            .first()
        )
        if series is None:
            series = InvoiceNumberSeries(
                clinic_id=clinic_id,
                prefix=prefix,
                next_number=start,
                padding=padding,
            )
            self.db.add(series)
            self.db.flush()

        number = int(series.next_number)
        series.next_number = number + 1  # type: ignore[assignment]
        self.db.flush()
        return series, number

    def set_number_if_unset(self, draft_id: UUID, invoice_number: str, numbered_at: datetime) -> bool:
        """Write the invoice number once. Returns False if the draft already has one."""
        result = self.db.execute(
            update(InvoiceDraft)
            .where(InvoiceDraft.id == draft_id, InvoiceDraft.invoice_number.is_(None))
            .values(invoice_number=invoice_number, numbered_at=numbered_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]
