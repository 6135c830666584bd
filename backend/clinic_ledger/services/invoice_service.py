"""Invoice drafts and clinic-scoped invoice numbering."""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_ledger.core.config import settings
from clinic_ledger.core.errors import ConcurrencyError, ValidationError, retry_on_conflict
from clinic_ledger.models.invoice import InvoiceDraft
from clinic_ledger.models.shared import utc_now
from clinic_ledger.repositories.invoice_line_repository import InvoiceLineRepository
from clinic_ledger.repositories.invoice_repository import InvoiceRepository
from clinic_ledger.services.invoice_aggregator import aggregate

logger = logging.getLogger(__name__)


def format_invoice_number(prefix: str, issued: datetime, number: int, padding: int) -> str:
    """Render ``<PREFIX>-<YYMM>-<counter>``, e.g. ``INV-2402-001001``."""
    return f"{prefix}-{issued:%y%m}-{number:0{padding}d}"


class InvoiceService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = InvoiceRepository(db)
        self.line_repo = InvoiceLineRepository(db)

    def get(self, draft_id: UUID) -> InvoiceDraft:
        draft = self.repo.get_by_id(draft_id)
        if draft is None:
            raise ValidationError(f"invoice draft {draft_id} not found", identifier=str(draft_id))
        return draft

    def create_draft(self, clinic_id: str, line_ids: list[str]) -> InvoiceDraft:
        """Aggregate persisted lines of one clinic into a draft with totals."""
        if not line_ids:
            raise ValidationError("an invoice needs at least one line", identifier=clinic_id)
        if len(set(line_ids)) != len(line_ids):
            raise ValidationError(
                "invoice lines must not repeat", identifier=",".join(line_ids)
            )

        lines = self.line_repo.get_by_ids(line_ids)
        found = {line.id for line in lines}
        missing = [line_id for line_id in line_ids if line_id not in found]
        if missing:
            raise ValidationError(
                f"unknown invoice lines: {', '.join(missing)}", identifier=",".join(missing)
            )
        foreign = [line.id for line in lines if line.clinic_id != clinic_id]
        if foreign:
            raise ValidationError(
                f"invoice lines belong to another clinic: {', '.join(foreign)}",
                identifier=clinic_id,
                state={"line_ids": foreign},
            )

        totals = aggregate(lines)
        draft = self.repo.create(clinic_id, line_ids, totals)
        logger.info(
            "Created invoice draft %s for clinic %s: %d lines, total %d",
            draft.id,
            clinic_id,
            len(line_ids),
            totals.total,
        )
        return draft

    def assign_number(self, draft_id: UUID, issued: datetime | None = None) -> InvoiceDraft:
        """Give a draft its invoice number; repeated calls return the same number."""

        def attempt() -> InvoiceDraft:
            draft = self.get(draft_id)
            if draft.invoice_number is not None:
                return draft

            when = issued or utc_now()
            try:
                series, number = self.repo.reserve_number(
                    str(draft.clinic_id),
                    prefix=settings.INVOICE_PREFIX,
                    start=settings.INVOICE_NUMBER_START,
                    padding=settings.INVOICE_NUMBER_PADDING,
                )
            except IntegrityError:
                raise ConcurrencyError(
                    f"invoice series for clinic {draft.clinic_id} was created concurrently",
                    identifier=str(draft.clinic_id),
                ) from None
            invoice_number = format_invoice_number(
                str(series.prefix), when, number, int(series.padding)
            )

            try:
                written = self.repo.set_number_if_unset(draft_id, invoice_number, when)
            except IntegrityError:
                raise ConcurrencyError(
                    f"invoice number {invoice_number} is already taken in clinic {draft.clinic_id}",
                    identifier=invoice_number,
                ) from None
            if not written:
                # Numbered concurrently; keep theirs and give the counter value back.
                self.db.rollback()
                return self.get(draft_id)

            self.db.commit()
            self.db.refresh(draft)
            logger.info("Assigned invoice number %s to draft %s", invoice_number, draft_id)
            return draft

        return retry_on_conflict(self.db, attempt)
