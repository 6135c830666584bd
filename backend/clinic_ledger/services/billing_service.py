"""Billing commit: flag a treatment billed and persist its invoice line atomically."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_ledger.core.errors import (
    ConcurrencyError,
    LedgerError,
    StateError,
    ValidationError,
    retry_on_conflict,
)
from clinic_ledger.models.invoice_line import InvoiceLine
from clinic_ledger.models.treatment import TreatmentStatus
from clinic_ledger.repositories.invoice_line_repository import InvoiceLineRepository
from clinic_ledger.repositories.treatment_repository import TreatmentRepository
from clinic_ledger.services.audit_service import AuditService
from clinic_ledger.services.billing_calculator import BillingCalculator, InvoiceLineData

logger = logging.getLogger(__name__)

COMPENSATION_LINE_PREFIX = "comp_"


@dataclass
class BillingRun:
    """Outcome of billing every pending treatment of a clinic."""

    billed: list[InvoiceLine] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)


class BillingService:
    def __init__(self, db: Session, calculator: BillingCalculator | None = None):
        self.db = db
        self.calculator = calculator or BillingCalculator()
        self.treatment_repo = TreatmentRepository(db)
        self.line_repo = InvoiceLineRepository(db)
        self.audit = AuditService(db)

    def preview(self, treatment_ids: list[UUID]) -> list[InvoiceLineData]:
        """Compute lines for the given treatments without persisting anything."""
        treatments = []
        for treatment_id in treatment_ids:
            treatment = self.treatment_repo.get_by_id(treatment_id)
            if treatment is None:
                raise ValidationError(
                    f"treatment {treatment_id} not found", identifier=str(treatment_id)
                )
            treatments.append(treatment)
        return self.calculator.compute_invoice_lines(treatments)

    def bill_treatment(self, treatment_id: UUID) -> InvoiceLine:
        """Bill a completed treatment exactly once.

        The billed flag flips through a conditional update and the line is
        inserted in the same transaction; a concurrent biller makes one of the
        two writes fail and the whole attempt is retried once. On retry an
        already billed treatment fails with ``StateError``.
        """

        def attempt() -> InvoiceLine:
            treatment = self.treatment_repo.get_by_id(treatment_id)
            if treatment is None:
                raise ValidationError(
                    f"treatment {treatment_id} not found", identifier=str(treatment_id)
                )
            data = self.calculator.compute(treatment)

            if not self.treatment_repo.mark_billed(treatment_id, data.id):
                raise ConcurrencyError(
                    f"treatment {treatment_id} was billed concurrently",
                    identifier=str(treatment_id),
                )
            try:
                line = self.line_repo.add(data)
            except IntegrityError:
                raise ConcurrencyError(
                    f"invoice line {data.id} already exists", identifier=str(treatment_id)
                ) from None
            self.db.commit()
            self.db.refresh(line)
            logger.info(
                "Billed treatment %s as %s: %d x %d",
                treatment_id,
                line.id,
                line.quantity,
                line.unit_cost,
            )
            return line

        return retry_on_conflict(self.db, attempt)

    def bill_pending(self, clinic_id: str) -> BillingRun:
        """Bill every completed, unbilled treatment of a clinic.

        Treatments that cannot be billed are reported in ``skipped`` with the
        reason and do not stop the run.
        """
        pending = self.treatment_repo.get_all(
            clinic_id=clinic_id,
            status=TreatmentStatus.COMPLETED,
            billed=False,
            limit=None,
        )
        treatment_ids = [treatment.id for treatment in pending]

        run = BillingRun()
        for treatment_id in treatment_ids:
            try:
                run.billed.append(self.bill_treatment(treatment_id))
            except LedgerError as exc:
                self.db.rollback()
                logger.warning("Skipped billing treatment %s: %s", treatment_id, exc.message)
                run.skipped[str(treatment_id)] = exc.message
        logger.info(
            "Billing run for clinic %s: %d billed, %d skipped",
            clinic_id,
            len(run.billed),
            len(run.skipped),
        )
        return run

    def compensate_line(self, line_id: str, actor: str, reason: str) -> InvoiceLine:
        """Reverse a persisted line with a negated-quantity line. A line is reversed once."""

        def attempt() -> InvoiceLine:
            line = self.line_repo.get_by_id(line_id)
            if line is None:
                raise ValidationError(f"invoice line {line_id} not found", identifier=line_id)
            if line.compensates_line_id is not None:
                raise StateError(
                    f"invoice line {line_id} is itself a reversal",
                    identifier=line_id,
                    state={"compensates_line_id": line.compensates_line_id},
                )
            existing = self.line_repo.get_compensation_for(line_id)
            if existing is not None:
                raise StateError(
                    f"invoice line {line_id} is already compensated",
                    identifier=line_id,
                    state={"compensating_line_id": existing.id},
                )

            data = InvoiceLineData(
                id=f"{COMPENSATION_LINE_PREFIX}{line.id}",
                clinic_id=str(line.clinic_id),
                treatment_id=None,
                procedure_id=str(line.procedure_id),
                description=f"Reversal: {line.description}",
                unit_cost=int(line.unit_cost),
                tax_rate=int(line.tax_rate),
                quantity=-int(line.quantity),
                metadata={
                    "source": "compensation",
                    "compensates_line_id": line.id,
                    "actor": actor,
                    "reason": reason,
                },
            )
            try:
                compensation = self.line_repo.add(data, compensates_line_id=line.id)
            except IntegrityError:
                raise ConcurrencyError(
                    f"invoice line {line_id} was compensated concurrently", identifier=line_id
                ) from None
            self.audit.log_line_compensated(
                clinic_id=str(line.clinic_id),
                line_id=line.id,
                compensating_line_id=compensation.id,
                actor=actor,
                reason=reason,
            )
            self.db.commit()
            self.db.refresh(compensation)
            logger.info("Compensated invoice line %s by %s", line_id, actor)
            return compensation

        return retry_on_conflict(self.db, attempt)
