"""Billing calculator: completed treatment -> priced invoice line.

The calculator is pure. It reads a treatment, never mutates it, and returns
an ``InvoiceLineData`` value; committing the billed flag together with the
line is the job of ``BillingService``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from clinic_ledger.core.errors import StateError, ValidationError
from clinic_ledger.models.treatment import TreatmentStatus
from clinic_ledger.services.tariff_catalog import TariffCatalog, default_catalog, line_tax

AUTO_LINE_PREFIX = "auto_"


class BillableTreatment(Protocol):
    id: Any
    clinic_id: Any
    procedure_id: Any
    teeth: Any
    teeth_count: Any
    status: Any
    completed_at: Any
    billed: Any


@dataclass(frozen=True)
class InvoiceLineData:
    """A priced invoice line before it is persisted."""

    id: str
    clinic_id: str
    treatment_id: str | None
    procedure_id: str
    description: str
    unit_cost: int
    tax_rate: int
    quantity: int
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def subtotal(self) -> int:
        return self.unit_cost * self.quantity

    @property
    def tax(self) -> int:
        return line_tax(self.subtotal, self.tax_rate)


def line_id_for(treatment_id: Any) -> str:
    return f"{AUTO_LINE_PREFIX}{treatment_id}"


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class BillingCalculator:
    """Turns completed clinical work into invoice lines using a tariff catalog."""

    def __init__(self, catalog: TariffCatalog = default_catalog):
        self.catalog = catalog

    def compute(self, treatment: BillableTreatment) -> InvoiceLineData:
        try:
            status = TreatmentStatus(treatment.status).value
        except ValueError:
            status = str(treatment.status)
        if status != TreatmentStatus.COMPLETED.value:
            raise StateError(
                f"treatment {treatment.id} is not completed",
                identifier=str(treatment.id),
                state={"status": status, "billed": bool(treatment.billed)},
            )
        if treatment.billed:
            raise StateError(
                f"treatment {treatment.id} is already billed",
                identifier=str(treatment.id),
                state={"status": status, "billed": True},
            )

        teeth = list(treatment.teeth or [])
        # Root canal specialization happens here, before the cost lookup.
        rule = self.catalog.resolve(str(treatment.procedure_id), teeth)

        if rule.per_tooth:
            quantity = int(treatment.teeth_count)
            if quantity <= 0:
                raise ValidationError(
                    f"{rule.procedure.value} is billed per tooth but treatment "
                    f"{treatment.id} has no affected teeth",
                    identifier=str(treatment.id),
                    state={"procedure_id": rule.procedure.value, "teeth": teeth},
                )
        else:
            quantity = 1

        description = rule.description
        if rule.per_tooth:
            description = f"{rule.description} (Teeth: {', '.join(str(t) for t in teeth)})"

        return InvoiceLineData(
            id=line_id_for(treatment.id),
            clinic_id=str(treatment.clinic_id),
            treatment_id=str(treatment.id),
            procedure_id=rule.procedure.value,
            description=description,
            unit_cost=rule.base_cost,
            tax_rate=rule.tax_rate,
            quantity=quantity,
            metadata={
                "source": "auto_clinical",
                "treatment_id": str(treatment.id),
                "teeth": teeth,
                "category": rule.category.value,
                "tariff_code": rule.tariff_code,
                "procedure_id": rule.procedure.value,
                "completed_at": _isoformat(treatment.completed_at),
            },
        )

    def compute_invoice_lines(self, treatments: Iterable[BillableTreatment]) -> list[InvoiceLineData]:
        """Price a batch of treatments; the first ineligible one aborts the batch."""
        return [self.compute(treatment) for treatment in treatments]
