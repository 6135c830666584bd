"""Treatment lifecycle: creation and status transitions."""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from clinic_ledger.core.errors import StateError, ValidationError
from clinic_ledger.models.shared import utc_now
from clinic_ledger.models.treatment import ALLOWED_TRANSITIONS, TreatmentRecord, TreatmentStatus
from clinic_ledger.repositories.treatment_repository import TreatmentRepository
from clinic_ledger.schemas.treatment import TreatmentCreate
from clinic_ledger.services.tariff_catalog import TariffCatalog, default_catalog
from clinic_ledger.services.tooth_classifier import validate_teeth

logger = logging.getLogger(__name__)


class TreatmentService:
    def __init__(self, db: Session, catalog: TariffCatalog = default_catalog):
        self.db = db
        self.repo = TreatmentRepository(db)
        self.catalog = catalog

    def get(self, treatment_id: UUID) -> TreatmentRecord:
        treatment = self.repo.get_by_id(treatment_id)
        if treatment is None:
            raise ValidationError(
                f"treatment {treatment_id} not found", identifier=str(treatment_id)
            )
        return treatment

    def create(self, data: TreatmentCreate) -> TreatmentRecord:
        """Record a planned treatment after checking its teeth and procedure."""
        validate_teeth(data.teeth)
        # Resolving up front rejects unknown codes and a tooth-less root canal.
        self.catalog.resolve(data.procedure_id, data.teeth)
        treatment = self.repo.create(data)
        logger.info(
            "Created treatment %s (%s) for clinic %s",
            treatment.id,
            treatment.procedure_id,
            treatment.clinic_id,
        )
        return treatment

    def transition(
        self,
        treatment_id: UUID,
        status: TreatmentStatus,
        completed_at: datetime | None = None,
    ) -> TreatmentRecord:
        """Move a treatment along planned -> in_progress -> completed.

        ``completed_at`` is written once, when the treatment completes.
        """
        treatment = self.get(treatment_id)
        current = TreatmentStatus(treatment.status)
        if status not in ALLOWED_TRANSITIONS[current]:
            raise StateError(
                f"cannot move treatment {treatment_id} from {current.value} to {status.value}",
                identifier=str(treatment_id),
                state={"status": current.value, "requested": status.value},
            )
        if status is TreatmentStatus.COMPLETED:
            return self.repo.set_status(treatment, status, completed_at=completed_at or utc_now())
        return self.repo.set_status(treatment, status)
