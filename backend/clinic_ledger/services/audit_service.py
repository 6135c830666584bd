"""Audit service for recording settlement transitions, corrections and reversals."""

from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from clinic_ledger.models.audit_entry import AuditEntry, AuditEvent
from clinic_ledger.models.settlement import SettlementStatus, settlement_key
from clinic_ledger.repositories.audit_entry_repository import AuditEntryRepository

SETTLEMENT_RESOURCE = "settlement"
INVOICE_LINE_RESOURCE = "invoice_line"


class AuditService:
    """Service for recording audit trail entries.

    Entries are staged in the caller's transaction so an audited change and its
    entry commit together.
    """

    def __init__(self, db: Session):
        self.repo = AuditEntryRepository(db)

    def log_close(
        self,
        clinic_id: str,
        business_date: date,
        actor: str,
        totals: dict[str, int],
        transaction_count: int,
    ) -> AuditEntry:
        """Log a successful OPEN -> CLOSED transition."""
        return self.repo.add(
            clinic_id=clinic_id,
            resource_type=SETTLEMENT_RESOURCE,
            resource_id=settlement_key(clinic_id, business_date),
            event=AuditEvent.CLOSED.value,
            actor=actor,
            before_state=SettlementStatus.OPEN.value,
            after_state=SettlementStatus.CLOSED.value,
            details={"totals": totals, "transaction_count": transaction_count},
        )

    def log_close_rejected(
        self,
        clinic_id: str,
        business_date: date,
        actor: str,
        current_state: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> AuditEntry:
        """Log a close attempt that left the settlement unchanged."""
        return self.repo.add(
            clinic_id=clinic_id,
            resource_type=SETTLEMENT_RESOURCE,
            resource_id=settlement_key(clinic_id, business_date),
            event=AuditEvent.CLOSE_REJECTED.value,
            actor=actor,
            before_state=current_state,
            after_state=current_state,
            reason=reason,
            details=details,
        )

    def log_correction(
        self,
        clinic_id: str,
        business_date: date,
        actor: str,
        channel: str,
        amount: int,
        reason: str,
    ) -> AuditEntry:
        return self.repo.add(
            clinic_id=clinic_id,
            resource_type=SETTLEMENT_RESOURCE,
            resource_id=settlement_key(clinic_id, business_date),
            event=AuditEvent.CORRECTION.value,
            actor=actor,
            before_state=SettlementStatus.CLOSED.value,
            after_state=SettlementStatus.CLOSED.value,
            reason=reason,
            details={"channel": channel, "amount": amount},
        )

    def log_line_compensated(
        self,
        clinic_id: str,
        line_id: str,
        compensating_line_id: str,
        actor: str,
        reason: str,
    ) -> AuditEntry:
        return self.repo.add(
            clinic_id=clinic_id,
            resource_type=INVOICE_LINE_RESOURCE,
            resource_id=line_id,
            event=AuditEvent.LINE_COMPENSATED.value,
            actor=actor,
            reason=reason,
            details={"compensating_line_id": compensating_line_id},
        )

    def settlement_history(self, clinic_id: str, business_date: date) -> list[AuditEntry]:
        return self.repo.get_by_resource(SETTLEMENT_RESOURCE, settlement_key(clinic_id, business_date))
