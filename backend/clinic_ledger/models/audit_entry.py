"""AuditEntry model - append-only trail of settlement transitions and corrections."""

from enum import Enum
from typing import Any

from sqlalchemy import JSON, Column, String, Text, event, func

from clinic_ledger.core.database import Base
from clinic_ledger.core.errors import StateError
from clinic_ledger.models.shared import UTCDateTime, UUIDType, generate_uuid, utc_now


class AuditEvent(str, Enum):
    """Audit event enum."""

    CLOSED = "closed"
    CLOSE_REJECTED = "close_rejected"
    CORRECTION = "correction"
    LINE_COMPENSATED = "line_compensated"


class AuditEntry(Base):
    """AuditEntry model - one recorded transition attempt or correction."""

    __tablename__ = "audit_entries"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    clinic_id = Column(String(100), nullable=False, index=True)
    resource_type = Column(String(50), nullable=False, index=True)
    resource_id = Column(String(150), nullable=False, index=True)
    event = Column(String(50), nullable=False, index=True)
    actor = Column(String(255), nullable=False)
    before_state = Column(String(20), nullable=True)
    after_state = Column(String(20), nullable=True)
    reason = Column(Text, nullable=True)
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(UTCDateTime, default=utc_now, server_default=func.now(), index=True)


def _reject_mutation(mapper: Any, connection: Any, target: AuditEntry) -> None:
    raise StateError(
        "audit entries are append-only",
        identifier=str(target.id),
        state={"event": target.event},
    )


event.listen(AuditEntry, "before_update", _reject_mutation)
event.listen(AuditEntry, "before_delete", _reject_mutation)
