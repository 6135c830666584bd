"""Repository for AuditEntry. Exposes inserts and reads only."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from clinic_ledger.models.audit_entry import AuditEntry


class AuditEntryRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(
        self,
        *,
        clinic_id: str,
        resource_type: str,
        resource_id: str,
        event: str,
        actor: str,
        before_state: str | None = None,
        after_state: str | None = None,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditEntry:
        """Stage an entry in the current transaction. Caller commits."""
        entry = AuditEntry(
            clinic_id=clinic_id,
            resource_type=resource_type,
            resource_id=resource_id,
            event=event,
            actor=actor,
            before_state=before_state,
            after_state=after_state,
            reason=reason,
            details=details or {},
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def get_by_resource(
        self,
        resource_type: str,
        resource_id: str,
        skip: int = 0,
        limit: int = 100,
    ) -> list[AuditEntry]:
        return (
            self.db.query(AuditEntry)
            .filter(
                AuditEntry.resource_type == resource_type,
                AuditEntry.resource_id == resource_id,
            )
            .order_by(AuditEntry.created_at.asc(), AuditEntry.id.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_all(
        self,
        clinic_id: str,
        skip: int = 0,
        limit: int = 100,
        resource_type: str | None = None,
        event: str | None = None,
        actor: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[AuditEntry]:
        query = self.db.query(AuditEntry).filter(AuditEntry.clinic_id == clinic_id)
        if resource_type is not None:
            query = query.filter(AuditEntry.resource_type == resource_type)
        if event is not None:
            query = query.filter(AuditEntry.event == event)
        if actor is not None:
            query = query.filter(AuditEntry.actor == actor)
        if start_date is not None:
            query = query.filter(AuditEntry.created_at >= start_date)
        if end_date is not None:
            query = query.filter(AuditEntry.created_at <= end_date)
        return (
            query.order_by(AuditEntry.created_at.desc(), AuditEntry.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
