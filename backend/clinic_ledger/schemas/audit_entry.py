"""Pydantic schemas for AuditEntry."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class AuditEntryResponse(BaseModel):
    id: UUID
    clinic_id: str
    resource_type: str
    resource_id: str
    event: str
    actor: str
    before_state: str | None
    after_state: str | None
    reason: str | None
    details: dict[str, Any]

    model_config = {"from_attributes": True}

    created_at: datetime
