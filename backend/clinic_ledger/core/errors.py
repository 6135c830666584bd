"""Error taxonomy for billing and settlement operations.

All errors derive from ``ValueError`` so callers that already treat
``ValueError`` as a rejected business operation keep working. Each error
carries the offending identifier and the state observed when it was raised,
so the HTTP layer can report *why* an action was blocked.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LedgerError(ValueError):
    """Base class for billing and settlement failures."""

    def __init__(
        self,
        message: str,
        *,
        identifier: str | None = None,
        state: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.identifier = identifier
        self.state = state or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "detail": self.message,
            "error": type(self).__name__,
            "identifier": self.identifier,
            "state": self.state,
        }


class ValidationError(LedgerError):
    """Input cannot be billed: unknown procedure, bad tooth id, ambiguous quantity."""


class StateError(LedgerError):
    """Operation is not allowed in the current state of the record."""


class ConcurrencyError(LedgerError):
    """A conditional write lost a race against a concurrent writer."""


def retry_on_conflict(db: Session, operation: Callable[[], T]) -> T:
    """Run ``operation``, retrying exactly once if it loses a write race.

    The session is rolled back between attempts so the retry re-reads
    committed state. A second ``ConcurrencyError`` is propagated.
    """
    try:
        return operation()
    except ConcurrencyError as exc:
        db.rollback()
        logger.warning("Write conflict on %s, retrying once: %s", exc.identifier, exc.message)
    try:
        return operation()
    except ConcurrencyError:
        db.rollback()
        raise
