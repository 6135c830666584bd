"""End-of-day settlement: live totals and the one-way OPEN -> CLOSED seal.

A day is CLOSED by a compare-and-swap on its settlement record that only
matches while the record is OPEN and its transaction counter equals the
number of transactions the totals were summed from. The audit entry for the
close is written in the same database transaction. Rejected attempts leave the
record untouched and are audited on their own.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_ledger.core.errors import (
    ConcurrencyError,
    StateError,
    ValidationError,
    retry_on_conflict,
)
from clinic_ledger.models.audit_entry import AuditEntry
from clinic_ledger.models.settlement import SettlementRecord, SettlementStatus, settlement_key
from clinic_ledger.models.shared import utc_now
from clinic_ledger.models.transaction import PaymentChannel, Transaction
from clinic_ledger.repositories.settlement_repository import ChannelTotals, SettlementRepository
from clinic_ledger.repositories.transaction_repository import TransactionRepository
from clinic_ledger.services.audit_service import AuditService
from clinic_ledger.services.transaction_ledger import parse_channel

logger = logging.getLogger(__name__)


def compute_totals(transactions: Iterable[Transaction]) -> ChannelTotals:
    """Per-channel sums of a transaction set."""
    sums = {channel: 0 for channel in PaymentChannel}
    for transaction in transactions:
        sums[PaymentChannel(transaction.channel)] += int(transaction.amount)
    return ChannelTotals(
        cash=sums[PaymentChannel.CASH],
        upi=sums[PaymentChannel.UPI],
        card=sums[PaymentChannel.CARD],
    )


def frozen_totals(record: SettlementRecord | None) -> ChannelTotals | None:
    if record is None or record.status != SettlementStatus.CLOSED.value:
        return None
    return ChannelTotals(
        cash=int(record.total_cash or 0),
        upi=int(record.total_upi or 0),
        card=int(record.total_card or 0),
    )


@dataclass(frozen=True)
class SettlementView:
    """Settlement state of one clinic day, with live and (once closed) frozen totals."""

    clinic_id: str
    business_date: date
    status: SettlementStatus
    transaction_count: int
    verified_count: int
    totals: ChannelTotals | None
    live_totals: ChannelTotals
    closed_by: str | None = None
    closed_at: datetime | None = None

    @property
    def unverified_count(self) -> int:
        return self.transaction_count - self.verified_count

    @property
    def key(self) -> str:
        return settlement_key(self.clinic_id, self.business_date)


class SettlementEngine:
    def __init__(self, db: Session):
        self.db = db
        self.repo = SettlementRepository(db)
        self.transactions = TransactionRepository(db)
        self.audit = AuditService(db)

    def status(self, clinic_id: str, business_date: date) -> SettlementView:
        """Current state of the day; a day with no record yet is implicitly OPEN."""
        record = self.repo.get(clinic_id, business_date)
        transactions = self.transactions.list_for_day(clinic_id, business_date)
        return SettlementView(
            clinic_id=clinic_id,
            business_date=business_date,
            status=SettlementStatus(record.status) if record else SettlementStatus.OPEN,
            transaction_count=len(transactions),
            verified_count=sum(1 for t in transactions if t.is_verified),
            totals=frozen_totals(record),
            live_totals=compute_totals(transactions),
            closed_by=record.closed_by if record else None,
            closed_at=record.closed_at if record else None,
        )

    def live_totals(self, clinic_id: str, business_date: date) -> ChannelTotals:
        """Non-authoritative projection of the day's transactions."""
        return compute_totals(self.transactions.list_for_day(clinic_id, business_date))

    def recompute_totals(self, clinic_id: str, business_date: date) -> ChannelTotals:
        """Recompute totals from the stored set and check them against the frozen figures."""
        record = self.repo.get(clinic_id, business_date)
        totals = self.live_totals(clinic_id, business_date)
        frozen = frozen_totals(record)
        if frozen is not None and frozen != totals:
            key = settlement_key(clinic_id, business_date)
            logger.error("Settlement %s totals drifted: frozen %s, recomputed %s", key, frozen, totals)
            raise StateError(
                f"settlement {key} totals do not match its transactions",
                identifier=key,
                state={"frozen": asdict(frozen), "recomputed": asdict(totals)},
            )
        return totals

    def close(self, clinic_id: str, business_date: date, actor: str) -> SettlementView:
        """Seal a clinic day. Irreversible.

        Fails with ``StateError`` when the day has no transactions, has
        unverified transactions or is already CLOSED; each rejection is audited
        and leaves the record as it was. A lost race is retried once; losing
        again is audited and raises ``ConcurrencyError``.
        """
        key = settlement_key(clinic_id, business_date)

        def reject(reason: str, current: str, details: dict[str, object]) -> StateError:
            self.db.rollback()
            self.audit.log_close_rejected(
                clinic_id, business_date, actor, current_state=current, reason=reason, details=details
            )
            self.db.commit()
            logger.warning("Rejected close of %s by %s: %s", key, actor, reason)
            return StateError(reason, identifier=key, state={"status": current, **details})

        def attempt() -> SettlementView:
            transactions = self.transactions.list_for_day(clinic_id, business_date)
            record = self.repo.get(clinic_id, business_date)
            current = record.status if record is not None else SettlementStatus.OPEN.value

            if not transactions:
                raise reject("no transactions", current, {"transaction_count": 0})
            unverified = [t for t in transactions if not t.is_verified]
            if unverified:
                raise reject(
                    f"{len(unverified)} transactions unverified",
                    current,
                    {
                        "transaction_count": len(transactions),
                        "unverified_ids": [str(t.id) for t in unverified],
                    },
                )
            if current == SettlementStatus.CLOSED.value:
                raise reject("already closed", current, {"transaction_count": len(transactions)})

            totals = compute_totals(transactions)
            if record is None:
                try:
                    self.repo.get_or_add(clinic_id, business_date)
                except IntegrityError:
                    raise ConcurrencyError(
                        f"settlement {key} was opened concurrently", identifier=key
                    ) from None

            closed_at = utc_now()
            if not self.repo.close_if_open(
                clinic_id,
                business_date,
                expected_count=len(transactions),
                totals=totals,
                closed_by=actor,
                closed_at=closed_at,
            ):
                raise ConcurrencyError(
                    f"settlement {key} changed while closing",
                    identifier=key,
                    state={"status": current, "transaction_count": len(transactions)},
                )
            self.audit.log_close(
                clinic_id,
                business_date,
                actor,
                totals={
                    "cash": totals.cash,
                    "upi": totals.upi,
                    "card": totals.card,
                    "total": totals.total,
                },
                transaction_count=len(transactions),
            )
            self.db.commit()
            logger.info(
                "Closed settlement %s by %s: cash=%d upi=%d card=%d total=%d",
                key,
                actor,
                totals.cash,
                totals.upi,
                totals.card,
                totals.total,
            )
            return self.status(clinic_id, business_date)

        try:
            return retry_on_conflict(self.db, attempt)
        except ConcurrencyError as exc:
            record = self.repo.get(clinic_id, business_date)
            current = record.status if record is not None else SettlementStatus.OPEN.value
            self.audit.log_close_rejected(
                clinic_id,
                business_date,
                actor,
                current_state=current,
                reason="lost concurrent close",
                details={**exc.state, "error": exc.message},
            )
            self.db.commit()
            logger.warning("Rejected close of %s by %s: lost concurrent close", key, actor)
            raise

    def record_correction(
        self,
        clinic_id: str,
        business_date: date,
        actor: str,
        channel: str | PaymentChannel,
        amount: int,
        reason: str,
    ) -> AuditEntry:
        """Record an administrative correction against a CLOSED day.

        The correction is an audit entry only: the day stays CLOSED and its
        frozen totals do not change. ``amount`` is signed.
        """
        key = settlement_key(clinic_id, business_date)
        payment_channel = parse_channel(channel)
        if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
            raise ValidationError(
                f"correction amount must be a non-zero integer, got {amount!r}", identifier=key
            )
        if not reason.strip():
            raise ValidationError("a correction needs a reason", identifier=key)

        record = self.repo.get(clinic_id, business_date)
        if record is None or record.status != SettlementStatus.CLOSED.value:
            raise StateError(
                f"settlement {key} is not closed; adjust its transactions instead",
                identifier=key,
                state={"status": record.status if record else SettlementStatus.OPEN.value},
            )
        entry = self.audit.log_correction(
            clinic_id, business_date, actor, payment_channel.value, amount, reason
        )
        self.db.commit()
        self.db.refresh(entry)
        logger.info("Recorded correction of %d %s on %s by %s", amount, payment_channel.value, key, actor)
        return entry
