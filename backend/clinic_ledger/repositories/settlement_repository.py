"""Settlement record repository.

State changes go through conditional UPDATE statements keyed on
(clinic_id, business_date, status) so that the database, not the process,
decides which of two concurrent writers wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from clinic_ledger.models.settlement import SettlementRecord, SettlementStatus


@dataclass(frozen=True)
class ChannelTotals:
    cash: int
    upi: int
    card: int

    @property
    def total(self) -> int:
        return self.cash + self.upi + self.card


class SettlementRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, clinic_id: str, business_date: date) -> SettlementRecord | None:
        return (
            self.db.query(SettlementRecord)
            .filter(
                SettlementRecord.clinic_id == clinic_id,
                SettlementRecord.business_date == business_date,
            )
            .first()
        )

    def get_all(
        self,
        clinic_id: str,
        status: SettlementStatus | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[SettlementRecord]:
        query = self.db.query(SettlementRecord).filter(SettlementRecord.clinic_id == clinic_id)
        if status is not None:
            query = query.filter(SettlementRecord.status == status.value)
        return (
            query.order_by(SettlementRecord.business_date.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_or_add(self, clinic_id: str, business_date: date) -> SettlementRecord:
        """Return the day's record, staging a new OPEN one if none exists.

        A concurrent insert of the same day surfaces as ``IntegrityError`` on
        flush; callers treat that as a lost race.
        """
        record = self.get(clinic_id, business_date)
        if record is not None:
            return record
        record = SettlementRecord(
            clinic_id=clinic_id,
            business_date=business_date,
            status=SettlementStatus.OPEN.value,
            transaction_count=0,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def bump_transaction_count(self, clinic_id: str, business_date: date) -> bool:
        """Increment the ledger version while the day is OPEN. Does not commit."""
        result = self.db.execute(
            update(SettlementRecord)
            .where(
                SettlementRecord.clinic_id == clinic_id,
                SettlementRecord.business_date == business_date,
                SettlementRecord.status == SettlementStatus.OPEN.value,
            )
            .values(transaction_count=SettlementRecord.transaction_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]

    def close_if_open(
        self,
        clinic_id: str,
        business_date: date,
        expected_count: int,
        totals: ChannelTotals,
        closed_by: str,
        closed_at: datetime,
    ) -> bool:
        """Compare-and-swap OPEN -> CLOSED with frozen totals. Does not commit.

        Succeeds only if the day is still OPEN and no transaction was appended
        after the totals were summed.
        """
        result = self.db.execute(
            update(SettlementRecord)
            .where(
                SettlementRecord.clinic_id == clinic_id,
                SettlementRecord.business_date == business_date,
                SettlementRecord.status == SettlementStatus.OPEN.value,
                SettlementRecord.transaction_count == expected_count,
            )
            .values(
                status=SettlementStatus.CLOSED.value,
                total_cash=totals.cash,
                total_upi=totals.upi,
                total_card=totals.card,
                total_revenue=totals.total,
                closed_by=closed_by,
                closed_at=closed_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]
