"""Transaction repository for data access."""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from clinic_ledger.models.transaction import PaymentChannel, Transaction


class TransactionRepository:
    """Repository for Transaction model."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, transaction_id: UUID) -> Transaction | None:
        return self.db.query(Transaction).filter(Transaction.id == transaction_id).first()

    def list_for_day(self, clinic_id: str, business_date: date) -> list[Transaction]:
        """All transactions of a business day, in recording order."""
        return (
            self.db.query(Transaction)
            .filter(
                Transaction.clinic_id == clinic_id,
                Transaction.business_date == business_date,
            )
            .order_by(Transaction.created_at.asc(), Transaction.id.asc())
            .all()
        )

    def add(
        self,
        clinic_id: str,
        business_date: date,
        channel: PaymentChannel,
        amount: int,
        reference: str | None = None,
        recorded_by: str | None = None,
    ) -> Transaction:
        """Stage a transaction in the current unit of work. Caller commits."""
        transaction = Transaction(
            clinic_id=clinic_id,
            business_date=business_date,
            channel=channel.value,
            amount=amount,
            reference=reference,
            recorded_by=recorded_by,
            is_verified=False,
        )
        self.db.add(transaction)
        self.db.flush()
        return transaction

    def mark_verified(self, transaction_id: UUID, actor: str, verified_at: datetime) -> bool:
        """Set the verification flag once. Returns False if it was already set."""
        result = self.db.execute(
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.is_verified.is_(False))
            .values(is_verified=True, verified_by=actor, verified_at=verified_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]
