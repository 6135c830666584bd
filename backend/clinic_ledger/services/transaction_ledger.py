"""Front-desk payment ledger per (clinic, business date)."""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_ledger.core.errors import (
    ConcurrencyError,
    StateError,
    ValidationError,
    retry_on_conflict,
)
from clinic_ledger.models.settlement import SettlementStatus, settlement_key
from clinic_ledger.models.shared import utc_now
from clinic_ledger.models.transaction import PaymentChannel, Transaction
from clinic_ledger.repositories.settlement_repository import SettlementRepository
from clinic_ledger.repositories.transaction_repository import TransactionRepository

logger = logging.getLogger(__name__)


def parse_channel(channel: str | PaymentChannel) -> PaymentChannel:
    try:
        return PaymentChannel(channel)
    except ValueError:
        raise ValidationError(f"unknown payment channel: {channel}", identifier=str(channel)) from None


def validate_amount(amount: object) -> int:
    """Amounts are positive integers in minor currency units."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError(
            f"amount must be a positive integer of minor units, got {amount!r}",
            identifier=repr(amount),
        )
    return amount


class TransactionLedger:
    def __init__(self, db: Session):
        self.db = db
        self.repo = TransactionRepository(db)
        self.settlements = SettlementRepository(db)

    def append(
        self,
        clinic_id: str,
        business_date: date,
        channel: str | PaymentChannel,
        amount: int,
        recorded_by: str | None = None,
        reference: str | None = None,
    ) -> Transaction:
        """Record a payment on an OPEN day, opening the day on its first payment."""
        payment_channel = parse_channel(channel)
        validate_amount(amount)
        key = settlement_key(clinic_id, business_date)

        def attempt() -> Transaction:
            try:
                self.settlements.get_or_add(clinic_id, business_date)
            except IntegrityError:
                raise ConcurrencyError(
                    f"settlement {key} was opened concurrently", identifier=key
                ) from None
            if not self.settlements.bump_transaction_count(clinic_id, business_date):
                self.db.rollback()
                raise StateError(
                    f"settlement {key} is closed",
                    identifier=key,
                    state={"status": SettlementStatus.CLOSED.value},
                )
            transaction = self.repo.add(
                clinic_id=clinic_id,
                business_date=business_date,
                channel=payment_channel,
                amount=amount,
                reference=reference,
                recorded_by=recorded_by,
            )
            self.db.commit()
            self.db.refresh(transaction)
            logger.info(
                "Recorded %s payment %s of %d on %s",
                payment_channel.value,
                transaction.id,
                amount,
                key,
            )
            return transaction

        return retry_on_conflict(self.db, attempt)

    def list(self, clinic_id: str, business_date: date) -> list[Transaction]:
        return self.repo.list_for_day(clinic_id, business_date)

    def get(self, transaction_id: UUID) -> Transaction:
        transaction = self.repo.get_by_id(transaction_id)
        if transaction is None:
            raise ValidationError(
                f"transaction {transaction_id} not found", identifier=str(transaction_id)
            )
        return transaction

    def verify(self, transaction_id: UUID, actor: str) -> Transaction:
        """Mark a transaction verified. Verifying twice is a no-op."""
        transaction = self.get(transaction_id)
        if transaction.is_verified:
            return transaction
        if self.repo.mark_verified(transaction_id, actor, utc_now()):
            self.db.commit()
            logger.info("Transaction %s verified by %s", transaction_id, actor)
        else:
            self.db.rollback()
        self.db.refresh(transaction)
        return transaction
