"""Tests for SettlementEngine – live totals and the end-of-day close."""

from datetime import date
from unittest.mock import patch

import pytest

from clinic_ledger.core.errors import ConcurrencyError, StateError, ValidationError
from clinic_ledger.models.audit_entry import AuditEntry
from clinic_ledger.models.settlement import SettlementRecord
from clinic_ledger.repositories.settlement_repository import ChannelTotals, SettlementRepository
from clinic_ledger.services.settlement_engine import SettlementEngine, compute_totals
from clinic_ledger.services.transaction_ledger import TransactionLedger


@pytest.fixture
def ledger(db_session):
    return TransactionLedger(db_session)


@pytest.fixture
def engine(db_session):
    return SettlementEngine(db_session)


@pytest.fixture
def verified_day(ledger, clinic_id, business_date):
    """C1 on 2024-02-10: CASH 100 + CASH 200 + UPI 300, all verified."""
    for channel, amount in (("CASH", 100), ("CASH", 200), ("UPI", 300)):
        transaction = ledger.append(clinic_id, business_date, channel, amount)
        ledger.verify(transaction.id, "manager")
    return clinic_id, business_date


def _audit_events(db_session):  # type: ignore[no-untyped-def]
    return [
        e.event
        for e in db_session.query(AuditEntry).order_by(AuditEntry.created_at, AuditEntry.id)
    ]


class TestComputeTotals:
    def test_empty(self):
        assert compute_totals([]) == ChannelTotals(cash=0, upi=0, card=0)

    def test_per_channel(self, ledger, clinic_id, business_date):
        ledger.append(clinic_id, business_date, "CASH", 100)
        ledger.append(clinic_id, business_date, "CARD", 250)
        ledger.append(clinic_id, business_date, "CARD", 250)
        totals = compute_totals(ledger.list(clinic_id, business_date))
        assert totals == ChannelTotals(cash=100, upi=0, card=500)
        assert totals.total == 600


class TestStatus:
    def test_day_without_record_is_open(self, engine, clinic_id, business_date):
        view = engine.status(clinic_id, business_date)
        assert view.status.value == "OPEN"
        assert view.transaction_count == 0
        assert view.totals is None
        assert view.live_totals.total == 0

    def test_live_totals_while_open(self, engine, ledger, clinic_id, business_date):
        ledger.append(clinic_id, business_date, "UPI", 300)
        ledger.append(clinic_id, business_date, "CASH", 100)
        view = engine.status(clinic_id, business_date)
        assert view.status.value == "OPEN"
        assert view.totals is None
        assert view.live_totals == ChannelTotals(cash=100, upi=300, card=0)
        assert view.verified_count == 0
        assert view.unverified_count == 2
        assert engine.live_totals(clinic_id, business_date).total == 400


class TestClose:
    def test_end_to_end(self, db_session, engine, verified_day):
        clinic_id, business_date = verified_day

        view = engine.close(clinic_id, business_date, "manager")

        assert view.status.value == "CLOSED"
        assert view.totals == ChannelTotals(cash=300, upi=300, card=0)
        assert view.totals.total == 600
        assert view.closed_by == "manager"
        assert view.closed_at is not None

        record = db_session.query(SettlementRecord).one()
        assert record.status == "CLOSED"
        assert (record.total_cash, record.total_upi, record.total_card) == (300, 300, 0)
        assert record.total_revenue == 600

        entry = db_session.query(AuditEntry).one()
        assert entry.event == "closed"
        assert entry.actor == "manager"
        assert entry.before_state == "OPEN"
        assert entry.after_state == "CLOSED"
        assert entry.resource_id == "C1:2024-02-10"
        assert entry.details["totals"] == {"cash": 300, "upi": 300, "card": 0, "total": 600}

    def test_no_transactions(self, db_session, engine, clinic_id, business_date):
        with pytest.raises(StateError, match="no transactions"):
            engine.close(clinic_id, business_date, "manager")

        assert engine.status(clinic_id, business_date).status.value == "OPEN"
        assert _audit_events(db_session) == ["close_rejected"]

    def test_unverified_transactions(self, db_session, engine, ledger, clinic_id, business_date):
        verified = ledger.append(clinic_id, business_date, "CASH", 100)
        ledger.verify(verified.id, "manager")
        ledger.append(clinic_id, business_date, "UPI", 200)
        ledger.append(clinic_id, business_date, "CARD", 300)

        with pytest.raises(StateError, match="2 transactions unverified") as exc_info:
            engine.close(clinic_id, business_date, "manager")
        assert exc_info.value.identifier == "C1:2024-02-10"
        assert exc_info.value.state["status"] == "OPEN"

        record = db_session.query(SettlementRecord).one()
        assert record.status == "OPEN"
        assert record.total_cash is None
        assert record.total_revenue is None

        entry = db_session.query(AuditEntry).one()
        assert entry.event == "close_rejected"
        assert entry.reason == "2 transactions unverified"
        assert entry.before_state == entry.after_state == "OPEN"

    def test_close_after_verifying_the_rest(self, engine, ledger, clinic_id, business_date):
        transaction = ledger.append(clinic_id, business_date, "CASH", 100)
        with pytest.raises(StateError):
            engine.close(clinic_id, business_date, "manager")
        ledger.verify(transaction.id, "manager")
        assert engine.close(clinic_id, business_date, "manager").status.value == "CLOSED"

    def test_second_close_keeps_totals(self, db_session, engine, verified_day):
        clinic_id, business_date = verified_day
        engine.close(clinic_id, business_date, "manager")

        with pytest.raises(StateError, match="already closed"):
            engine.close(clinic_id, business_date, "other-manager")

        record = db_session.query(SettlementRecord).one()
        assert record.total_revenue == 600
        assert record.closed_by == "manager"
        assert _audit_events(db_session) == ["closed", "close_rejected"]

    def test_losing_race_retries_and_sees_closed(self, db_session, engine, verified_day):
        """A rival closes between our read and our compare-and-swap."""
        clinic_id, business_date = verified_day
        original = SettlementRepository.close_if_open
        calls = []

        def rival_closes_first(self, *args, **kwargs):  # type: ignore[no-untyped-def]
            calls.append(kwargs.get("closed_by"))
            if len(calls) == 1:
                original(self, *args, **{**kwargs, "closed_by": "rival"})
                self.db.commit()
            return original(self, *args, **kwargs)

        with (
            patch.object(SettlementRepository, "close_if_open", rival_closes_first),
            pytest.raises(StateError, match="already closed"),
        ):
            engine.close(clinic_id, business_date, "manager")

        record = db_session.query(SettlementRecord).one()
        assert record.closed_by == "rival"
        assert record.total_revenue == 600
        assert calls == ["manager"]

    def test_append_between_read_and_close_is_a_conflict(
        self, db_session, engine, ledger, verified_day
    ):
        """The counter guard rejects a close summed over a stale transaction set."""
        clinic_id, business_date = verified_day
        original = SettlementRepository.close_if_open
        appended = []

        def late_append(self, *args, **kwargs):  # type: ignore[no-untyped-def]
            if not appended:
                appended.append(ledger.append(clinic_id, business_date, "CARD", 999))
            return original(self, *args, **kwargs)

        with (
            patch.object(SettlementRepository, "close_if_open", late_append),
            pytest.raises(StateError, match="1 transactions unverified"),
        ):
            engine.close(clinic_id, business_date, "manager")

        record = db_session.query(SettlementRecord).one()
        assert record.status == "OPEN"
        assert record.total_revenue is None

    def test_repeated_conflict_surfaces(self, db_session, engine, verified_day):
        clinic_id, business_date = verified_day
        with (
            patch.object(SettlementRepository, "close_if_open", return_value=False) as mock_close,
            pytest.raises(ConcurrencyError),
        ):
            engine.close(clinic_id, business_date, "manager")
        assert mock_close.call_count == 2

        entries = db_session.query(AuditEntry).filter_by(event="close_rejected").all()
        assert len(entries) == 1
        assert entries[0].reason == "lost concurrent close"
        assert entries[0].actor == "manager"
        assert entries[0].before_state == "OPEN"
        assert entries[0].details["transaction_count"] == 3
        assert db_session.query(SettlementRecord).one().status == "OPEN"


class TestRecomputeTotals:
    def test_matches_frozen_totals(self, engine, verified_day):
        clinic_id, business_date = verified_day
        closed = engine.close(clinic_id, business_date, "manager")
        assert engine.recompute_totals(clinic_id, business_date) == closed.totals
        assert engine.recompute_totals(clinic_id, business_date) == closed.totals

    def test_detects_drift(self, db_session, engine, verified_day):
        clinic_id, business_date = verified_day
        engine.close(clinic_id, business_date, "manager")
        db_session.query(SettlementRecord).update({"total_cash": 1})
        db_session.commit()

        with pytest.raises(StateError, match="do not match"):
            engine.recompute_totals(clinic_id, business_date)

    def test_open_day(self, engine, ledger, clinic_id, business_date):
        ledger.append(clinic_id, business_date, "CASH", 100)
        assert engine.recompute_totals(clinic_id, business_date).total == 100


class TestRecordCorrection:
    def test_correction_on_closed_day(self, db_session, engine, verified_day):
        clinic_id, business_date = verified_day
        engine.close(clinic_id, business_date, "manager")

        entry = engine.record_correction(
            clinic_id, business_date, "admin", "CASH", -50, reason="miscounted change"
        )

        assert entry.event == "correction"
        assert entry.reason == "miscounted change"
        assert entry.details == {"channel": "CASH", "amount": -50}
        record = db_session.query(SettlementRecord).one()
        assert record.status == "CLOSED"
        assert record.total_cash == 300
        assert record.total_revenue == 600

    def test_rejected_on_open_day(self, engine, ledger, clinic_id, business_date):
        ledger.append(clinic_id, business_date, "CASH", 100)
        with pytest.raises(StateError, match="not closed"):
            engine.record_correction(clinic_id, business_date, "admin", "CASH", 10, reason="x")

    def test_rejected_without_record(self, engine):
        with pytest.raises(StateError):
            engine.record_correction("C1", date(2024, 1, 1), "admin", "CASH", 10, reason="x")

    def test_zero_amount(self, engine, verified_day):
        clinic_id, business_date = verified_day
        engine.close(clinic_id, business_date, "manager")
        with pytest.raises(ValidationError):
            engine.record_correction(clinic_id, business_date, "admin", "CASH", 0, reason="x")

    def test_blank_reason(self, engine, verified_day):
        clinic_id, business_date = verified_day
        engine.close(clinic_id, business_date, "manager")
        with pytest.raises(ValidationError):
            engine.record_correction(clinic_id, business_date, "admin", "UPI", 10, reason="  ")
