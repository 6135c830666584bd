"""Tests for worker background tasks and cron job registration."""

import sys
from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from clinic_ledger.core import database as db_module
from clinic_ledger.services.transaction_ledger import TransactionLedger
from clinic_ledger.worker import (
    WorkerSettings,
    bill_pending_treatments_task,
    render_settlement_report_task,
)


def _mock_weasyprint() -> MagicMock:
    mock_wp = MagicMock()
    mock_wp.HTML.return_value.write_pdf.return_value = b"%PDF-1.4 fake"
    return mock_wp


class TestWorkerSettings:
    def test_functions_registered(self):
        assert render_settlement_report_task in WorkerSettings.functions
        assert bill_pending_treatments_task in WorkerSettings.functions

    def test_hourly_billing_cron(self):
        assert len(WorkerSettings.cron_jobs) == 1
        job = WorkerSettings.cron_jobs[0]
        assert job.coroutine is bill_pending_treatments_task
        assert job.minute == {0}


class TestRenderSettlementReportTask:
    @pytest.mark.asyncio
    async def test_writes_pdf(self, db_session, tmp_path):
        ledger = TransactionLedger(db_session)
        transaction = ledger.append("C1", date(2024, 2, 10), "CASH", 300)
        ledger.verify(transaction.id, "manager")

        with (
            patch.dict(sys.modules, {"weasyprint": _mock_weasyprint()}),
            patch("clinic_ledger.worker.SessionLocal", db_module.SessionLocal),
            patch("clinic_ledger.worker.settings") as mock_settings,
        ):
            mock_settings.reports_path = str(tmp_path / "reports")
            path = await render_settlement_report_task({}, "C1", "2024-02-10")

        assert path.endswith("settlement_C1_2024-02-10.pdf")
        with open(path, "rb") as f:
            assert f.read() == b"%PDF-1.4 fake"

    @pytest.mark.asyncio
    async def test_render_failure_is_raised(self):
        with (
            patch("clinic_ledger.worker.SessionLocal", db_module.SessionLocal),
            patch(
                "clinic_ledger.worker.SettlementReportService.render_pdf",
                side_effect=RuntimeError("no fonts"),
            ),
            pytest.raises(RuntimeError, match="no fonts"),
        ):
            await render_settlement_report_task({}, "C1", "2024-02-10")


class TestBillPendingTreatmentsTask:
    @pytest.mark.asyncio
    async def test_bills_for_clinic(self):
        mock_run = MagicMock()
        mock_run.billed = [MagicMock(), MagicMock()]
        with (
            patch("clinic_ledger.worker.SessionLocal", db_module.SessionLocal),
            patch("clinic_ledger.worker.BillingService") as mock_service,
        ):
            mock_service.return_value.bill_pending.return_value = mock_run
            result = await bill_pending_treatments_task({}, "C1")

        assert result == 2
        mock_service.return_value.bill_pending.assert_called_once_with("C1")

    @pytest.mark.asyncio
    async def test_defaults_to_configured_clinic(self):
        with (
            patch("clinic_ledger.worker.SessionLocal", db_module.SessionLocal),
            patch("clinic_ledger.worker.BillingService") as mock_service,
            patch("clinic_ledger.worker.settings") as mock_settings,
        ):
            mock_settings.CLINIC_ID = "default-clinic"
            mock_service.return_value.bill_pending.return_value.billed = []
            result = await bill_pending_treatments_task({})

        assert result == 0
        mock_service.return_value.bill_pending.assert_called_once_with("default-clinic")
