import logging
from datetime import date
from pathlib import Path
from typing import Any

from arq import cron

from clinic_ledger.core.config import settings
from clinic_ledger.core.database import SessionLocal
from clinic_ledger.repositories.transaction_repository import TransactionRepository
from clinic_ledger.services.billing_service import BillingService
from clinic_ledger.services.report_service import SettlementReportService
from clinic_ledger.services.settlement_engine import SettlementEngine
from clinic_ledger.tasks import redis_settings

logger = logging.getLogger(__name__)


async def render_settlement_report_task(
    ctx: dict[str, Any], clinic_id: str, business_date: str
) -> str:
    """Background task: render a day's settlement report to a PDF under the reports directory.

    Runs after a successful close. Rendering never alters the settlement.
    """
    db = SessionLocal()
    try:
        day = date.fromisoformat(business_date)
        view = SettlementEngine(db).status(clinic_id, day)
        transactions = TransactionRepository(db).list_for_day(clinic_id, day)

        service = SettlementReportService()
        pdf_bytes = service.render_pdf(view, transactions)

        output_dir = Path(settings.reports_path)
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / service.filename(view)
        path.write_bytes(pdf_bytes)
        logger.info("Rendered settlement report for %s to %s", view.key, path)
        return str(path)
    except Exception:
        logger.exception("Failed to render settlement report for %s on %s", clinic_id, business_date)
        raise
    finally:
        db.close()


async def bill_pending_treatments_task(ctx: dict[str, Any], clinic_id: str | None = None) -> int:
    """Background task: bill completed treatments that are not billed yet.

    Runs hourly for the default clinic.
    """
    db = SessionLocal()
    try:
        run = BillingService(db).bill_pending(clinic_id or settings.CLINIC_ID)
        if run.billed:
            logger.info("Billed %d pending treatments", len(run.billed))
        return len(run.billed)
    finally:
        db.close()


class WorkerSettings:
    functions = [
        render_settlement_report_task,
        bill_pending_treatments_task,
    ]
    cron_jobs = [
        cron(bill_pending_treatments_task, minute={0}),  # hourly
    ]
    redis_settings = redis_settings
