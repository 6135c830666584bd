import logging
from datetime import date
from typing import Any

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from arq.jobs import Job

from clinic_ledger.core.config import settings

logger = logging.getLogger(__name__)

redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)


async def get_redis_pool() -> ArqRedis:
    return await create_pool(redis_settings)


async def enqueue_task(task_name: str, *args: Any, **kwargs: Any) -> Job | None:
    """Enqueue a job on the ledger worker queue.

    Returns None when arq already holds a job with the same ``_job_id``.
    """
    pool = await get_redis_pool()
    try:
        job = await pool.enqueue_job(task_name, *args, **kwargs)
        if job is None:
            logger.info("Job %s already queued, skipping", kwargs.get("_job_id", task_name))
        return job
    finally:
        await pool.close()


def settlement_report_job_id(clinic_id: str, business_date: date) -> str:
    return f"settlement-report:{clinic_id}:{business_date.isoformat()}"


async def enqueue_settlement_report(clinic_id: str, business_date: date) -> Job | None:
    """Enqueue rendering of the report for a closed day, at most once per day."""
    return await enqueue_task(
        "render_settlement_report_task",
        clinic_id,
        business_date.isoformat(),
        _job_id=settlement_report_job_id(clinic_id, business_date),
    )


async def enqueue_bill_pending(clinic_id: str) -> Job | None:
    return await enqueue_task("bill_pending_treatments_task", clinic_id)
