"""SLA sweep scheduler bootstrap for rq-scheduler."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta, timezone

from redis import Redis
from rq_scheduler import Scheduler  # type: ignore[import-untyped]

from course_approval.core.config import settings
from course_approval.core.logging import configure_logging, get_logger
from course_approval.db.session import worker_session
from course_approval.services.approval_workflow import run_sla_sweep

logger = get_logger(__name__)


async def sweep_sla() -> dict[str, int]:
    async with worker_session() as session:
        return await run_sla_sweep(session)


def run_sla_sweep_job() -> None:
    """RQ entrypoint for the periodic SLA sweep."""
    logger.info("approval.sla_sweep.started")
    start = time.time()
    result = asyncio.run(sweep_sla())
    elapsed_ms = int((time.time() - start) * 1000)
    logger.info("approval.sla_sweep.finished", extra={"duration_ms": elapsed_ms, **result})


def bootstrap_sla_sweep_schedule(interval_seconds: int | None = None) -> None:
    """Register the recurring SLA sweep and keep it idempotent."""
    connection = Redis.from_url(settings.rq_redis_url)
    scheduler = Scheduler(queue_name=settings.rq_queue_name, connection=connection)

    for job in scheduler.get_jobs():
        if job.id == settings.sla_sweep_schedule_id:
            scheduler.cancel(job)

    effective_interval_seconds = (
        settings.sla_sweep_interval_seconds if interval_seconds is None else interval_seconds
    )

    scheduler.schedule(
        datetime.now(tz=timezone.utc) + timedelta(seconds=5),
        func=run_sla_sweep_job,
        interval=effective_interval_seconds,
        repeat=None,
        id=settings.sla_sweep_schedule_id,
        queue_name=settings.rq_queue_name,
    )
    logger.info(
        "approval.sla_sweep.scheduled",
        extra={"interval_seconds": effective_interval_seconds},
    )


def main() -> None:
    """Console entrypoint: register the SLA sweep with rq-scheduler."""
    configure_logging()
    bootstrap_sla_sweep_schedule()
