"""APScheduler setup and job registration."""

from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from app.config import settings
from app.container import ServiceContainer
from app.jobs.match_request_expiry import match_request_expiry
from app.jobs.notification_outbox import notification_outbox_flush

scheduler = AsyncIOScheduler(timezone=settings.timezone)


JOB_IDS = ("match_request_expiry", "notification_outbox_flush")


def _drop_existing(job_id: str) -> None:
    # A stopped scheduler keeps duplicate pending jobs even with replace_existing.
    if scheduler.get_job(job_id) is not None:
        scheduler.remove_job(job_id)


def register_jobs(container: ServiceContainer) -> None:
    """Register all periodic jobs, rebinding any earlier registration to ``container``."""
    config = container.config
    for job_id in JOB_IDS:
        _drop_existing(job_id)

    scheduler.add_job(
        match_request_expiry,
        CronTrigger(
            minute=f"*/{max(1, config.match_expiry_sweep_minutes)}",
            timezone=config.timezone,
        ),
        args=[container],
        id="match_request_expiry",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.add_job(
        notification_outbox_flush,
        IntervalTrigger(
            seconds=max(1, config.outbox_flush_interval_seconds),
            timezone=config.timezone,
        ),
        args=[container],
        id="notification_outbox_flush",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
