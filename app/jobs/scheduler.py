"""
APScheduler Configuration

Background jobs for the picking session engine:
- dispatch_picking_events: deliver pending outbox rows to event bus handlers
- cleanup_expired_cache: purge expired entries of the in-memory cache backend
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from app.config import settings

logger = logging.getLogger(__name__)

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Only one instance of each job at a time
    'misfire_grace_time': 60,
}

# Create scheduler
scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone=settings.SCHEDULER_TIMEZONE
)


def start_scheduler():
    """Start the background job scheduler."""
    if not scheduler.running:
        from app.jobs.picking_jobs import dispatch_picking_events, cleanup_expired_cache

        # Outbox delivery, a few seconds behind the write
        scheduler.add_job(
            dispatch_picking_events,
            'interval',
            seconds=settings.PICKING_EVENT_DISPATCH_INTERVAL_SECONDS,
            id='dispatch_picking_events',
            name='Dispatch Picking Events',
            replace_existing=True,
        )

        scheduler.add_job(
            cleanup_expired_cache,
            'interval',
            minutes=10,
            id='cleanup_expired_cache',
            name='Cleanup Expired Cache',
            replace_existing=True,
        )

        scheduler.start()
        logger.info("Background job scheduler started")

        for job in scheduler.get_jobs():
            logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")

