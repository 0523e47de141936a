"""
Background Jobs Module

Handles scheduled tasks for:
- Picking event outbox delivery
- In-memory cache cleanup
"""

from app.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler
from app.jobs.picking_jobs import dispatch_picking_events, cleanup_expired_cache

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "dispatch_picking_events",
    "cleanup_expired_cache",
]
