"""
Picking Background Jobs

Outbox delivery for picking events and housekeeping of the in-memory cache.
"""

import logging
from typing import Dict, Any

from app.database import async_session_factory
from app.services.cache_service import get_cache, InMemoryCache
from app.services.picking.events import PickingEventDispatcher, get_event_bus

logger = logging.getLogger(__name__)


async def dispatch_picking_events() -> Dict[str, Any]:
    """
    Deliver pending picking outbox events.

    Failed deliveries stay in the outbox and are retried with backoff.
    """
    dispatcher = PickingEventDispatcher(async_session_factory, get_event_bus())
    try:
        delivered = await dispatcher.dispatch_pending()
        return {"status": "success", "delivered": delivered}
    except Exception as e:
        logger.error(f"Picking event dispatch failed: {e}")
        return {"status": "error", "error": str(e)}


async def cleanup_expired_cache() -> Dict[str, Any]:
    """Purge expired entries when the in-memory backend is in use (Redis expires its own)."""
    backend = get_cache().backend
    if not isinstance(backend, InMemoryCache):
        return {"status": "skipped", "removed": 0}

    removed = await backend.cleanup_expired()
    if removed:
        logger.info(f"Removed {removed} expired cache entries")
    return {"status": "success", "removed": removed}
