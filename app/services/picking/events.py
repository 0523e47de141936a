"""
Picking notifications through a transactional outbox.

State changes add an outbox row in the same transaction as the change
itself. The dispatch job later hands pending rows to the handlers
registered on the event bus, retrying failed deliveries with backoff.
"""
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.models.picking import PickingOutboxEvent
from app.schemas.picking import PickingSessionState

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, Dict[str, Any]], Awaitable[None]]


class PickingTopic(str, Enum):
    SESSION_CREATED = "session:created"
    ITEM_PICKED = "item:picked"
    ORDER_COMPLETED = "order:completed"
    SHORTAGE_REPORTED = "shortage:reported"
    SESSION_PAUSED = "session:paused"
    SESSION_RESUMED = "session:resumed"
    SESSION_COMPLETED = "session:completed"
    SESSION_CANCELLED = "session:cancelled"


def topic_matches(pattern: str, topic: str) -> bool:
    """
    Supported patterns:
      - exact topic ("item:picked")
      - "*" for everything
      - prefix wildcard ("session:*")
    """
    if not pattern:
        return False
    if pattern == "*" or pattern == topic:
        return True
    if pattern.endswith(":*"):
        return topic.startswith(pattern[:-1])
    return False


def outbox_event(
    topic: PickingTopic,
    session: PickingSessionState,
    **payload: Any,
) -> PickingOutboxEvent:
    """Build an outbox row for a session event; the caller adds it to the transaction."""
    body = {
        "session_id": str(session.id),
        "organization_id": str(session.organization_id),
        "warehouse_id": str(session.warehouse_id),
        "picker_id": str(session.picker_id),
        **payload,
    }
    return PickingOutboxEvent(
        topic=topic.value,
        session_id=session.id,
        payload=body,
        available_at=datetime.now(timezone.utc),
        attempt_count=0,
        delivered=False,
    )


class PickingEventBus:
    """Registry of in-process handlers for delivered outbox events."""

    def __init__(self):
        self._handlers: List[Tuple[str, EventHandler]] = []

    def subscribe(self, pattern: str, handler: EventHandler) -> None:
        self._handlers.append((pattern, handler))

    def unsubscribe(self, handler: EventHandler) -> None:
        self._handlers = [(p, h) for p, h in self._handlers if h is not handler]

    def handlers_for(self, topic: str) -> List[EventHandler]:
        return [handler for pattern, handler in self._handlers if topic_matches(pattern, topic)]


def next_attempt_at(attempt_count: int, max_backoff_seconds: int) -> datetime:
    # Exponential backoff, capped
    seconds = min(max_backoff_seconds, 2 ** min(attempt_count, 9))
    return datetime.now(timezone.utc) + timedelta(seconds=seconds)


class PickingEventDispatcher:
    """Delivers pending outbox rows to the bus handlers."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        bus: PickingEventBus,
        batch_size: Optional[int] = None,
        max_backoff_seconds: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self._bus = bus
        self._batch_size = batch_size or settings.PICKING_EVENT_BATCH_SIZE
        self._max_backoff = max_backoff_seconds or settings.PICKING_EVENT_MAX_BACKOFF_SECONDS

    async def _deliver(self, evt: PickingOutboxEvent) -> Optional[str]:
        for handler in self._bus.handlers_for(evt.topic):
            try:
                await handler(evt.topic, evt.payload or {})
            except Exception as e:
                logger.error(f"Handler failed for outbox event {evt.id} ({evt.topic}): {e}")
                return str(e)[:500]
        return None

    async def dispatch_pending(self) -> int:
        """Deliver one batch of due events. Returns the number delivered."""
        delivered = 0
        async with self._session_factory() as db:
            events = await self._due_events(db)
            for evt in events:
                error = await self._deliver(evt)
                now = datetime.now(timezone.utc)
                if error is None:
                    evt.delivered = True
                    evt.delivered_at = now
                    evt.last_error = None
                    delivered += 1
                else:
                    evt.attempt_count = (evt.attempt_count or 0) + 1
                    evt.last_error = error
                    evt.available_at = next_attempt_at(evt.attempt_count, self._max_backoff)
            await db.commit()

        if delivered:
            logger.info(f"Dispatched {delivered} picking events")
        return delivered

    async def _due_events(self, db: AsyncSession) -> List[PickingOutboxEvent]:
        stmt = (
            select(PickingOutboxEvent)
            .where(
                PickingOutboxEvent.delivered == False,  # noqa: E712
                PickingOutboxEvent.available_at <= datetime.now(timezone.utc),
            )
            .order_by(PickingOutboxEvent.created_at.asc())
            .limit(self._batch_size)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())


# Singleton event bus
_bus_instance: Optional[PickingEventBus] = None


def get_event_bus() -> PickingEventBus:
    """Get the process-wide event bus."""
    global _bus_instance

    if _bus_instance is None:
        _bus_instance = PickingEventBus()

    return _bus_instance
