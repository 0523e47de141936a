"""
Picking Session Services

Scan-validated warehouse picking:
- PickingSessionService: session lifecycle, scan validation, shortages
- PickingSessionStore: live sessions, distributed cache and durable tables
- PickingEventBus / PickingEventDispatcher: outbox delivery of picking events
- PickingAnalyticsService: picker and warehouse statistics
"""

from app.services.picking.analytics import PickingAnalyticsService
from app.services.picking.events import PickingEventBus, PickingEventDispatcher, PickingTopic, get_event_bus
from app.services.picking.location_lookup import InventoryLocationLookup, SqlInventoryLocationLookup
from app.services.picking.order_selector import OrderSelectionFilters
from app.services.picking.session_service import PickingSessionService, get_picking_service
from app.services.picking.session_store import PickingSessionStore
from app.services.picking.strategies import PICKING_STRATEGIES, resolve_strategy, list_strategies

__all__ = [
    "PickingAnalyticsService",
    "PickingEventBus",
    "PickingEventDispatcher",
    "PickingTopic",
    "get_event_bus",
    "InventoryLocationLookup",
    "SqlInventoryLocationLookup",
    "OrderSelectionFilters",
    "PickingSessionService",
    "get_picking_service",
    "PickingSessionStore",
    "PICKING_STRATEGIES",
    "resolve_strategy",
    "list_strategies",
]
