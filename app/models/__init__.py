# Models module - importing registers every table on Base.metadata
from app.models.order import Order, OrderItem, OrderStatus, OrderPriority
from app.models.inventory import InventoryLocation
from app.models.picking import (
    PickingSession,
    PickingSessionOrder,
    PickingListItem,
    PickingItemAllocation,
    PickingError,
    PickingEvent,
    InventoryShortage,
    PickingOutboxEvent,
    PickingSessionStatus,
    PickingItemStatus,
    PickingErrorType,
)

__all__ = [
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderPriority",
    "InventoryLocation",
    "PickingSession",
    "PickingSessionOrder",
    "PickingListItem",
    "PickingItemAllocation",
    "PickingError",
    "PickingEvent",
    "InventoryShortage",
    "PickingOutboxEvent",
    "PickingSessionStatus",
    "PickingItemStatus",
    "PickingErrorType",
]
