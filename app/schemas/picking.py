"""Pydantic schemas for picking sessions.

The `*State` models are the live, cacheable form of a session. They are what
the session service mutates, what the distributed cache stores as JSON and
what the durable store maps onto the normalized picking tables.
"""
from datetime import datetime, date
from typing import Optional, List
import math
import uuid

from pydantic import BaseModel, Field, model_validator

from app.models.order import OrderPriority
from app.models.picking import (
    PickingSessionStatus,
    PickingItemStatus,
    ACTIVE_SESSION_STATUSES,
)
from app.schemas.base import BaseCreateSchema, BaseResponseSchema

UNASSIGNED_LOCATION = "UNASSIGNED"


def progress_percentage(picked: int, total: int) -> int:
    """Whole percentage, halves rounded up."""
    if total <= 0:
        return 0
    return math.floor(picked * 100 / total + 0.5)


# ==================== SESSION STATE ====================

class ItemLocation(BaseModel):
    """Resolved warehouse slot for a picking list item."""
    zone: Optional[str] = None
    aisle: Optional[str] = None
    rack: Optional[str] = None
    shelf: Optional[str] = None
    bin: Optional[str] = None
    formatted: str = UNASSIGNED_LOCATION
    available_quantity: Optional[int] = None

    @property
    def is_assigned(self) -> bool:
        return self.formatted != UNASSIGNED_LOCATION


class OrderContribution(BaseModel):
    """Share of an aggregated item owed to one order."""
    order_id: uuid.UUID
    order_number: str
    quantity: int
    picked_quantity: int = 0

    @property
    def remaining_quantity(self) -> int:
        return max(0, self.quantity - self.picked_quantity)

    @property
    def is_covered(self) -> bool:
        return self.picked_quantity >= self.quantity


class PickingListItemState(BaseModel):
    """One SKU on the route, aggregated across the session's orders."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    sku: str
    name: Optional[str] = None
    barcode: Optional[str] = None
    quantity: int
    picked_quantity: int = 0
    status: str = PickingItemStatus.PENDING.value
    sequence: int = 0
    location: ItemLocation = Field(default_factory=ItemLocation)
    orders: List[OrderContribution] = Field(default_factory=list)
    shortage_quantity: int = 0
    shortage_reason: Optional[str] = None
    manual_pick: bool = False
    last_scan_at: Optional[datetime] = None

    @property
    def remaining_quantity(self) -> int:
        return max(0, self.quantity - self.picked_quantity)

    @property
    def is_fully_picked(self) -> bool:
        return self.picked_quantity >= self.quantity

    def contribution_for(self, order_id: uuid.UUID) -> Optional[OrderContribution]:
        for contribution in self.orders:
            if contribution.order_id == order_id:
                return contribution
        return None


class SessionOrderState(BaseModel):
    """Order summary carried by a session."""
    id: uuid.UUID
    order_number: str
    priority: Optional[str] = None
    carrier: Optional[str] = None
    items_count: int = 0
    picked: bool = False
    picked_at: Optional[datetime] = None
    has_shortage: bool = False


class SessionErrorEntry(BaseModel):
    """Entry of the session error log."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    type: str
    sku: Optional[str] = None
    scanned: Optional[str] = None
    expected: Optional[str] = None
    shortage: Optional[int] = None
    reason: Optional[str] = None
    message: Optional[str] = None
    timestamp: datetime


class EfficiencyMetrics(BaseModel):
    items_per_minute: float
    estimated_vs_actual: float
    accuracy: float


class PickingSessionState(BaseModel):
    """Complete live state of a picking session."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    organization_id: uuid.UUID
    warehouse_id: uuid.UUID
    picker_id: uuid.UUID
    picker_name: Optional[str] = None
    strategy: str
    status: str = PickingSessionStatus.IN_PROGRESS.value
    scan_required: bool = True

    orders: List[SessionOrderState] = Field(default_factory=list)
    picking_list: List[PickingListItemState] = Field(default_factory=list)

    total_items: int = 0
    picked_items: int = 0
    total_orders: int = 0
    completed_orders: int = 0

    estimated_duration: int = 0
    duration_minutes: Optional[int] = None
    efficiency: Optional[EfficiencyMetrics] = None
    errors: List[SessionErrorEntry] = Field(default_factory=list)

    pause_reason: Optional[str] = None
    cancel_reason: Optional[str] = None

    started_at: datetime
    paused_at: Optional[datetime] = None
    resumed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    version: int = 1

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SESSION_STATUSES

    @property
    def has_shortages(self) -> bool:
        return any(e.type == "shortage" for e in self.errors)

    def find_order(self, order_id: uuid.UUID) -> Optional[SessionOrderState]:
        for order in self.orders:
            if order.id == order_id:
                return order
        return None

    def find_item_by_sku(self, sku: str) -> Optional[PickingListItemState]:
        for item in self.picking_list:
            if item.sku == sku:
                return item
        return None


# ==================== REQUESTS ====================

class PickingSessionCreate(BaseCreateSchema):
    """Start a picking session from explicit orders or from the queue."""
    warehouse_id: uuid.UUID
    picker_id: uuid.UUID
    picker_name: Optional[str] = None
    strategy: str = "BATCH"
    order_ids: Optional[List[uuid.UUID]] = None
    carrier_filter: Optional[List[str]] = None
    priority_filter: Optional[OrderPriority] = None
    max_orders: Optional[int] = Field(None, ge=1)


class ScanRequest(BaseCreateSchema):
    """Barcode scan during picking."""
    barcode: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)
    location_scan: Optional[str] = None


class ManualPickRequest(BaseCreateSchema):
    """Pick confirmed by hand, without a barcode scan."""
    sku: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    reason: str = Field(..., min_length=1)
    picked_by: Optional[uuid.UUID] = None


class ShortageReportRequest(BaseCreateSchema):
    """Report missing or damaged stock at the pick location."""
    sku: str = Field(..., min_length=1)
    expected_quantity: int = Field(..., ge=0)
    actual_quantity: int = Field(..., ge=0)
    reason: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_quantities(self):
        if self.actual_quantity > self.expected_quantity:
            raise ValueError("actual_quantity cannot exceed expected_quantity")
        return self


class PauseRequest(BaseCreateSchema):
    reason: Optional[str] = None


class CancelRequest(BaseCreateSchema):
    reason: str = Field(..., min_length=1)


# ==================== RESPONSES ====================

class ScanItemDetail(BaseModel):
    sku: str
    name: Optional[str] = None
    required: int
    picked: int
    remaining: int
    status: str

    @classmethod
    def from_item(cls, item: PickingListItemState) -> "ScanItemDetail":
        return cls(
            sku=item.sku,
            name=item.name,
            required=item.quantity,
            picked=item.picked_quantity,
            remaining=item.remaining_quantity,
            status=item.status,
        )


class ScanProgress(BaseModel):
    picked: int
    total: int
    percentage: int
    completed_orders: int
    total_orders: int

    @classmethod
    def from_session(cls, session: PickingSessionState) -> "ScanProgress":
        return cls(
            picked=session.picked_items,
            total=session.total_items,
            percentage=progress_percentage(session.picked_items, session.total_items),
            completed_orders=session.completed_orders,
            total_orders=session.total_orders,
        )


class NextItem(BaseModel):
    """Next stop on the route."""
    sequence: int
    sku: str
    name: Optional[str] = None
    quantity: int
    location: ItemLocation
    barcode: Optional[str] = None


class ScanResult(BaseModel):
    """
    Scan outcome. Validation failures come back with valid=False and an
    error code; they never end the session.
    """
    valid: bool
    error: Optional[str] = None
    message: Optional[str] = None
    scanned: Optional[str] = None
    expected: Optional[str] = None
    required: Optional[int] = None
    already_picked: Optional[int] = None
    item: Optional[ScanItemDetail] = None
    progress: Optional[ScanProgress] = None
    next_item: Optional[NextItem] = None
    completed_orders: List[uuid.UUID] = Field(default_factory=list)


class ManualPickResult(BaseModel):
    success: bool = True
    item: ScanItemDetail
    progress: ScanProgress
    next_item: Optional[NextItem] = None
    completed_orders: List[uuid.UUID] = Field(default_factory=list)


class ShortageResult(BaseModel):
    success: bool = True
    sku: str
    shortage: int
    affected_orders: int


class PickingStrategyResponse(BaseModel):
    id: str
    name: str
    description: str
    max_orders: int
    requires_cart: bool
    efficiency: str
    efficiency_modifier: float


class ActiveSessionBrief(BaseResponseSchema):
    """Brief info for an in-progress or paused session."""
    id: uuid.UUID
    warehouse_id: uuid.UUID
    picker_id: uuid.UUID
    picker_name: Optional[str] = None
    strategy: str
    status: str
    total_items: int
    picked_items: int
    total_orders: int
    completed_orders: int
    started_at: datetime


class PickerStatsResponse(BaseModel):
    picker_id: uuid.UUID
    date_from: datetime
    date_to: datetime
    total_sessions: int = 0
    total_items_picked: int = 0
    avg_duration: Optional[float] = None
    avg_items_per_minute: Optional[float] = None
    avg_accuracy: Optional[float] = None
    completed_sessions: int = 0
    sessions_with_issues: int = 0


class WarehouseStatsResponse(BaseModel):
    warehouse_id: uuid.UUID
    day: date
    active_pickers: int = 0
    total_sessions: int = 0
    total_items: int = 0
    picked_items: int = 0
    total_orders: int = 0
    completed_orders: int = 0
    avg_session_duration: Optional[float] = None
