"""Picking session models for scan-validated warehouse picking."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, Boolean, DateTime, Float, ForeignKey, Integer, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, JSONType


class PickingSessionStatus(str, Enum):
    """Picking session status enumeration."""
    IN_PROGRESS = "in_progress"                      # Picker is walking the route
    PAUSED = "paused"                                # Temporarily stopped, orders stay claimed
    COMPLETED = "completed"                          # Closed without shortages
    COMPLETED_WITH_ISSUES = "completed_with_issues"  # Closed, at least one shortage recorded
    CANCELLED = "cancelled"                          # Abandoned, orders released


ACTIVE_SESSION_STATUSES = (
    PickingSessionStatus.IN_PROGRESS.value,
    PickingSessionStatus.PAUSED.value,
)


class PickingItemStatus(str, Enum):
    """Picking list item status enumeration."""
    PENDING = "pending"
    PARTIAL = "partial"
    PICKED = "picked"
    SHORTAGE = "shortage"


class PickingErrorType(str, Enum):
    """Session error log entry types."""
    WRONG_ITEM = "wrong_item"
    WRONG_LOCATION = "wrong_location"
    SHORTAGE = "shortage"


class PickingSession(Base):
    """
    One picker's walk through an optimized route covering one or more orders.
    Child rows hold the order summaries, the picking list and the per-order
    allocations. `version` guards concurrent writers across processes.
    """
    __tablename__ = "picking_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        nullable=False,
        index=True
    )
    warehouse_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        nullable=False,
        index=True
    )
    picker_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        nullable=False,
        index=True
    )
    picker_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    strategy: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="SINGLE, BATCH, WAVE, ZONE, CLUSTER"
    )
    status: Mapped[str] = mapped_column(
        String(30),
        default=PickingSessionStatus.IN_PROGRESS.value,
        nullable=False,
        index=True,
        comment="in_progress, paused, completed, completed_with_issues, cancelled"
    )
    scan_required: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Counters
    total_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    picked_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_orders: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_orders: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Duration and efficiency (filled on completion)
    estimated_duration: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Estimated minutes"
    )
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    items_per_minute: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    estimated_vs_actual: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    accuracy: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    pause_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Lifecycle timestamps
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )
    paused_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resumed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    orders: Mapped[List["PickingSessionOrder"]] = relationship(
        "PickingSessionOrder",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="PickingSessionOrder.position"
    )
    items: Mapped[List["PickingListItem"]] = relationship(
        "PickingListItem",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="PickingListItem.sequence"
    )
    errors: Mapped[List["PickingError"]] = relationship(
        "PickingError",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="PickingError.created_at"
    )

    __table_args__ = (
        Index("ix_picking_sessions_picker_started", "organization_id", "picker_id", "started_at"),
        Index("ix_picking_sessions_wh_started", "organization_id", "warehouse_id", "started_at"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SESSION_STATUSES

    def __repr__(self) -> str:
        return f"<PickingSession(id='{self.id}', status='{self.status}')>"


class PickingSessionOrder(Base):
    """Order summary owned by a picking session."""
    __tablename__ = "picking_session_orders"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("picking_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    order_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    order_number: Mapped[str] = mapped_column(String(50), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    priority: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    carrier: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    items_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    picked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    picked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    has_shortage: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    session: Mapped["PickingSession"] = relationship("PickingSession", back_populates="orders")


class PickingListItem(Base):
    """
    One aggregated SKU on the picking route.
    Quantity is the sum of every contributing order's line quantity.
    """
    __tablename__ = "picking_list_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("picking_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    barcode: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    picked_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=PickingItemStatus.PENDING.value,
        nullable=False,
        comment="pending, partial, picked, shortage"
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    # Resolved location, fixed at list generation
    zone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    aisle: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    rack: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    shelf: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    bin: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    location_label: Mapped[str] = mapped_column(String(100), nullable=False)
    available_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    shortage_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    shortage_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    manual_pick: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_scan_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    session: Mapped["PickingSession"] = relationship("PickingSession", back_populates="items")
    allocations: Mapped[List["PickingItemAllocation"]] = relationship(
        "PickingItemAllocation",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="PickingItemAllocation.position"
    )

    @property
    def pending_quantity(self) -> int:
        return max(0, self.quantity - self.picked_quantity)


class PickingItemAllocation(Base):
    """Portion of an aggregated item owed to one order, with its own picked count."""
    __tablename__ = "picking_item_allocations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    item_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("picking_list_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    order_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    order_number: Mapped[str] = mapped_column(String(50), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    picked_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    item: Mapped["PickingListItem"] = relationship("PickingListItem", back_populates="allocations")


class PickingError(Base):
    """Session error log (wrong item, wrong location, shortage)."""
    __tablename__ = "picking_errors"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("picking_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        nullable=False,
        index=True
    )
    error_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="wrong_item, wrong_location, shortage"
    )
    error_data: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    session: Mapped["PickingSession"] = relationship("PickingSession", back_populates="errors")


class PickingEvent(Base):
    """Audit trail for picking actions that bypass scanning (manual picks)."""
    __tablename__ = "picking_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("picking_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    event_data: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )


class InventoryShortage(Base):
    """Shortage recorded during picking, consumed by the inventory system."""
    __tablename__ = "inventory_shortages"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    warehouse_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("picking_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    expected_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    actual_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    shortage: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )


class PickingOutboxEvent(Base):
    """
    Transactional outbox for picking notifications.
    Rows are written in the same transaction as the state change and
    delivered to subscribers by the dispatch job.
    """
    __tablename__ = "picking_outbox_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    topic: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    session_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType(as_uuid=True), nullable=True, index=True)
    payload: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    # Delivery state
    available_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    attempt_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    delivered: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    __table_args__ = (
        Index("ix_picking_outbox_delivery", "delivered", "available_at"),
    )
