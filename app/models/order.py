"""Order pool models referenced by picking sessions.

Orders are owned by the order-management system. The picking engine only
moves them through PENDING_FULFILLMENT -> PICKING -> PICKED and maintains the
picking_session_id back-reference.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType


class OrderStatus(str, Enum):
    """Order status values the picking engine reads or writes."""
    PENDING_FULFILLMENT = "pending_fulfillment"  # Waiting to be picked
    PICKING = "picking"                          # Claimed by a picking session
    PICKED = "picked"                            # All lines picked
    CANCELLED = "cancelled"


class OrderPriority(str, Enum):
    """Order priority class, most urgent first."""
    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


# Rank used to order the picking queue; unset priority sorts last
PRIORITY_RANK = {
    OrderPriority.URGENT.value: 1,
    OrderPriority.HIGH.value: 2,
    OrderPriority.NORMAL.value: 3,
    OrderPriority.LOW.value: 4,
}
UNSET_PRIORITY_RANK = 5


class Order(Base):
    """Customer order awaiting fulfillment."""
    __tablename__ = "orders"

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
    order_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(50),
        default=OrderStatus.PENDING_FULFILLMENT.value,
        nullable=False,
        index=True,
        comment="pending_fulfillment, picking, picked, cancelled"
    )
    priority: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="urgent, high, normal, low"
    )
    carrier: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Back-reference to the picking session that currently owns the order
    picking_session_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        nullable=True,
        index=True
    )
    picked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position"
    )

    __table_args__ = (
        Index("ix_orders_picking_queue", "organization_id", "warehouse_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Order(number='{self.order_number}', status='{self.status}')>"


class OrderItem(Base):
    """Order line item."""
    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    barcode: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    def __repr__(self) -> str:
        return f"<OrderItem(sku='{self.sku}', quantity={self.quantity})>"
