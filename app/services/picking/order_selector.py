"""Order selection and conditional claiming for picking sessions."""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence
import logging
import uuid

from sqlalchemy import select, update, case
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.order import Order, OrderItem, OrderStatus, PRIORITY_RANK, UNSET_PRIORITY_RANK

logger = logging.getLogger(__name__)


@dataclass
class OrderSelectionFilters:
    """Optional narrowing of the picking queue."""
    carriers: Optional[List[str]] = None
    priority: Optional[str] = None


# urgent > high > normal > low > unset
priority_rank = case(PRIORITY_RANK, value=Order.priority, else_=UNSET_PRIORITY_RANK)


async def select_orders(
    db: AsyncSession,
    organization_id: uuid.UUID,
    warehouse_id: uuid.UUID,
    max_orders: int,
    filters: Optional[OrderSelectionFilters] = None,
) -> List[Order]:
    """
    Get orders waiting to be picked, most urgent first, then oldest first.

    Orders with no line to pick are left out; nothing could ever complete them.

    An empty list is a valid result; the caller decides whether that is an error.
    """
    filters = filters or OrderSelectionFilters()

    stmt = (
        select(Order)
        .options(selectinload(Order.items))
        .where(
            Order.organization_id == organization_id,
            Order.warehouse_id == warehouse_id,
            Order.status == OrderStatus.PENDING_FULFILLMENT.value,
            Order.picking_session_id.is_(None),
            Order.items.any(OrderItem.quantity > 0),
        )
    )

    if filters.carriers:
        stmt = stmt.where(Order.carrier.in_(filters.carriers))
    if filters.priority:
        stmt = stmt.where(Order.priority == filters.priority)

    stmt = stmt.order_by(priority_rank, Order.created_at.asc(), Order.order_number).limit(max_orders)

    result = await db.execute(stmt)
    return list(result.scalars().all())


def has_pickable_lines(order: Order) -> bool:
    """True when at least one line of the order asks for a positive quantity."""
    return any(line.quantity > 0 for line in order.items)


async def get_orders_by_ids(
    db: AsyncSession,
    organization_id: uuid.UUID,
    warehouse_id: uuid.UUID,
    order_ids: Sequence[uuid.UUID],
) -> List[Order]:
    """Load explicitly requested orders, keeping the caller's order."""
    wanted = list(dict.fromkeys(order_ids))
    if not wanted:
        return []

    stmt = (
        select(Order)
        .options(selectinload(Order.items))
        .where(
            Order.organization_id == organization_id,
            Order.warehouse_id == warehouse_id,
            Order.id.in_(wanted),
        )
    )
    result = await db.execute(stmt)
    by_id = {order.id: order for order in result.scalars().all()}
    return [by_id[order_id] for order_id in wanted if order_id in by_id]


# ==================== ORDER POOL CLAIMS ====================

async def claim_orders(
    db: AsyncSession,
    order_ids: Sequence[uuid.UUID],
    session_id: uuid.UUID,
) -> List[uuid.UUID]:
    """
    Claim orders for a session.

    Each order is claimed only if it is still unclaimed and pending, so two
    sessions created concurrently can never own the same order. Returns the
    ids actually claimed, in the given order.
    """
    claimed = []
    for order_id in order_ids:
        result = await db.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.picking_session_id.is_(None),
                Order.status == OrderStatus.PENDING_FULFILLMENT.value,
            )
            .values(
                picking_session_id=session_id,
                status=OrderStatus.PICKING.value,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            claimed.append(order_id)
        else:
            logger.info(f"Order {order_id} already claimed, skipped for session {session_id}")
    return claimed


async def release_orders(
    db: AsyncSession,
    order_ids: Sequence[uuid.UUID],
    session_id: uuid.UUID,
) -> int:
    """
    Return orders still being picked by this session to the queue.

    Orders owned by another session or already picked are left untouched.
    """
    if not order_ids:
        return 0
    result = await db.execute(
        update(Order)
        .where(
            Order.id.in_(list(order_ids)),
            Order.picking_session_id == session_id,
            Order.status == OrderStatus.PICKING.value,
        )
        .values(
            picking_session_id=None,
            status=OrderStatus.PENDING_FULFILLMENT.value,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def mark_order_picked(
    db: AsyncSession,
    order_id: uuid.UUID,
    session_id: uuid.UUID,
    picked_at: datetime,
) -> bool:
    """Move an order claimed by this session to PICKED."""
    result = await db.execute(
        update(Order)
        .where(
            Order.id == order_id,
            Order.picking_session_id == session_id,
            Order.status == OrderStatus.PICKING.value,
        )
        .values(
            status=OrderStatus.PICKED.value,
            picked_at=picked_at,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
