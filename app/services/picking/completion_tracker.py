"""
Per-order pick attribution and order completion.

Every contribution keeps its own picked quantity. A pick on a shared SKU is
handed out to contributions in list order (the session's order priority), so
an order is complete only when the units it needs were actually picked for it.
"""
from datetime import datetime
from typing import List, Tuple
import uuid

from app.schemas.picking import PickingListItemState, PickingSessionState


def allocate_pick(item: PickingListItemState, quantity: int) -> List[Tuple[uuid.UUID, int]]:
    """
    Spread `quantity` over the item's contributions, first order first.

    The caller guarantees quantity <= item.remaining_quantity.
    Returns (order_id, allocated) pairs.
    """
    allocations = []
    remaining = quantity
    for contribution in item.orders:
        if remaining <= 0:
            break
        take = min(contribution.remaining_quantity, remaining)
        if take > 0:
            contribution.picked_quantity += take
            remaining -= take
            allocations.append((contribution.order_id, take))
    return allocations


def is_order_covered(session: PickingSessionState, order_id: uuid.UUID) -> bool:
    """True when every contribution of the order across the list is fully picked."""
    for item in session.picking_list:
        contribution = item.contribution_for(order_id)
        if contribution is not None and not contribution.is_covered:
            return False
    return True


def update_completion(
    session: PickingSessionState,
    item: PickingListItemState,
    now: datetime,
) -> List[uuid.UUID]:
    """
    Mark orders touched by `item` complete when fully covered.

    Returns the ids of orders that became complete on this call; an order is
    never reported twice.
    """
    completed = []
    for contribution in item.orders:
        order = session.find_order(contribution.order_id)
        if order is None or order.picked:
            continue
        if is_order_covered(session, order.id):
            order.picked = True
            order.picked_at = now
            session.completed_orders += 1
            completed.append(order.id)
    return completed
