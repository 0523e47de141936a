"""Aggregate order lines into one picking list entry per SKU."""
from typing import Dict, List, Sequence
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.order import Order
from app.schemas.picking import ItemLocation, OrderContribution, PickingListItemState
from app.services.picking.location_lookup import InventoryLocationLookup

logger = logging.getLogger(__name__)


async def build_picking_list(
    db: AsyncSession,
    orders: Sequence[Order],
    warehouse_id: uuid.UUID,
    lookup: InventoryLocationLookup,
) -> List[PickingListItemState]:
    """
    Build the unsorted picking list for a set of orders.

    Each SKU is located once, on first sight. Contributions are recorded in
    the order of `orders`, so the first order listed is served first when
    picks are allocated.
    """
    items: Dict[str, PickingListItemState] = {}

    for order in orders:
        for line in order.items:
            key = line.sku or line.name
            if line.quantity <= 0:
                logger.warning(
                    f"Skipping line {key} of order {order.order_number} with quantity {line.quantity}"
                )
                continue

            item = items.get(key)
            if item is None:
                location = await lookup.resolve(db, warehouse_id, key) or ItemLocation()
                item = PickingListItemState(
                    sku=key,
                    name=line.name,
                    barcode=line.barcode,
                    quantity=0,
                    location=location,
                )
                items[key] = item

            item.quantity += line.quantity
            if not item.barcode and line.barcode:
                item.barcode = line.barcode

            # Same SKU twice in one order folds into one contribution
            contribution = item.contribution_for(order.id)
            if contribution is not None:
                contribution.quantity += line.quantity
            else:
                item.orders.append(
                    OrderContribution(
                        order_id=order.id,
                        order_number=order.order_number,
                        quantity=line.quantity,
                    )
                )

    return list(items.values())
