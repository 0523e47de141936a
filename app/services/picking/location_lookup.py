"""Inventory location lookup used when building picking lists."""
from typing import Optional, Protocol
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.inventory import InventoryLocation
from app.schemas.picking import ItemLocation, UNASSIGNED_LOCATION


def format_location(
    zone: Optional[str],
    aisle: Optional[str],
    rack: Optional[str],
    shelf: Optional[str],
    bin: Optional[str] = None,
) -> str:
    """Printed slot label, e.g. A-03-12-2-B. Empty segments at the ends are dropped."""
    label = "-".join([zone or "", aisle or "", rack or "", shelf or ""])
    if bin:
        label += f"-{bin}"
    return label.strip("-") or UNASSIGNED_LOCATION


class InventoryLocationLookup(Protocol):
    async def resolve(
        self,
        db: AsyncSession,
        warehouse_id: uuid.UUID,
        sku: str,
    ) -> Optional[ItemLocation]:
        ...


class SqlInventoryLocationLookup:
    """Resolve a SKU to the slot holding the most stock in the warehouse."""

    async def resolve(
        self,
        db: AsyncSession,
        warehouse_id: uuid.UUID,
        sku: str,
    ) -> Optional[ItemLocation]:
        stmt = (
            select(InventoryLocation)
            .where(
                InventoryLocation.warehouse_id == warehouse_id,
                InventoryLocation.sku == sku,
            )
            .order_by(InventoryLocation.quantity.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            return None

        return ItemLocation(
            zone=row.zone,
            aisle=row.aisle,
            rack=row.rack,
            shelf=row.shelf,
            bin=row.bin,
            formatted=format_location(row.zone, row.aisle, row.rack, row.shelf, row.bin),
            available_quantity=row.quantity,
        )
