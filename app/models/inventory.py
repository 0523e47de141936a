import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, DateTime, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import UUIDType


class InventoryLocation(Base):
    """
    Stock of one SKU at one physical slot.
    Slot address: zone / aisle / rack / shelf / bin.
    """
    __tablename__ = "inventory_locations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    warehouse_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        nullable=False,
        index=True
    )
    sku: Mapped[str] = mapped_column(String(100), nullable=False)

    zone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    aisle: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    rack: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    shelf: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    bin: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    __table_args__ = (
        Index("ix_inventory_locations_wh_sku", "warehouse_id", "sku"),
    )

    def __repr__(self) -> str:
        return f"<InventoryLocation(sku='{self.sku}', zone='{self.zone}', quantity={self.quantity})>"
