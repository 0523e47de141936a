"""Shared fixtures: a file-backed SQLite database per test, in-memory cache."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("CACHE_ENABLED", "false")

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional
import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import selectinload

from app import models  # noqa: F401
from app.database import Base, custom_json_dumps
from app.models.inventory import InventoryLocation
from app.models.order import Order, OrderItem, OrderStatus
from app.services.cache_service import CacheService, InMemoryCache
from app.services.picking.session_service import PickingSessionService
from app.services.picking.session_store import PickingSessionStore


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'picking.db'}",
        json_serializer=custom_json_dumps,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def cache():
    return CacheService(InMemoryCache(), namespace="test")


@pytest.fixture
def store(cache):
    return PickingSessionStore(cache)


@pytest.fixture
def service(session_factory, store):
    return PickingSessionService(session_factory, store, scan_required=True)


@pytest.fixture
def org_id():
    return uuid.uuid4()


@pytest.fixture
def warehouse_id():
    return uuid.uuid4()


@pytest.fixture
def picker_id():
    return uuid.uuid4()


class Seeder:
    """Inserts orders and stock slots for one organization and warehouse."""

    def __init__(self, session_factory, organization_id: uuid.UUID, warehouse_id: uuid.UUID):
        self.session_factory = session_factory
        self.organization_id = organization_id
        self.warehouse_id = warehouse_id
        self._clock = datetime(2026, 10, 1, 8, 0, tzinfo=timezone.utc)

    async def order(
        self,
        order_number: str,
        lines: Iterable[tuple],
        priority: Optional[str] = None,
        carrier: Optional[str] = None,
        created_at: Optional[datetime] = None,
        status: str = OrderStatus.PENDING_FULFILLMENT.value,
        warehouse_id: Optional[uuid.UUID] = None,
    ) -> Order:
        """Lines are (sku, quantity) or (sku, quantity, barcode) tuples."""
        if created_at is None:
            self._clock += timedelta(minutes=1)
            created_at = self._clock

        order = Order(
            organization_id=self.organization_id,
            warehouse_id=warehouse_id or self.warehouse_id,
            order_number=order_number,
            status=status,
            priority=priority,
            carrier=carrier,
            created_at=created_at,
            updated_at=created_at,
        )
        for position, line in enumerate(lines):
            sku, quantity = line[0], line[1]
            barcode = line[2] if len(line) > 2 else None
            order.items.append(OrderItem(
                position=position,
                sku=sku,
                name=f"Product {sku}",
                quantity=quantity,
                barcode=barcode,
            ))

        async with self.session_factory() as db:
            db.add(order)
            await db.commit()
        return order

    async def location(
        self,
        sku: str,
        zone: str,
        aisle: str,
        rack: str,
        shelf: str,
        bin: Optional[str] = None,
        quantity: int = 10,
    ) -> InventoryLocation:
        row = InventoryLocation(
            warehouse_id=self.warehouse_id,
            sku=sku,
            zone=zone,
            aisle=aisle,
            rack=rack,
            shelf=shelf,
            bin=bin,
            quantity=quantity,
        )
        async with self.session_factory() as db:
            db.add(row)
            await db.commit()
        return row

    async def get_order(self, order_id: uuid.UUID) -> Order:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Order).options(selectinload(Order.items)).where(Order.id == order_id)
            )
            return result.scalar_one()


@pytest.fixture
def seed(session_factory, org_id, warehouse_id):
    return Seeder(session_factory, org_id, warehouse_id)
