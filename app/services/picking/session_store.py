"""
Tiered storage for picking sessions.

    process tier      live PickingSessionState objects + per-session locks
    distributed tier  CacheService (Redis or in-memory), organization scoped
    durable tier      normalized picking tables, guarded by `version`

Reads fall through the tiers and repopulate the upper ones for live sessions.
Writes go to the database first; caches are refreshed only after the commit.
"""
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional, Set
import asyncio
import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.database import Base
from app.models.picking import (
    PickingSession,
    PickingSessionOrder,
    PickingListItem,
    PickingItemAllocation,
    PickingError,
    ACTIVE_SESSION_STATUSES,
)
from app.schemas.picking import (
    PickingSessionState,
    PickingListItemState,
    SessionOrderState,
    SessionErrorEntry,
    ItemLocation,
    OrderContribution,
    EfficiencyMetrics,
)
from app.services.cache_service import CacheService
from app.services.picking.exceptions import SessionConcurrencyError

logger = logging.getLogger(__name__)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class SessionChanges:
    """What a single operation touched, written in one transaction."""
    item_ids: Set[uuid.UUID] = field(default_factory=set)
    order_ids: Set[uuid.UUID] = field(default_factory=set)
    new_rows: List[Base] = field(default_factory=list)

    def add(self, row: Base) -> None:
        self.new_rows.append(row)


class PickingSessionStore:
    """Reads and writes picking sessions across the three tiers."""

    def __init__(self, cache: CacheService, ttl: Optional[int] = None):
        self._cache = cache
        self._ttl = ttl or settings.PICKING_SESSION_CACHE_TTL
        self._live: Dict[uuid.UUID, PickingSessionState] = {}
        self._locks: Dict[uuid.UUID, asyncio.Lock] = {}
        self._lock_users: Dict[uuid.UUID, int] = {}
        self._organizations: Dict[uuid.UUID, uuid.UUID] = {}

    # ==================== PROCESS TIER ====================

    @asynccontextmanager
    async def lock(self, session_id: uuid.UUID) -> AsyncIterator[None]:
        """
        Hold the per-session lock; mutations of one session run one at a time.

        The lock is kept while anyone holds or waits for it, or while the
        session is live in this process. Terminal and unknown sessions give
        theirs up once the last user leaves.
        """
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[session_id] - 1
            if remaining:
                self._lock_users[session_id] = remaining
            else:
                del self._lock_users[session_id]
                if session_id not in self._live:
                    del self._locks[session_id]

    def forget(self, session_id: uuid.UUID) -> None:
        """Drop the live copy of a session that no longer exists."""
        self._live.pop(session_id, None)
        self._organizations.pop(session_id, None)
        if session_id not in self._lock_users:
            self._locks.pop(session_id, None)

    def live_count(self) -> int:
        return len(self._live)

    def lock_count(self) -> int:
        return len(self._locks)

    def _remember(self, state: PickingSessionState) -> None:
        self._live[state.id] = state.model_copy(deep=True)
        self._organizations[state.id] = state.organization_id

    # ==================== READ ====================

    async def get(
        self,
        db: AsyncSession,
        session_id: uuid.UUID,
        organization_id: Optional[uuid.UUID] = None,
    ) -> Optional[PickingSessionState]:
        """
        Get a working copy of a session, or None.

        When `organization_id` is given, sessions of other organizations are
        reported as missing; that leaves the process tier untouched. Only a
        session with no durable row is forgotten.
        """
        state = self._live.get(session_id)
        if state is not None:
            if organization_id is not None and state.organization_id != organization_id:
                return None
            return state.model_copy(deep=True)

        known_org = organization_id or self._organizations.get(session_id)
        if known_org is not None:
            data = await self._cache.get_picking_session(known_org, session_id)
            if data:
                state = PickingSessionState.model_validate(data)
                self._remember(state)
                return state.model_copy(deep=True)

        row = await self._load_row(db, session_id)
        if row is None:
            self.forget(session_id)
            return None
        if organization_id is not None and row.organization_id != organization_id:
            return None

        state = self._to_state(row)
        if state.is_active:
            self._remember(state)
            await self._cache.set_picking_session(
                state.organization_id, state.id, state.model_dump(mode="json"), self._ttl
            )
        return state

    async def _load_row(self, db: AsyncSession, session_id: uuid.UUID) -> Optional[PickingSession]:
        stmt = (
            select(PickingSession)
            .options(
                selectinload(PickingSession.orders),
                selectinload(PickingSession.items).selectinload(PickingListItem.allocations),
                selectinload(PickingSession.errors),
            )
            .where(PickingSession.id == session_id)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_active(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        warehouse_id: Optional[uuid.UUID] = None,
        picker_id: Optional[uuid.UUID] = None,
    ) -> List[PickingSession]:
        """In-progress and paused sessions, newest first."""
        stmt = select(PickingSession).where(
            PickingSession.organization_id == organization_id,
            PickingSession.status.in_(ACTIVE_SESSION_STATUSES),
        )
        if warehouse_id:
            stmt = stmt.where(PickingSession.warehouse_id == warehouse_id)
        if picker_id:
            stmt = stmt.where(PickingSession.picker_id == picker_id)
        stmt = stmt.order_by(PickingSession.started_at.desc())

        result = await db.execute(stmt)
        return list(result.scalars().all())

    # ==================== WRITE ====================

    async def add(self, db: AsyncSession, state: PickingSessionState, changes: SessionChanges) -> None:
        """Insert a new session with all its child rows."""
        row = PickingSession(
            id=state.id,
            organization_id=state.organization_id,
            warehouse_id=state.warehouse_id,
            picker_id=state.picker_id,
            picker_name=state.picker_name,
            strategy=state.strategy,
            version=state.version,
            **self._session_values(state),
        )
        row.orders = [
            PickingSessionOrder(
                session_id=state.id,
                order_id=order.id,
                order_number=order.order_number,
                position=position,
                priority=order.priority,
                carrier=order.carrier,
                items_count=order.items_count,
                picked=order.picked,
                picked_at=order.picked_at,
                has_shortage=order.has_shortage,
            )
            for position, order in enumerate(state.orders)
        ]
        row.items = [self._item_row(state.id, item) for item in state.picking_list]

        db.add(row)
        db.add_all(changes.new_rows)
        await db.flush()

    async def save(self, db: AsyncSession, state: PickingSessionState, changes: SessionChanges) -> None:
        """
        Write a mutated session inside the caller's transaction.

        The session row is updated only if its version still matches the
        copy we read; otherwise another process got there first.
        """
        result = await db.execute(
            update(PickingSession)
            .where(
                PickingSession.id == state.id,
                PickingSession.version == state.version,
            )
            .values(version=state.version + 1, **self._session_values(state))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(f"Version conflict on picking session {state.id} (v{state.version})")
            await self.evict(state.organization_id, state.id)
            raise SessionConcurrencyError(state.id, state.version)

        for order_id in changes.order_ids:
            order = state.find_order(order_id)
            await db.execute(
                update(PickingSessionOrder)
                .where(
                    PickingSessionOrder.session_id == state.id,
                    PickingSessionOrder.order_id == order_id,
                )
                .values(
                    picked=order.picked,
                    picked_at=order.picked_at,
                    has_shortage=order.has_shortage,
                )
                .execution_options(synchronize_session=False)
            )

        for item in state.picking_list:
            if item.id not in changes.item_ids:
                continue
            await db.execute(
                update(PickingListItem)
                .where(PickingListItem.id == item.id)
                .values(
                    picked_quantity=item.picked_quantity,
                    status=item.status,
                    shortage_quantity=item.shortage_quantity,
                    shortage_reason=item.shortage_reason,
                    manual_pick=item.manual_pick,
                    last_scan_at=item.last_scan_at,
                )
                .execution_options(synchronize_session=False)
            )
            for contribution in item.orders:
                await db.execute(
                    update(PickingItemAllocation)
                    .where(
                        PickingItemAllocation.item_id == item.id,
                        PickingItemAllocation.order_id == contribution.order_id,
                    )
                    .values(picked_quantity=contribution.picked_quantity)
                    .execution_options(synchronize_session=False)
                )

        db.add_all(changes.new_rows)
        await db.flush()
        state.version += 1

    async def commit_state(self, state: PickingSessionState) -> None:
        """Bring the caches in line with a committed write."""
        if state.is_active:
            self._remember(state)
            await self._cache.set_picking_session(
                state.organization_id, state.id, state.model_dump(mode="json"), self._ttl
            )
        else:
            await self.evict(state.organization_id, state.id)

    async def evict(self, organization_id: uuid.UUID, session_id: uuid.UUID) -> None:
        self._live.pop(session_id, None)
        self._organizations.pop(session_id, None)
        await self._cache.delete_picking_session(organization_id, session_id)

    # ==================== MAPPING ====================

    @staticmethod
    def _session_values(state: PickingSessionState) -> dict:
        efficiency = state.efficiency
        return {
            "status": state.status,
            "scan_required": state.scan_required,
            "total_items": state.total_items,
            "picked_items": state.picked_items,
            "total_orders": state.total_orders,
            "completed_orders": state.completed_orders,
            "estimated_duration": state.estimated_duration,
            "duration_minutes": state.duration_minutes,
            "items_per_minute": efficiency.items_per_minute if efficiency else None,
            "estimated_vs_actual": efficiency.estimated_vs_actual if efficiency else None,
            "accuracy": efficiency.accuracy if efficiency else None,
            "pause_reason": state.pause_reason,
            "cancel_reason": state.cancel_reason,
            "started_at": state.started_at,
            "paused_at": state.paused_at,
            "resumed_at": state.resumed_at,
            "completed_at": state.completed_at,
            "cancelled_at": state.cancelled_at,
            "updated_at": datetime.now(timezone.utc),
        }

    @staticmethod
    def _item_row(session_id: uuid.UUID, item: PickingListItemState) -> PickingListItem:
        location = item.location
        row = PickingListItem(
            id=item.id,
            session_id=session_id,
            sku=item.sku,
            name=item.name,
            barcode=item.barcode,
            quantity=item.quantity,
            picked_quantity=item.picked_quantity,
            status=item.status,
            sequence=item.sequence,
            zone=location.zone,
            aisle=location.aisle,
            rack=location.rack,
            shelf=location.shelf,
            bin=location.bin,
            location_label=location.formatted,
            available_quantity=location.available_quantity,
            shortage_quantity=item.shortage_quantity,
            shortage_reason=item.shortage_reason,
            manual_pick=item.manual_pick,
            last_scan_at=item.last_scan_at,
        )
        row.allocations = [
            PickingItemAllocation(
                order_id=contribution.order_id,
                order_number=contribution.order_number,
                position=position,
                quantity=contribution.quantity,
                picked_quantity=contribution.picked_quantity,
            )
            for position, contribution in enumerate(item.orders)
        ]
        return row

    @staticmethod
    def error_row(state: PickingSessionState, entry: SessionErrorEntry) -> PickingError:
        return PickingError(
            id=entry.id,
            session_id=state.id,
            organization_id=state.organization_id,
            error_type=entry.type,
            error_data=entry.model_dump(
                mode="json", exclude={"id", "type", "timestamp"}, exclude_none=True
            ),
            created_at=entry.timestamp,
        )

    @staticmethod
    def _to_state(row: PickingSession) -> PickingSessionState:
        efficiency = None
        if row.items_per_minute is not None:
            efficiency = EfficiencyMetrics(
                items_per_minute=row.items_per_minute,
                estimated_vs_actual=row.estimated_vs_actual or 0.0,
                accuracy=row.accuracy or 0.0,
            )

        return PickingSessionState(
            id=row.id,
            organization_id=row.organization_id,
            warehouse_id=row.warehouse_id,
            picker_id=row.picker_id,
            picker_name=row.picker_name,
            strategy=row.strategy,
            status=row.status,
            scan_required=row.scan_required,
            orders=[
                SessionOrderState(
                    id=order.order_id,
                    order_number=order.order_number,
                    priority=order.priority,
                    carrier=order.carrier,
                    items_count=order.items_count,
                    picked=order.picked,
                    picked_at=as_utc(order.picked_at),
                    has_shortage=order.has_shortage,
                )
                for order in row.orders
            ],
            picking_list=[
                PickingListItemState(
                    id=item.id,
                    sku=item.sku,
                    name=item.name,
                    barcode=item.barcode,
                    quantity=item.quantity,
                    picked_quantity=item.picked_quantity,
                    status=item.status,
                    sequence=item.sequence,
                    location=ItemLocation(
                        zone=item.zone,
                        aisle=item.aisle,
                        rack=item.rack,
                        shelf=item.shelf,
                        bin=item.bin,
                        formatted=item.location_label,
                        available_quantity=item.available_quantity,
                    ),
                    orders=[
                        OrderContribution(
                            order_id=allocation.order_id,
                            order_number=allocation.order_number,
                            quantity=allocation.quantity,
                            picked_quantity=allocation.picked_quantity,
                        )
                        for allocation in item.allocations
                    ],
                    shortage_quantity=item.shortage_quantity,
                    shortage_reason=item.shortage_reason,
                    manual_pick=item.manual_pick,
                    last_scan_at=as_utc(item.last_scan_at),
                )
                for item in row.items
            ],
            total_items=row.total_items,
            picked_items=row.picked_items,
            total_orders=row.total_orders,
            completed_orders=row.completed_orders,
            estimated_duration=row.estimated_duration,
            duration_minutes=row.duration_minutes,
            efficiency=efficiency,
            errors=[
                SessionErrorEntry(
                    id=error.id,
                    type=error.error_type,
                    timestamp=as_utc(error.created_at),
                    **(error.error_data or {}),
                )
                for error in row.errors
            ],
            pause_reason=row.pause_reason,
            cancel_reason=row.cancel_reason,
            started_at=as_utc(row.started_at),
            paused_at=as_utc(row.paused_at),
            resumed_at=as_utc(row.resumed_at),
            completed_at=as_utc(row.completed_at),
            cancelled_at=as_utc(row.cancelled_at),
            version=row.version,
        )
