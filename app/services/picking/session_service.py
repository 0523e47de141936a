"""Service for picking session lifecycle and scan validation."""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional, Sequence
import logging
import math
import uuid

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.models.picking import (
    PickingSessionStatus,
    PickingItemStatus,
    PickingErrorType,
    PickingEvent,
    InventoryShortage,
)
from app.schemas.picking import (
    PickingSessionState,
    PickingListItemState,
    SessionOrderState,
    SessionErrorEntry,
    EfficiencyMetrics,
    ScanResult,
    ScanItemDetail,
    ScanProgress,
    NextItem,
    ManualPickResult,
    ShortageResult,
    ActiveSessionBrief,
)
from app.services.picking.completion_tracker import allocate_pick, update_completion
from app.services.picking.events import PickingTopic, outbox_event
from app.services.picking.exceptions import (
    SessionNotFoundError,
    SessionNotActiveError,
    NotPausedError,
    NoOrdersAvailableError,
    ItemNotFoundError,
    QuantityExceededError,
    InvalidQuantityError,
)
from app.services.picking.list_builder import build_picking_list
from app.services.picking.location_lookup import InventoryLocationLookup, SqlInventoryLocationLookup
from app.services.picking.order_selector import (
    OrderSelectionFilters,
    select_orders,
    get_orders_by_ids,
    has_pickable_lines,
    claim_orders,
    release_orders,
    mark_order_picked,
)
from app.services.picking.route_optimizer import optimize_route, estimate_duration
from app.services.picking.session_store import PickingSessionStore, SessionChanges
from app.services.picking.strategies import resolve_strategy

logger = logging.getLogger(__name__)

# Scan validation outcome codes
ITEM_NOT_FOUND = "ITEM_NOT_FOUND"
ALREADY_PICKED = "ALREADY_PICKED"
WRONG_LOCATION = "WRONG_LOCATION"
QUANTITY_EXCEEDED = "QUANTITY_EXCEEDED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_pending_item(session: PickingSessionState) -> Optional[NextItem]:
    """First item on the route still waiting for units."""
    for item in session.picking_list:
        if item.status in (PickingItemStatus.PENDING.value, PickingItemStatus.PARTIAL.value) \
                and item.remaining_quantity > 0:
            return NextItem(
                sequence=item.sequence,
                sku=item.sku,
                name=item.name,
                quantity=item.remaining_quantity,
                location=item.location,
                barcode=item.barcode,
            )
    return None


def find_scanned_item(session: PickingSessionState, code: str) -> Optional[PickingListItemState]:
    """Match a scanned code: barcode first, then SKU, then SKU ignoring case."""
    for item in session.picking_list:
        if item.barcode and item.barcode == code:
            return item
    for item in session.picking_list:
        if item.sku == code:
            return item
    lowered = code.lower()
    for item in session.picking_list:
        if item.sku.lower() == lowered:
            return item
    return None


class PickingSessionService:
    """
    Picking session lifecycle and scan validation.

    Every mutation of a session runs under that session's lock and inside one
    database transaction; caches are brought up to date after the commit.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        store: PickingSessionStore,
        location_lookup: Optional[InventoryLocationLookup] = None,
        scan_required: Optional[bool] = None,
    ):
        self._session_factory = session_factory
        self._store = store
        self._lookup = location_lookup or SqlInventoryLocationLookup()
        self._scan_required = settings.PICKING_SCAN_REQUIRED if scan_required is None else scan_required

    @property
    def store(self) -> PickingSessionStore:
        return self._store

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as db:
            async with db.begin():
                yield db

    async def _load(
        self,
        db: AsyncSession,
        session_id: uuid.UUID,
        organization_id: Optional[uuid.UUID],
    ) -> PickingSessionState:
        state = await self._store.get(db, session_id, organization_id)
        if state is None:
            raise SessionNotFoundError(session_id)
        return state

    @staticmethod
    def _require_in_progress(state: PickingSessionState, operation: str) -> None:
        if state.status != PickingSessionStatus.IN_PROGRESS.value:
            raise SessionNotActiveError(state.id, state.status, operation)

    @staticmethod
    def _require_active(state: PickingSessionState, operation: str) -> None:
        if not state.is_active:
            raise SessionNotActiveError(state.id, state.status, operation)

    # ==================== SESSION CREATION ====================

    async def create_session(
        self,
        organization_id: uuid.UUID,
        warehouse_id: uuid.UUID,
        picker_id: uuid.UUID,
        picker_name: Optional[str] = None,
        strategy: Optional[str] = None,
        order_ids: Optional[Sequence[uuid.UUID]] = None,
        filters: Optional[OrderSelectionFilters] = None,
        max_orders: Optional[int] = None,
    ) -> PickingSessionState:
        """
        Create a picking session.

        Orders come from `order_ids` when given, otherwise from the picking
        queue. Only orders this call manages to claim join the session.
        """
        picking_strategy = resolve_strategy(strategy or settings.PICKING_DEFAULT_STRATEGY)
        limit = max_orders or picking_strategy.max_orders
        session_id = uuid.uuid4()
        now = _utcnow()

        async with self._transaction() as db:
            if order_ids:
                orders = await get_orders_by_ids(db, organization_id, warehouse_id, order_ids)
                pickable = []
                for order in orders:
                    if has_pickable_lines(order):
                        pickable.append(order)
                    else:
                        logger.warning(f"Order {order.order_number} has nothing to pick, left out of session {session_id}")
                orders = pickable[:limit]
            else:
                orders = await select_orders(db, organization_id, warehouse_id, limit, filters)

            claimed = set(await claim_orders(db, [o.id for o in orders], session_id)) if orders else set()
            orders = [o for o in orders if o.id in claimed]
            if not orders:
                raise NoOrdersAvailableError(warehouse_id)

            picking_list = optimize_route(
                await build_picking_list(db, orders, warehouse_id, self._lookup)
            )

            state = PickingSessionState(
                id=session_id,
                organization_id=organization_id,
                warehouse_id=warehouse_id,
                picker_id=picker_id,
                picker_name=picker_name,
                strategy=picking_strategy.id,
                scan_required=self._scan_required,
                orders=[
                    SessionOrderState(
                        id=order.id,
                        order_number=order.order_number,
                        priority=order.priority,
                        carrier=order.carrier,
                        items_count=len(order.items),
                    )
                    for order in orders
                ],
                picking_list=picking_list,
                total_items=sum(item.quantity for item in picking_list),
                total_orders=len(orders),
                estimated_duration=estimate_duration(picking_list, picking_strategy),
                started_at=now,
            )

            changes = SessionChanges()
            changes.add(outbox_event(
                PickingTopic.SESSION_CREATED,
                state,
                strategy=state.strategy,
                total_orders=state.total_orders,
                total_items=state.total_items,
                estimated_duration=state.estimated_duration,
            ))
            await self._store.add(db, state, changes)

        await self._store.commit_state(state)
        logger.info(
            f"Picking session {state.id} created: {state.total_orders} orders, "
            f"{state.total_items} items, strategy {state.strategy}"
        )
        return state

    # ==================== SCANNING ====================

    async def _apply_pick(
        self,
        db: AsyncSession,
        state: PickingSessionState,
        item: PickingListItemState,
        quantity: int,
        now: datetime,
        changes: SessionChanges,
    ) -> List[uuid.UUID]:
        allocate_pick(item, quantity)
        item.picked_quantity += quantity
        if item.status != PickingItemStatus.SHORTAGE.value:
            item.status = (
                PickingItemStatus.PICKED.value if item.is_fully_picked
                else PickingItemStatus.PARTIAL.value
            )
        state.picked_items += quantity
        changes.item_ids.add(item.id)

        completed = update_completion(state, item, now)
        for order_id in completed:
            changes.order_ids.add(order_id)
            await mark_order_picked(db, order_id, state.id, now)
            order = state.find_order(order_id)
            changes.add(outbox_event(
                PickingTopic.ORDER_COMPLETED,
                state,
                order_id=str(order_id),
                order_number=order.order_number,
            ))
            logger.info(f"Order {order.order_number} fully picked in session {state.id}")
        return completed

    def _record_error(
        self,
        state: PickingSessionState,
        changes: SessionChanges,
        entry: SessionErrorEntry,
    ) -> None:
        state.errors.append(entry)
        changes.add(PickingSessionStore.error_row(state, entry))

    async def validate_scan(
        self,
        session_id: uuid.UUID,
        barcode: str,
        quantity: int = 1,
        location_scan: Optional[str] = None,
        organization_id: Optional[uuid.UUID] = None,
    ) -> ScanResult:
        """
        Validate a barcode scan and record the pick when it is valid.

        Validation failures are returned, not raised; ITEM_NOT_FOUND and
        WRONG_LOCATION are also written to the session error log.
        """
        if quantity < 1:
            raise InvalidQuantityError("Quantity must be at least 1")

        async with self._store.lock(session_id):
            async with self._transaction() as db:
                state = await self._load(db, session_id, organization_id)
                self._require_in_progress(state, "scan")

                now = _utcnow()
                changes = SessionChanges()
                dirty = False
                item = find_scanned_item(state, barcode)

                if item is None:
                    self._record_error(state, changes, SessionErrorEntry(
                        type=PickingErrorType.WRONG_ITEM.value,
                        scanned=barcode,
                        message="Item not in picking list",
                        timestamp=now,
                    ))
                    dirty = True
                    result = ScanResult(
                        valid=False,
                        error=ITEM_NOT_FOUND,
                        message="Item not in picking list",
                        scanned=barcode,
                    )

                elif item.is_fully_picked:
                    result = ScanResult(
                        valid=False,
                        error=ALREADY_PICKED,
                        message="Item already fully picked",
                        required=item.quantity,
                        already_picked=item.picked_quantity,
                        item=ScanItemDetail.from_item(item),
                    )

                elif location_scan and state.scan_required and location_scan != item.location.formatted:
                    expected = item.location.formatted
                    self._record_error(state, changes, SessionErrorEntry(
                        type=PickingErrorType.WRONG_LOCATION.value,
                        sku=item.sku,
                        scanned=location_scan,
                        expected=expected,
                        message=f"Wrong location. Expected: {expected}",
                        timestamp=now,
                    ))
                    dirty = True
                    result = ScanResult(
                        valid=False,
                        error=WRONG_LOCATION,
                        message=f"Wrong location. Expected: {expected}",
                        scanned=location_scan,
                        expected=expected,
                        item=ScanItemDetail.from_item(item),
                    )

                elif item.picked_quantity + quantity > item.quantity:
                    result = ScanResult(
                        valid=False,
                        error=QUANTITY_EXCEEDED,
                        message=f"Maximum quantity is {item.quantity}",
                        required=item.quantity,
                        already_picked=item.picked_quantity,
                        item=ScanItemDetail.from_item(item),
                    )

                else:
                    completed = await self._apply_pick(db, state, item, quantity, now, changes)
                    item.last_scan_at = now
                    progress = ScanProgress.from_session(state)
                    changes.add(outbox_event(
                        PickingTopic.ITEM_PICKED,
                        state,
                        sku=item.sku,
                        quantity=quantity,
                        manual_pick=False,
                        progress=progress.model_dump(),
                    ))
                    dirty = True
                    result = ScanResult(
                        valid=True,
                        item=ScanItemDetail.from_item(item),
                        progress=progress,
                        next_item=next_pending_item(state),
                        completed_orders=completed,
                    )

                if dirty:
                    await self._store.save(db, state, changes)

            if dirty:
                await self._store.commit_state(state)

        if not result.valid:
            logger.warning(f"Scan rejected in session {session_id}: {result.error} ({barcode})")
        return result

    async def manual_pick(
        self,
        session_id: uuid.UUID,
        sku: str,
        quantity: int,
        reason: str,
        picked_by: Optional[uuid.UUID] = None,
        organization_id: Optional[uuid.UUID] = None,
    ) -> ManualPickResult:
        """Record a pick without a barcode scan (damaged label, no scanner)."""
        if quantity < 1:
            raise InvalidQuantityError("Quantity must be at least 1")

        async with self._store.lock(session_id):
            async with self._transaction() as db:
                state = await self._load(db, session_id, organization_id)
                self._require_in_progress(state, "pick")

                item = state.find_item_by_sku(sku) or find_scanned_item(state, sku)
                if item is None:
                    raise ItemNotFoundError(sku)
                if item.picked_quantity + quantity > item.quantity:
                    raise QuantityExceededError(item.sku, item.quantity, item.picked_quantity)

                now = _utcnow()
                changes = SessionChanges()
                completed = await self._apply_pick(db, state, item, quantity, now, changes)
                item.manual_pick = True

                changes.add(PickingEvent(
                    session_id=state.id,
                    organization_id=state.organization_id,
                    event_type="manual_pick",
                    event_data={
                        "sku": item.sku,
                        "quantity": quantity,
                        "reason": reason,
                        "picked_by": str(picked_by) if picked_by else None,
                        "manual_pick": True,
                    },
                    created_at=now,
                ))
                progress = ScanProgress.from_session(state)
                changes.add(outbox_event(
                    PickingTopic.ITEM_PICKED,
                    state,
                    sku=item.sku,
                    quantity=quantity,
                    manual_pick=True,
                    progress=progress.model_dump(),
                ))
                await self._store.save(db, state, changes)

            await self._store.commit_state(state)

        logger.info(f"Manual pick of {quantity} x {item.sku} in session {session_id}: {reason}")
        return ManualPickResult(
            item=ScanItemDetail.from_item(item),
            progress=progress,
            next_item=next_pending_item(state),
            completed_orders=completed,
        )

    # ==================== SHORTAGES ====================

    async def report_shortage(
        self,
        session_id: uuid.UUID,
        sku: str,
        expected_quantity: int,
        actual_quantity: int,
        reason: str,
        organization_id: Optional[uuid.UUID] = None,
    ) -> ShortageResult:
        """Record missing stock for an item; the rest of the list keeps going."""
        if expected_quantity < 0 or actual_quantity < 0:
            raise InvalidQuantityError("Quantities cannot be negative")
        if actual_quantity > expected_quantity:
            raise InvalidQuantityError("Actual quantity cannot exceed expected quantity")

        async with self._store.lock(session_id):
            async with self._transaction() as db:
                state = await self._load(db, session_id, organization_id)
                self._require_in_progress(state, "report shortage")

                item = state.find_item_by_sku(sku) or find_scanned_item(state, sku)
                if item is None:
                    raise ItemNotFoundError(sku)

                now = _utcnow()
                shortage = expected_quantity - actual_quantity
                changes = SessionChanges()

                item.status = PickingItemStatus.SHORTAGE.value
                item.shortage_quantity = shortage
                item.shortage_reason = reason
                changes.item_ids.add(item.id)

                affected = []
                for contribution in item.orders:
                    order = state.find_order(contribution.order_id)
                    if order is not None:
                        order.has_shortage = True
                        changes.order_ids.add(order.id)
                        affected.append(str(order.id))

                self._record_error(state, changes, SessionErrorEntry(
                    type=PickingErrorType.SHORTAGE.value,
                    sku=item.sku,
                    shortage=shortage,
                    reason=reason,
                    timestamp=now,
                ))
                changes.add(InventoryShortage(
                    organization_id=state.organization_id,
                    warehouse_id=state.warehouse_id,
                    session_id=state.id,
                    sku=item.sku,
                    expected_quantity=expected_quantity,
                    actual_quantity=actual_quantity,
                    shortage=shortage,
                    reason=reason,
                    created_at=now,
                ))
                changes.add(outbox_event(
                    PickingTopic.SHORTAGE_REPORTED,
                    state,
                    sku=item.sku,
                    shortage=shortage,
                    reason=reason,
                    affected_orders=affected,
                ))
                await self._store.save(db, state, changes)

            await self._store.commit_state(state)

        logger.warning(
            f"Shortage of {shortage} x {item.sku} in session {session_id} "
            f"affecting {len(affected)} orders: {reason}"
        )
        return ShortageResult(sku=item.sku, shortage=shortage, affected_orders=len(affected))

    # ==================== LIFECYCLE ====================

    async def pause_session(
        self,
        session_id: uuid.UUID,
        reason: Optional[str] = None,
        organization_id: Optional[uuid.UUID] = None,
    ) -> PickingSessionState:
        async with self._store.lock(session_id):
            async with self._transaction() as db:
                state = await self._load(db, session_id, organization_id)
                self._require_in_progress(state, "pause")

                state.status = PickingSessionStatus.PAUSED.value
                state.paused_at = _utcnow()
                state.pause_reason = reason

                changes = SessionChanges()
                changes.add(outbox_event(PickingTopic.SESSION_PAUSED, state, reason=reason))
                await self._store.save(db, state, changes)

            await self._store.commit_state(state)

        logger.info(f"Picking session {session_id} paused")
        return state

    async def resume_session(
        self,
        session_id: uuid.UUID,
        organization_id: Optional[uuid.UUID] = None,
    ) -> PickingSessionState:
        async with self._store.lock(session_id):
            async with self._transaction() as db:
                state = await self._load(db, session_id, organization_id)
                if state.status != PickingSessionStatus.PAUSED.value:
                    raise NotPausedError(state.id, state.status)

                state.status = PickingSessionStatus.IN_PROGRESS.value
                state.resumed_at = _utcnow()

                changes = SessionChanges()
                changes.add(outbox_event(PickingTopic.SESSION_RESUMED, state))
                await self._store.save(db, state, changes)

            await self._store.commit_state(state)

        logger.info(f"Picking session {session_id} resumed")
        return state

    async def cancel_session(
        self,
        session_id: uuid.UUID,
        reason: str,
        organization_id: Optional[uuid.UUID] = None,
    ) -> PickingSessionState:
        """Cancel a live session and return its unpicked orders to the queue."""
        async with self._store.lock(session_id):
            async with self._transaction() as db:
                state = await self._load(db, session_id, organization_id)
                self._require_active(state, "cancel")

                released = await release_orders(db, [order.id for order in state.orders], state.id)

                state.status = PickingSessionStatus.CANCELLED.value
                state.cancelled_at = _utcnow()
                state.cancel_reason = reason

                changes = SessionChanges()
                changes.add(outbox_event(
                    PickingTopic.SESSION_CANCELLED,
                    state,
                    reason=reason,
                    released_orders=released,
                ))
                await self._store.save(db, state, changes)

            await self._store.commit_state(state)

        logger.info(f"Picking session {session_id} cancelled, {released} orders released: {reason}")
        return state

    async def complete_session(
        self,
        session_id: uuid.UUID,
        organization_id: Optional[uuid.UUID] = None,
    ) -> PickingSessionState:
        """Close a session and compute its efficiency metrics."""
        async with self._store.lock(session_id):
            async with self._transaction() as db:
                state = await self._load(db, session_id, organization_id)
                self._require_in_progress(state, "complete")

                now = _utcnow()
                elapsed_minutes = (now - state.started_at).total_seconds() / 60
                duration = max(1, math.floor(elapsed_minutes + 0.5))

                if state.total_items:
                    accuracy = (state.total_items - len(state.errors)) / state.total_items * 100
                else:
                    accuracy = 0.0

                state.status = (
                    PickingSessionStatus.COMPLETED_WITH_ISSUES.value if state.has_shortages
                    else PickingSessionStatus.COMPLETED.value
                )
                state.completed_at = now
                state.duration_minutes = duration
                state.efficiency = EfficiencyMetrics(
                    items_per_minute=round(state.total_items / duration, 2),
                    estimated_vs_actual=round(state.estimated_duration / duration, 2),
                    accuracy=round(max(0.0, accuracy), 2),
                )

                changes = SessionChanges()
                changes.add(outbox_event(
                    PickingTopic.SESSION_COMPLETED,
                    state,
                    status=state.status,
                    duration_minutes=duration,
                    picked_items=state.picked_items,
                    completed_orders=state.completed_orders,
                    efficiency=state.efficiency.model_dump(),
                ))
                await self._store.save(db, state, changes)

            await self._store.commit_state(state)

        logger.info(
            f"Picking session {session_id} {state.status} in {duration} min, "
            f"{state.picked_items}/{state.total_items} items"
        )
        return state

    # ==================== QUERIES ====================

    async def get_session(
        self,
        session_id: uuid.UUID,
        organization_id: Optional[uuid.UUID] = None,
    ) -> PickingSessionState:
        async with self._session_factory() as db:
            return await self._load(db, session_id, organization_id)

    async def get_next_item(
        self,
        session_id: uuid.UUID,
        organization_id: Optional[uuid.UUID] = None,
    ) -> Optional[NextItem]:
        state = await self.get_session(session_id, organization_id)
        return next_pending_item(state)

    async def list_active_sessions(
        self,
        organization_id: uuid.UUID,
        warehouse_id: Optional[uuid.UUID] = None,
        picker_id: Optional[uuid.UUID] = None,
    ) -> List[ActiveSessionBrief]:
        async with self._session_factory() as db:
            rows = await self._store.list_active(db, organization_id, warehouse_id, picker_id)
            return [ActiveSessionBrief.model_validate(row) for row in rows]


# Singleton service instance
_service_instance: Optional[PickingSessionService] = None


def get_picking_service() -> PickingSessionService:
    """Get the process-wide picking session service."""
    global _service_instance

    if _service_instance is None:
        from app.database import async_session_factory
        from app.services.cache_service import get_cache

        _service_instance = PickingSessionService(
            async_session_factory,
            PickingSessionStore(get_cache()),
        )
        logger.info("Picking session service initialized")

    return _service_instance
