import asyncio
import uuid

import pytest

from app.services.cache_service import CacheService, InMemoryCache
from app.services.picking.exceptions import SessionConcurrencyError, SessionNotFoundError
from app.services.picking.session_service import PickingSessionService
from app.services.picking.session_store import PickingSessionStore


@pytest.fixture
async def started(service, seed, org_id, warehouse_id, picker_id):
    await seed.location("X", "A", "01", "01", "1")
    await seed.location("Y", "B", "01", "01", "1")
    await seed.order("SO-1", [("X", 2)])
    await seed.order("SO-2", [("X", 1), ("Y", 4)])
    return await service.create_session(org_id, warehouse_id, picker_id, "Sam")


def fresh_store():
    return PickingSessionStore(CacheService(InMemoryCache(), namespace="other"))


async def test_reload_from_database_matches_live_state(service, session_factory, started):
    await service.validate_scan(started.id, "X", quantity=2)
    await service.validate_scan(started.id, "NOPE")
    await service.report_shortage(started.id, "Y", 4, 1, "damaged")
    live = await service.get_session(started.id)

    store = fresh_store()
    async with session_factory() as db:
        reloaded = await store.get(db, started.id)

    assert reloaded.version == live.version
    assert reloaded.picked_items == live.picked_items == 2
    assert reloaded.completed_orders == live.completed_orders == 1
    assert [(i.sku, i.picked_quantity, i.status, i.location.formatted) for i in reloaded.picking_list] == \
        [(i.sku, i.picked_quantity, i.status, i.location.formatted) for i in live.picking_list]
    assert [[(c.order_number, c.quantity, c.picked_quantity) for c in i.orders] for i in reloaded.picking_list] == \
        [[(c.order_number, c.quantity, c.picked_quantity) for c in i.orders] for i in live.picking_list]
    assert [(o.order_number, o.picked, o.has_shortage) for o in reloaded.orders] == \
        [(o.order_number, o.picked, o.has_shortage) for o in live.orders]
    assert [(e.type, e.sku, e.scanned, e.shortage) for e in reloaded.errors] == \
        [(e.type, e.sku, e.scanned, e.shortage) for e in live.errors]
    assert reloaded.started_at.tzinfo is not None


async def test_database_hit_repopulates_caches(session_factory, started):
    cache = CacheService(InMemoryCache(), namespace="other")
    store = PickingSessionStore(cache)

    async with session_factory() as db:
        await store.get(db, started.id)

    assert store.live_count() == 1
    assert await cache.get_picking_session(started.organization_id, started.id) is not None


async def test_cache_tier_serves_without_database(cache, started):
    store = PickingSessionStore(cache)

    state = await store.get(None, started.id, started.organization_id)

    assert state.id == started.id
    assert state.total_items == started.total_items


async def test_working_copies_are_independent(service, session_factory, store, started):
    async with session_factory() as db:
        copy = await store.get(db, started.id)
    copy.picked_items = 99
    copy.picking_list[0].picked_quantity = 99

    again = await service.get_session(started.id)

    assert again.picked_items == 0
    assert again.picking_list[0].picked_quantity == 0


async def test_other_organization_sees_nothing(session_factory, store, started):
    other = uuid.uuid4()

    async with session_factory() as db:
        assert await store.get(db, started.id, other) is None
        assert await fresh_store().get(db, started.id, other) is None


async def test_terminal_sessions_leave_caches(service, session_factory, store, cache, started):
    await service.complete_session(started.id)

    assert store.live_count() == 0
    assert await cache.get_picking_session(started.organization_id, started.id) is None

    async with session_factory() as db:
        state = await store.get(db, started.id)
    assert state.status == "completed"
    assert store.live_count() == 0


async def test_stale_writer_gets_conflict_then_recovers(service, session_factory, started):
    other = PickingSessionService(session_factory, fresh_store(), scan_required=True)
    await other.get_session(started.id)

    await service.validate_scan(started.id, "X")

    with pytest.raises(SessionConcurrencyError):
        await other.validate_scan(started.id, "X")

    retried = await other.validate_scan(started.id, "X")
    assert retried.valid
    assert retried.progress.picked == 2

    async with session_factory() as db:
        durable = await fresh_store().get(db, started.id)
    assert durable.picked_items == 2
    assert durable.version == 3


async def test_unknown_session_returns_none(session_factory, store):
    async with session_factory() as db:
        assert await store.get(db, uuid.uuid4()) is None


# ==================== LOCKS ====================

async def test_foreign_read_keeps_lock_of_held_session(service, store, started):
    async with store.lock(started.id):
        with pytest.raises(SessionNotFoundError):
            await service.get_session(started.id, organization_id=uuid.uuid4())

        scan = asyncio.create_task(service.validate_scan(started.id, "X"))
        await asyncio.sleep(0.05)
        assert not scan.done()

    assert (await scan).valid
    assert store.live_count() == 1


async def test_foreign_read_between_scans_keeps_them_serialized(service, started):
    first, foreign, second = await asyncio.gather(
        service.validate_scan(started.id, "X"),
        service.get_session(started.id, organization_id=uuid.uuid4()),
        service.validate_scan(started.id, "X"),
        return_exceptions=True,
    )

    assert isinstance(foreign, SessionNotFoundError)
    assert first.valid and second.valid
    state = await service.get_session(started.id)
    assert state.picked_items == 2
    assert state.version == 3


async def test_active_session_keeps_its_lock(service, store, started):
    await service.validate_scan(started.id, "X")

    assert store.lock_count() == 1


async def test_locks_released_when_sessions_end(service, store, seed, org_id, warehouse_id, picker_id):
    await seed.location("Z", "C", "01", "01", "1")
    for number in range(4):
        await seed.order(f"SO-Z{number}", [("Z", 1)])

    for _ in range(3):
        session = await service.create_session(org_id, warehouse_id, picker_id, strategy="SINGLE")
        await service.validate_scan(session.id, "Z")
        await service.complete_session(session.id)

    session = await service.create_session(org_id, warehouse_id, picker_id, strategy="SINGLE")
    await service.pause_session(session.id)
    await service.cancel_session(session.id, "reassigned")

    assert store.live_count() == 0
    assert store.lock_count() == 0


async def test_unknown_session_leaves_no_lock(service, store):
    with pytest.raises(SessionNotFoundError):
        await service.validate_scan(uuid.uuid4(), "X")

    assert store.lock_count() == 0
