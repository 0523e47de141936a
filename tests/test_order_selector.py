import uuid

from app.models.order import OrderStatus
from app.services.picking.order_selector import (
    OrderSelectionFilters,
    claim_orders,
    get_orders_by_ids,
    release_orders,
    select_orders,
)


async def test_priority_then_age(session_factory, seed, org_id, warehouse_id):
    await seed.order("SO-OLD-LOW", [("X", 1)], priority="low")
    await seed.order("SO-NONE", [("X", 1)])
    await seed.order("SO-NORMAL", [("X", 1)], priority="normal")
    await seed.order("SO-URGENT", [("X", 1)], priority="urgent")
    await seed.order("SO-HIGH-1", [("X", 1)], priority="high")
    await seed.order("SO-HIGH-2", [("X", 1)], priority="high")

    async with session_factory() as db:
        orders = await select_orders(db, org_id, warehouse_id, 10)

    assert [o.order_number for o in orders] == [
        "SO-URGENT", "SO-HIGH-1", "SO-HIGH-2", "SO-NORMAL", "SO-OLD-LOW", "SO-NONE",
    ]


async def test_only_unclaimed_pending_orders_in_warehouse(session_factory, seed, org_id, warehouse_id):
    await seed.order("SO-1", [("X", 1)])
    await seed.order("SO-PICKING", [("X", 1)], status=OrderStatus.PICKING.value)
    await seed.order("SO-OTHER-WH", [("X", 1)], warehouse_id=uuid.uuid4())

    async with session_factory() as db:
        orders = await select_orders(db, org_id, warehouse_id, 10)
        other_org = await select_orders(db, uuid.uuid4(), warehouse_id, 10)

    assert [o.order_number for o in orders] == ["SO-1"]
    assert other_org == []


async def test_filters_and_limit(session_factory, seed, org_id, warehouse_id):
    await seed.order("SO-1", [("X", 1)], carrier="DHL", priority="high")
    await seed.order("SO-2", [("X", 1)], carrier="UPS", priority="high")
    await seed.order("SO-3", [("X", 1)], carrier="DHL", priority="low")
    await seed.order("SO-4", [("X", 1)], carrier="DHL", priority="high")

    async with session_factory() as db:
        dhl_high = await select_orders(
            db, org_id, warehouse_id, 10,
            OrderSelectionFilters(carriers=["DHL"], priority="high"),
        )
        limited = await select_orders(db, org_id, warehouse_id, 2)

    assert [o.order_number for o in dhl_high] == ["SO-1", "SO-4"]
    assert len(limited) == 2


async def test_orders_without_pickable_lines_are_not_queued(session_factory, seed, org_id, warehouse_id):
    await seed.order("SO-EMPTY", [])
    await seed.order("SO-ZERO", [("X", 0)])
    await seed.order("SO-1", [("X", 0), ("Y", 1)])

    async with session_factory() as db:
        orders = await select_orders(db, org_id, warehouse_id, 1)

    assert [o.order_number for o in orders] == ["SO-1"]


async def test_line_items_are_loaded(session_factory, seed, org_id, warehouse_id):
    await seed.order("SO-1", [("X", 2), ("Y", 1)])

    async with session_factory() as db:
        orders = await select_orders(db, org_id, warehouse_id, 10)

    assert [(i.sku, i.quantity) for i in orders[0].items] == [("X", 2), ("Y", 1)]


async def test_explicit_orders_keep_caller_order(session_factory, seed, org_id, warehouse_id):
    first = await seed.order("SO-1", [("X", 1)])
    second = await seed.order("SO-2", [("X", 1)])

    async with session_factory() as db:
        orders = await get_orders_by_ids(
            db, org_id, warehouse_id, [second.id, uuid.uuid4(), first.id, second.id]
        )

    assert [o.order_number for o in orders] == ["SO-2", "SO-1"]


async def test_claim_is_exclusive(session_factory, seed):
    order = await seed.order("SO-1", [("X", 1)])
    first_session, second_session = uuid.uuid4(), uuid.uuid4()

    async with session_factory() as db:
        assert await claim_orders(db, [order.id], first_session) == [order.id]
        assert await claim_orders(db, [order.id], second_session) == []
        await db.commit()

    claimed = await seed.get_order(order.id)
    assert claimed.status == OrderStatus.PICKING.value
    assert claimed.picking_session_id == first_session


async def test_release_only_touches_own_unpicked_orders(session_factory, seed):
    own = await seed.order("SO-1", [("X", 1)])
    foreign = await seed.order("SO-2", [("X", 1)])
    session_id = uuid.uuid4()

    async with session_factory() as db:
        await claim_orders(db, [own.id], session_id)
        await claim_orders(db, [foreign.id], uuid.uuid4())
        released = await release_orders(db, [own.id, foreign.id], session_id)
        again = await release_orders(db, [own.id, foreign.id], session_id)
        await db.commit()

    assert released == 1
    assert again == 0
    assert (await seed.get_order(own.id)).status == OrderStatus.PENDING_FULFILLMENT.value
    assert (await seed.get_order(foreign.id)).status == OrderStatus.PICKING.value
