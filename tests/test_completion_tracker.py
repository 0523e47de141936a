from datetime import datetime, timezone
import uuid

from app.schemas.picking import (
    OrderContribution,
    PickingListItemState,
    PickingSessionState,
    SessionOrderState,
)
from app.services.picking.completion_tracker import allocate_pick, update_completion

NOW = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


def make_session():
    first, second = uuid.uuid4(), uuid.uuid4()
    shared = PickingListItemState(
        sku="X",
        quantity=5,
        orders=[
            OrderContribution(order_id=first, order_number="SO-1", quantity=2),
            OrderContribution(order_id=second, order_number="SO-2", quantity=3),
        ],
    )
    only_second = PickingListItemState(
        sku="Y",
        quantity=1,
        orders=[OrderContribution(order_id=second, order_number="SO-2", quantity=1)],
    )
    session = PickingSessionState(
        organization_id=uuid.uuid4(),
        warehouse_id=uuid.uuid4(),
        picker_id=uuid.uuid4(),
        strategy="BATCH",
        started_at=NOW,
        orders=[
            SessionOrderState(id=first, order_number="SO-1"),
            SessionOrderState(id=second, order_number="SO-2"),
        ],
        picking_list=[shared, only_second],
        total_items=6,
        total_orders=2,
    )
    return session, first, second


def pick(session, item, quantity):
    allocate_pick(item, quantity)
    item.picked_quantity += quantity
    return update_completion(session, item, NOW)


def test_allocation_fills_orders_in_sequence():
    session, first, second = make_session()
    item = session.picking_list[0]

    assert allocate_pick(item, 3) == [(first, 2), (second, 1)]
    assert [c.picked_quantity for c in item.orders] == [2, 1]


def test_first_order_completes_before_shared_item_is_done():
    session, first, second = make_session()
    item = session.picking_list[0]

    assert pick(session, item, 1) == []
    assert pick(session, item, 1) == [first]
    assert session.find_order(first).picked_at == NOW
    assert session.completed_orders == 1


def test_order_waits_for_all_of_its_items():
    session, first, second = make_session()
    shared, only_second = session.picking_list

    assert pick(session, shared, 5) == [first]
    assert not session.find_order(second).picked
    assert pick(session, only_second, 1) == [second]
    assert session.completed_orders == 2


def test_order_reported_once():
    session, first, _ = make_session()
    shared = session.picking_list[0]

    pick(session, shared, 2)
    assert update_completion(session, shared, NOW) == []
    assert session.completed_orders == 1
