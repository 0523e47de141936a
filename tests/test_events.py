from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.models.picking import PickingOutboxEvent
from app.services.picking.events import (
    PickingEventBus,
    PickingEventDispatcher,
    next_attempt_at,
    topic_matches,
)
from app.services.picking.exceptions import NoOrdersAvailableError
from app.services.picking.session_store import as_utc


class Recorder:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    async def __call__(self, topic, payload):
        self.calls.append((topic, payload))
        if self.fail:
            raise RuntimeError("downstream unavailable")


async def outbox_rows(session_factory):
    async with session_factory() as db:
        result = await db.execute(select(PickingOutboxEvent).order_by(PickingOutboxEvent.created_at))
        return list(result.scalars().all())


@pytest.fixture
async def started(service, seed, org_id, warehouse_id, picker_id):
    await seed.order("SO-1", [("X", 1)])
    return await service.create_session(org_id, warehouse_id, picker_id)


@pytest.mark.parametrize("pattern,topic,expected", [
    ("item:picked", "item:picked", True),
    ("item:picked", "order:completed", False),
    ("*", "session:cancelled", True),
    ("session:*", "session:paused", True),
    ("session:*", "shortage:reported", False),
    ("", "item:picked", False),
])
def test_topic_matches(pattern, topic, expected):
    assert topic_matches(pattern, topic) is expected


def test_bus_routes_by_pattern():
    bus = PickingEventBus()
    everything, sessions = Recorder(), Recorder()
    bus.subscribe("*", everything)
    bus.subscribe("session:*", sessions)

    assert bus.handlers_for("session:created") == [everything, sessions]
    assert bus.handlers_for("item:picked") == [everything]

    bus.unsubscribe(everything)
    assert bus.handlers_for("item:picked") == []


def test_backoff_is_capped():
    now = datetime.now(timezone.utc)

    assert next_attempt_at(1, 600) - now >= timedelta(seconds=2)
    assert next_attempt_at(30, 600) - now < timedelta(seconds=513)
    assert next_attempt_at(30, 60) - now < timedelta(seconds=61)


async def test_state_changes_write_outbox_rows(service, session_factory, started):
    await service.validate_scan(started.id, "X")
    await service.complete_session(started.id)

    topics = [row.topic for row in await outbox_rows(session_factory)]

    assert topics[0] == "session:created"
    assert topics[-1] == "session:completed"
    assert sorted(topics[1:3]) == ["item:picked", "order:completed"]


async def test_rolled_back_operations_write_nothing(service, session_factory, org_id, warehouse_id, picker_id):
    with pytest.raises(NoOrdersAvailableError):
        await service.create_session(org_id, warehouse_id, picker_id)

    assert await outbox_rows(session_factory) == []


async def test_dispatch_delivers_once(session_factory, started):
    bus = PickingEventBus()
    recorder = Recorder()
    bus.subscribe("session:*", recorder)
    dispatcher = PickingEventDispatcher(session_factory, bus)

    assert await dispatcher.dispatch_pending() == 1
    assert await dispatcher.dispatch_pending() == 0

    [(topic, payload)] = recorder.calls
    assert topic == "session:created"
    assert payload["session_id"] == str(started.id)
    assert payload["total_items"] == 1

    [row] = await outbox_rows(session_factory)
    assert row.delivered is True
    assert row.delivered_at is not None


async def test_failed_delivery_is_retried_later(session_factory, started):
    bus = PickingEventBus()
    recorder = Recorder(fail=True)
    bus.subscribe("*", recorder)
    dispatcher = PickingEventDispatcher(session_factory, bus, max_backoff_seconds=60)

    assert await dispatcher.dispatch_pending() == 0
    assert await dispatcher.dispatch_pending() == 0

    assert len(recorder.calls) == 1
    [row] = await outbox_rows(session_factory)
    assert row.delivered is False
    assert row.attempt_count == 1
    assert "downstream unavailable" in row.last_error
    assert as_utc(row.available_at) > datetime.now(timezone.utc)


async def test_events_without_handlers_are_marked_delivered(session_factory, started):
    dispatcher = PickingEventDispatcher(session_factory, PickingEventBus())

    assert await dispatcher.dispatch_pending() == 1
