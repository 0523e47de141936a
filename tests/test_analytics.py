from datetime import datetime, timedelta, timezone
import uuid

import pytest

from app.services.picking.analytics import PickingAnalyticsService, day_bounds


@pytest.fixture
async def history(service, seed, org_id, warehouse_id, picker_id):
    """One clean session, one with a shortage, one still running for another picker."""
    await seed.order("SO-1", [("X", 4)])
    await seed.order("SO-2", [("Y", 2)])
    await seed.order("SO-3", [("Z", 3)])

    clean = await service.create_session(org_id, warehouse_id, picker_id, strategy="SINGLE")
    await service.validate_scan(clean.id, "X", quantity=4)
    await service.complete_session(clean.id)

    short = await service.create_session(org_id, warehouse_id, picker_id, strategy="SINGLE")
    await service.validate_scan(short.id, "Y")
    await service.report_shortage(short.id, "Y", 2, 1, "damaged")
    await service.complete_session(short.id)

    await service.create_session(org_id, warehouse_id, uuid.uuid4(), strategy="SINGLE")


def test_day_bounds():
    start, end = day_bounds(datetime(2026, 10, 18).date())

    assert start == datetime(2026, 10, 18, tzinfo=timezone.utc)
    assert end - start == timedelta(days=1)


async def test_picker_stats(session_factory, org_id, picker_id, history):
    now = datetime.now(timezone.utc)

    async with session_factory() as db:
        stats = await PickingAnalyticsService(db).get_picker_stats(
            org_id, picker_id, now - timedelta(hours=1), now + timedelta(hours=1)
        )

    assert stats.total_sessions == 2
    assert stats.total_items_picked == 5
    assert stats.completed_sessions == 1
    assert stats.sessions_with_issues == 1
    assert stats.avg_duration == 1.0
    # clean: 4 items no errors; short: 2 items one shortage
    assert stats.avg_accuracy == 75.0


async def test_picker_stats_outside_range(session_factory, org_id, picker_id, history):
    past = datetime(2020, 1, 1, tzinfo=timezone.utc)

    async with session_factory() as db:
        stats = await PickingAnalyticsService(db).get_picker_stats(
            org_id, picker_id, past, past + timedelta(days=1)
        )

    assert stats.total_sessions == 0
    assert stats.total_items_picked == 0
    assert stats.avg_accuracy is None


async def test_warehouse_stats(session_factory, org_id, warehouse_id, history):
    today = datetime.now(timezone.utc).date()

    async with session_factory() as db:
        stats = await PickingAnalyticsService(db).get_warehouse_stats(org_id, warehouse_id, today)
        other_org = await PickingAnalyticsService(db).get_warehouse_stats(uuid.uuid4(), warehouse_id, today)

    assert stats.active_pickers == 2
    assert stats.total_sessions == 3
    assert stats.total_items == 9
    assert stats.picked_items == 5
    assert stats.total_orders == 3
    assert stats.completed_orders == 1
    assert stats.avg_session_duration == 1.0
    assert other_org.total_sessions == 0
