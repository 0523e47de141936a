import pytest

from app.jobs import picking_jobs
from app.services.cache_service import CacheService, InMemoryCache
from app.services.picking.events import PickingEventBus


@pytest.fixture
async def pending_event(service, seed, org_id, warehouse_id, picker_id):
    await seed.order("SO-1", [("X", 1)])
    return await service.create_session(org_id, warehouse_id, picker_id)


async def test_dispatch_job_delivers(monkeypatch, session_factory, pending_event):
    bus = PickingEventBus()
    seen = []

    async def handler(topic, payload):
        seen.append(topic)

    bus.subscribe("*", handler)
    monkeypatch.setattr(picking_jobs, "async_session_factory", session_factory)
    monkeypatch.setattr(picking_jobs, "get_event_bus", lambda: bus)

    result = await picking_jobs.dispatch_picking_events()

    assert result == {"status": "success", "delivered": 1}
    assert seen == ["session:created"]


async def test_dispatch_job_reports_errors(monkeypatch):
    def broken_factory():
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(picking_jobs, "async_session_factory", broken_factory)

    result = await picking_jobs.dispatch_picking_events()

    assert result["status"] == "error"
    assert "database unavailable" in result["error"]


async def test_cache_cleanup_job(monkeypatch):
    backend = InMemoryCache()
    await backend.set("expired", 1, ttl=0)
    monkeypatch.setattr(picking_jobs, "get_cache", lambda: CacheService(backend))

    result = await picking_jobs.cleanup_expired_cache()

    assert result == {"status": "success", "removed": 1}
