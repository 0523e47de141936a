import asyncio
import uuid

from app.services.cache_service import CacheService, InMemoryCache


async def test_in_memory_expiry():
    cache = InMemoryCache()
    await cache.set("short", {"a": 1}, ttl=0)
    await cache.set("long", {"a": 2}, ttl=60)
    await asyncio.sleep(0.01)

    assert await cache.get("short") is None
    assert await cache.get("long") == {"a": 2}


async def test_cleanup_expired():
    cache = InMemoryCache()
    await cache.set("gone", 1, ttl=0)
    await cache.set("kept", 2, ttl=60)
    await asyncio.sleep(0.01)

    assert await cache.cleanup_expired() == 1
    assert await cache.get("kept") == 2


async def test_stored_values_are_copies():
    cache = InMemoryCache()
    value = {"items": [1, 2]}
    await cache.set("k", value)
    value["items"].append(3)

    cached = await cache.get("k")
    cached["items"].append(4)

    assert await cache.get("k") == {"items": [1, 2]}


async def test_sessions_are_isolated_per_organization():
    service = CacheService(InMemoryCache(), namespace="picking")
    org_a, org_b, session_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

    await service.set_picking_session(org_a, session_id, {"status": "in_progress"}, ttl=60)

    assert await service.get_picking_session(org_a, session_id) == {"status": "in_progress"}
    assert await service.get_picking_session(org_b, session_id) is None

    assert await service.delete_picking_session(org_a, session_id) is True
    assert await service.get_picking_session(org_a, session_id) is None

