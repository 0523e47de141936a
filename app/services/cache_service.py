"""
Multi-Organization Cache Service for live picking sessions.

IMPORTANT: All cache keys MUST include organization_id to prevent
cross-organization data leakage.

Supports:
1. Redis (preferred for production, shared across processes)
2. In-memory fallback (for development/testing)

Usage:
    cache = get_cache()

    await cache.set_picking_session(org_id, session_id, session_data)
    data = await cache.get_picking_session(org_id, session_id)
    await cache.delete_picking_session(org_id, session_id)

Backend failures raise CacheError; a live session is never read as a miss.
"""
import json
from typing import Any, Optional, Dict
from datetime import datetime, timedelta, timezone
from abc import ABC, abstractmethod
import asyncio
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.config import settings

logger = logging.getLogger(__name__)


class CacheError(Exception):
    """Raised when the cache backend cannot serve a request."""
    pass


class CacheBackend(ABC):
    """Abstract cache backend interface."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (seconds)."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        pass


class InMemoryCache(CacheBackend):
    """
    In-memory cache for development/fallback.

    Note: In production prefer Redis, as in-memory cache doesn't share
    across multiple server instances.
    """

    def __init__(self):
        self._cache: Dict[str, tuple[Any, datetime]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            if key in self._cache:
                value, expires_at = self._cache[key]
                if expires_at > datetime.now(timezone.utc):
                    return value
                else:
                    del self._cache[key]
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        async with self._lock:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
            # Store the JSON form so readers never share mutable objects
            self._cache[key] = (json.loads(json.dumps(value)), expires_at)
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    async def cleanup_expired(self) -> int:
        """Remove expired entries. Call periodically to prevent memory bloat."""
        async with self._lock:
            now = datetime.now(timezone.utc)
            expired_keys = [
                k for k, (_, expires_at) in self._cache.items()
                if expires_at <= now
            ]
            for key in expired_keys:
                del self._cache[key]
            return len(expired_keys)


class RedisCache(CacheBackend):
    """Redis cache backend for production."""

    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._client = None

    async def _get_client(self):
        if self._client is None:
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        try:
            client = await self._get_client()
            value = await client.get(key)
        except RedisError as e:
            logger.error(f"Redis GET failed for {key}: {e}")
            raise CacheError(f"Cache read failed: {e}") from e
        if value:
            return json.loads(value)
        return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        try:
            client = await self._get_client()
            await client.set(key, json.dumps(value), ex=ttl)
            return True
        except RedisError as e:
            logger.error(f"Redis SET failed for {key}: {e}")
            raise CacheError(f"Cache write failed: {e}") from e

    async def delete(self, key: str) -> bool:
        try:
            client = await self._get_client()
            return bool(await client.delete(key))
        except RedisError as e:
            logger.error(f"Redis DELETE failed for {key}: {e}")
            raise CacheError(f"Cache delete failed: {e}") from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class CacheService:
    """
    Organization-isolated cache service.

    Cache keys follow the format:

        {namespace}:{organization_id}:{resource_type}:{identifier}

    Example:
        picking:6f1c...:picking_session:9a2b...
    """

    def __init__(self, backend: CacheBackend, namespace: str = "picking"):
        self._backend = backend
        self._namespace = namespace

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    def _make_key(self, organization_id: str, key: str) -> str:
        """
        Create namespaced, organization-isolated cache key.

        IMPORTANT: organization_id MUST be included to prevent leakage.
        """
        if not organization_id:
            logger.warning(f"Cache key created without organization_id: {key}")
        return f"{self._namespace}:{organization_id}:{key}"

    async def get(self, organization_id: str, key: str) -> Optional[Any]:
        """Get value from organization-specific cache."""
        return await self._backend.get(self._make_key(organization_id, key))

    async def set(self, organization_id: str, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in organization-specific cache."""
        return await self._backend.set(self._make_key(organization_id, key), value, ttl)

    async def delete(self, organization_id: str, key: str) -> bool:
        """Delete key from organization-specific cache."""
        return await self._backend.delete(self._make_key(organization_id, key))

    # ==================== Picking Session Cache ====================

    def _picking_session_key(self, session_id: str) -> str:
        """Generate cache key for a live picking session (organization added by caller)."""
        return f"picking_session:{session_id}"

    async def get_picking_session(self, organization_id: str, session_id: str) -> Optional[dict]:
        """Get cached live session for an organization."""
        return await self.get(str(organization_id), self._picking_session_key(str(session_id)))

    async def set_picking_session(
        self,
        organization_id: str,
        session_id: str,
        data: dict,
        ttl: Optional[int] = None
    ) -> bool:
        """Cache live session data for an organization."""
        ttl = ttl or settings.PICKING_SESSION_CACHE_TTL
        return await self.set(
            str(organization_id), self._picking_session_key(str(session_id)), data, ttl
        )

    async def delete_picking_session(self, organization_id: str, session_id: str) -> bool:
        """Drop a session from the cache (terminal sessions live only in the database)."""
        return await self.delete(str(organization_id), self._picking_session_key(str(session_id)))


# Singleton cache instance
_cache_instance: Optional[CacheService] = None


def get_cache() -> CacheService:
    """Get the cache service singleton."""
    global _cache_instance

    if _cache_instance is None:
        if settings.REDIS_URL and settings.CACHE_ENABLED:
            backend = RedisCache(settings.REDIS_URL)
            logger.info("Cache initialized with Redis backend")
        else:
            backend = InMemoryCache()
            logger.info("Cache initialized with in-memory backend")

        _cache_instance = CacheService(backend, namespace=settings.CACHE_NAMESPACE)

    return _cache_instance
