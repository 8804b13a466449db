# src/edushield/cache/store.py
"""
Read-through / write-invalidate cache over a byte-oriented backend.

The store is fail-open: a backend error, a timeout or an unreadable
payload is logged and treated as a miss (reads) or a no-op (writes). The
authoritative store is always consulted on a miss, so a cache outage can
cost latency but never correctness.

A key whose invalidation failed may still hold a stale value in the
backend. This process stops trusting such a key until its TTL has run
out, or until a later write or delete for it succeeds.
"""

from __future__ import annotations

import asyncio
import enum
import json
import time
from functools import lru_cache
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Protocol

import redis.asyncio as redis
from pydantic import TypeAdapter
from pydantic_core import to_jsonable_python
from redis.exceptions import RedisError

from edushield.app_logger import CACHE, get_logger
from edushield.common.errors import CacheBackendError
from edushield.core.config import Settings, settings as default_settings

log = get_logger(CACHE)


class CacheEntity(str, enum.Enum):
    STUDENT = "student"
    PERFORMANCE = "performance"
    USER = "user"


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[bytes]: ...

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class RedisCacheBackend:
    """``CacheBackend`` over ``redis.asyncio``; errors surface as CacheBackendError."""

    def __init__(self, url: Optional[str] = None, client: Optional[redis.Redis] = None):
        self._r = client if client is not None else redis.from_url(url or default_settings.REDIS_URL)
        log.info("RedisCacheBackend initialized: url=%s", url or default_settings.REDIS_URL)

    async def get(self, key: str) -> Optional[bytes]:
        try:
            return await self._r.get(key)
        except RedisError as exc:
            raise CacheBackendError("get", key, exc) from exc

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        try:
            await self._r.set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            raise CacheBackendError("set", key, exc) from exc

    async def delete(self, key: str) -> None:
        try:
            await self._r.delete(key)
        except RedisError as exc:
            raise CacheBackendError("delete", key, exc) from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._r.ping())
        except RedisError as exc:
            log.warning("Redis ping failed: %s", exc)
            return False

    async def close(self) -> None:
        await self._r.aclose()


@lru_cache(maxsize=64)
def _adapter(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


def _dumps(value: Any) -> bytes:
    return json.dumps(to_jsonable_python(value), separators=(",", ":")).encode("utf-8")


class CacheCoherentStore:
    def __init__(
        self,
        backend: Optional[CacheBackend],
        *,
        ttls: Mapping[CacheEntity, int],
        op_timeout: Optional[float] = None,
        enabled: bool = True,
    ) -> None:
        self._backend = backend
        self._ttls = dict(ttls)
        self._op_timeout = op_timeout
        self._enabled = enabled and backend is not None
        # key -> monotonic deadline after which the backend copy has expired anyway
        self._untrusted: dict[str, float] = {}

    @classmethod
    def from_settings(
        cls, backend: Optional[CacheBackend] = None, cfg: Optional[Settings] = None
    ) -> "CacheCoherentStore":
        cfg = cfg or default_settings
        if backend is None and cfg.CACHE_ENABLED:
            backend = RedisCacheBackend(cfg.REDIS_URL)
        return cls(
            backend,
            ttls={
                CacheEntity.STUDENT: cfg.CACHE_TTL_STUDENT_SECONDS,
                CacheEntity.PERFORMANCE: cfg.CACHE_TTL_PERFORMANCE_SECONDS,
                CacheEntity.USER: cfg.CACHE_TTL_USER_SECONDS,
            },
            op_timeout=cfg.CACHE_OP_TIMEOUT_SECONDS,
            enabled=cfg.CACHE_ENABLED,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    def ttl_for(self, entity: CacheEntity) -> int:
        return self._ttls[entity]

    # ------------------------------------------------------------------
    # Backend round trips (never raise)
    # ------------------------------------------------------------------
    async def _call(self, awaitable: Awaitable[Any]) -> Any:
        if self._op_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self._op_timeout)

    def _is_untrusted(self, key: str) -> bool:
        deadline = self._untrusted.get(key)
        if deadline is None:
            return False
        if time.monotonic() >= deadline:
            del self._untrusted[key]
            return False
        return True

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def get(self, entity: CacheEntity, key: str, type_: Any = None) -> Any:
        """Return the cached value (validated as *type_* when given) or None on miss."""
        if not self._enabled or self._is_untrusted(key):
            return None
        try:
            raw = await self._call(self._backend.get(key))
        except Exception as exc:  # fail open
            log.warning("cache get failed, treating as miss: entity=%s key=%s error=%s", entity.value, key, exc)
            return None
        if raw is None:
            log.debug("MISS %s", key)
            return None
        try:
            data = json.loads(raw)
            value = _adapter(type_).validate_python(data) if type_ is not None else data
        except Exception as exc:  # unreadable payload
            log.warning("cache payload unreadable, treating as miss: key=%s error=%s", key, exc)
            await self._delete(entity, key)
            return None
        log.debug("HIT %s", key)
        return value

    async def put(self, entity: CacheEntity, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if not self._enabled or value is None:
            return
        ttl_seconds = ttl if ttl is not None else self.ttl_for(entity)
        try:
            payload = _dumps(value)
            await self._call(self._backend.set(key, payload, ttl_seconds))
        except Exception as exc:  # fail open
            log.warning("cache set failed, skipped: entity=%s key=%s error=%s", entity.value, key, exc)
            return
        self._untrusted.pop(key, None)
        log.debug("SET %s (ttl=%s)", key, ttl_seconds)

    async def invalidate_all(self, entity: CacheEntity, keys: Iterable[str]) -> None:
        if not self._enabled:
            return
        for key in dict.fromkeys(keys):
            await self._delete(entity, key)

    async def get_or_load(
        self,
        entity: CacheEntity,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        type_: Any = None,
        ttl: Optional[int] = None,
    ) -> Any:
        """Read-through: return the cached value, else load, cache and return it."""
        cached = await self.get(entity, key, type_)
        if cached is not None:
            return cached
        value = await loader()
        if value is not None:
            await self.put(entity, key, value, ttl)
        return value

    async def _delete(self, entity: CacheEntity, key: str) -> None:
        try:
            await self._call(self._backend.delete(key))
        except Exception as exc:  # fail open
            self._untrusted[key] = time.monotonic() + self.ttl_for(entity)
            log.warning(
                "cache invalidation failed, key bypassed until ttl: entity=%s key=%s error=%s",
                entity.value, key, exc,
            )
            return
        self._untrusted.pop(key, None)
        log.debug("DEL %s", key)


__all__ = [
    "CacheEntity",
    "CacheBackend",
    "RedisCacheBackend",
    "CacheCoherentStore",
]
