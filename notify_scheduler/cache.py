"""Key/value cache behind settings lookups and per-class job locks.

Values are JSON-friendly and every entry carries a TTL in seconds. The
in-process backend is the default; ``CACHE_BACKEND=redis`` shares entries
(and therefore job locks) between worker processes.
"""
from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any

import redis

from notify_scheduler.config import settings
from notify_scheduler.metrics import record_cache_event


logger = logging.getLogger(__name__)


def cache_key(prefix: str, identifier: str | int | None = None) -> str:
    if identifier in (None, ''):
        return prefix
    return ':'.join((prefix, str(identifier)))


def _ttl_seconds(ttl: int | None) -> int:
    return max(1, int(ttl or 0))


class CacheBackend:
    """Storage contract. ``add`` and ``delete_if`` are the lock primitives.

    The fallbacks below serialise through one process-wide mutex; backends
    with native compare operations override them.
    """

    _fallback_mutex = threading.Lock()

    def get(self, key: str) -> Any | None:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl: int) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def delete_prefix(self, prefix: str) -> None:
        raise NotImplementedError

    def add(self, key: str, value: Any, ttl: int) -> bool:
        with self._fallback_mutex:
            if self.get(key) is not None:
                return False
            self.set(key, value, ttl)
            return True

    def delete_if(self, key: str, expected: Any) -> bool:
        with self._fallback_mutex:
            if self.get(key) != expected:
                return False
            self.delete(key)
            return True


class MemoryCacheBackend(CacheBackend):
    def __init__(self) -> None:
        self._mutex = threading.RLock()
        self._entries: dict[str, tuple[float, Any]] = {}

    def _live(self, key: str, now: float) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        deadline, value = entry
        if now >= deadline:
            del self._entries[key]
            return None
        return value

    def get(self, key: str) -> Any | None:
        with self._mutex:
            return self._live(key, time.monotonic())

    def set(self, key: str, value: Any, ttl: int) -> None:
        with self._mutex:
            self._entries[key] = (time.monotonic() + _ttl_seconds(ttl), value)

    def add(self, key: str, value: Any, ttl: int) -> bool:
        with self._mutex:
            now = time.monotonic()
            if self._live(key, now) is not None:
                return False
            self._entries[key] = (now + _ttl_seconds(ttl), value)
            return True

    def delete(self, key: str) -> None:
        with self._mutex:
            self._entries.pop(key, None)

    def delete_if(self, key: str, expected: Any) -> bool:
        with self._mutex:
            if self._live(key, time.monotonic()) != expected:
                return False
            del self._entries[key]
            return True

    def delete_prefix(self, prefix: str) -> None:
        with self._mutex:
            for key in [key for key in self._entries if key.startswith(prefix)]:
                del self._entries[key]


class RedisCacheBackend(CacheBackend):
    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> RedisCacheBackend:
        return cls(redis.Redis.from_url(url, decode_responses=True))

    @staticmethod
    def _decode(raw: str | None) -> Any | None:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw

    def get(self, key: str) -> Any | None:
        return self._decode(self.client.get(key))

    def set(self, key: str, value: Any, ttl: int) -> None:
        self.client.set(key, json.dumps(value, default=str), ex=_ttl_seconds(ttl))

    def add(self, key: str, value: Any, ttl: int) -> bool:
        return bool(self.client.set(key, json.dumps(value, default=str), nx=True, ex=_ttl_seconds(ttl)))

    def delete(self, key: str) -> None:
        self.client.delete(key)

    def delete_if(self, key: str, expected: Any) -> bool:
        if self.get(key) != expected:
            return False
        self.client.delete(key)
        return True

    def delete_prefix(self, prefix: str) -> None:
        for key in self.client.scan_iter(match=f'{prefix}*', count=200):
            self.client.delete(key)


class CacheManager:
    """Cached lookups with hit/miss/invalidate counts fed to the metrics window."""

    def __init__(self, backend: CacheBackend, default_ttl: int | None = None) -> None:
        self.backend = backend
        self.default_ttl = default_ttl

    def get_cached(self, key: str) -> Any | None:
        value = self.backend.get(key)
        record_cache_event('cache_miss' if value is None else 'cache_hit')
        return value

    def set_cached(self, key: str, value: Any, ttl: int | None = None) -> None:
        if ttl is None:
            ttl = self.default_ttl or settings.default_cache_ttl
        self.backend.set(key, value, ttl)

    def invalidate(self, key: str) -> None:
        self.backend.delete(key)
        record_cache_event('cache_invalidate')

    def invalidate_prefix(self, prefix: str) -> None:
        self.backend.delete_prefix(prefix)
        record_cache_event('cache_invalidate')


def _build_cache_backend() -> CacheBackend:
    if settings.cache_backend != 'redis' or not settings.cache_redis_url:
        return MemoryCacheBackend()
    try:
        return RedisCacheBackend.from_url(settings.cache_redis_url)
    except ValueError:
        logger.exception('cache_backend_unavailable backend=redis fallback=memory')
        return MemoryCacheBackend()


cache = CacheManager(backend=_build_cache_backend())
