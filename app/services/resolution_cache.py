"""
Host → link code resolution cache
=================================

Request routing asks this cache which link a custom hostname serves.
Hits live DOMAIN_CACHE_TTL seconds, misses DOMAIN_CACHE_NEGATIVE_TTL, so a
newly activated domain becomes routable shortly after activation without
any invalidation signal from the write path.

Backends:
- InMemoryCacheBackend: per-process dict (default)
- RedisCacheBackend: shared across workers; errors degrade to cache misses
"""

import json
import logging
import time
from typing import Callable, Iterable, Optional, Tuple

import redis

from app.config import settings

logger = logging.getLogger("customdomains.cache")

_MISSING = object()


class CacheBackend:
    def get(self, key: str):
        """Return the cached value (None is a valid negative entry) or _MISSING."""
        raise NotImplementedError

    def set(self, key: str, value: Optional[str], ttl: int) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class InMemoryCacheBackend(CacheBackend):
    # Unlocked on purpose: a race costs one redundant lookup at worst.
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, Tuple[Optional[str], float]] = {}

    def get(self, key: str):
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        value, expires = entry
        if expires <= self._clock():
            self._entries.pop(key, None)
            return _MISSING
        return value

    def set(self, key: str, value: Optional[str], ttl: int) -> None:
        self._entries[key] = (value, self._clock() + ttl)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()


class RedisCacheBackend(CacheBackend):
    PREFIX = "customdomain:host:"

    def __init__(self, client: redis.Redis):
        self._redis = client

    def get(self, key: str):
        try:
            data = self._redis.get(self.PREFIX + key)
        except redis.RedisError as e:
            logger.debug("Cache get error: %s", e)
            return _MISSING
        if data is None:
            return _MISSING
        return json.loads(data).get("code")

    def set(self, key: str, value: Optional[str], ttl: int) -> None:
        try:
            self._redis.setex(self.PREFIX + key, ttl, json.dumps({"code": value}))
        except redis.RedisError as e:
            logger.debug("Cache set error: %s", e)

    def delete(self, key: str) -> None:
        try:
            self._redis.delete(self.PREFIX + key)
        except redis.RedisError as e:
            logger.debug("Cache delete error: %s", e)

    def clear(self) -> None:
        try:
            keys = self._redis.keys(self.PREFIX + "*")
            if keys:
                self._redis.delete(*keys)
        except redis.RedisError as e:
            logger.debug("Cache clear error: %s", e)


class ResolutionCache:
    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        ttl: Optional[int] = None,
        negative_ttl: Optional[int] = None,
        bypass_hosts: Optional[Iterable[str]] = None,
    ):
        self.backend = backend or InMemoryCacheBackend()
        self.ttl = ttl if ttl is not None else settings.DOMAIN_CACHE_TTL
        self.negative_ttl = negative_ttl if negative_ttl is not None else settings.DOMAIN_CACHE_NEGATIVE_TTL
        self.bypass_hosts = {h.lower() for h in (
            bypass_hosts if bypass_hosts is not None else settings.default_hosts
        )}

    def is_bypassed(self, host: str) -> bool:
        return not host or host.lower() in self.bypass_hosts

    def resolve(self, host: str, loader: Callable[[str], Optional[str]]) -> Optional[str]:
        """
        Return the link code for `host`, consulting `loader` on miss/expiry.

        Loader exceptions propagate and nothing is cached for that host.
        """
        if self.is_bypassed(host):
            return None
        key = host.lower()
        cached = self.backend.get(key)
        if cached is not _MISSING:
            return cached

        code = loader(key)
        self.backend.set(key, code, self.ttl if code else self.negative_ttl)
        return code

    def invalidate(self, host: Optional[str] = None) -> None:
        if host:
            self.backend.delete(host.lower())
        else:
            self.backend.clear()


_cache: Optional[ResolutionCache] = None


def build_backend() -> CacheBackend:
    if settings.DOMAIN_CACHE_BACKEND == "redis":
        url = settings.DOMAIN_CACHE_REDIS_URL or (
            f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/1"
        )
        logger.info("Domain resolution cache backed by Redis: %s", url)
        return RedisCacheBackend(
            redis.Redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        )
    return InMemoryCacheBackend()


def get_resolution_cache() -> ResolutionCache:
    global _cache
    if _cache is None:
        _cache = ResolutionCache(backend=build_backend())
    return _cache


def set_resolution_cache(cache: Optional[ResolutionCache]) -> None:
    """Swap the process-wide cache (tests, alternative backends)."""
    global _cache
    _cache = cache
