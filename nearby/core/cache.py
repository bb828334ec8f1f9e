"""TTL cache backends with prefix invalidation.

Cache calls never raise: a failing backend is logged and counted, and the
caller proceeds as on a miss. Values are stored as JSON so both backends
return the same shapes.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from typing import Any, Dict, Iterable, Optional, Tuple

import redis

from nearby.config import settings

logger = logging.getLogger(__name__)

_MAX_KEY_PARAMS_LENGTH = 420


def _stable_param_value(value: Any) -> str:
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    if value is None:
        return ""
    return str(value)


def build_cache_key(scope: str, params: Optional[Dict[str, Any]] = None) -> str:
    """
    Build a deterministic key under ``scope``.

    Every key produced for a scope starts with ``f"{scope}:"`` so the whole
    scope can be cleared with one prefix delete.
    """
    payload = params or {}
    parts = [f"{key}={_stable_param_value(payload[key])}" for key in sorted(payload)]
    joined = "&".join(parts)
    if len(joined) > _MAX_KEY_PARAMS_LENGTH:
        joined = hashlib.sha256(joined.encode("utf-8")).hexdigest()
    return f"{scope}:{joined}"


class CacheBackend:
    """Interface shared by cache backends."""

    name = "base"

    def __init__(self) -> None:
        self._stats_lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "sets": 0, "deletes": 0, "errors": 0}

    def _bump(self, stat: str, delta: int = 1) -> None:
        with self._stats_lock:
            self._stats[stat] = self._stats.get(stat, 0) + delta

    def _error(self, operation: str, key: str, exc: Exception) -> None:
        self._bump("errors")
        logger.warning("Cache %s failed for %s on %s backend: %s", operation, key, self.name, exc)

    def get(self, key: str) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        raise NotImplementedError

    def delete(self, key: str) -> int:
        raise NotImplementedError

    def delete_prefix(self, prefix: str) -> int:
        raise NotImplementedError

    def ping(self) -> bool:
        raise NotImplementedError

    def stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            data: Dict[str, Any] = dict(self._stats)
        data["backend"] = self.name
        return data


class InMemoryCache(CacheBackend):
    """Process-local TTL cache suitable for single-node deployments and tests."""

    name = "memory"

    def __init__(self, clock=time.monotonic) -> None:
        super().__init__()
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[float, str]] = {}
        self._clock = clock

    def _live_entry(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        return payload

    def get(self, key: str) -> Any:
        try:
            with self._lock:
                payload = self._live_entry(key)
            if payload is None:
                self._bump("misses")
                return None
            self._bump("hits")
            return json.loads(payload)
        except Exception as exc:
            self._error("get", key, exc)
            return None

    def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        try:
            payload = json.dumps(value, separators=(",", ":"), default=str)
            with self._lock:
                self._entries[key] = (self._clock() + max(int(ttl_seconds), 1), payload)
            self._bump("sets")
            return True
        except Exception as exc:
            self._error("set", key, exc)
            return False

    def delete(self, key: str) -> int:
        with self._lock:
            removed = 1 if self._entries.pop(key, None) is not None else 0
        if removed:
            self._bump("deletes")
        return removed

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [key for key in self._entries if key.startswith(prefix)]
            for key in keys:
                del self._entries[key]
        if keys:
            self._bump("deletes", len(keys))
        return len(keys)

    def keys(self) -> list:
        with self._lock:
            return [key for key in list(self._entries) if self._live_entry(key) is not None]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def ping(self) -> bool:
        return True


class RedisCache(CacheBackend):
    """Redis-backed cache; prefix deletes walk the keyspace with SCAN."""

    name = "redis"

    def __init__(self, client: "redis.Redis", scan_count: int = 200) -> None:
        super().__init__()
        self._client = client
        self._scan_count = scan_count

    @classmethod
    def from_url(cls, url: str, socket_timeout: float = 0.75) -> "RedisCache":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            health_check_interval=30,
        )
        return cls(client)

    def get(self, key: str) -> Any:
        try:
            raw = self._client.get(key)
            if not raw:
                self._bump("misses")
                return None
            self._bump("hits")
            return json.loads(raw)
        except Exception as exc:
            self._error("get", key, exc)
            return None

    def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        try:
            payload = json.dumps(value, separators=(",", ":"), default=str)
            self._client.setex(key, max(int(ttl_seconds), 1), payload)
            self._bump("sets")
            return True
        except Exception as exc:
            self._error("set", key, exc)
            return False

    def delete(self, key: str) -> int:
        try:
            removed = int(self._client.delete(key) or 0)
            if removed:
                self._bump("deletes", removed)
            return removed
        except Exception as exc:
            self._error("delete", key, exc)
            return 0

    def delete_prefix(self, prefix: str) -> int:
        total = 0
        try:
            cursor = 0
            while True:
                cursor, keys = self._client.scan(cursor=cursor, match=f"{prefix}*", count=self._scan_count)
                if keys:
                    total += int(self._client.delete(*keys) or 0)
                if cursor == 0:
                    break
        except Exception as exc:
            self._error("delete_prefix", prefix, exc)
        if total:
            self._bump("deletes", total)
        return total

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except Exception as exc:
            self._error("ping", "-", exc)
            return False


def invalidate_prefixes(backend: CacheBackend, prefixes: Iterable[str]) -> int:
    """Coarse invalidation: drop every key under each prefix."""
    prefixes = list(prefixes)
    removed = 0
    for prefix in prefixes:
        removed += backend.delete_prefix(prefix)
    logger.debug("Invalidated %d cache keys under %s", removed, prefixes)
    return removed


def create_cache() -> CacheBackend:
    """Build the configured backend; Redis when CACHE_REDIS_URL is set."""
    url = settings.CACHE_REDIS_URL.strip()
    if not url:
        return InMemoryCache()
    logger.info("Using Redis cache backend")
    return RedisCache.from_url(url, socket_timeout=settings.CACHE_SOCKET_TIMEOUT_SECONDS)


cache = create_cache()
