# promptcraft/auth.py
"""
API key auth and pluggable per-key rate limiter for the /api/* surface.

Settings used: mock_auth (bypass in dev), api_keys, api_keys_file,
rate_limit_per_minute, redis_url (enables the Redis-backed limiter).
"""

import os
import threading
import time
from typing import Dict, Iterable, Optional, Set, Tuple

import redis

from promptcraft.config import get_settings
from promptcraft.monitoring import logger

_settings = get_settings()
MOCK_AUTH = _settings.mock_auth
RATE_LIMIT_PER_MINUTE = _settings.rate_limit_per_minute


def load_api_keys(inline: Iterable[str], keys_file: str = "") -> Set[str]:
    keys = {k.strip() for k in inline if k and k.strip()}
    if keys_file and os.path.exists(keys_file):
        try:
            with open(keys_file, "r", encoding="utf-8") as f:
                keys.update(line.strip() for line in f if line.strip())
        except OSError:
            logger.warning("Could not read API keys file", extra={"path": keys_file})
    return keys


API_KEYS = load_api_keys(_settings.api_keys, _settings.api_keys_file)


class InMemoryFixedWindowLimiter:
    """Thread-safe in-memory fixed-window rate limiter (per-process)."""

    def __init__(self, limit_per_minute: int = 60):
        self.limit = limit_per_minute
        self._store: Dict[str, Tuple[int, int]] = {}  # key -> (window_minute, count)
        self._lock = threading.Lock()

    def allow_request(self, api_key: str) -> Tuple[bool, Optional[int]]:
        window = int(time.time()) // 60
        with self._lock:
            start, count = self._store.get(api_key, (window, 0))
            if start != window:
                count = 0
            if count >= self.limit:
                return False, 0
            self._store[api_key] = (window, count + 1)
            return True, self.limit - (count + 1)

    def reset(self):
        with self._lock:
            self._store.clear()


class RedisFixedWindowLimiter:
    """Redis fixed-window counter using INCR + EXPIRE; fails open."""

    def __init__(self, redis_url: str, limit_per_minute: int = 60):
        self.limit = limit_per_minute
        self._client = redis.from_url(redis_url, decode_responses=True)

    def allow_request(self, api_key: str) -> Tuple[bool, Optional[int]]:
        window = int(time.time()) // 60
        key = f"promptcraft:rate:{api_key}:{window}"
        try:
            count = int(self._client.incr(key))
            if count == 1:
                self._client.expire(key, 120)
        except redis.RedisError:
            logger.warning("Redis rate limiter unavailable; allowing request")
            return True, None
        if count > self.limit:
            return False, 0
        return True, self.limit - count


def _make_limiter():
    if _settings.redis_url:
        return RedisFixedWindowLimiter(_settings.redis_url, RATE_LIMIT_PER_MINUTE)
    return InMemoryFixedWindowLimiter(RATE_LIMIT_PER_MINUTE)


_rate_limiter = _make_limiter()


def is_key_allowed(api_key: Optional[str]) -> bool:
    if MOCK_AUTH:
        return True
    return bool(api_key) and api_key in API_KEYS


def check_rate_limit(api_key: str) -> Tuple[bool, Optional[int]]:
    """Check and consume quota. Returns (allowed, remaining)."""
    if MOCK_AUTH:
        return True, None
    if not api_key:
        return False, 0
    return _rate_limiter.allow_request(api_key)
