"""Fixed-window rate limiting with pluggable backing stores."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

from redis import Redis

from nutritrack.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    name: str
    limit: int
    window_seconds: int
    message: str = "Too many requests, please try again later"


@dataclass
class _Window:
    started_at: float
    count: int
    window_seconds: int


class RateLimiter:
    """Interface: ``allow`` consumes one request from the key's current window."""

    def allow(self, key: str, limit: int, window_seconds: int) -> bool:
        raise NotImplementedError

    def retry_after(self, key: str, window_seconds: int) -> int:
        """Seconds until the key's current window resets."""
        raise NotImplementedError


class InMemoryRateLimiter(RateLimiter):
    """Fixed-window rate limiter suitable for single-node deployments."""

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_interval: float = 60.0) -> None:
        self._lock = threading.Lock()
        self._windows: Dict[str, _Window] = {}
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._last_sweep = clock()

    def _sweep(self, now: float) -> None:
        """Drop windows that have already ended. Caller holds the lock."""
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now
        expired = [k for k, w in self._windows.items() if now - w.started_at >= w.window_seconds]
        for key in expired:
            del self._windows[key]

    def _current(self, key: str, window_seconds: int, now: float) -> _Window:
        window = self._windows.get(key)
        if window is None or now - window.started_at >= window_seconds:
            window = _Window(started_at=now, count=0, window_seconds=window_seconds)
            self._windows[key] = window
        return window

    def allow(self, key: str, limit: int, window_seconds: int) -> bool:
        now = self._clock()
        with self._lock:
            self._sweep(now)
            window = self._current(key, window_seconds, now)
            if window.count >= limit:
                return False
            window.count += 1
            return True

    def retry_after(self, key: str, window_seconds: int) -> int:
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None:
                return 0
            return max(0, int(window.started_at + window_seconds - now + 0.999))

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


class RedisRateLimiter(RateLimiter):
    """Fixed-window counters shared across processes through Redis."""

    def __init__(self, client: Redis, prefix: str = "rate") -> None:
        self._client = client
        self._prefix = prefix

    def _key(self, key: str, window_seconds: int) -> str:
        window_index = int(time.time() // window_seconds)
        return f"{self._prefix}:{key}:{window_index}"

    def allow(self, key: str, limit: int, window_seconds: int) -> bool:
        redis_key = self._key(key, window_seconds)
        pipe = self._client.pipeline()
        pipe.incr(redis_key)
        pipe.expire(redis_key, window_seconds)
        count, _ = pipe.execute()
        return int(count) <= limit

    def retry_after(self, key: str, window_seconds: int) -> int:
        return window_seconds - int(time.time()) % window_seconds


def build_policies(settings: Settings) -> Dict[str, RateLimitPolicy]:
    return {
        "auth": RateLimitPolicy(
            "auth",
            settings.AUTH_RATE_LIMIT,
            settings.AUTH_RATE_LIMIT_WINDOW_SECONDS,
            "Too many authentication attempts, please try again later",
        ),
        "refresh": RateLimitPolicy(
            "refresh",
            settings.REFRESH_RATE_LIMIT,
            settings.REFRESH_RATE_LIMIT_WINDOW_SECONDS,
            "Too many refresh attempts, please try again later",
        ),
        "status": RateLimitPolicy("status", settings.STATUS_RATE_LIMIT, settings.STATUS_RATE_LIMIT_WINDOW_SECONDS),
        "mutation": RateLimitPolicy(
            "mutation", settings.MUTATION_RATE_LIMIT, settings.MUTATION_RATE_LIMIT_WINDOW_SECONDS
        ),
        "query": RateLimitPolicy("query", settings.QUERY_RATE_LIMIT, settings.QUERY_RATE_LIMIT_WINDOW_SECONDS),
    }


def build_rate_limiter(settings: Settings) -> RateLimiter:
    backend = settings.RATE_LIMIT_BACKEND.lower().strip()
    if backend == "redis":
        logger.info("Using Redis rate limiter at %s", settings.REDIS_URL)
        return RedisRateLimiter(Redis.from_url(settings.REDIS_URL, socket_timeout=5.0))
    if backend == "memory":
        return InMemoryRateLimiter()
    raise ValueError(f"Unknown RATE_LIMIT_BACKEND: {settings.RATE_LIMIT_BACKEND}")
