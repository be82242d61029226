from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from rfq_sheet.core.config import settings
from rfq_sheet.core.logging import get_logger, log_event

logger = get_logger(__name__)


@dataclass(frozen=True)
class QuotaWindow:
    count: int
    resets_at: float


class QuotaStore:
    """Fixed-window hit counters keyed by client identity."""

    def get(self, *, key: str) -> QuotaWindow | None:  # pragma: no cover
        raise NotImplementedError

    def increment(self, *, key: str, window_seconds: int) -> QuotaWindow:  # pragma: no cover
        """Atomically count one hit, opening a new window if none is live."""
        raise NotImplementedError

    def decrement(self, *, key: str) -> QuotaWindow | None:  # pragma: no cover
        """Take back one hit from a live window; no-op once the window has lapsed."""
        raise NotImplementedError

    def expire(self, *, key: str) -> None:  # pragma: no cover
        raise NotImplementedError


class MemoryQuotaStore(QuotaStore):
    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, QuotaWindow] = {}
        self._next_sweep_at = 0.0

    def get(self, *, key: str) -> QuotaWindow | None:
        with self._lock:
            return self._live_window(key)

    def increment(self, *, key: str, window_seconds: int) -> QuotaWindow:
        with self._lock:
            current = self._live_window(key)
            if current is None:
                now = self._clock()
                self._sweep(now, window_seconds=window_seconds)
                window = QuotaWindow(count=1, resets_at=now + window_seconds)
            else:
                window = QuotaWindow(count=current.count + 1, resets_at=current.resets_at)
            self._windows[key] = window
            return window

    def decrement(self, *, key: str) -> QuotaWindow | None:
        with self._lock:
            current = self._live_window(key)
            if current is None:
                return None
            window = QuotaWindow(count=max(current.count - 1, 0), resets_at=current.resets_at)
            self._windows[key] = window
            return window

    def expire(self, *, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def _sweep(self, now: float, *, window_seconds: int) -> None:
        # At most one full pass per window length, on the path that adds a key.
        if now < self._next_sweep_at:
            return
        expired = [k for k, w in self._windows.items() if w.resets_at <= now]
        for k in expired:
            del self._windows[k]
        self._next_sweep_at = now + window_seconds
        if expired:
            log_event(logger, "quota.store.sweep", removed=len(expired), held=len(self._windows))

    def _live_window(self, key: str) -> QuotaWindow | None:
        window = self._windows.get(key)
        if window is None:
            return None
        if window.resets_at <= self._clock():
            del self._windows[key]
            return None
        return window


class RedisQuotaStore(QuotaStore):
    def __init__(
        self,
        client: Any,
        *,
        prefix: str = "rfq_sheet:upload_quota:",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._prefix = prefix
        self._clock = clock

    def get(self, *, key: str) -> QuotaWindow | None:
        name = self._prefix + key
        pipe = self._client.pipeline(transaction=True)
        pipe.get(name)
        pipe.pttl(name)
        raw_count, ttl_ms = pipe.execute()
        if raw_count is None or ttl_ms is None or int(ttl_ms) <= 0:
            return None
        return QuotaWindow(count=int(raw_count), resets_at=self._clock() + int(ttl_ms) / 1000)

    def increment(self, *, key: str, window_seconds: int) -> QuotaWindow:
        name = self._prefix + key
        pipe = self._client.pipeline(transaction=True)
        pipe.incr(name)
        # NX: only the hit that opens the window sets its expiry.
        pipe.expire(name, window_seconds, nx=True)
        pipe.pttl(name)
        count, _, ttl_ms = pipe.execute()
        ttl_ms = int(ttl_ms) if ttl_ms is not None and int(ttl_ms) > 0 else window_seconds * 1000
        return QuotaWindow(count=int(count), resets_at=self._clock() + ttl_ms / 1000)

    def decrement(self, *, key: str) -> QuotaWindow | None:
        name = self._prefix + key
        pipe = self._client.pipeline(transaction=True)
        pipe.decr(name)
        pipe.pttl(name)
        count, ttl_ms = pipe.execute()
        ttl_ms = int(ttl_ms) if ttl_ms is not None else -2
        if ttl_ms <= 0:
            # The window lapsed before the refund; DECR just created a key with no expiry.
            self._client.delete(name)
            return None
        return QuotaWindow(count=max(int(count), 0), resets_at=self._clock() + ttl_ms / 1000)

    def expire(self, *, key: str) -> None:
        self._client.delete(self._prefix + key)


_store: QuotaStore | None = None


def get_quota_store() -> QuotaStore:
    global _store  # noqa: PLW0603
    if _store is not None:
        return _store
    if settings.quota_backend == "redis":
        import redis

        _store = RedisQuotaStore(redis.Redis.from_url(settings.redis_url))
    else:
        _store = MemoryQuotaStore()
    log_event(logger, "quota.store.ready", backend=settings.quota_backend)
    return _store
