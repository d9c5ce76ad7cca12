"""In-memory token-bucket rate limiter for the token endpoint.

One bucket per client identifier, created on first sight. Buckets refill
continuously at ``rate`` tokens per second up to ``capacity``. Idle buckets
are dropped by ``prune``.
"""

import threading
import time
from typing import Callable, Optional

from fastapi import Request

from .logging import get_logger

__all__ = ["RateLimiter", "resolve_client_identifier"]

logger = get_logger(__name__)


class _Bucket:
    """A single token bucket for one client."""

    __slots__ = ("tokens", "last_refill", "lock")

    def __init__(self, capacity: float, now: float):
        self.tokens: float = capacity
        self.last_refill: float = now
        self.lock = threading.Lock()


class RateLimiter:
    """Token-bucket rate limiter keyed by client identifier.

    Parameters
    ----------
    rate : float
        Tokens added per second.
    capacity : int
        Maximum burst size (bucket capacity).
    """

    def __init__(self, rate: float, capacity: int, clock: Callable[[], float] = time.monotonic):
        if rate <= 0 or capacity < 1:
            raise ValueError("rate must be positive and capacity at least 1")
        self.rate = rate
        self.capacity = capacity
        self._clock = clock
        self._buckets: dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    def _bucket(self, key: str) -> _Bucket:
        bucket = self._buckets.get(key)
        if bucket is None:
            with self._lock:
                bucket = self._buckets.get(key)
                if bucket is None:
                    logger.debug("Creating rate limit bucket", client=key)
                    bucket = _Bucket(self.capacity, self._clock())
                    self._buckets[key] = bucket
        return bucket

    def admit(self, key: str) -> bool:
        """Return True if the request is allowed, consuming one token."""
        bucket = self._bucket(key)
        with bucket.lock:
            now = self._clock()
            elapsed = max(0.0, now - bucket.last_refill)
            bucket.tokens = min(self.capacity, bucket.tokens + elapsed * self.rate)
            bucket.last_refill = now

            if bucket.tokens >= 1.0:
                bucket.tokens -= 1.0
                return True
        logger.warning("Rate limit exceeded", client=key)
        return False

    def prune(self, max_idle: float = 86400.0) -> int:
        """Remove buckets untouched for more than *max_idle* seconds. Returns count removed."""
        now = self._clock()
        with self._lock:
            stale = [k for k, b in self._buckets.items() if now - b.last_refill > max_idle]
            for k in stale:
                del self._buckets[k]
        return len(stale)

    def __len__(self) -> int:
        return len(self._buckets)

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()


def resolve_client_identifier(request: Request, client_id: Optional[str] = None) -> str:
    """client_id field, then X-Forwarded-For first hop, then X-Real-IP, then peer address."""
    if client_id:
        return client_id

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"
