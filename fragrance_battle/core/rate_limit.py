"""Fixed-window request rate limiting.

Each limiter counts requests per client identity inside a window that starts
with the client's first request and lasts ``window_ms``.  When the window
expires the count starts again from zero, so a client can burst up to twice
the limit across a window boundary.

Counters live in a :class:`RateLimitStore`.  The default in-memory store is
only correct for a single API process; running several instances behind a
load balancer lets each instance admit the full quota independently.  Set
``RATE_LIMIT_BACKEND=redis`` to share counters between processes.
"""

import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

import redis.asyncio as aioredis
from fastapi import Request, Response

from fragrance_battle.core.config import settings
from fragrance_battle.core.errors import RateLimitExceeded
from fragrance_battle.core.redis_client import create_redis_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: float

    @property
    def reset_epoch_seconds(self) -> int:
        return math.ceil(self.reset_at_ms / 1000)

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_epoch_seconds),
        }


class RateLimitStore(ABC):

    @abstractmethod
    async def check_and_record(
        self, client_id: str, max_requests: int, window_ms: int, now_ms: float
    ) -> RateLimitResult:
        """Admit or reject one request from ``client_id`` and record it if admitted."""
        pass

    async def reset(self) -> None:
        """Forget every tracked window."""


@dataclass
class _Window:
    count: int
    reset_at_ms: float


class InMemoryRateLimitStore(RateLimitStore):
    """Per-process map of client id to its current window."""

    def __init__(self) -> None:
        self._windows: dict[str, _Window] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def _purge_expired(self, now_ms: float) -> None:
        expired = [key for key, window in self._windows.items() if window.reset_at_ms <= now_ms]
        for key in expired:
            del self._windows[key]

    async def check_and_record(
        self, client_id: str, max_requests: int, window_ms: int, now_ms: float
    ) -> RateLimitResult:
        self._purge_expired(now_ms)

        window = self._windows.get(client_id)
        if window is None:
            window = _Window(count=0, reset_at_ms=now_ms + window_ms)
            self._windows[client_id] = window

        if window.count >= max_requests:
            return RateLimitResult(
                allowed=False, limit=max_requests, remaining=0, reset_at_ms=window.reset_at_ms
            )

        window.count += 1
        return RateLimitResult(
            allowed=True,
            limit=max_requests,
            remaining=max(0, max_requests - window.count),
            reset_at_ms=window.reset_at_ms,
        )

    def clear(self) -> None:
        self._windows.clear()

    async def reset(self) -> None:
        self.clear()


class RedisRateLimitStore(RateLimitStore):
    """Shared counters using ``INCR`` with a ``PEXPIRE`` set on the first hit.

    Keys expire on their own, so no purge sweep is needed.  Rejected requests
    still increment the counter; that only affects the key until it expires.
    """

    KEY_PREFIX = "ratelimit:"

    def __init__(self, client: aioredis.Redis):
        self.client = client

    async def check_and_record(
        self, client_id: str, max_requests: int, window_ms: int, now_ms: float
    ) -> RateLimitResult:
        key = f"{self.KEY_PREFIX}{client_id}"
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.pttl(key)
            count, ttl_ms = await pipe.execute()

        if ttl_ms is None or ttl_ms < 0:
            await self.client.pexpire(key, window_ms)
            ttl_ms = window_ms

        reset_at_ms = now_ms + ttl_ms
        if count > max_requests:
            return RateLimitResult(False, max_requests, 0, reset_at_ms)
        return RateLimitResult(True, max_requests, max(0, max_requests - count), reset_at_ms)

    async def reset(self) -> None:
        async for key in self.client.scan_iter(match=f"{self.KEY_PREFIX}*"):
            await self.client.delete(key)


def _now_ms() -> float:
    return time.time() * 1000


def client_identity(request: Request) -> str:
    """Best-effort client identity: first ``X-Forwarded-For`` hop, else peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RateLimiter:
    """FastAPI dependency enforcing one named fixed-window budget.

    Usage::

        @router.post("/search", dependencies=[Depends(search_limiter)])
    """

    def __init__(
        self,
        name: str,
        max_requests: int,
        window_ms: int,
        store: RateLimitStore,
        clock: Callable[[], float] = _now_ms,
    ):
        self.name = name
        self.max_requests = max_requests
        self.window_ms = window_ms
        self.store = store
        self.clock = clock

    async def __call__(self, request: Request, response: Response) -> RateLimitResult:
        client_id = client_identity(request)
        now_ms = self.clock()
        result = await self.store.check_and_record(
            f"{self.name}:{client_id}", self.max_requests, self.window_ms, now_ms
        )
        headers = result.headers()
        if not result.allowed:
            logger.info(
                "Rate limit '%s' exceeded for %s (limit=%d, resets in %.0f ms)",
                self.name, client_id, self.max_requests, result.reset_at_ms - now_ms,
            )
            headers["Retry-After"] = str(max(0, math.ceil((result.reset_at_ms - now_ms) / 1000)))
            raise RateLimitExceeded(result.limit, result.reset_at_ms, headers)
        response.headers.update(headers)
        return result


def build_rate_limit_store(backend: Optional[str] = None) -> RateLimitStore:
    """Return the configured counter store."""
    backend = backend or settings.rate_limit_backend
    if backend == "memory":
        return InMemoryRateLimitStore()
    elif backend == "redis":
        return RedisRateLimitStore(create_redis_client())
    raise ValueError(f"Unknown rate limit backend: {backend}")


rate_limit_store = build_rate_limit_store()

general_limiter = RateLimiter(
    "general", settings.rate_limit_general, settings.rate_limit_window_ms, rate_limit_store
)
search_limiter = RateLimiter(
    "search", settings.rate_limit_search, settings.rate_limit_window_ms, rate_limit_store
)
ai_limiter = RateLimiter(
    "ai", settings.rate_limit_ai, settings.rate_limit_window_ms, rate_limit_store
)
