"""Resilience patterns for calls to the embedding provider and for request throttling.

- Rate limiter capability (in-memory sliding window, Redis INCR + EXPIRE)
- Circuit Breaker (CLOSED → OPEN → HALF_OPEN → CLOSED)
- Retry with Exponential Backoff
"""
import abc
import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeVar

from vibe_search.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ── Rate Limit ──

class RateLimiter(abc.ABC):
    """Per-key request budget.

    ``check`` both tests and consumes one unit of the budget; it returns
    False once ``limit`` hits have been recorded for ``key`` inside the
    current window.
    """

    def __init__(self, limit: int, window: float):
        self.limit = limit
        self.window = window

    @abc.abstractmethod
    async def check(self, key: str) -> bool:
        ...

    @abc.abstractmethod
    async def reset(self, key: str | None = None) -> None:
        """Forget the hits for ``key``, or for every key when None."""


class InMemoryRateLimiter(RateLimiter):
    """Sliding-window limiter local to one process.

    Expired hits are pruned whenever their key is checked, so no periodic
    sweep is needed.
    """

    def __init__(self, limit: int, window: float, clock: Callable[[], float] = time.monotonic):
        super().__init__(limit, window)
        self._clock = clock
        self._hits: dict[str, list[float]] = {}

    async def check(self, key: str) -> bool:
        now = self._clock()
        hits = [t for t in self._hits.get(key, []) if now - t < self.window]

        if len(hits) >= self.limit:
            self._hits[key] = hits
            logger.warning("Rate limit exceeded for %s: %d/%d", key, len(hits), self.limit)
            return False

        hits.append(now)
        self._hits[key] = hits
        return True

    async def reset(self, key: str | None = None) -> None:
        if key is None:
            self._hits.clear()
        else:
            self._hits.pop(key, None)


class RedisRateLimiter(RateLimiter):
    """Fixed-window limiter shared by all workers through Redis.

    Falls back to an in-memory limiter while Redis is unreachable.
    """

    def __init__(
        self,
        redis_factory: Callable[[], Awaitable[Any]],
        limit: int,
        window: int,
        prefix: str = "ratelimit",
    ):
        super().__init__(limit, window)
        self._redis_factory = redis_factory
        self.prefix = prefix
        self._fallback = InMemoryRateLimiter(limit, window)

    async def check(self, key: str) -> bool:
        try:
            redis = await self._redis_factory()
            redis_key = f"{self.prefix}:{key}"
            current = await redis.incr(redis_key)
            if current == 1:
                await redis.expire(redis_key, int(self.window))
            return current <= self.limit
        except Exception as exc:
            logger.warning("Redis rate limiter unavailable, using in-memory fallback: %s", exc)
            return await self._fallback.check(key)

    async def reset(self, key: str | None = None) -> None:
        await self._fallback.reset(key)
        try:
            redis = await self._redis_factory()
            if key is not None:
                await redis.delete(f"{self.prefix}:{key}")
                return
            async for redis_key in redis.scan_iter(match=f"{self.prefix}:*"):
                await redis.delete(redis_key)
        except Exception as exc:
            logger.warning("Redis rate limiter reset failed: %s", exc)


def get_rate_limiter() -> RateLimiter:
    """Build the search rate limiter selected by RATE_LIMIT_BACKEND."""
    if settings.RATE_LIMIT_BACKEND == "redis":
        from vibe_search.utils.redis_client import get_redis

        return RedisRateLimiter(
            get_redis,
            limit=settings.SEARCH_RATE_LIMIT,
            window=settings.SEARCH_RATE_WINDOW_SECONDS,
            prefix="ratelimit:search",
        )
    return InMemoryRateLimiter(settings.SEARCH_RATE_LIMIT, settings.SEARCH_RATE_WINDOW_SECONDS)


# ── Circuit Breaker ──

class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Raised when circuit breaker is open and blocking requests."""


class CircuitBreaker:
    """Stop calling a provider that keeps failing.

    - CLOSED: normal operation
    - ``failure_threshold`` consecutive failures → OPEN for ``open_timeout`` seconds
    - After open_timeout → HALF_OPEN (one trial call)
    - Trial success → CLOSED / failure → OPEN

    Only exceptions accepted by ``counts_as_failure`` trip the breaker, so
    caller mistakes (bad request, bad credentials) don't shut out healthy
    traffic.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        open_timeout: float = 30.0,
        counts_as_failure: Callable[[BaseException], bool] = lambda exc: True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.open_timeout = open_timeout
        self._counts_as_failure = counts_as_failure
        self._clock = clock

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at: float = 0.0

    def _should_allow(self) -> bool:
        if self.state == CircuitState.OPEN:
            if self._clock() - self.opened_at >= self.open_timeout:
                self.state = CircuitState.HALF_OPEN
                logger.info("Circuit %s: OPEN → HALF_OPEN", self.name)
                return True
            return False
        return True

    def record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            logger.info("Circuit %s: HALF_OPEN → CLOSED", self.name)
        self.state = CircuitState.CLOSED
        self.failure_count = 0

    def record_failure(self) -> None:
        self.failure_count += 1
        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            if self.state != CircuitState.OPEN:
                logger.warning(
                    "Circuit %s: %s → OPEN (failures=%d)",
                    self.name, self.state.value.upper(), self.failure_count,
                )
            self.state = CircuitState.OPEN
            self.opened_at = self._clock()

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Execute func through the circuit breaker."""
        if not self._should_allow():
            raise CircuitOpenError(f"Circuit '{self.name}' is OPEN")

        try:
            result = await func(*args, **kwargs)
        except Exception as exc:
            if self._counts_as_failure(exc):
                self.record_failure()
            raise
        self.record_success()
        return result

    def reset(self) -> None:
        self.state = CircuitState.CLOSED
        self.failure_count = 0


# ── Retry with Exponential Backoff ──

async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_retries: int = 3,
    backoff_base: float = 0.5,
    backoff_factor: float = 2.0,
    is_retryable: Callable[[BaseException], bool] = lambda exc: False,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> T:
    """Execute func, retrying when ``is_retryable(exc)`` says so.

    Delay: backoff_base * (backoff_factor ** attempt)
        → 0.5s, 1s, 2s by default
    """
    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as exc:
            if not is_retryable(exc):
                raise
            if attempt >= max_retries:
                logger.error("Max retries (%d) exceeded: %s", max_retries, exc)
                raise
            delay = backoff_base * (backoff_factor ** attempt)
            logger.warning(
                "Retry %d/%d after %.1fs: %s",
                attempt + 1, max_retries, delay, exc,
            )
            await sleep(delay)

    raise RuntimeError("unreachable")
