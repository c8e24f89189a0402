"""Retrying, rate-limited execution of outbound provider calls.

Every call to an external provider (Amadeus, Viator, the chat model) goes
through a :class:`RetryingFetcher`. Each provider owns one
:class:`RateLimiter`: callers that arrive concurrently queue on its lock, so
only one request per provider is in flight and consecutive requests start at
least ``min_interval_s`` apart.

Retry policy:
    * 429, 5xx, timeouts and transport errors are retried up to
      ``max_attempts`` times in total;
    * the delay doubles per attempt up to ``max_delay_s``;
    * a 429 with ``Retry-After`` waits for the server-provided value instead;
    * other 4xx responses fail immediately.
Exhausted or non-retryable failures raise :class:`FetchError`.
"""
from __future__ import annotations

import asyncio
import logging
import time
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar

import httpx

from src.core.config import FetchPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


class FetchError(RuntimeError):
    """Raised when an outbound call fails permanently."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        status_code: Optional[int] = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code
        self.attempts = attempts


class RateLimiter:
    """Single in-flight gate with a minimum spacing between request starts.

    Use as an async context manager around one request::

        async with limiter:
            response = await client.get(...)
    """

    def __init__(
        self,
        min_interval_s: float = 0.0,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.min_interval_s = min_interval_s
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_start: Optional[float] = None

    async def __aenter__(self) -> "RateLimiter":
        await self._lock.acquire()
        try:
            if self._last_start is not None and self.min_interval_s > 0:
                wait = self._last_start + self.min_interval_s - self._clock()
                if wait > 0:
                    logger.debug("Rate limiter pacing request by %.3fs", wait)
                    await self._sleep(wait)
            self._last_start = self._clock()
        except BaseException:
            self._lock.release()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._lock.release()


def _response_of(exc: BaseException) -> Any:
    return getattr(exc, "response", None)


def status_code_of(exc: BaseException) -> Optional[int]:
    """Best-effort HTTP status of an exception raised by httpx or an SDK."""

    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    response = _response_of(exc)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def retry_after_of(exc: BaseException, *, now: Optional[datetime] = None) -> Optional[float]:
    """Parse ``Retry-After`` (seconds or HTTP date) from the exception's response."""

    getter = getattr(getattr(_response_of(exc), "headers", None), "get", None)
    if getter is None:
        return None
    raw = getter("Retry-After") or getter("retry-after")
    if raw is None:
        return None
    raw = str(raw).strip()
    try:
        return max(0.0, float(raw))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    return max(0.0, (when - current).total_seconds())


def classify_failure(exc: BaseException) -> Tuple[bool, Optional[int]]:
    """Return ``(retryable, status_code)`` for an exception."""

    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return True, None
    status = status_code_of(exc)
    if status is not None:
        return status == 429 or status >= 500, status
    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return True, None
    if exc.__cause__ is not None and exc.__cause__ is not exc:
        return classify_failure(exc.__cause__)
    return False, None


class RetryingFetcher:
    """Executes provider calls with bounded retries and shared pacing."""

    def __init__(
        self,
        provider: str,
        policy: FetchPolicy = FetchPolicy(),
        *,
        limiter: Optional[RateLimiter] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if policy.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.provider = provider
        self.policy = policy
        self.limiter = limiter or RateLimiter(policy.min_interval_s, sleep=sleep)
        self._sleep = sleep

    def _delay_for(self, exc: BaseException, status: Optional[int], attempt: int) -> float:
        if status == 429:
            retry_after = retry_after_of(exc)
            if retry_after is not None:
                return retry_after
            return max(self.policy.default_retry_after_s, self.policy.backoff(attempt))
        return self.policy.backoff(attempt)

    async def call(self, operation: Callable[[], Awaitable[T]], *, label: str = "request") -> T:
        """Run ``operation`` under the rate limiter, retrying transient failures."""

        attempts = self.policy.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                async with self.limiter:
                    return await operation()
            except FetchError:
                raise
            except Exception as exc:
                retryable, status = classify_failure(exc)
                if not retryable:
                    logger.warning(
                        "[%s] %s failed with non-retryable error (status=%s): %s",
                        self.provider,
                        label,
                        status,
                        exc,
                    )
                    raise FetchError(self.provider, f"{label} failed: {exc}", status_code=status, attempts=attempt) from exc
                if attempt == attempts:
                    logger.warning("[%s] %s failed after %s attempts: %s", self.provider, label, attempt, exc)
                    raise FetchError(
                        self.provider,
                        f"{label} failed after {attempt} attempts: {exc}",
                        status_code=status,
                        attempts=attempt,
                    ) from exc
                delay = self._delay_for(exc, status, attempt)
                logger.warning(
                    "[%s] %s attempt %s/%s failed (status=%s), retrying in %.2fs",
                    self.provider,
                    label,
                    attempt,
                    attempts,
                    status,
                    delay,
                )
                await self._sleep(delay)
        raise FetchError(self.provider, f"{label} was never attempted")  # pragma: no cover

    async def send(self, client: httpx.AsyncClient, request: httpx.Request) -> httpx.Response:
        """Send an httpx request, treating error statuses as failures."""

        async def _operation() -> httpx.Response:
            response = await client.send(request)
            response.raise_for_status()
            return response

        return await self.call(_operation, label=f"{request.method} {request.url.path}")
