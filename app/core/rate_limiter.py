"""Token bucket rate limiting for market data calls."""

from __future__ import annotations

import threading
import time

from app.core.config import settings
from app.core.logging import get_logger


logger = get_logger("core.rate_limiter")


class RateLimiter:
    """
    Token bucket rate limiter.

    Thread-safe; yfinance calls acquire from worker threads of the
    provider's executor, so only the blocking ``acquire_sync`` is offered.
    """

    def __init__(
        self,
        name: str,
        calls_per_second: float = 2.0,
        burst_size: int = 5,
    ):
        self.name = name
        self.calls_per_second = calls_per_second
        self.burst_size = burst_size
        self.tokens = float(burst_size)
        self.last_update = time.monotonic()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_update
        self.tokens = min(
            self.burst_size,
            self.tokens + elapsed * self.calls_per_second
        )
        self.last_update = now

    def acquire_sync(self, timeout: float = 30.0) -> bool:
        """
        Acquire a token, blocking the calling thread if necessary.

        Args:
            timeout: Maximum time to wait for a token

        Returns:
            True if token acquired, False if timeout
        """
        start = time.monotonic()

        while True:
            with self._lock:
                self._refill()

                if self.tokens >= 1.0:
                    self.tokens -= 1.0
                    return True

                wait_time = (1.0 - self.tokens) / self.calls_per_second

            if time.monotonic() - start + wait_time > timeout:
                logger.warning(f"Rate limiter {self.name} timeout after {timeout}s")
                return False

            time.sleep(min(wait_time, 0.5))

    def status(self) -> dict:
        """Get current rate limiter status."""
        with self._lock:
            self._refill()
            return {
                "name": self.name,
                "tokens_available": self.tokens,
                "burst_size": self.burst_size,
                "calls_per_second": self.calls_per_second,
            }


_limiters: dict[str, RateLimiter] = {}
_limiters_lock = threading.Lock()


def get_rate_limiter(
    name: str,
    calls_per_second: float = 2.0,
    burst_size: int = 5,
) -> RateLimiter:
    """Get or create a named rate limiter (rate args only apply on creation)."""
    with _limiters_lock:
        if name not in _limiters:
            _limiters[name] = RateLimiter(name, calls_per_second, burst_size)
            logger.info(
                f"Created rate limiter '{name}': {calls_per_second}/s, burst={burst_size}"
            )
        return _limiters[name]


YFINANCE_LIMITER = "yfinance"


def get_yfinance_limiter() -> RateLimiter:
    """Get the shared yfinance limiter (Yahoo publishes no official limits)."""
    return get_rate_limiter(
        YFINANCE_LIMITER,
        calls_per_second=settings.yfinance_calls_per_second,
        burst_size=settings.yfinance_burst_size,
    )
