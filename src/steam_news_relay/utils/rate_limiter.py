"""
Request pacing for the Steam Web API.

A token bucket shared by every request a client makes. Sync cycles
already poll games one after another; the bucket additionally keeps the
sustained rate under the API's informal tolerance when a cycle covers
many games.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

from steam_news_relay.logger import get_logger


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter."""

    requests_per_minute: int = 40
    burst_size: int = 5

    def __post_init__(self) -> None:
        if self.requests_per_minute < 1:
            raise ValueError("requests_per_minute must be at least 1")
        if self.burst_size < 1:
            raise ValueError("burst_size must be at least 1")


@dataclass
class RateLimiter:
    """
    Token bucket rate limiter.

    Up to `burst_size` requests pass immediately, after which callers
    wait for tokens refilled at `requests_per_minute`.

    Example:
        >>> limiter = RateLimiter(RateLimiterConfig(requests_per_minute=40))
        >>> async with limiter:
        ...     await client.get(url)
    """

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    _tokens: float = field(init=False)
    _last_refill: float = field(init=False)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)
    _logger: Any = field(init=False)

    def __post_init__(self) -> None:
        self._tokens = float(self.config.burst_size)
        self._last_refill = time.monotonic()
        self._logger = get_logger(__name__, component="rate_limiter")

    @classmethod
    def per_minute(cls, requests_per_minute: int, *, burst_size: int = 5) -> "RateLimiter":
        """Shortcut for a limiter with the given sustained rate."""
        return cls(RateLimiterConfig(requests_per_minute=requests_per_minute, burst_size=burst_size))

    @property
    def _refill_rate(self) -> float:
        """Tokens added per second."""
        return self.config.requests_per_minute / 60.0

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(float(self.config.burst_size), self._tokens + elapsed * self._refill_rate)
        self._last_refill = now

    async def acquire(self) -> float:
        """
        Take one token, sleeping until one is available.

        Returns:
            float: Seconds spent waiting
        """
        async with self._lock:
            self._refill()
            waited = 0.0

            if self._tokens < 1:
                waited = (1 - self._tokens) / self._refill_rate
                self._logger.debug(
                    "Pacing outbound request",
                    wait_seconds=round(waited, 2),
                    tokens_available=round(self._tokens, 2),
                )
                await asyncio.sleep(waited)
                self._refill()

            self._tokens -= 1
            return waited

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass

    @property
    def available_tokens(self) -> float:
        """Current token count (for monitoring)."""
        self._refill()
        return self._tokens
