"""
Utility modules.

Request pacing and the owned news cache.
"""

from steam_news_relay.utils.cache import CacheEntry, NewsCache
from steam_news_relay.utils.rate_limiter import RateLimiter, RateLimiterConfig

__all__ = [
    "CacheEntry",
    "NewsCache",
    "RateLimiter",
    "RateLimiterConfig",
]
