"""
Steam Web API clients.

All clients share the base retry, pacing and error handling.
"""

from steam_news_relay.clients.base import (
    APIError,
    BaseSteamClient,
    RateLimitError,
    ResponseValidationError,
    SteamAPIError,
)
from steam_news_relay.clients.library import SteamLibraryClient
from steam_news_relay.clients.news import NewsSource, SteamNewsSource

__all__ = [
    # Base classes and errors
    "APIError",
    "BaseSteamClient",
    "RateLimitError",
    "ResponseValidationError",
    "SteamAPIError",
    # Clients
    "NewsSource",
    "SteamLibraryClient",
    "SteamNewsSource",
]
