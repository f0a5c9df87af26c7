"""
Data contracts.

Pydantic models for Steam API payloads, the records this service
stores, and the push messages it sends.
"""

from steam_news_relay.contracts.library import (
    OwnedGame,
    OwnedGamesPayload,
    OwnedGamesResponse,
)
from steam_news_relay.contracts.news import (
    AppNews,
    GameId,
    NewsItem,
    SteamNewsItem,
    SteamNewsResponse,
)
from steam_news_relay.contracts.notifications import Notification
from steam_news_relay.contracts.subscriptions import (
    GameSubscription,
    UserNotificationProfile,
)

__all__ = [
    "AppNews",
    "GameId",
    "GameSubscription",
    "NewsItem",
    "Notification",
    "OwnedGame",
    "OwnedGamesPayload",
    "OwnedGamesResponse",
    "SteamNewsItem",
    "SteamNewsResponse",
    "UserNotificationProfile",
]
