"""
Document stores for subscriptions and user profiles.
"""

from steam_news_relay.storage.base import GameSubscriptionStore, UserDirectory
from steam_news_relay.storage.json_store import (
    DocumentFile,
    JsonGameSubscriptionStore,
    JsonUserDirectory,
)
from steam_news_relay.storage.memory import InMemoryGameSubscriptionStore, InMemoryUserDirectory

__all__ = [
    "DocumentFile",
    "GameSubscriptionStore",
    "InMemoryGameSubscriptionStore",
    "InMemoryUserDirectory",
    "JsonGameSubscriptionStore",
    "JsonUserDirectory",
    "UserDirectory",
]
