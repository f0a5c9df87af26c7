"""
Push notifications: templates, providers and the dispatcher.
"""

from steam_news_relay.notifications.dispatcher import Dispatcher, NotificationDispatcher
from steam_news_relay.notifications.providers import (
    FirebaseProvider,
    NotificationError,
    NotificationProvider,
    OneSignalProvider,
    SimulationProvider,
    get_provider,
)
from steam_news_relay.notifications.templates import (
    build_auto_follow_notification,
    build_news_notification,
)

__all__ = [
    "Dispatcher",
    "FirebaseProvider",
    "NotificationDispatcher",
    "NotificationError",
    "NotificationProvider",
    "OneSignalProvider",
    "SimulationProvider",
    "build_auto_follow_notification",
    "build_news_notification",
    "get_provider",
]
