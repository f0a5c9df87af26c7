"""
Service wiring.

Builds stores, clients, the dispatcher and the jobs from settings and
owns their lifetime. Used by the CLI and the scheduler.
"""

from datetime import timedelta
from typing import Any

from steam_news_relay.clients.library import SteamLibraryClient
from steam_news_relay.clients.news import NewsSource, SteamNewsSource
from steam_news_relay.config import Settings, get_settings
from steam_news_relay.contracts.news import NewsItem
from steam_news_relay.logger import get_logger
from steam_news_relay.notifications.dispatcher import NotificationDispatcher
from steam_news_relay.storage.base import GameSubscriptionStore, UserDirectory
from steam_news_relay.storage.json_store import JsonGameSubscriptionStore, JsonUserDirectory
from steam_news_relay.sync.engine import SyncEngine
from steam_news_relay.sync.feed import NewsFeed
from steam_news_relay.sync.library import LibrarySource, LibrarySync
from steam_news_relay.sync.maintenance import MaintenanceReport, run_maintenance
from steam_news_relay.sync.subscriptions import SubscriptionManager
from steam_news_relay.utils.cache import NewsCache
from steam_news_relay.utils.rate_limiter import RateLimiter


class RelayRuntime:
    """
    All long-lived collaborators of the relay.

    Collaborators not passed in are built from settings: JSON stores in
    `sync.data_dir`, the Steam news client, the configured push
    provider and, when a Steam API key is set, the owned-games client.
    Steam clients share one rate limiter.

    Example:
        >>> async with RelayRuntime() as runtime:
        ...     sent = await runtime.engine.run_sync_cycle()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        subscriptions: GameSubscriptionStore | None = None,
        users: UserDirectory | None = None,
        news_source: NewsSource | None = None,
        dispatcher: NotificationDispatcher | None = None,
        library: LibrarySource | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        sync = self.settings.sync
        self._logger = get_logger(__name__, component="runtime")
        self._closables: list[Any] = []

        limiter = RateLimiter.per_minute(self.settings.steam.requests_per_minute)

        self.subscriptions = subscriptions or JsonGameSubscriptionStore(sync.data_dir)
        self.users = users or JsonUserDirectory(sync.data_dir)

        if news_source is None:
            news_source = SteamNewsSource(rate_limiter=limiter)
            self._closables.append(news_source)
        self.news_source = news_source

        if dispatcher is None:
            dispatcher = NotificationDispatcher.from_config(self.settings.notifications)
            self._closables.append(dispatcher)
        self.dispatcher = dispatcher

        if library is None and self.settings.steam.api_key is not None:
            client = SteamLibraryClient(rate_limiter=limiter)
            self._closables.append(client)
            library = client
        self.library = library

        self.manager = SubscriptionManager(self.subscriptions, self.users)
        self.engine = SyncEngine(
            self.subscriptions,
            self.users,
            self.news_source,
            self.dispatcher,
            config=sync,
        )
        cache: NewsCache[list[NewsItem]] = NewsCache(
            ttl_seconds=sync.cache_ttl_seconds,
            max_entries=sync.cache_max_entries,
        )
        self.feed = NewsFeed(self.news_source, cache)
        self.library_sync = (
            LibrarySync(
                self.users,
                self.manager,
                self.library,
                cooldown=timedelta(hours=sync.library_sync_cooldown_hours),
                dispatcher=self.dispatcher,
            )
            if self.library is not None
            else None
        )

    async def run_maintenance(self) -> MaintenanceReport:
        return await run_maintenance(self.manager, self.library_sync)

    async def close(self) -> None:
        """Close every client this runtime created."""
        for closable in reversed(self._closables):
            await closable.close()
        self._closables.clear()
        self._logger.debug("Runtime closed")

    async def __aenter__(self) -> "RelayRuntime":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
