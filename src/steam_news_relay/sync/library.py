"""
Library auto-follow.

For users who opted in, follows every game in their Steam library that
they do not follow yet. Runs as part of the maintenance job.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol

import httpx

from steam_news_relay.clients.base import SteamAPIError
from steam_news_relay.contracts.library import OwnedGame
from steam_news_relay.contracts.subscriptions import UserNotificationProfile
from steam_news_relay.logger import get_logger
from steam_news_relay.notifications.dispatcher import Dispatcher
from steam_news_relay.notifications.templates import build_auto_follow_notification
from steam_news_relay.storage.base import UserDirectory
from steam_news_relay.sync.stats import BatchStats, StatsCollector, UnitResult
from steam_news_relay.sync.subscriptions import AlreadyFollowingError, SubscriptionManager

MAX_AUTO_FOLLOW_NOTIFICATIONS = 3


class LibrarySource(Protocol):
    async def fetch_owned_games(self, user_id: str) -> list[OwnedGame]: ...


class LibrarySync:
    """Auto-follows newly owned games for opted-in users."""

    def __init__(
        self,
        users: UserDirectory,
        manager: SubscriptionManager,
        library: LibrarySource,
        *,
        cooldown: timedelta = timedelta(hours=6),
        dispatcher: Dispatcher | None = None,
    ) -> None:
        self._users = users
        self._manager = manager
        self._library = library
        self._cooldown = cooldown
        self._dispatcher = dispatcher
        self._logger = get_logger(__name__, component="library_sync")

    def is_due(self, profile: UserNotificationProfile, now: datetime | None = None) -> bool:
        """Whether the user's library may be looked up again."""
        if profile.library_synced_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        return profile.library_synced_at <= now - self._cooldown

    async def run(self) -> BatchStats:
        """
        Sync every opted-in user whose cooldown has passed.

        Returns:
            BatchStats: users processed, users with new follows,
            games followed, and failed users
        """
        collector = StatsCollector()
        profiles = [p for p in await self._users.list_all() if p.auto_follow_new_games]

        self._logger.info("Starting library sync", opted_in_users=len(profiles))

        for profile in profiles:
            if not self.is_due(profile):
                self._logger.debug("Library synced recently, skipping", user_id=profile.user_id)
                continue
            try:
                result = await self._sync_user(profile)
            except Exception as e:
                self._logger.exception(
                    "Library sync failed for user", user_id=profile.user_id, error=str(e)
                )
                result = UnitResult(profile.user_id, error=str(e))
            collector.record(result)

        stats = collector.summary()
        self._logger.info("Library sync complete", **stats.to_dict())
        return stats

    async def _sync_user(self, profile: UserNotificationProfile) -> UnitResult:
        user_id = profile.user_id
        try:
            owned = await self._library.fetch_owned_games(user_id)
        except (SteamAPIError, httpx.HTTPError) as e:
            self._logger.error("Could not fetch library", user_id=user_id, error=str(e))
            return UnitResult(user_id, error=str(e))

        followed: list[OwnedGame] = []
        for game in owned:
            if game.game_id in profile.followed_game_ids:
                continue
            try:
                await self._manager.follow(user_id, game.game_id, game.name or None)
            except AlreadyFollowingError:
                continue
            followed.append(game)

        current = await self._users.get(user_id)
        if current is not None:
            current.library_synced_at = datetime.now(timezone.utc)
            await self._users.save(current)

        notified = await self._announce(current or profile, followed)

        if followed:
            self._logger.info("Auto-followed games", user_id=user_id, games=len(followed))
        return UnitResult(user_id, updates=len(followed), notifications=notified)

    async def _announce(self, profile: UserNotificationProfile, games: list[OwnedGame]) -> int:
        if self._dispatcher is None or not profile.is_eligible or profile.push_token is None:
            return 0

        sent = 0
        for game in games[:MAX_AUTO_FOLLOW_NOTIFICATIONS]:
            notification = build_auto_follow_notification(
                game.game_id, game.name or f"Game {game.game_id}"
            )
            if await self._dispatcher.dispatch(profile.push_token, notification):
                sent += 1
        return sent
