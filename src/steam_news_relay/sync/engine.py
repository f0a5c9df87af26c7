"""
News synchronization engine.

One cycle walks every GameSubscription, fetches the game's recent news
once, keeps the items newer than the stored watermark, pushes each of
them to every eligible subscriber and then advances the watermark.

Steam is called once per followed game per cycle no matter how many
users follow it. Games are processed one after another; a failure on
one game or one subscriber is logged and the cycle moves on.
"""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx

from steam_news_relay.clients.base import SteamAPIError
from steam_news_relay.clients.news import NewsSource
from steam_news_relay.config import SyncConfig, get_settings
from steam_news_relay.contracts.news import NewsItem
from steam_news_relay.contracts.subscriptions import GameSubscription, UserNotificationProfile
from steam_news_relay.logger import cycle_context, get_logger
from steam_news_relay.notifications.dispatcher import Dispatcher
from steam_news_relay.notifications.templates import build_news_notification
from steam_news_relay.storage.base import GameSubscriptionStore, UserDirectory
from steam_news_relay.sync.stats import BatchStats, StatsCollector, UnitResult, subscription_summary


def select_new_items(items: Iterable[NewsItem], watermark: int) -> list[NewsItem]:
    """
    Items published strictly after `watermark`, oldest first.

    An item dated exactly at the watermark was already delivered.
    """
    return sorted(
        (item for item in items if item.published_at > watermark),
        key=lambda item: item.published_at,
    )


@dataclass
class CycleResult:
    """Outcome of one sync cycle."""

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None
    stats: BatchStats = field(default_factory=BatchStats)
    skipped: bool = False
    cycle_id: str | None = None

    @property
    def notifications_sent(self) -> int:
        return self.stats.notifications_sent

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()


class SyncEngine:
    """
    Runs news sync cycles.

    Only one cycle runs at a time per engine; a trigger that fires while
    a cycle is in progress is skipped rather than queued.
    """

    def __init__(
        self,
        subscriptions: GameSubscriptionStore,
        users: UserDirectory,
        news_source: NewsSource,
        dispatcher: Dispatcher,
        *,
        config: SyncConfig | None = None,
    ) -> None:
        config = config or get_settings().sync
        self._subscriptions = subscriptions
        self._users = users
        self._news_source = news_source
        self._dispatcher = dispatcher
        self._news_count = config.news_count
        self._fetch_timeout = config.fetch_timeout_seconds
        self._dispatch_timeout = config.dispatch_timeout_seconds
        self._lock = asyncio.Lock()
        self._logger = get_logger(__name__, component="sync_engine")

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run_sync_cycle(self) -> int:
        """
        Run one cycle.

        Returns:
            int: Number of notifications successfully dispatched
        """
        result = await self.run_cycle()
        return result.notifications_sent

    async def run_cycle(self) -> CycleResult:
        """
        Run one cycle and return its full result.

        Raises:
            Exception: Only when the subscription list cannot be loaded
        """
        if self._lock.locked():
            self._logger.warning("Sync cycle already running, skipping trigger")
            return CycleResult(skipped=True, completed_at=datetime.now(timezone.utc))

        async with self._lock:
            with cycle_context() as cycle_id:
                return await self._run_locked(CycleResult(cycle_id=cycle_id))

    async def _run_locked(self, result: CycleResult) -> CycleResult:
        records = await self._subscriptions.list_all()

        if not records:
            self._logger.info("No followed games, nothing to check")
            result.completed_at = datetime.now(timezone.utc)
            return result

        summary = subscription_summary(records)
        self._logger.info(
            "Starting sync cycle",
            games=summary.total_games,
            subscriptions=summary.total_subscriptions,
        )

        collector = StatsCollector()
        for index, record in enumerate(records, 1):
            try:
                unit = await self._process_game(record)
            except Exception as e:
                self._logger.exception(
                    "Unexpected error processing game",
                    game_id=record.game_id,
                    error=str(e),
                )
                unit = UnitResult(record.game_id, error=str(e))
            collector.record(unit)
            self._logger.debug(
                "Game processed",
                game_id=record.game_id,
                progress=f"{index}/{len(records)}",
                new_items=unit.updates,
                notifications=unit.notifications,
            )

        result.stats = collector.summary()
        result.completed_at = datetime.now(timezone.utc)

        self._logger.info(
            "Sync cycle complete",
            duration_seconds=round(result.duration_seconds, 2),
            api_calls_saved=summary.calls_saved,
            savings_ratio=round(summary.savings_ratio, 3),
            **result.stats.to_dict(),
        )
        return result

    async def _process_game(self, record: GameSubscription) -> UnitResult:
        game_id = record.game_id

        if record.is_orphan:
            self._logger.warning("Skipping subscription without subscribers", game_id=game_id)
            return UnitResult(game_id)

        try:
            fetched = await asyncio.wait_for(
                self._news_source.fetch_recent_news(game_id, self._news_count),
                timeout=self._fetch_timeout,
            )
        except asyncio.TimeoutError:
            self._logger.error(
                "News fetch timed out",
                game_id=game_id,
                timeout_seconds=self._fetch_timeout,
            )
            return UnitResult(game_id, error="news fetch timed out")
        except (SteamAPIError, httpx.HTTPError) as e:
            self._logger.error("News fetch failed", game_id=game_id, error=str(e))
            return UnitResult(game_id, error=str(e))

        new_items = select_new_items(fetched, record.last_news_watermark)
        if not new_items:
            return UnitResult(game_id)

        # Subscribers may have changed while the fetch was in flight
        current = await self._subscriptions.get(game_id)
        if current is None or current.is_orphan:
            self._logger.info("Game unfollowed during fetch, dropping news", game_id=game_id)
            return UnitResult(game_id)

        new_watermark = max(item.published_at for item in new_items)
        self._logger.info(
            "New news found",
            game_id=game_id,
            new_items=len(new_items),
            subscribers=len(current.subscribers),
        )

        recipients = await self._resolve_recipients(current)
        sent = 0
        for profile in recipients:
            sent += await self._notify_subscriber(current, profile, new_items)

        if not await self._subscriptions.advance_watermark(game_id, new_watermark):
            self._logger.info(
                "Watermark not stored, record removed or already ahead",
                game_id=game_id,
                watermark=new_watermark,
            )

        return UnitResult(game_id, updates=len(new_items), notifications=sent)

    async def _resolve_recipients(self, record: GameSubscription) -> list[UserNotificationProfile]:
        try:
            return await self._users.find_eligible_by_ids(sorted(record.subscribers))
        except Exception as e:
            self._logger.error(
                "Could not resolve subscribers",
                game_id=record.game_id,
                error=str(e),
            )
            return []

    async def _notify_subscriber(
        self,
        record: GameSubscription,
        profile: UserNotificationProfile,
        items: list[NewsItem],
    ) -> int:
        """Push every item to one subscriber; returns how many were delivered."""
        if profile.push_token is None:
            return 0

        sent = 0
        try:
            for item in items:
                notification = build_news_notification(record.game_id, item, record.display_name)
                try:
                    delivered = await asyncio.wait_for(
                        self._dispatcher.dispatch(profile.push_token, notification),
                        timeout=self._dispatch_timeout,
                    )
                except asyncio.TimeoutError:
                    self._logger.warning(
                        "Notification dispatch timed out",
                        game_id=record.game_id,
                        user_id=profile.user_id,
                        news_id=item.id,
                    )
                    delivered = False
                if delivered:
                    sent += 1

            if sent:
                await self._users.touch_last_checked(profile.user_id)
        except Exception as e:
            self._logger.error(
                "Failed to notify subscriber",
                game_id=record.game_id,
                user_id=profile.user_id,
                error=str(e),
            )
        return sent
