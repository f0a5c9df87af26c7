"""Tests for the news sync engine."""

import asyncio
import time
from collections.abc import Awaitable
from typing import Any

import pytest
import structlog
from conftest import FakeNewsSource, RecordingDispatcher, news, subscription, user

from steam_news_relay.clients.base import SteamAPIError
from steam_news_relay.config import SyncConfig
from steam_news_relay.contracts import NewsItem
from steam_news_relay.storage import InMemoryGameSubscriptionStore, InMemoryUserDirectory
from steam_news_relay.sync.engine import CycleResult, SyncEngine, select_new_items
from steam_news_relay.sync.subscriptions import SubscriptionManager


def build_engine(
    store: InMemoryGameSubscriptionStore,
    users: InMemoryUserDirectory,
    source: FakeNewsSource,
    dispatcher: RecordingDispatcher,
    config: SyncConfig,
) -> SyncEngine:
    return SyncEngine(store, users, source, dispatcher, config=config)


class TestSelectNewItems:
    """Tests for watermark filtering."""

    def test_strictly_newer_only(self) -> None:
        """Test that items at or before the watermark are dropped."""
        items = [news(900), news(1000), news(1500)]

        selected = select_new_items(items, 1000)

        assert [i.published_at for i in selected] == [1500]

    def test_sorted_oldest_first(self) -> None:
        """Test that new items come back in publication order."""
        items = [news(2000), news(1500), news(1800)]

        selected = select_new_items(items, 0)

        assert [i.published_at for i in selected] == [1500, 1800, 2000]

    def test_empty(self) -> None:
        """Test that no items yields nothing."""
        assert select_new_items([], 1000) == []


class TestSyncCycle:
    """Tests for a full sync cycle."""

    @pytest.mark.asyncio
    async def test_counter_strike_scenario(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test two subscribers, one old and two new items."""
        store = InMemoryGameSubscriptionStore([subscription("730", "u1", "u2", watermark=1000)])
        users = InMemoryUserDirectory([user("u1", "730"), user("u2", "730")])
        news_source.items["730"] = [news(900), news(1500), news(2000)]
        engine = build_engine(store, users, news_source, dispatcher, sync_config)

        sent = await engine.run_sync_cycle()

        assert sent == 4
        assert sorted(dispatcher.tokens()) == ["token-u1", "token-u1", "token-u2", "token-u2"]
        record = await store.get("730")
        assert record is not None
        assert record.last_news_watermark == 2000

        # Same items again: nothing is delivered twice
        assert await engine.run_sync_cycle() == 0
        assert len(dispatcher.sent) == 4

    @pytest.mark.asyncio
    async def test_one_fetch_per_game(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that many followers of one game cause a single fetch."""
        followers = [f"u{i}" for i in range(10)]
        store = InMemoryGameSubscriptionStore(
            [subscription("730", *followers, watermark=100), subscription("570", "u0", watermark=100)]
        )
        users = InMemoryUserDirectory([user(u, "730") for u in followers])
        news_source.items["730"] = [news(200)]
        engine = build_engine(store, users, news_source, dispatcher, sync_config)

        result = await engine.run_cycle()

        assert sorted(news_source.calls) == ["570", "730"]
        assert result.notifications_sent == 10
        assert result.stats.units_processed == 2
        assert result.stats.units_with_updates == 1

    @pytest.mark.asyncio
    async def test_notifications_follow_publication_order(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that a subscriber receives items oldest first."""
        store = InMemoryGameSubscriptionStore(
            [subscription("730", "u1", watermark=100, display_name="Counter-Strike 2")]
        )
        users = InMemoryUserDirectory([user("u1", "730")])
        news_source.items["730"] = [news(300), news(200)]
        engine = build_engine(store, users, news_source, dispatcher, sync_config)

        await engine.run_cycle()

        payloads = [n.payload["news_id"] for _, n in dispatcher.sent]
        assert payloads == ["n200", "n300"]
        assert dispatcher.sent[0][1].title == "Counter-Strike 2 - New update"

    @pytest.mark.asyncio
    async def test_fetch_failure_is_isolated(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that one failing game does not stop the others."""
        store = InMemoryGameSubscriptionStore(
            [subscription("10", "u1", watermark=100), subscription("20", "u1", watermark=100)]
        )
        users = InMemoryUserDirectory([user("u1", "10", "20")])
        news_source.failures["10"] = SteamAPIError("boom", source="test")
        news_source.items["20"] = [news(150)]
        engine = build_engine(store, users, news_source, dispatcher, sync_config)

        result = await engine.run_cycle()

        assert result.stats.errors == 1
        assert result.notifications_sent == 1
        failed = await store.get("10")
        succeeded = await store.get("20")
        assert failed is not None and failed.last_news_watermark == 100
        assert succeeded is not None and succeeded.last_news_watermark == 150

    @pytest.mark.asyncio
    async def test_unexpected_error_is_isolated(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that an unexpected exception is recorded as a failed game."""
        store = InMemoryGameSubscriptionStore(
            [subscription("10", "u1", watermark=100), subscription("20", "u1", watermark=100)]
        )
        users = InMemoryUserDirectory([user("u1", "10", "20")])
        news_source.failures["10"] = KeyError("unexpected")
        news_source.items["20"] = [news(150)]
        engine = build_engine(store, users, news_source, dispatcher, sync_config)

        result = await engine.run_cycle()

        assert result.stats.errors == 1
        assert result.notifications_sent == 1

    @pytest.mark.asyncio
    async def test_fetch_timeout_keeps_watermark(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that a slow fetch is abandoned without writes."""
        store = InMemoryGameSubscriptionStore([subscription("730", "u1", watermark=100)])
        users = InMemoryUserDirectory([user("u1", "730")])
        news_source.items["730"] = [news(200)]
        news_source.delays["730"] = 5.0
        engine = build_engine(store, users, news_source, dispatcher, sync_config)

        result = await engine.run_cycle()

        assert result.stats.errors == 1
        assert dispatcher.sent == []
        assert store.write_count == 0

    @pytest.mark.asyncio
    async def test_subscriber_failure_is_isolated(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that a crashing delivery to one user does not affect the others."""
        store = InMemoryGameSubscriptionStore([subscription("730", "u1", "u2", "u3", watermark=100)])
        users = InMemoryUserDirectory([user("u1", "730"), user("u2", "730"), user("u3", "730")])
        news_source.items["730"] = [news(200)]
        dispatcher.raising.add("token-u1")
        dispatcher.rejecting.add("token-u2")
        engine = build_engine(store, users, news_source, dispatcher, sync_config)

        sent = await engine.run_sync_cycle()

        assert sent == 1
        assert dispatcher.tokens() == ["token-u3"]
        record = await store.get("730")
        assert record is not None
        assert record.last_news_watermark == 200

    @pytest.mark.asyncio
    async def test_ineligible_subscribers_are_skipped(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that disabled or tokenless users get nothing but the watermark advances."""
        store = InMemoryGameSubscriptionStore([subscription("730", "u1", "u2", "u3", watermark=100)])
        users = InMemoryUserDirectory(
            [
                user("u1", "730"),
                user("u2", "730", notifications_enabled=False),
                user("u3", "730", push_token=None),
            ]
        )
        news_source.items["730"] = [news(200)]
        engine = build_engine(store, users, news_source, dispatcher, sync_config)

        await engine.run_cycle()

        assert dispatcher.tokens() == ["token-u1"]
        record = await store.get("730")
        assert record is not None
        assert record.last_news_watermark == 200

    @pytest.mark.asyncio
    async def test_last_checked_touched_on_delivery(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that only users who received something get last_checked updated."""
        store = InMemoryGameSubscriptionStore([subscription("730", "u1", "u2", watermark=100)])
        users = InMemoryUserDirectory([user("u1", "730"), user("u2", "730")])
        news_source.items["730"] = [news(200)]
        dispatcher.rejecting.add("token-u2")
        engine = build_engine(store, users, news_source, dispatcher, sync_config)

        await engine.run_cycle()

        u1 = await users.get("u1")
        u2 = await users.get("u2")
        assert u1 is not None and u1.last_checked is not None
        assert u2 is not None and u2.last_checked is None

    @pytest.mark.asyncio
    async def test_no_new_items_means_no_writes(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that a quiet game leaves the store untouched."""
        store = InMemoryGameSubscriptionStore([subscription("730", "u1", watermark=2000)])
        users = InMemoryUserDirectory([user("u1", "730")])
        news_source.items["730"] = [news(1500), news(2000)]
        engine = build_engine(store, users, news_source, dispatcher, sync_config)

        result = await engine.run_cycle()

        assert result.notifications_sent == 0
        assert store.write_count == 0
        record = await store.get("730")
        assert record is not None
        assert record.last_news_watermark == 2000

    @pytest.mark.asyncio
    async def test_no_retroactive_delivery(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that news published before the first follow is never sent."""
        from steam_news_relay.contracts import GameSubscription

        now = int(time.time())
        store = InMemoryGameSubscriptionStore([GameSubscription.first_follow("730", "u1", now=now)])
        users = InMemoryUserDirectory([user("u1", "730")])
        news_source.items["730"] = [news(now - 3600), news(now - 60)]
        engine = build_engine(store, users, news_source, dispatcher, sync_config)

        assert await engine.run_sync_cycle() == 0
        record = await store.get("730")
        assert record is not None
        assert record.last_news_watermark == now

    @pytest.mark.asyncio
    async def test_orphan_record_is_not_fetched(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that a record without subscribers causes no API call."""
        store = InMemoryGameSubscriptionStore([subscription("730", watermark=100)])
        users = InMemoryUserDirectory()
        engine = build_engine(store, users, news_source, dispatcher, sync_config)

        result = await engine.run_cycle()

        assert news_source.calls == []
        assert result.stats.errors == 0

    @pytest.mark.asyncio
    async def test_empty_store_is_noop(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that a cycle with nothing followed does nothing."""
        engine = build_engine(
            InMemoryGameSubscriptionStore(),
            InMemoryUserDirectory(),
            news_source,
            dispatcher,
            sync_config,
        )

        result = await engine.run_cycle()

        assert result.skipped is False
        assert result.stats.units_processed == 0
        assert news_source.calls == []

    @pytest.mark.asyncio
    async def test_overlapping_cycle_is_skipped(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that a trigger during a running cycle does not start a second one."""
        store = InMemoryGameSubscriptionStore([subscription("730", "u1", watermark=100)])
        users = InMemoryUserDirectory([user("u1", "730")])
        news_source.items["730"] = [news(200)]
        news_source.gate = asyncio.Event()
        engine = build_engine(store, users, news_source, dispatcher, sync_config)

        first = asyncio.create_task(engine.run_cycle())
        await news_source.started.wait()
        assert engine.is_running

        second = await engine.run_cycle()
        news_source.gate.set()
        first_result = await first

        assert second.skipped is True
        assert first_result.notifications_sent == 1
        assert news_source.calls == ["730"]
        assert not engine.is_running

    @pytest.mark.asyncio
    async def test_list_failure_propagates(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that failing to load subscriptions aborts the cycle."""

        class BrokenStore(InMemoryGameSubscriptionStore):
            async def list_all(self) -> list:  # type: ignore[override]
                raise ConnectionError("store unavailable")

        engine = build_engine(BrokenStore(), InMemoryUserDirectory(), news_source, dispatcher, sync_config)

        with pytest.raises(ConnectionError):
            await engine.run_cycle()
        assert not engine.is_running


class TestFollowChangesDuringCycle:
    """Tests for follow graph changes made while a cycle is fetching."""

    async def run_with_change(
        self,
        engine: SyncEngine,
        news_source: FakeNewsSource,
        change: Awaitable[Any],
    ) -> CycleResult:
        news_source.gate = asyncio.Event()
        cycle = asyncio.create_task(engine.run_cycle())
        await news_source.started.wait()

        await change

        news_source.gate.set()
        return await cycle

    @pytest.mark.asyncio
    async def test_unfollow_of_last_subscriber_sticks(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that a record deleted mid-cycle is not written back."""
        store = InMemoryGameSubscriptionStore([subscription("730", "u1", watermark=100)])
        users = InMemoryUserDirectory([user("u1", "730")])
        news_source.items["730"] = [news(200)]
        engine = build_engine(store, users, news_source, dispatcher, sync_config)
        manager = SubscriptionManager(store, users)

        result = await self.run_with_change(engine, news_source, manager.unfollow("u1", "730"))

        assert await store.list_all() == []
        assert dispatcher.sent == []
        assert result.notifications_sent == 0

    @pytest.mark.asyncio
    async def test_follow_during_cycle_is_kept(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that a new subscriber survives the watermark write and gets the news."""
        store = InMemoryGameSubscriptionStore([subscription("730", "u1", watermark=100)])
        users = InMemoryUserDirectory([user("u1", "730"), user("u2")])
        news_source.items["730"] = [news(200)]
        engine = build_engine(store, users, news_source, dispatcher, sync_config)
        manager = SubscriptionManager(store, users)

        await self.run_with_change(engine, news_source, manager.follow("u2", "730"))

        record = await store.get("730")
        assert record is not None
        assert record.subscribers == {"u1", "u2"}
        assert record.last_news_watermark == 200
        assert dispatcher.tokens() == ["token-u1", "token-u2"]

    @pytest.mark.asyncio
    async def test_unfollow_of_one_subscriber_sticks(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that a user who left mid-cycle is neither restored nor notified."""
        store = InMemoryGameSubscriptionStore([subscription("730", "u1", "u2", watermark=100)])
        users = InMemoryUserDirectory([user("u1", "730"), user("u2", "730")])
        news_source.items["730"] = [news(200)]
        engine = build_engine(store, users, news_source, dispatcher, sync_config)
        manager = SubscriptionManager(store, users)

        await self.run_with_change(engine, news_source, manager.unfollow("u2", "730"))

        record = await store.get("730")
        assert record is not None
        assert record.subscribers == {"u1"}
        assert record.last_news_watermark == 200
        assert dispatcher.tokens() == ["token-u1"]

    @pytest.mark.asyncio
    async def test_reconcile_during_cycle_is_kept(
        self,
        news_source: FakeNewsSource,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that subscribers repaired mid-cycle are not overwritten."""
        store = InMemoryGameSubscriptionStore([subscription("730", "u1", watermark=100)])
        users = InMemoryUserDirectory([user("u1", "730"), user("u2", "730"), user("u3", "440")])
        news_source.items["730"] = [news(200)]
        engine = build_engine(store, users, news_source, dispatcher, sync_config)
        manager = SubscriptionManager(store, users)

        await self.run_with_change(engine, news_source, manager.reconcile())

        record = await store.get("730")
        assert record is not None
        assert record.subscribers == {"u1", "u2"}
        assert record.last_news_watermark == 200
        created = await store.get("440")
        assert created is not None and created.subscribers == {"u3"}


class TestCycleLogging:
    """Tests for cycle log context."""

    @pytest.mark.asyncio
    async def test_cycle_id_bound_while_running(
        self,
        dispatcher: RecordingDispatcher,
        sync_config: SyncConfig,
    ) -> None:
        """Test that every cycle gets its own id, visible to collaborators."""
        seen: list[Any] = []

        class ContextSource(FakeNewsSource):
            async def fetch_recent_news(self, game_id: str, count: int) -> list[NewsItem]:
                seen.append(structlog.contextvars.get_contextvars().get("cycle_id"))
                return []

        store = InMemoryGameSubscriptionStore([subscription("730", "u1")])
        engine = build_engine(store, InMemoryUserDirectory(), ContextSource(), dispatcher, sync_config)

        first = await engine.run_cycle()
        second = await engine.run_cycle()

        assert seen == [first.cycle_id, second.cycle_id]
        assert first.cycle_id != second.cycle_id
        assert "cycle_id" not in structlog.contextvars.get_contextvars()
