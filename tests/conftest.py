"""Shared fixtures: in-memory stores and scripted collaborators."""

import asyncio
import json
from pathlib import Path
from typing import Any, cast

import pytest

from steam_news_relay.config import SyncConfig
from steam_news_relay.contracts import GameSubscription, NewsItem, Notification, UserNotificationProfile
from steam_news_relay.storage import InMemoryGameSubscriptionStore, InMemoryUserDirectory

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> Any:
    """Load a JSON fixture file."""
    with (FIXTURES_DIR / name).open(encoding="utf-8") as f:
        return cast(Any, json.load(f))


class FakeNewsSource:
    """NewsSource returning canned items and recording every call."""

    def __init__(self) -> None:
        self.items: dict[str, list[NewsItem]] = {}
        self.failures: dict[str, Exception] = {}
        self.delays: dict[str, float] = {}
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()

    async def fetch_recent_news(self, game_id: str, count: int) -> list[NewsItem]:
        self.calls.append(game_id)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if game_id in self.delays:
            await asyncio.sleep(self.delays[game_id])
        if game_id in self.failures:
            raise self.failures[game_id]
        return list(self.items.get(game_id, []))[:count]


class RecordingDispatcher:
    """Dispatcher that records deliveries; selected tokens fail or raise."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, Notification]] = []
        self.rejecting: set[str] = set()
        self.raising: set[str] = set()

    async def dispatch(self, token: str, notification: Notification) -> bool:
        if token in self.raising:
            raise RuntimeError("provider crashed")
        if token in self.rejecting:
            return False
        self.sent.append((token, notification))
        return True

    def tokens(self) -> list[str]:
        return [token for token, _ in self.sent]


def news(published_at: int, news_id: str | None = None) -> NewsItem:
    """Build a news item published at `published_at`."""
    news_id = news_id or f"n{published_at}"
    return NewsItem(
        id=news_id,
        title=f"Patch {news_id}",
        url=f"https://store.steampowered.com/news/{news_id}",
        published_at=published_at,
    )


def user(user_id: str, *games: str, **fields: Any) -> UserNotificationProfile:
    """Build an eligible profile following `games`."""
    fields.setdefault("push_token", f"token-{user_id}")
    return UserNotificationProfile(user_id=user_id, followed_game_ids=set(games), **fields)


def subscription(game_id: str, *subscribers: str, watermark: int = 0, **fields: Any) -> GameSubscription:
    return GameSubscription(
        game_id=game_id,
        subscribers=set(subscribers),
        last_news_watermark=watermark,
        **fields,
    )


@pytest.fixture
def news_source() -> FakeNewsSource:
    return FakeNewsSource()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def sync_config() -> SyncConfig:
    """Short timeouts so timeout tests stay fast."""
    return SyncConfig(
        news_count=5,
        fetch_timeout_seconds=1.0,
        dispatch_timeout_seconds=1.0,
    )


@pytest.fixture
def subscription_store() -> InMemoryGameSubscriptionStore:
    return InMemoryGameSubscriptionStore()


@pytest.fixture
def user_directory() -> InMemoryUserDirectory:
    return InMemoryUserDirectory()
