"""Tests for data contracts."""

import time

import pytest
from conftest import load_fixture

from steam_news_relay.contracts import (
    GameSubscription,
    NewsItem,
    OwnedGamesResponse,
    SteamNewsResponse,
    UserNotificationProfile,
)


class TestSteamNewsResponse:
    """Tests for GetNewsForApp contracts."""

    def test_fixture_parses(self) -> None:
        """Test parsing of a recorded response."""
        response = SteamNewsResponse.model_validate(load_fixture("steam_news_response.json"))

        assert response.appnews.appid == 730
        assert len(response.items) == 3

    def test_to_news_item(self) -> None:
        """Test mapping of upstream fields."""
        response = SteamNewsResponse.model_validate(load_fixture("steam_news_response.json"))

        item = response.items[0]
        assert item.id == "5127395812345678901"
        assert item.title == "Counter-Strike 2 Update"
        assert item.body.startswith("[ MISC ]")
        assert item.published_at == 1700000600

    def test_empty_appnews(self) -> None:
        """Test a game without news."""
        response = SteamNewsResponse.model_validate({"appnews": {"appid": 1, "newsitems": []}})

        assert response.items == []

    def test_news_item_is_frozen(self) -> None:
        """Test that news items are immutable."""
        item = NewsItem(id="1", published_at=10)

        with pytest.raises(ValueError):
            item.title = "changed"  # type: ignore[misc]


class TestGameSubscription:
    """Tests for GameSubscription contract."""

    def test_first_follow(self) -> None:
        """Test that the first follow stamps the watermark with the current time."""
        before = int(time.time())

        record = GameSubscription.first_follow("730", "u1")

        assert record.subscribers == {"u1"}
        assert record.last_news_watermark >= before
        assert record.display_name == "Game 730"

    def test_game_id_must_be_digits(self) -> None:
        """Test that non-numeric ids are rejected."""
        with pytest.raises(ValueError):
            GameSubscription(game_id="abc")

    def test_watermark_only_moves_forward(self) -> None:
        """Test watermark monotonicity."""
        record = GameSubscription(game_id="730", last_news_watermark=1000)

        assert record.advance_watermark(900) is False
        assert record.advance_watermark(1000) is False
        assert record.last_news_watermark == 1000
        assert record.advance_watermark(2000) is True
        assert record.last_news_watermark == 2000

    def test_orphan(self) -> None:
        """Test orphan detection."""
        assert GameSubscription(game_id="730").is_orphan
        assert not GameSubscription(game_id="730", subscribers={"u1"}).is_orphan

    def test_json_round_trip_keeps_subscribers(self) -> None:
        """Test that the subscriber set survives storage serialization."""
        record = GameSubscription(game_id="730", subscribers={"u1", "u2"}, last_news_watermark=5)

        restored = GameSubscription.model_validate(record.model_dump(mode="json"))

        assert restored.subscribers == {"u1", "u2"}
        assert restored.last_news_watermark == 5


class TestUserNotificationProfile:
    """Tests for UserNotificationProfile contract."""

    @pytest.mark.parametrize(
        ("enabled", "token", "eligible"),
        [
            (True, "tok", True),
            (False, "tok", False),
            (True, None, False),
        ],
    )
    def test_eligibility(self, enabled: bool, token: str | None, eligible: bool) -> None:
        """Test that both a token and enabled notifications are required."""
        profile = UserNotificationProfile(
            user_id="u1",
            notifications_enabled=enabled,
            push_token=token,
        )

        assert profile.is_eligible is eligible


class TestOwnedGamesResponse:
    """Tests for GetOwnedGames contracts."""

    def test_private_profile(self) -> None:
        """Test that an empty response means an empty library."""
        response = OwnedGamesResponse.model_validate({"response": {}})

        assert response.response.games == []

    def test_games(self) -> None:
        """Test parsing of owned games."""
        response = OwnedGamesResponse.model_validate(
            {"response": {"game_count": 1, "games": [{"appid": 730, "name": "Counter-Strike 2"}]}}
        )

        assert response.response.games[0].game_id == "730"
