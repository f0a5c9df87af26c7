"""
Steam News API client.

Fetches recent news items for a game from ISteamNews/GetNewsForApp.
The endpoint is public and needs no API key.
"""

from typing import Any, Protocol

from pydantic import ValidationError as PydanticValidationError

from steam_news_relay.clients.base import BaseSteamClient, ResponseValidationError
from steam_news_relay.config import get_settings
from steam_news_relay.contracts.news import NewsItem, SteamNewsResponse


class NewsSource(Protocol):
    """Anything that can list recent news for a game."""

    async def fetch_recent_news(self, game_id: str, count: int) -> list[NewsItem]:
        """
        Return up to `count` recent items, in no guaranteed order.

        Returns an empty list when the game has no news; raises on
        transport failure.
        """
        ...


class SteamNewsSource(BaseSteamClient):
    """
    NewsSource backed by the Steam Web API.

    Example:
        >>> async with SteamNewsSource() as source:
        ...     items = await source.fetch_recent_news("730", 5)
    """

    source_name = "steam_news_api"
    NEWS_PATH = "ISteamNews/GetNewsForApp/v2/"

    def __init__(
        self,
        *,
        language: str | None = None,
        max_length: int | None = None,
        feeds: str | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the news client.

        Args:
            language: News language (defaults to settings)
            max_length: Contents truncation length, 0 for full text
            feeds: Comma-separated feed filter, empty string for all feeds
            **kwargs: Arguments passed to BaseSteamClient
        """
        super().__init__(**kwargs)
        steam = get_settings().steam
        self._language = language if language is not None else steam.news_language
        self._max_length = max_length if max_length is not None else steam.news_max_length
        self._feeds = feeds if feeds is not None else steam.news_feeds

    def _build_params(self, game_id: str, count: int) -> dict[str, Any]:
        params: dict[str, Any] = {
            "appid": game_id,
            "count": count,
            "maxlength": self._max_length,
            "format": "json",
            "l": self._language,
        }
        if self._feeds:
            params["feeds"] = self._feeds
        return params

    def _parse_response(self, raw_data: dict[str, Any]) -> SteamNewsResponse:
        try:
            return SteamNewsResponse.model_validate(raw_data)
        except PydanticValidationError as e:
            raise ResponseValidationError(
                f"Response validation failed: {e}",
                source=self.source_name,
                endpoint=self.NEWS_PATH,
                original_error=e,
            ) from e

    async def fetch_recent_news(self, game_id: str, count: int) -> list[NewsItem]:
        """
        Fetch the `count` most recent news items for `game_id`.

        Args:
            game_id: Steam App ID
            count: Maximum number of items

        Returns:
            list[NewsItem]: Items as returned upstream (possibly empty)

        Raises:
            SteamAPIError: On transport failure or malformed payload
        """
        raw_data = await self._get_json(self.NEWS_PATH, self._build_params(game_id, count))
        news = self._parse_response(raw_data)
        items = news.items

        self._logger.debug(
            "Fetched news",
            game_id=game_id,
            requested=count,
            returned=len(items),
        )
        return items
