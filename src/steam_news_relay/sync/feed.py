"""
On-demand news reads.

Serves recent news for a handful of games at once, e.g. for a user's
feed. Responses are kept in a NewsCache so repeated reads within the
freshness window do not call Steam again. Reads never touch watermarks.
"""

import httpx

from steam_news_relay.clients.base import SteamAPIError
from steam_news_relay.clients.news import NewsSource
from steam_news_relay.contracts.news import NewsItem
from steam_news_relay.logger import get_logger
from steam_news_relay.utils.cache import NewsCache


class NewsFeed:
    """
    Multi-game news lookup with caching.

    Example:
        >>> feed = NewsFeed(source, NewsCache(ttl_seconds=300))
        >>> news = await feed.get_news(["730", "570"], count=3)
        >>> news["730"][0].title
    """

    def __init__(self, news_source: NewsSource, cache: NewsCache[list[NewsItem]]) -> None:
        self._news_source = news_source
        self._cache = cache
        self._logger = get_logger(__name__, component="news_feed")

    @property
    def cache(self) -> NewsCache[list[NewsItem]]:
        return self._cache

    @staticmethod
    def _cache_key(game_id: str, count: int) -> str:
        return f"{game_id}:{count}"

    async def get_news(self, game_ids: list[str], count: int = 5) -> dict[str, list[NewsItem]]:
        """
        Recent news for each game, newest first.

        A game whose fetch fails maps to an empty list; failures are not
        cached.

        Args:
            game_ids: Steam App IDs, duplicates are looked up once
            count: Items per game

        Returns:
            dict[str, list[NewsItem]]: One entry per distinct game id
        """
        results: dict[str, list[NewsItem]] = {}

        for game_id in dict.fromkeys(game_ids):
            key = self._cache_key(game_id, count)
            entry = self._cache.get(key)
            if entry is not None:
                self._logger.debug("News cache hit", game_id=game_id, age_seconds=round(entry.age(), 1))
                results[game_id] = entry.value
                continue

            try:
                items = await self._news_source.fetch_recent_news(game_id, count)
            except (SteamAPIError, httpx.HTTPError) as e:
                self._logger.warning("News lookup failed", game_id=game_id, error=str(e))
                results[game_id] = []
                continue

            items = sorted(items, key=lambda item: item.published_at, reverse=True)
            self._cache.put(key, items)
            results[game_id] = items

        self._logger.info(
            "News feed served",
            games=len(results),
            cache_hits=self._cache.hits,
            cache_misses=self._cache.misses,
        )
        return results
