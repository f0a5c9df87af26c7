"""
Steam owned-games client.

Used by the auto-follow maintenance job. Requires a Steam API key.
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from steam_news_relay.clients.base import BaseSteamClient, ResponseValidationError
from steam_news_relay.config import get_settings
from steam_news_relay.contracts.library import OwnedGame, OwnedGamesResponse


class SteamLibraryClient(BaseSteamClient):
    """Lists the games a Steam user owns."""

    source_name = "steam_player_service_api"
    OWNED_GAMES_PATH = "IPlayerService/GetOwnedGames/v1/"

    def __init__(self, *, api_key: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if api_key is None:
            configured = get_settings().steam.api_key
            api_key = configured.get_secret_value() if configured else None
        if not api_key:
            raise ValueError("STEAM_API_KEY is required to list owned games")
        self._api_key = api_key

    async def fetch_owned_games(self, user_id: str) -> list[OwnedGame]:
        """
        Fetch the library of `user_id`.

        Private profiles yield an empty list.

        Raises:
            SteamAPIError: On transport failure or malformed payload
        """
        raw_data = await self._get_json(
            self.OWNED_GAMES_PATH,
            {
                "key": self._api_key,
                "steamid": user_id,
                "include_appinfo": 1,
                "format": "json",
            },
        )
        try:
            parsed = OwnedGamesResponse.model_validate(raw_data)
        except PydanticValidationError as e:
            raise ResponseValidationError(
                f"Response validation failed: {e}",
                source=self.source_name,
                endpoint=self.OWNED_GAMES_PATH,
                original_error=e,
            ) from e

        self._logger.debug(
            "Fetched owned games",
            user_id=user_id,
            game_count=len(parsed.response.games),
        )
        return parsed.response.games
