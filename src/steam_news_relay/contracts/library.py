"""
Data contracts for Steam owned-games responses.

Endpoint: IPlayerService/GetOwnedGames/v1/
"""

from pydantic import BaseModel, Field


class OwnedGame(BaseModel):
    """A game in a user's library."""

    appid: int = Field(..., gt=0)
    name: str = Field(default="")
    playtime_forever: int = Field(default=0, ge=0, description="Minutes played")
    playtime_2weeks: int = Field(default=0, ge=0, description="Minutes played recently")
    img_icon_url: str = Field(default="")

    @property
    def game_id(self) -> str:
        return str(self.appid)


class OwnedGamesPayload(BaseModel):
    """The `response` object of GetOwnedGames."""

    game_count: int = Field(default=0, ge=0)
    games: list[OwnedGame] = Field(default_factory=list)


class OwnedGamesResponse(BaseModel):
    """
    Complete response from GetOwnedGames.

    Private profiles come back as `{"response": {}}`, which parses
    to an empty library.
    """

    response: OwnedGamesPayload = Field(default_factory=OwnedGamesPayload)
