"""
Data contracts for Steam News API responses.

Endpoint: ISteamNews/GetNewsForApp/v2/
"""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

GameId = Annotated[str, Field(pattern=r"^\d+$", description="Steam App ID as a digit string")]


class NewsItem(BaseModel):
    """A single news item, independent of the upstream payload shape."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Opaque news item identifier")
    title: str = Field(default="", description="Headline")
    body: str = Field(default="", description="Excerpt or full contents")
    url: str = Field(default="", description="Link to the full announcement")
    published_at: int = Field(..., ge=0, description="Unix timestamp (seconds) of publication")


class SteamNewsItem(BaseModel):
    """News item as returned by GetNewsForApp."""

    gid: str = Field(..., description="Global news item id")
    title: str = Field(default="")
    url: str = Field(default="")
    is_external_url: bool = Field(default=False)
    author: str = Field(default="")
    contents: str = Field(default="")
    feedlabel: str = Field(default="")
    date: int = Field(..., ge=0, description="Unix timestamp of publication")
    feedname: str = Field(default="")
    feed_type: int = Field(default=0)
    appid: int | None = Field(default=None)

    def to_news_item(self) -> NewsItem:
        """Convert to the source-agnostic representation."""
        return NewsItem(
            id=self.gid,
            title=self.title,
            body=self.contents,
            url=self.url,
            published_at=self.date,
        )


class AppNews(BaseModel):
    """The `appnews` object of a GetNewsForApp response."""

    appid: int
    newsitems: list[SteamNewsItem] = Field(default_factory=list)
    count: int = Field(default=0, ge=0, description="Total news items known upstream")


class SteamNewsResponse(BaseModel):
    """Complete response from GetNewsForApp."""

    appnews: AppNews

    @property
    def items(self) -> list[NewsItem]:
        """News items converted to NewsItem."""
        return [item.to_news_item() for item in self.appnews.newsitems]
