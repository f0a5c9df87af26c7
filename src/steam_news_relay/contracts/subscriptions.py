"""
Subscription and user notification records.

`GameSubscription` is owned by this service. `UserNotificationProfile`
mirrors the user directory and is only written back for `last_checked`
and follow bookkeeping.
"""

import time
from datetime import datetime, timezone

from pydantic import BaseModel, Field, model_validator

from steam_news_relay.contracts.news import GameId


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameSubscription(BaseModel):
    """
    Per-game subscription record.

    Exactly one record exists per followed game. `last_news_watermark`
    is the publication time up to which news has been delivered to the
    subscriber set; it never moves backwards.
    """

    game_id: GameId
    display_name: str = Field(default="", description="Human readable game name")
    subscribers: set[str] = Field(default_factory=set, description="Following user ids")
    last_news_watermark: int = Field(default=0, ge=0, description="Unix seconds")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def default_display_name(self) -> "GameSubscription":
        if not self.display_name:
            self.display_name = f"Game {self.game_id}"
        return self

    @classmethod
    def first_follow(
        cls,
        game_id: str,
        user_id: str,
        display_name: str | None = None,
        *,
        now: int | None = None,
    ) -> "GameSubscription":
        """
        Create the record for a game nobody followed yet.

        The watermark starts at the follow time so that news published
        before the follow is never delivered retroactively.
        """
        return cls(
            game_id=game_id,
            display_name=display_name or "",
            subscribers={user_id},
            last_news_watermark=int(time.time()) if now is None else now,
        )

    @property
    def is_orphan(self) -> bool:
        """True when no user follows this game any more."""
        return not self.subscribers

    def advance_watermark(self, timestamp: int) -> bool:
        """
        Move the watermark forward.

        Returns:
            bool: True if the watermark changed
        """
        if timestamp <= self.last_news_watermark:
            return False
        self.last_news_watermark = timestamp
        self.updated_at = _utcnow()
        return True


class UserNotificationProfile(BaseModel):
    """Identity, follow set and push settings of one user."""

    user_id: str = Field(..., min_length=1, description="Steam id of the user")
    username: str = Field(default="")
    followed_game_ids: set[GameId] = Field(default_factory=set)
    notifications_enabled: bool = Field(default=True)
    push_token: str | None = Field(default=None, description="Opaque device token")
    auto_follow_new_games: bool = Field(default=False)
    last_checked: datetime | None = Field(default=None)
    library_synced_at: datetime | None = Field(
        default=None,
        description="Last owned-games lookup for auto-follow",
    )

    @property
    def is_eligible(self) -> bool:
        """Whether pushes may be delivered to this user."""
        return self.notifications_enabled and self.push_token is not None
