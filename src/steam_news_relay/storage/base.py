"""
Store interfaces.

Plain document CRUD over subscription and user records. The sync
engine and subscription manager only depend on these protocols.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from steam_news_relay.contracts.subscriptions import GameSubscription, UserNotificationProfile


class GameSubscriptionStore(Protocol):
    """Persistence for GameSubscription records, keyed by game id."""

    async def list_all(self) -> list[GameSubscription]: ...

    async def get(self, game_id: str) -> GameSubscription | None: ...

    async def save(self, record: GameSubscription) -> None:
        """Upsert `record`; a stored watermark ahead of the record's is kept."""
        ...

    async def advance_watermark(self, game_id: str, timestamp: int) -> bool:
        """
        Raise the stored watermark of `game_id` to `timestamp`.

        Only the watermark is written, subscribers are left as stored.
        Returns False when the record is gone or already at or past
        `timestamp`.
        """
        ...

    async def delete(self, game_id: str) -> bool: ...

    async def delete_where_empty(self) -> int:
        """Delete every record without subscribers and return how many."""
        ...


class UserDirectory(Protocol):
    """Persistence for user notification profiles, keyed by user id."""

    async def get(self, user_id: str) -> UserNotificationProfile | None: ...

    async def save(self, profile: UserNotificationProfile) -> None: ...

    async def list_all(self) -> list[UserNotificationProfile]: ...

    async def find_eligible_by_ids(self, user_ids: Iterable[str]) -> list[UserNotificationProfile]:
        """Profiles among `user_ids` that have notifications enabled and a push token."""
        ...

    async def touch_last_checked(self, user_id: str, when: datetime | None = None) -> None: ...
