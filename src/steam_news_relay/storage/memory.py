"""
In-memory stores.

Records are copied on the way in and out so callers get the same
read-modify-save semantics as with a document database.
"""

from collections.abc import Iterable
from datetime import datetime, timezone

from steam_news_relay.contracts.subscriptions import GameSubscription, UserNotificationProfile


class InMemoryGameSubscriptionStore:
    """GameSubscriptionStore kept in a dict."""

    def __init__(self, records: Iterable[GameSubscription] = ()) -> None:
        self._records: dict[str, GameSubscription] = {
            r.game_id: r.model_copy(deep=True) for r in records
        }
        self.write_count = 0

    async def list_all(self) -> list[GameSubscription]:
        return [r.model_copy(deep=True) for r in self._records.values()]

    async def get(self, game_id: str) -> GameSubscription | None:
        record = self._records.get(game_id)
        return record.model_copy(deep=True) if record else None

    async def save(self, record: GameSubscription) -> None:
        current = self._records.get(record.game_id)
        if current is not None:
            record.advance_watermark(current.last_news_watermark)
        record.updated_at = datetime.now(timezone.utc)
        self._records[record.game_id] = record.model_copy(deep=True)
        self.write_count += 1

    async def advance_watermark(self, game_id: str, timestamp: int) -> bool:
        record = self._records.get(game_id)
        if record is None or not record.advance_watermark(timestamp):
            return False
        self.write_count += 1
        return True

    async def delete(self, game_id: str) -> bool:
        removed = self._records.pop(game_id, None) is not None
        if removed:
            self.write_count += 1
        return removed

    async def delete_where_empty(self) -> int:
        orphans = [game_id for game_id, r in self._records.items() if r.is_orphan]
        for game_id in orphans:
            del self._records[game_id]
        self.write_count += len(orphans)
        return len(orphans)

    def __len__(self) -> int:
        return len(self._records)


class InMemoryUserDirectory:
    """UserDirectory kept in a dict."""

    def __init__(self, profiles: Iterable[UserNotificationProfile] = ()) -> None:
        self._profiles: dict[str, UserNotificationProfile] = {
            p.user_id: p.model_copy(deep=True) for p in profiles
        }

    async def get(self, user_id: str) -> UserNotificationProfile | None:
        profile = self._profiles.get(user_id)
        return profile.model_copy(deep=True) if profile else None

    async def save(self, profile: UserNotificationProfile) -> None:
        self._profiles[profile.user_id] = profile.model_copy(deep=True)

    async def list_all(self) -> list[UserNotificationProfile]:
        return [p.model_copy(deep=True) for p in self._profiles.values()]

    async def find_eligible_by_ids(self, user_ids: Iterable[str]) -> list[UserNotificationProfile]:
        return [
            self._profiles[user_id].model_copy(deep=True)
            for user_id in user_ids
            if user_id in self._profiles and self._profiles[user_id].is_eligible
        ]

    async def touch_last_checked(self, user_id: str, when: datetime | None = None) -> None:
        profile = self._profiles.get(user_id)
        if profile is not None:
            profile.last_checked = when or datetime.now(timezone.utc)
