"""
Follow / unfollow bookkeeping.

Keeps the user's followed set and the per-game subscriber set in step,
creates a GameSubscription on the first follow of a game and deletes it
when the last subscriber leaves.
"""

import asyncio
import time
from dataclasses import asdict, dataclass

from steam_news_relay.contracts.subscriptions import GameSubscription
from steam_news_relay.logger import get_logger
from steam_news_relay.storage.base import GameSubscriptionStore, UserDirectory


class SubscriptionError(Exception):
    """Base exception for follow/unfollow failures."""

    def __init__(self, message: str, *, user_id: str, game_id: str | None = None) -> None:
        super().__init__(message)
        self.user_id = user_id
        self.game_id = game_id


class UserNotFoundError(SubscriptionError):
    """The user is not registered."""


class InvalidGameIdError(SubscriptionError):
    """The game id is not a Steam App ID."""


class AlreadyFollowingError(SubscriptionError):
    """The user already follows the game."""


class NotFollowingError(SubscriptionError):
    """The user does not follow the game."""


@dataclass(frozen=True)
class ReconcileReport:
    """Repairs made by SubscriptionManager.reconcile()."""

    subscribers_added: int = 0
    subscribers_removed: int = 0
    records_created: int = 0
    records_deleted: int = 0

    @property
    def changed(self) -> bool:
        return any(
            (
                self.subscribers_added,
                self.subscribers_removed,
                self.records_created,
                self.records_deleted,
            )
        )


class SubscriptionManager:
    """
    Applies follow and unfollow to both sides of the follow graph.

    Mutations are serialized through one lock so concurrent calls never
    interleave their read-modify-write steps.
    """

    def __init__(self, subscriptions: GameSubscriptionStore, users: UserDirectory) -> None:
        self._subscriptions = subscriptions
        self._users = users
        self._lock = asyncio.Lock()
        self._logger = get_logger(__name__, component="subscription_manager")

    async def follow(
        self,
        user_id: str,
        game_id: str,
        display_name: str | None = None,
    ) -> GameSubscription:
        """
        Make `user_id` follow `game_id`.

        Returns:
            GameSubscription: The record after the follow

        Raises:
            UserNotFoundError: Unknown user
            InvalidGameIdError: `game_id` is not a digit string
            AlreadyFollowingError: The user already follows the game
        """
        if not game_id.isdigit():
            raise InvalidGameIdError(
                f"Invalid game id: {game_id!r}", user_id=user_id, game_id=game_id
            )

        async with self._lock:
            profile = await self._users.get(user_id)
            if profile is None:
                raise UserNotFoundError(f"Unknown user {user_id}", user_id=user_id, game_id=game_id)

            if game_id in profile.followed_game_ids:
                raise AlreadyFollowingError(
                    f"User {user_id} already follows {game_id}",
                    user_id=user_id,
                    game_id=game_id,
                )

            profile.followed_game_ids.add(game_id)
            await self._users.save(profile)

            record = await self._subscriptions.get(game_id)
            if record is None:
                record = GameSubscription.first_follow(game_id, user_id, display_name)
                self._logger.info(
                    "Created game subscription",
                    game_id=game_id,
                    watermark=record.last_news_watermark,
                )
            else:
                record.subscribers.add(user_id)

            await self._subscriptions.save(record)

        self._logger.info(
            "User followed game",
            user_id=user_id,
            game_id=game_id,
            subscribers=len(record.subscribers),
        )
        return record

    async def unfollow(self, user_id: str, game_id: str) -> bool:
        """
        Make `user_id` stop following `game_id`.

        Returns:
            bool: True if the game lost its last subscriber and was deleted

        Raises:
            UserNotFoundError: Unknown user
            NotFollowingError: The user does not follow the game
        """
        async with self._lock:
            profile = await self._users.get(user_id)
            if profile is None:
                raise UserNotFoundError(f"Unknown user {user_id}", user_id=user_id, game_id=game_id)

            if game_id not in profile.followed_game_ids:
                raise NotFollowingError(
                    f"User {user_id} does not follow {game_id}",
                    user_id=user_id,
                    game_id=game_id,
                )

            profile.followed_game_ids.discard(game_id)
            await self._users.save(profile)

            record = await self._subscriptions.get(game_id)
            if record is None:
                self._logger.warning("Followed game had no subscription record", game_id=game_id)
                return False

            record.subscribers.discard(user_id)
            if record.is_orphan:
                await self._subscriptions.delete(game_id)
                self._logger.info("Deleted game subscription", game_id=game_id)
                deleted = True
            else:
                await self._subscriptions.save(record)
                deleted = False

        self._logger.info("User unfollowed game", user_id=user_id, game_id=game_id)
        return deleted

    async def cleanup_orphans(self) -> int:
        """
        Delete subscriptions whose subscriber set is empty or missing.

        Returns:
            int: Number of records deleted
        """
        async with self._lock:
            deleted = await self._subscriptions.delete_where_empty()

        if deleted:
            self._logger.info("Removed orphaned subscriptions", deleted=deleted)
        else:
            self._logger.info("No orphaned subscriptions found")
        return deleted

    async def reconcile(self) -> ReconcileReport:
        """
        Bring subscriber sets back in line with users' followed sets.

        The user directory is authoritative: missing subscribers are
        added (creating records at the current time where needed) and
        subscribers who no longer follow the game, or no longer exist,
        are removed. Records left empty are deleted.
        """
        added = removed = created = deleted = 0
        now = int(time.time())

        async with self._lock:
            profiles = await self._users.list_all()
            followers: dict[str, set[str]] = {}
            for profile in profiles:
                for game_id in profile.followed_game_ids:
                    followers.setdefault(game_id, set()).add(profile.user_id)

            records = {r.game_id: r for r in await self._subscriptions.list_all()}

            for game_id, user_ids in followers.items():
                record = records.get(game_id)
                if record is None:
                    first, *rest = sorted(user_ids)
                    record = GameSubscription.first_follow(game_id, first, now=now)
                    record.subscribers.update(rest)
                    await self._subscriptions.save(record)
                    created += 1
                    added += len(user_ids)
                    continue

                missing = user_ids - record.subscribers
                stale = record.subscribers - user_ids
                if missing or stale:
                    record.subscribers = set(user_ids)
                    added += len(missing)
                    removed += len(stale)
                    await self._subscriptions.save(record)

            for game_id, record in records.items():
                if game_id in followers:
                    continue
                removed += len(record.subscribers)
                await self._subscriptions.delete(game_id)
                deleted += 1

        report = ReconcileReport(
            subscribers_added=added,
            subscribers_removed=removed,
            records_created=created,
            records_deleted=deleted,
        )
        if report.changed:
            self._logger.warning("Follow graph repaired", **asdict(report))
        return report
