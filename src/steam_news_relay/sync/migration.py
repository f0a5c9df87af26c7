"""
One-time migration from per-user watermarks to per-game subscriptions.

Legacy user documents carried their followed games as objects, each with
its own `lastNewsTimestamp`. This module converts them to plain id sets,
builds one GameSubscription per followed game and checks that both sides
of the follow graph agree afterwards.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from steam_news_relay.contracts.news import GameId
from steam_news_relay.contracts.subscriptions import GameSubscription, UserNotificationProfile
from steam_news_relay.logger import get_logger
from steam_news_relay.storage.base import GameSubscriptionStore, UserDirectory

logger = get_logger(__name__, component="migration")


class MigrationError(Exception):
    """Raised when the migration must not run."""


class LegacyFollowedGame(BaseModel):
    """One entry of a legacy `followedGames` array."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    app_id: GameId = Field(..., alias="appId")
    name: str = Field(default="")
    last_news_timestamp: int = Field(default=0, ge=0, alias="lastNewsTimestamp")

    @field_validator("app_id", mode="before")
    @classmethod
    def coerce_app_id(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v


class LegacyNotificationSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    enabled: bool = True
    push_token: str | None = Field(default=None, alias="pushToken")


class LegacyUser(BaseModel):
    """A user document as stored before per-game subscriptions existed."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    steam_id: str = Field(..., min_length=1, alias="steamId")
    username: str = Field(default="")
    followed_games: list[LegacyFollowedGame] = Field(default_factory=list, alias="followedGames")
    notification_settings: LegacyNotificationSettings = Field(
        default_factory=LegacyNotificationSettings,
        alias="notificationSettings",
    )
    last_checked: datetime | None = Field(default=None, alias="lastChecked")

    def to_profile(self) -> UserNotificationProfile:
        """Profile with the followed games reduced to an id set."""
        return UserNotificationProfile(
            user_id=self.steam_id,
            username=self.username,
            followed_game_ids={game.app_id for game in self.followed_games},
            notifications_enabled=self.notification_settings.enabled,
            push_token=self.notification_settings.push_token or None,
            last_checked=self.last_checked,
        )


@dataclass(frozen=True)
class MigrationReport:
    """Result of building subscriptions from legacy users."""

    users_with_follows: int = 0
    games_created: int = 0
    total_subscriptions: int = 0

    @property
    def average_subscribers(self) -> float:
        if self.games_created == 0:
            return 0.0
        return self.total_subscriptions / self.games_created


@dataclass(frozen=True)
class VerificationReport:
    """Follow counts on both sides of the graph."""

    followed_games: int
    subscriptions: int

    @property
    def consistent(self) -> bool:
        return self.followed_games == self.subscriptions


def migrate_legacy_users(documents: Iterable[dict[str, Any]]) -> list[LegacyUser]:
    """
    Parse legacy user documents.

    Documents that fail validation are logged and skipped. Call
    `LegacyUser.to_profile()` for the converted profile.

    Args:
        documents: Raw user documents

    Returns:
        list[LegacyUser]: Parsed users in input order
    """
    users: list[LegacyUser] = []
    skipped = 0
    for index, document in enumerate(documents):
        try:
            users.append(LegacyUser.model_validate(document))
        except ValidationError as e:
            skipped += 1
            logger.warning(
                "Skipping invalid legacy user document",
                index=index,
                errors=e.error_count(),
            )

    logger.info("Parsed legacy users", users=len(users), skipped=skipped)
    return users


def _group_by_game(users: Sequence[LegacyUser]) -> dict[str, GameSubscription]:
    records: dict[str, GameSubscription] = {}
    for user in users:
        for game in user.followed_games:
            record = records.get(game.app_id)
            if record is None:
                record = GameSubscription(
                    game_id=game.app_id,
                    display_name=game.name,
                    last_news_watermark=game.last_news_timestamp,
                )
                records[game.app_id] = record
            elif game.name and record.display_name == f"Game {game.app_id}":
                record.display_name = game.name

            record.subscribers.add(user.steam_id)
            # Highest legacy timestamp wins
            record.advance_watermark(game.last_news_timestamp)
    return records


async def build_subscriptions_from_users(
    users: Sequence[LegacyUser],
    store: GameSubscriptionStore,
    *,
    force: bool = False,
) -> MigrationReport:
    """
    Create one GameSubscription per game followed by any legacy user.

    Args:
        users: Parsed legacy users
        store: Destination subscription store
        force: Replace existing subscriptions instead of refusing

    Returns:
        MigrationReport: Counts of what was created

    Raises:
        MigrationError: Subscriptions already exist and `force` is False
    """
    existing = await store.list_all()
    if existing and not force:
        raise MigrationError(
            f"{len(existing)} subscriptions already present, "
            "migration has probably run already (use force to replace them)"
        )
    if existing:
        logger.warning("Replacing existing subscriptions", existing=len(existing))
        for record in existing:
            await store.delete(record.game_id)

    with_follows = [user for user in users if user.followed_games]
    records = _group_by_game(with_follows)
    for record in records.values():
        await store.save(record)

    report = MigrationReport(
        users_with_follows=len(with_follows),
        games_created=len(records),
        total_subscriptions=sum(len(r.subscribers) for r in records.values()),
    )

    popular = sorted(records.values(), key=lambda r: len(r.subscribers), reverse=True)[:5]
    logger.info(
        "Game subscriptions created",
        users_with_follows=report.users_with_follows,
        games=report.games_created,
        subscriptions=report.total_subscriptions,
        average_subscribers=round(report.average_subscribers, 1),
        most_followed=[f"{r.display_name} ({len(r.subscribers)})" for r in popular],
    )
    return report


async def verify_migration(
    users: UserDirectory,
    store: GameSubscriptionStore,
) -> VerificationReport:
    """Compare the number of follows with the number of subscriber entries."""
    profiles = await users.list_all()
    records = await store.list_all()

    report = VerificationReport(
        followed_games=sum(len(p.followed_game_ids) for p in profiles),
        subscriptions=sum(len(r.subscribers) for r in records),
    )
    if report.consistent:
        logger.info("Migration consistent", follows=report.followed_games)
    else:
        logger.warning(
            "Migration inconsistent",
            follows=report.followed_games,
            subscriptions=report.subscriptions,
        )
    return report


async def run_migration(
    documents: Iterable[dict[str, Any]],
    subscriptions: GameSubscriptionStore,
    users: UserDirectory,
    *,
    force: bool = False,
) -> tuple[MigrationReport, VerificationReport]:
    """
    Full migration: parse, build subscriptions, store profiles, verify.

    Nothing is written when the subscription store refuses the run.
    """
    legacy = migrate_legacy_users(documents)
    report = await build_subscriptions_from_users(legacy, subscriptions, force=force)
    for user in legacy:
        await users.save(user.to_profile())
    verification = await verify_migration(users, subscriptions)
    return report, verification
