"""
News sync, follow management and maintenance jobs.
"""

from steam_news_relay.sync.engine import CycleResult, SyncEngine, select_new_items
from steam_news_relay.sync.feed import NewsFeed
from steam_news_relay.sync.library import LibrarySource, LibrarySync
from steam_news_relay.sync.maintenance import MaintenanceReport, run_maintenance
from steam_news_relay.sync.migration import (
    LegacyUser,
    MigrationError,
    MigrationReport,
    VerificationReport,
    build_subscriptions_from_users,
    migrate_legacy_users,
    run_migration,
    verify_migration,
)
from steam_news_relay.sync.stats import (
    BatchStats,
    StatsCollector,
    SubscriptionSummary,
    UnitResult,
    subscription_summary,
)
from steam_news_relay.sync.subscriptions import (
    AlreadyFollowingError,
    InvalidGameIdError,
    NotFollowingError,
    ReconcileReport,
    SubscriptionError,
    SubscriptionManager,
    UserNotFoundError,
)

__all__ = [
    # Engine
    "CycleResult",
    "SyncEngine",
    "select_new_items",
    # Follow management
    "AlreadyFollowingError",
    "InvalidGameIdError",
    "NotFollowingError",
    "ReconcileReport",
    "SubscriptionError",
    "SubscriptionManager",
    "UserNotFoundError",
    # Maintenance
    "LibrarySource",
    "LibrarySync",
    "MaintenanceReport",
    "run_maintenance",
    # Migration
    "LegacyUser",
    "MigrationError",
    "MigrationReport",
    "VerificationReport",
    "build_subscriptions_from_users",
    "migrate_legacy_users",
    "run_migration",
    "verify_migration",
    # Reads and stats
    "BatchStats",
    "NewsFeed",
    "StatsCollector",
    "SubscriptionSummary",
    "UnitResult",
    "subscription_summary",
]
