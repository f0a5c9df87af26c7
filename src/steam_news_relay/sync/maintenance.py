"""
Follow-graph maintenance.

Runs reconciliation, orphan cleanup and, when a library client is
configured, library auto-follow. Steps are independent: one failing is
logged and the remaining steps still run.
"""

from dataclasses import dataclass, field
from typing import Any

from steam_news_relay.logger import get_logger
from steam_news_relay.sync.library import LibrarySync
from steam_news_relay.sync.stats import BatchStats
from steam_news_relay.sync.subscriptions import ReconcileReport, SubscriptionManager

logger = get_logger(__name__, component="maintenance")


@dataclass
class MaintenanceReport:
    """Outcome of one maintenance run."""

    reconcile: ReconcileReport | None = None
    orphans_deleted: int = 0
    library: BatchStats | None = None
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "reconcile_changed": self.reconcile.changed if self.reconcile else None,
            "orphans_deleted": self.orphans_deleted,
            "library": self.library.to_dict() if self.library else None,
            "errors": dict(self.errors),
        }


async def run_maintenance(
    manager: SubscriptionManager,
    library_sync: LibrarySync | None = None,
) -> MaintenanceReport:
    """
    Repair and extend the follow graph.

    Args:
        manager: Subscription manager over the live stores
        library_sync: Auto-follow job, skipped when None

    Returns:
        MaintenanceReport: Per-step results and the errors of failed steps
    """
    report = MaintenanceReport()

    try:
        report.reconcile = await manager.reconcile()
    except Exception as e:
        logger.exception("Reconciliation failed", error=str(e))
        report.errors["reconcile"] = str(e)

    try:
        report.orphans_deleted = await manager.cleanup_orphans()
    except Exception as e:
        logger.exception("Orphan cleanup failed", error=str(e))
        report.errors["cleanup"] = str(e)

    if library_sync is None:
        logger.debug("No library client configured, skipping auto-follow")
    else:
        try:
            report.library = await library_sync.run()
        except Exception as e:
            logger.exception("Library sync failed", error=str(e))
            report.errors["library"] = str(e)

    logger.info("Maintenance complete", **report.to_dict())
    return report
