"""
Batch statistics.

Aggregates per-unit results (one game in a sync cycle, one user in a
library sync) into the summary a scheduled run logs and returns.
"""

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from typing import Any

from steam_news_relay.contracts.subscriptions import GameSubscription


@dataclass(frozen=True)
class UnitResult:
    """Outcome of processing one unit of work."""

    unit_id: str
    updates: int = 0
    notifications: int = 0
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class BatchStats:
    """Summary of a batch run."""

    units_processed: int = 0
    units_with_updates: int = 0
    total_updates: int = 0
    notifications_sent: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class StatsCollector:
    """
    Accumulates UnitResults.

    Pure aggregation: no I/O, no logging.

    Example:
        >>> stats = StatsCollector()
        >>> stats.record(UnitResult("730", updates=2, notifications=4))
        >>> stats.summary().total_updates
        2
    """

    _results: list[UnitResult] = field(default_factory=list)

    def record(self, result: UnitResult) -> None:
        self._results.append(result)

    def extend(self, results: Iterable[UnitResult]) -> None:
        self._results.extend(results)

    @property
    def results(self) -> list[UnitResult]:
        return list(self._results)

    @property
    def failures(self) -> list[UnitResult]:
        return [r for r in self._results if r.failed]

    def summary(self) -> BatchStats:
        return BatchStats(
            units_processed=len(self._results),
            units_with_updates=sum(1 for r in self._results if r.updates > 0),
            total_updates=sum(r.updates for r in self._results),
            notifications_sent=sum(r.notifications for r in self._results),
            errors=sum(1 for r in self._results if r.failed),
        )


@dataclass(frozen=True)
class SubscriptionSummary:
    """How many API calls batching by game saves."""

    total_games: int
    total_subscriptions: int

    @property
    def calls_saved(self) -> int:
        return max(self.total_subscriptions - self.total_games, 0)

    @property
    def savings_ratio(self) -> float:
        """Share of per-subscription calls avoided (0.0 when nothing is followed)."""
        if self.total_subscriptions == 0:
            return 0.0
        return 1 - self.total_games / self.total_subscriptions


def subscription_summary(records: Iterable[GameSubscription]) -> SubscriptionSummary:
    records = list(records)
    return SubscriptionSummary(
        total_games=len(records),
        total_subscriptions=sum(len(r.subscribers) for r in records),
    )
