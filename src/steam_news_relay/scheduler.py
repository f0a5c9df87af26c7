"""
Periodic jobs.

Two interval jobs on an APScheduler AsyncIOScheduler: the news sync
cycle and the follow-graph maintenance. Each job body runs inside
`execute_task`, which logs the outcome and never lets an exception
reach the scheduler.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from steam_news_relay.config import SyncConfig
from steam_news_relay.logger import get_logger
from steam_news_relay.runtime import RelayRuntime

logger = get_logger(__name__, component="scheduler")

SYNC_JOB_ID = "news_sync"
MAINTENANCE_JOB_ID = "maintenance"


async def execute_task(name: str, task: Callable[[], Awaitable[Any]]) -> Any | None:
    """
    Run one scheduled task.

    Returns:
        The task's result, or None if it raised
    """
    logger.info("Running scheduled task", task=name)
    try:
        result = await task()
    except Exception as e:
        logger.exception("Scheduled task failed", task=name, error=str(e))
        return None

    if isinstance(result, int):
        logger.info("Scheduled task finished", task=name, processed=result)
    elif hasattr(result, "to_dict"):
        logger.info("Scheduled task finished", task=name, **result.to_dict())
    else:
        logger.info("Scheduled task finished", task=name)
    return result


async def sync_job(runtime: RelayRuntime) -> int | None:
    return await execute_task(SYNC_JOB_ID, runtime.engine.run_sync_cycle)


async def maintenance_job(runtime: RelayRuntime) -> Any | None:
    return await execute_task(MAINTENANCE_JOB_ID, runtime.run_maintenance)


def build_scheduler(
    runtime: RelayRuntime,
    config: SyncConfig | None = None,
    *,
    run_sync_now: bool = False,
) -> AsyncIOScheduler:
    """
    Create a scheduler with the sync and maintenance jobs registered.

    Jobs never run concurrently with themselves and missed runs are
    coalesced into one.

    Args:
        runtime: Wired collaborators the jobs operate on
        config: Intervals (defaults to the runtime settings)
        run_sync_now: Also run the first sync cycle right after start
    """
    config = config or runtime.settings.sync
    scheduler = AsyncIOScheduler(timezone=timezone.utc)

    sync_options: dict[str, Any] = {}
    if run_sync_now:
        sync_options["next_run_time"] = datetime.now(timezone.utc)

    scheduler.add_job(
        sync_job,
        "interval",
        minutes=config.news_interval_minutes,
        args=[runtime],
        id=SYNC_JOB_ID,
        max_instances=1,
        coalesce=True,
        **sync_options,
    )
    scheduler.add_job(
        maintenance_job,
        "interval",
        hours=config.maintenance_interval_hours,
        args=[runtime],
        id=MAINTENANCE_JOB_ID,
        max_instances=1,
        coalesce=True,
    )

    logger.info(
        "Scheduler configured",
        news_interval_minutes=config.news_interval_minutes,
        maintenance_interval_hours=config.maintenance_interval_hours,
    )
    return scheduler


async def serve(runtime: RelayRuntime, *, stop: asyncio.Event | None = None) -> None:
    """Run the scheduler until `stop` is set or the task is cancelled."""
    stop = stop or asyncio.Event()
    scheduler = build_scheduler(runtime, run_sync_now=True)
    scheduler.start()
    logger.info("Relay started")
    try:
        await stop.wait()
    finally:
        scheduler.shutdown(wait=False)
        logger.info("Relay stopped")
