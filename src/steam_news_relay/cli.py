"""
Command-line interface for Steam News Relay.

Provides commands to manage follows, run the jobs once and start the
scheduled service.
"""

import asyncio
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from steam_news_relay.config import get_settings
from steam_news_relay.logger import get_logger, setup_logging

# Initialize logging
setup_logging()
logger = get_logger(__name__, component="cli")


class CLIOutput(BaseModel):
    """Structured output for CLI commands."""

    success: bool
    command: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: dict[str, Any] | list[Any] | None = None
    error: str | None = None


def print_json(output: CLIOutput) -> None:
    """Print output as formatted JSON."""
    print(json.dumps(output.model_dump(), indent=2, default=str))


def _option(args: list[str], name: str) -> str | None:
    if name in args:
        idx = args.index(name)
        if idx + 1 < len(args):
            return args[idx + 1]
    return None


async def cmd_test_config() -> None:
    """Test configuration loading."""
    settings = get_settings()

    output = CLIOutput(
        success=True,
        command="test-config",
        data={
            "environment": settings.environment,
            "steam_base_url": settings.steam.base_url,
            "steam_requests_per_minute": settings.steam.requests_per_minute,
            "api_key_configured": settings.steam.api_key is not None,
            "notification_provider": settings.notifications.provider,
            "news_interval_minutes": settings.sync.news_interval_minutes,
            "maintenance_interval_hours": settings.sync.maintenance_interval_hours,
            "data_dir": str(settings.sync.data_dir),
        },
    )
    print_json(output)


async def cmd_news(game_ids_str: str, count: int = 5) -> None:
    """Show recent news for one or more games."""
    from steam_news_relay.runtime import RelayRuntime

    game_ids = [x.strip() for x in game_ids_str.split(",") if x.strip()]
    logger.info("Fetching news", game_ids=game_ids, count=count)

    async with RelayRuntime() as runtime:
        news = await runtime.feed.get_news(game_ids, count)

    output = CLIOutput(
        success=True,
        command="news",
        data={game_id: [item.model_dump() for item in items] for game_id, items in news.items()},
    )
    print_json(output)


async def cmd_add_user(user_id: str, push_token: str | None, auto_follow: bool) -> None:
    """Register or update a user profile."""
    from steam_news_relay.contracts import UserNotificationProfile
    from steam_news_relay.runtime import RelayRuntime

    async with RelayRuntime() as runtime:
        profile = await runtime.users.get(user_id) or UserNotificationProfile(user_id=user_id)
        if push_token is not None:
            profile.push_token = push_token
        profile.auto_follow_new_games = auto_follow or profile.auto_follow_new_games
        await runtime.users.save(profile)

    print_json(CLIOutput(success=True, command="add-user", data=profile.model_dump(mode="json")))


async def cmd_follow(user_id: str, game_id: str, name: str | None = None) -> None:
    """Follow a game on behalf of a user."""
    from steam_news_relay.runtime import RelayRuntime

    async with RelayRuntime() as runtime:
        record = await runtime.manager.follow(user_id, game_id, name)

    output = CLIOutput(
        success=True,
        command="follow",
        data=record.model_dump(mode="json"),
    )
    print_json(output)


async def cmd_unfollow(user_id: str, game_id: str) -> None:
    """Stop following a game on behalf of a user."""
    from steam_news_relay.runtime import RelayRuntime

    async with RelayRuntime() as runtime:
        deleted = await runtime.manager.unfollow(user_id, game_id)

    output = CLIOutput(
        success=True,
        command="unfollow",
        data={"user_id": user_id, "game_id": game_id, "subscription_deleted": deleted},
    )
    print_json(output)


async def cmd_sync() -> None:
    """Run one news sync cycle."""
    from steam_news_relay.runtime import RelayRuntime

    async with RelayRuntime() as runtime:
        result = await runtime.engine.run_cycle()

    output = CLIOutput(
        success=result.stats.errors == 0,
        command="sync",
        data={
            "duration_seconds": round(result.duration_seconds, 2),
            "skipped": result.skipped,
            **result.stats.to_dict(),
        },
    )
    print_json(output)


async def cmd_cleanup() -> None:
    """Delete subscriptions without subscribers."""
    from steam_news_relay.runtime import RelayRuntime

    async with RelayRuntime() as runtime:
        deleted = await runtime.manager.cleanup_orphans()

    print_json(CLIOutput(success=True, command="cleanup", data={"deleted": deleted}))


async def cmd_maintenance() -> None:
    """Run reconciliation, orphan cleanup and library auto-follow."""
    from steam_news_relay.runtime import RelayRuntime

    async with RelayRuntime() as runtime:
        report = await runtime.run_maintenance()

    print_json(CLIOutput(success=report.success, command="maintenance", data=report.to_dict()))


async def cmd_migrate(path: Path, force: bool = False) -> None:
    """Migrate legacy user documents to per-game subscriptions."""
    from steam_news_relay.runtime import RelayRuntime
    from steam_news_relay.sync.migration import run_migration

    documents = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(documents, dict):
        documents = list(documents.values())

    async with RelayRuntime() as runtime:
        report, verification = await run_migration(
            documents,
            runtime.subscriptions,
            runtime.users,
            force=force,
        )

    output = CLIOutput(
        success=verification.consistent,
        command="migrate",
        data={
            "users_with_follows": report.users_with_follows,
            "games_created": report.games_created,
            "total_subscriptions": report.total_subscriptions,
            "follows_in_users": verification.followed_games,
            "subscribers_in_subscriptions": verification.subscriptions,
            "consistent": verification.consistent,
        },
    )
    print_json(output)


async def cmd_serve() -> None:
    """Run the scheduled service until interrupted."""
    from steam_news_relay.runtime import RelayRuntime
    from steam_news_relay.scheduler import serve

    async with RelayRuntime() as runtime:
        await serve(runtime)


def print_usage() -> None:
    """Print CLI usage information."""
    usage = """
Steam News Relay CLI
====================

Usage: python -m steam_news_relay.cli <command> [arguments]

Commands:
  test-config                         Test configuration loading
  news <game_ids> [--count N]         Show recent news (comma-separated ids)
  add-user <user_id> [--token T] [--auto-follow]
                                      Register or update a user
  follow <user_id> <game_id> [name]   Follow a game
  unfollow <user_id> <game_id>        Unfollow a game
  sync                                Run one news sync cycle
  cleanup                             Delete subscriptions without subscribers
  maintenance                         Reconcile, clean up and auto-follow
  migrate <users.json> [--force]      Migrate legacy user documents
  serve                               Start the scheduled service

Examples:
  python -m steam_news_relay.cli follow 76561198000000000 730 "Counter-Strike 2"
  python -m steam_news_relay.cli news 730,570 --count 3
"""
    print(usage)


def _require(args: list[str], count: int, message: str) -> None:
    if len(args) < count:
        print(f"Error: {message}")
        sys.exit(1)


def main() -> None:
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        print_usage()
        sys.exit(1)

    command = sys.argv[1]
    args = sys.argv[2:]

    try:
        if command == "test-config":
            asyncio.run(cmd_test_config())

        elif command == "news":
            _require(args, 1, "game_ids required (comma-separated)")
            count = int(_option(args, "--count") or get_settings().sync.news_count)
            asyncio.run(cmd_news(args[0], count))

        elif command == "add-user":
            _require(args, 1, "user_id required")
            asyncio.run(cmd_add_user(args[0], _option(args, "--token"), "--auto-follow" in args))

        elif command == "follow":
            _require(args, 2, "user_id and game_id required")
            name = args[2] if len(args) > 2 else None
            asyncio.run(cmd_follow(args[0], args[1], name))

        elif command == "unfollow":
            _require(args, 2, "user_id and game_id required")
            asyncio.run(cmd_unfollow(args[0], args[1]))

        elif command == "sync":
            asyncio.run(cmd_sync())

        elif command == "cleanup":
            asyncio.run(cmd_cleanup())

        elif command == "maintenance":
            asyncio.run(cmd_maintenance())

        elif command == "migrate":
            _require(args, 1, "path to legacy users JSON required")
            asyncio.run(cmd_migrate(Path(args[0]), force="--force" in args))

        elif command == "serve":
            asyncio.run(cmd_serve())

        elif command in ("help", "--help", "-h"):
            print_usage()

        else:
            print(f"Unknown command: {command}")
            print_usage()
            sys.exit(1)

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.exception("CLI error", error=str(e))
        output = CLIOutput(
            success=False,
            command=command,
            error=str(e),
        )
        print_json(output)
        sys.exit(1)


if __name__ == "__main__":
    main()
