"""
Best-effort notification dispatch.

Wraps a provider with a per-call timeout and converts every delivery
failure into `False`. There is no retry queue and no delivery receipt.
"""

import asyncio
from typing import Any, Protocol

import httpx

from steam_news_relay.config import NotificationConfig, get_settings
from steam_news_relay.contracts.notifications import Notification
from steam_news_relay.logger import get_logger
from steam_news_relay.notifications.providers import (
    NotificationError,
    NotificationProvider,
    get_provider,
)


class Dispatcher(Protocol):
    async def dispatch(self, token: str, notification: Notification) -> bool: ...


class NotificationDispatcher:
    """
    Sends push notifications through the configured provider.

    Example:
        >>> async with NotificationDispatcher.from_config() as dispatcher:
        ...     ok = await dispatcher.dispatch(token, notification)
    """

    def __init__(
        self,
        provider: NotificationProvider,
        *,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._provider = provider
        self._timeout_seconds = timeout_seconds
        self._logger = get_logger(
            __name__,
            component="notification_dispatcher",
            provider=provider.name,
        )

    @classmethod
    def from_config(cls, config: NotificationConfig | None = None) -> "NotificationDispatcher":
        config = config or get_settings().notifications
        return cls(get_provider(config), timeout_seconds=config.timeout_seconds)

    @property
    def provider(self) -> NotificationProvider:
        return self._provider

    async def dispatch(self, token: str, notification: Notification) -> bool:
        """
        Deliver one notification.

        Args:
            token: Opaque device token
            notification: Message to deliver

        Returns:
            bool: True if the provider accepted the message
        """
        if not token:
            return False

        try:
            return await asyncio.wait_for(
                self._provider.send(token, notification),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            self._logger.warning(
                "Notification timed out",
                timeout_seconds=self._timeout_seconds,
            )
        except NotificationError as e:
            self._logger.warning(
                "Notification rejected",
                error=str(e),
                status_code=e.status_code,
            )
        except httpx.HTTPError as e:
            self._logger.warning("Notification transport error", error=str(e))
        return False

    async def close(self) -> None:
        await self._provider.close()

    async def __aenter__(self) -> "NotificationDispatcher":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
