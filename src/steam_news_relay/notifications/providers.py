"""
Push notification providers.

Each provider delivers one message to one device token and reports
success. Providers raise `NotificationError` on delivery failure;
turning failures into a boolean is the dispatcher's job.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any

import httpx

from steam_news_relay.config import NotificationConfig
from steam_news_relay.contracts.notifications import Notification
from steam_news_relay.logger import get_logger

logger = get_logger(__name__, component="notification_provider")


class NotificationError(Exception):
    """Raised when a provider fails to deliver a message."""

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class NotificationProvider(ABC):
    """Base class for push providers."""

    name = "base"

    @abstractmethod
    async def send(self, token: str, notification: Notification) -> bool:
        """Deliver `notification` to `token`."""
        ...

    async def close(self) -> None:
        """Release provider resources."""


class SimulationProvider(NotificationProvider):
    """Logs messages instead of delivering them. Used in development."""

    name = "simulation"

    def __init__(self, *, delay_seconds: float = 0.1) -> None:
        self._delay_seconds = delay_seconds
        self.sent: list[tuple[str, Notification]] = []

    async def send(self, token: str, notification: Notification) -> bool:
        logger.info(
            "Simulated notification",
            token=token,
            title=notification.title,
        )
        if self._delay_seconds:
            await asyncio.sleep(self._delay_seconds)
        self.sent.append((token, notification))
        return True


class _HTTPProvider(NotificationProvider):
    """Shared httpx handling for REST-based providers."""

    def __init__(self, *, timeout: float = 10.0, client: httpx.AsyncClient | None = None) -> None:
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _post(self, url: str, *, json: dict[str, Any], headers: dict[str, str]) -> httpx.Response:
        response = await self.client.post(url, json=json, headers=headers)
        if response.status_code >= 400:
            raise NotificationError(
                f"{self.name} returned {response.status_code}",
                provider=self.name,
                status_code=response.status_code,
            )
        return response


class OneSignalProvider(_HTTPProvider):
    """Delivers through the OneSignal REST API."""

    name = "onesignal"
    API_URL = "https://onesignal.com/api/v1/notifications"

    def __init__(self, *, app_id: str, api_key: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._app_id = app_id
        self._api_key = api_key

    async def send(self, token: str, notification: Notification) -> bool:
        body = {
            "app_id": self._app_id,
            "include_player_ids": [token],
            "headings": {"en": notification.title},
            "contents": {"en": notification.body},
            "data": notification.payload,
        }
        response = await self._post(
            self.API_URL,
            json=body,
            headers={"Authorization": f"Basic {self._api_key}"},
        )
        # OneSignal answers 200 with an "errors" list for unknown player ids
        try:
            errors = response.json().get("errors")
        except ValueError:
            errors = None
        if errors:
            raise NotificationError(f"OneSignal rejected message: {errors}", provider=self.name)
        return True


class FirebaseProvider(_HTTPProvider):
    """Delivers through the Firebase Cloud Messaging HTTP v1 API."""

    name = "firebase"
    API_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"

    def __init__(self, *, project_id: str, access_token: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._url = self.API_URL.format(project_id=project_id)
        self._access_token = access_token

    async def send(self, token: str, notification: Notification) -> bool:
        body = {
            "message": {
                "token": token,
                "notification": {
                    "title": notification.title,
                    "body": notification.body,
                },
                "data": notification.payload,
            }
        }
        await self._post(
            self._url,
            json=body,
            headers={"Authorization": f"Bearer {self._access_token}"},
        )
        return True


def get_provider(
    config: NotificationConfig,
    *,
    client: httpx.AsyncClient | None = None,
) -> NotificationProvider:
    """
    Build the provider selected by configuration.

    A real provider whose credentials are missing falls back to the
    simulation provider with a warning.
    """
    if config.provider == "onesignal":
        if config.onesignal_app_id and config.onesignal_api_key:
            return OneSignalProvider(
                app_id=config.onesignal_app_id,
                api_key=config.onesignal_api_key.get_secret_value(),
                timeout=config.timeout_seconds,
                client=client,
            )
        logger.warning("OneSignal credentials missing, using simulation provider")

    elif config.provider == "firebase":
        if config.firebase_project_id and config.firebase_access_token:
            return FirebaseProvider(
                project_id=config.firebase_project_id,
                access_token=config.firebase_access_token.get_secret_value(),
                timeout=config.timeout_seconds,
                client=client,
            )
        logger.warning("Firebase credentials missing, using simulation provider")

    return SimulationProvider(delay_seconds=config.simulation_delay_seconds)
