"""
Base HTTP client for the Steam Web API.

Owns the httpx client, retries transient failures with exponential
backoff, paces requests through a shared rate limiter, and maps
HTTP failures onto a small exception taxonomy.
"""

from datetime import datetime, timezone
from typing import Any

import httpx
from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from steam_news_relay.config import RetryConfig, get_settings
from steam_news_relay.logger import get_logger
from steam_news_relay.utils.rate_limiter import RateLimiter

USER_AGENT = "SteamNewsRelay/1.0"


class SteamAPIError(Exception):
    """Base exception for Steam API failures."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        endpoint: str | None = None,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.endpoint = endpoint
        self.status_code = status_code
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)


class RateLimitError(SteamAPIError):
    """Raised when the API answers 429."""


class APIError(SteamAPIError):
    """Raised when the API returns an error response."""


class ResponseValidationError(SteamAPIError):
    """Raised when a response does not match its contract."""


class BaseSteamClient:
    """
    Shared plumbing for Steam Web API clients.

    Subclasses set `source_name` and build on `_get_json()`.
    """

    source_name = "steam_api"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        rate_limiter: RateLimiter | None = None,
        retry_config: RetryConfig | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: API root (defaults to settings)
            rate_limiter: Shared limiter (creates one from settings if None)
            retry_config: Custom retry configuration
            timeout: HTTP request timeout in seconds
            client: Pre-built httpx client, mostly for tests
        """
        settings = get_settings()
        self._base_url = (base_url or settings.steam.base_url).rstrip("/")
        self._retry_config = retry_config or settings.retry
        self._timeout = timeout or settings.steam.timeout_seconds
        self._rate_limiter = rate_limiter or RateLimiter.per_minute(
            settings.steam.requests_per_minute
        )
        self._logger = get_logger(
            self.__class__.__name__,
            component="steam_client",
            source=self.source_name,
        )
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                headers={
                    "User-Agent": USER_AGENT,
                    "Accept": "application/json",
                },
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close HTTP client and release resources."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BaseSteamClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _create_retry_decorator(self) -> Any:
        """Create retry decorator with current configuration."""
        return retry(
            retry=retry_if_exception_type((httpx.HTTPError, APIError)),
            stop=stop_after_attempt(self._retry_config.max_attempts),
            wait=wait_exponential(
                multiplier=self._retry_config.base_delay_seconds,
                max=self._retry_config.max_delay_seconds,
                exp_base=self._retry_config.exponential_base,
            ),
            before_sleep=self._log_retry_attempt,
            reraise=True,
        )

    def _log_retry_attempt(self, retry_state: Any) -> None:
        self._logger.warning(
            "Retrying request",
            attempt=retry_state.attempt_number,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Make a paced HTTP request with retry logic.

        Raises:
            RateLimitError: If the API keeps answering 429
            APIError: If the API keeps returning an error status
            SteamAPIError: For transport failures after retries
        """
        url = f"{self._base_url}/{path.lstrip('/')}"

        @self._create_retry_decorator()
        async def _send() -> httpx.Response:
            await self._rate_limiter.acquire()
            self._logger.debug("Making request", method=method, url=url)

            response = await self.client.request(method, url, **kwargs)

            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After", "60")
                raise RateLimitError(
                    f"Rate limit exceeded. Retry after {retry_after}s",
                    source=self.source_name,
                    endpoint=url,
                    status_code=429,
                )

            if response.status_code >= 400:
                raise APIError(
                    f"API error: {response.status_code}",
                    source=self.source_name,
                    endpoint=url,
                    status_code=response.status_code,
                )

            return response

        try:
            return await _send()  # type: ignore[no-any-return]
        except httpx.HTTPError as e:
            self._logger.error(
                "Request failed after retries",
                url=url,
                attempts=self._retry_config.max_attempts,
                error=str(e),
            )
            raise SteamAPIError(
                f"Request failed after {self._retry_config.max_attempts} attempts: {e}",
                source=self.source_name,
                endpoint=url,
                original_error=e,
            ) from e
        except RetryError as e:
            raise SteamAPIError(
                f"Request failed after {self._retry_config.max_attempts} attempts",
                source=self.source_name,
                endpoint=url,
                original_error=e,
            ) from e

    async def _get_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """GET `path` and decode the JSON body."""
        response = await self._request("GET", path, params=params)
        try:
            data = response.json()
        except ValueError as e:
            raise ResponseValidationError(
                "Response body is not valid JSON",
                source=self.source_name,
                endpoint=str(response.request.url),
                status_code=response.status_code,
                original_error=e,
            ) from e
        if not isinstance(data, dict):
            raise ResponseValidationError(
                "Expected a JSON object",
                source=self.source_name,
                endpoint=str(response.request.url),
                status_code=response.status_code,
            )
        return data
