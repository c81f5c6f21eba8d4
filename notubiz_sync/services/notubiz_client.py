"""
NotuBiz API client.
Handles raw HTTP calls against a configured source, retries on transient
failures and JSON decoding of the responses.
Low-level transport, knows nothing about events or publications.
"""

import asyncio
from dataclasses import dataclass

import httpx

from notubiz_sync.config import settings
from notubiz_sync.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Retry configuration
MAX_RETRIES = 3
BACKOFF_FACTOR = 2  # 2, 4 seconds
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class NotubizTransportError(Exception):
    """Network, HTTP or decode failure talking to a NotuBiz source."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


@dataclass(frozen=True, slots=True)
class Source:
    """A remote source we call: its reference (identity) and base location."""

    reference: str
    location: str
    name: str = "NotuBiz"

    def url_for(self, path: str) -> str:
        return f"{self.location.rstrip('/')}/{path.lstrip('/')}"


class NotubizClient:
    """
    Async HTTP client for NotuBiz sources.

    A shared httpx.AsyncClient can be passed in (tests use a MockTransport);
    otherwise one client is created per call.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        backoff_factor: float = BACKOFF_FACTOR,
    ):
        self._http_client = http_client
        self._timeout = timeout or settings.NOTUBIZ_REQUEST_TIMEOUT
        self._backoff_factor = backoff_factor

    async def call(
        self,
        source: Source,
        path: str,
        method: str = "GET",
        query: dict | None = None,
    ) -> httpx.Response:
        """
        Call an endpoint on the source, retrying transient failures.

        Raises:
            NotubizTransportError: on network failure or a non-2xx response
        """
        url = source.url_for(path)

        if self._http_client is not None:
            response = await self._send_with_retry(self._http_client, method, url, query)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await self._send_with_retry(client, method, url, query)

        if response.is_success:
            return response

        logger.error(
            "NotuBiz request failed",
            url=url,
            status_code=response.status_code,
            response_text=response.text[:200] if response.text else "",
        )
        raise NotubizTransportError(
            f"NotuBiz API error (HTTP {response.status_code})",
            status_code=response.status_code,
        )

    def decode(self, source: Source, response: httpx.Response) -> dict:
        """Decode a JSON response body."""
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            logger.error("Failed to decode NotuBiz response", source=source.reference, error=str(e))
            raise NotubizTransportError(f"Invalid response format: {e}") from e

        if not isinstance(data, dict):
            raise NotubizTransportError(
                f"Unexpected response payload type: {type(data).__name__}",
                status_code=response.status_code,
            )
        return data

    async def get_json(self, source: Source, path: str, query: dict | None = None) -> dict:
        """GET and decode in one go."""
        response = await self.call(source, path, "GET", query)
        return self.decode(source, response)

    async def _send_with_retry(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        query: dict | None,
    ) -> httpx.Response:
        last_error: Exception | None = None

        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await client.request(method, url, params=query)

                if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                    wait_time = self._backoff_factor**attempt
                    logger.warning(
                        "NotuBiz transient status",
                        url=url,
                        status_code=response.status_code,
                        attempt=attempt,
                        wait_time=wait_time,
                    )
                    await asyncio.sleep(wait_time)
                    continue

                return response

            except httpx.RequestError as exc:
                last_error = exc

                if attempt == MAX_RETRIES:
                    break

                wait_time = self._backoff_factor**attempt
                logger.warning(
                    "NotuBiz request error, retrying",
                    url=url,
                    attempt=attempt,
                    wait_time=wait_time,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                await asyncio.sleep(wait_time)

        raise NotubizTransportError(f"Request to {url} failed: {last_error}") from last_error


# Default client instance
notubiz_client = NotubizClient()
