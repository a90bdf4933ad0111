"""
HTTP relay to the LIDER and ETA directories.

Implements the job dispatch operations and the registration relay. Every
failure, whether a transport error or a non-2xx answer, surfaces as
RemoteOperationError so the scheduler can decide between retry and drop.
"""

import logging
from typing import Any

import httpx

from lider_gateway.config import Settings, get_settings
from lider_gateway.constants import (
    ETA_LIDER_ENDPOINT,
    LIDER_REGISTER_ENDPOINT,
    PlatformType,
)
from lider_gateway.exceptions import RemoteOperationError

logger = logging.getLogger(__name__)


class RelayClient:
    """
    Async client for the LIDER and ETA APIs.

    Owns an ``httpx.AsyncClient``; call ``close`` on shutdown.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the relay client.

        Args:
            settings: Settings holding base URLs and timeout.
            client: Pre-built HTTP client, mainly for tests.
        """
        self._settings = settings or get_settings()
        self._client = client or httpx.AsyncClient(
            timeout=self._settings.relay_timeout_seconds
        )
        self._base_urls = {
            PlatformType.LIDER: self._settings.lider_url.rstrip("/"),
            PlatformType.ETA: self._settings.eta_url.rstrip("/"),
        }

    def base_url(self, target_domain: PlatformType) -> str:
        return self._base_urls[PlatformType(target_domain)]

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        target: str,
        **kwargs: Any,
    ) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteOperationError(
                f"{method} {url} failed: {type(e).__name__}: {e}",
                target=target,
            ) from e

        if not response.is_success:
            raise RemoteOperationError(
                f"{method} {url} returned HTTP {response.status_code}",
                target=target,
                status_code=response.status_code,
            )

        logger.debug(
            "Relay request succeeded",
            extra={"method": method, "url": url, "status_code": response.status_code},
        )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def perform_read(self, correlation_key: str, target_domain: PlatformType) -> Any:
        """
        Fetch the record for a device from a directory.

        Args:
            correlation_key: MAC address of the device.
            target_domain: Directory to read from.

        Raises:
            RemoteOperationError: If the request fails.
        """
        url = self.base_url(target_domain) + ETA_LIDER_ENDPOINT
        return await self._request(
            "GET",
            url,
            target=str(target_domain),
            params={"macAddress": correlation_key},
        )

    async def perform_write(
        self,
        target_domain: PlatformType,
        update_payload: dict[str, Any],
    ) -> Any:
        """
        Write a school record to a directory.

        Args:
            target_domain: Directory to write to.
            update_payload: Record shaped for that directory.

        Raises:
            RemoteOperationError: If the request fails.
        """
        url = self.base_url(target_domain) + ETA_LIDER_ENDPOINT
        return await self._request(
            "PUT",
            url,
            target=str(target_domain),
            json=update_payload,
        )

    async def register(self, registration: dict[str, Any]) -> Any:
        """
        Forward a device registration record to LIDER.

        Args:
            registration: Registration body as received from the device.

        Returns:
            The LIDER response body.

        Raises:
            RemoteOperationError: If the request fails.
        """
        url = self.base_url(PlatformType.LIDER) + LIDER_REGISTER_ENDPOINT
        logger.info("Registering with LIDER", extra={"url": url})

        result = await self._request(
            "POST",
            url,
            target=str(PlatformType.LIDER),
            json=registration,
        )

        logger.info("Registration successful")
        return result
