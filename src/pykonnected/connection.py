"""Async HTTP client for Konnected panels."""

import asyncio
import errno
import logging
from typing import Any

import aiohttp

from .const.protocol import DEFAULT_HTTP_TIMEOUT
from .exceptions import (
    KonnectedConnectionError,
    KonnectedRebootingError,
    KonnectedTimeoutError,
)

_LOGGER = logging.getLogger(__name__)


class PanelClient:
    """HTTP client shared by discovery, provisioning and actuation."""

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ):
        """Initialize client.

        Args:
            session: Existing aiohttp session (one is created on demand otherwise)
            timeout: Request timeout in seconds
        """
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    async def get_json(self, url: str) -> dict[str, Any]:
        """GET a JSON document from a panel.

        Raises:
            KonnectedConnectionError: If the request fails
            KonnectedTimeoutError: If the request times out
        """
        session = await self._get_session()
        _LOGGER.debug(f"GET {url}")
        try:
            async with session.get(url) as response:
                response.raise_for_status()
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
            raise self._wrap_error(url, e) from e

    async def put_json(self, url: str, payload: dict[str, Any]) -> int:
        """PUT a JSON payload to a panel.

        Returns:
            HTTP status code

        Raises:
            KonnectedRebootingError: If the panel dropped the connection
            KonnectedConnectionError: If the request fails
            KonnectedTimeoutError: If the request times out
        """
        session = await self._get_session()
        _LOGGER.debug(f"PUT {url}: {payload}")
        try:
            async with session.put(url, json=payload) as response:
                await response.read()
                return response.status
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
            raise self._wrap_error(url, e) from e

    @staticmethod
    def _wrap_error(url: str, error: Exception) -> KonnectedConnectionError:
        if isinstance(error, aiohttp.ServerDisconnectedError):
            return KonnectedRebootingError(f"Panel at {url} disconnected")
        if isinstance(error, aiohttp.ClientOSError) and error.errno == errno.ECONNRESET:
            return KonnectedRebootingError(f"Panel at {url} reset the connection")
        if isinstance(error, asyncio.TimeoutError):
            return KonnectedTimeoutError(f"Request to {url} timed out")
        return KonnectedConnectionError(f"Request to {url} failed: {error}")

    async def close(self) -> None:
        """Close the underlying session if this client created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "PanelClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.close()
