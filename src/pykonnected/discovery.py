"""SSDP discovery of Konnected panels.

A discovery pass multicasts an ``ssdp:all`` search, keeps the responses
whose search target carries the Konnected URN, and fetches each panel's
status document to decide whether it needs (re)provisioning.
"""

import asyncio
import logging
import os
import re
import uuid
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

from .connection import PanelClient
from .const.protocol import (
    DEFAULT_DISCOVERY_TIMEOUT,
    DEVICE_DESCRIPTION_FILE,
    DISCOVERY_HELP_URL,
    DISCOVERY_MAX_RETRIES,
    EXCLUDE_PANELS_ENV,
    SSDP_MULTICAST_ADDRESS,
    SSDP_PORT,
    SSDP_SEARCH_TARGET,
    SSDP_URN_PREFIX,
    STATUS_PATH,
)
from .const.states import EndpointType, ProvisionDecision
from .exceptions import KonnectedConnectionError
from .models import Panel

_LOGGER = logging.getLogger(__name__)

_USN_PATTERN = re.compile(r"^uuid:(.*?)::.*$", re.IGNORECASE)


@dataclass
class SSDPResponse:
    """Headers of interest from an SSDP search response."""

    search_target: str
    usn: str
    location: str
    address: tuple[str, int] | None = None


def parse_ssdp_response(data: bytes, address: tuple[str, int] | None = None) -> SSDPResponse | None:
    """Parse a raw SSDP datagram.

    Returns:
        The parsed response, or None if the datagram is not a search response
    """
    text = data.decode("utf-8", errors="replace")
    lines = text.replace("\r\n", "\n").split("\n")
    if not lines or not lines[0].upper().startswith("HTTP/"):
        return None

    headers: dict[str, str] = {}
    for line in lines[1:]:
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        headers[key.strip().upper()] = value.strip()

    return SSDPResponse(
        search_target=headers.get("ST", ""),
        usn=headers.get("USN", ""),
        location=headers.get("LOCATION", ""),
        address=address,
    )


def extract_uuid(usn: str) -> str | None:
    """Extract the panel UUID from a ``uuid:<UUID>::<rest>`` USN."""
    match = _USN_PATTERN.match(usn or "")
    if not match:
        return None
    return match.group(1) or None


def status_url(location: str) -> str:
    """Build the status document URL from an SSDP location."""
    if location.endswith(DEVICE_DESCRIPTION_FILE):
        return location[: -len(DEVICE_DESCRIPTION_FILE)] + STATUS_PATH
    return location.rstrip("/") + "/" + STATUS_PATH


def build_search_request(search_target: str = SSDP_SEARCH_TARGET, mx: int = 2) -> bytes:
    """Build an M-SEARCH request."""
    return (
        "M-SEARCH * HTTP/1.1\r\n"
        f"HOST: {SSDP_MULTICAST_ADDRESS}:{SSDP_PORT}\r\n"
        'MAN: "ssdp:discover"\r\n'
        f"MX: {mx}\r\n"
        f"ST: {search_target}\r\n"
        "\r\n"
    ).encode()


def excluded_from_env(environ: Mapping[str, str] | None = None) -> set[str]:
    """Read panel UUIDs to ignore from the environment."""
    environ = os.environ if environ is None else environ
    raw = environ.get(EXCLUDE_PANELS_ENV, "")
    return {item.lower() for item in re.split(r"[,\s]+", raw) if item}


def decide_provisioning(
    status: dict[str, Any],
    listener_host: str,
    listener_port: int,
    token_issued: bool = True,
) -> ProvisionDecision:
    """Decide whether a panel needs provisioning.

    A panel already pointing at this listener still needs a new token when
    its current one was not issued by this process (e.g. after a restart).

    Args:
        status: Panel status document
        listener_host: Address this service listens on
        listener_port: Port this service listens on
        token_issued: Whether the panel holds a token this process accepts
    """
    settings = status.get("settings") or {}
    if not settings:
        return ProvisionDecision.PROVISION

    if settings.get("endpoint_type") == EndpointType.REST.value:
        endpoint = urlsplit(str(settings.get("endpoint", "")))
        try:
            port = endpoint.port
        except ValueError:
            port = None
        if endpoint.hostname != listener_host or port != listener_port or not token_issued:
            return ProvisionDecision.REPROVISION
        return ProvisionDecision.UP_TO_DATE

    return ProvisionDecision.CLOUD_LOCKED


class _SSDPProtocol(asyncio.DatagramProtocol):
    """Collect SSDP search responses."""

    def __init__(self, on_response: Callable[[SSDPResponse], None]):
        self._on_response = on_response

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        response = parse_ssdp_response(data, addr)
        if response is not None:
            self._on_response(response)

    def error_received(self, exc: Exception) -> None:
        _LOGGER.debug(f"SSDP socket error: {exc}")


async def ssdp_search(
    timeout: float,
    on_response: Callable[[SSDPResponse], None],
    search_target: str = SSDP_SEARCH_TARGET,
) -> None:
    """Multicast a search and report responses until the timeout elapses."""
    loop = asyncio.get_running_loop()
    transport, _ = await loop.create_datagram_endpoint(
        lambda: _SSDPProtocol(on_response), local_addr=("0.0.0.0", 0)
    )
    try:
        mx = max(1, min(int(timeout), 5))
        transport.sendto(
            build_search_request(search_target, mx), (SSDP_MULTICAST_ADDRESS, SSDP_PORT)
        )
        await asyncio.sleep(timeout)
    finally:
        transport.close()


SearchFunc = Callable[[float, Callable[[SSDPResponse], None]], Awaitable[None]]


class DiscoveryEngine:
    """Find panels and hand them over for provisioning."""

    def __init__(
        self,
        client: PanelClient,
        listener: Callable[[], tuple[str, int]],
        on_panel: Callable[[str, dict[str, Any]], Awaitable[Panel | None]],
        on_provision: Callable[[Panel], Awaitable[Any]],
        timeout: float = DEFAULT_DISCOVERY_TIMEOUT,
        excluded: Iterable[str] | None = None,
        search: SearchFunc = ssdp_search,
        max_retries: int = DISCOVERY_MAX_RETRIES,
        on_load: Callable[[Panel], Any] | None = None,
        token_issued: Callable[[Panel], bool] | None = None,
    ):
        """Initialize discovery.

        Args:
            client: Panel HTTP client
            listener: Returns the (host, port) this service listens on
            on_panel: Registers a panel from its status document
            on_provision: Provisions a registered panel
            timeout: Length of one discovery pass in seconds
            excluded: Panel UUIDs to ignore (defaults to the environment)
            search: SSDP search implementation
            max_retries: Passes to retry when nothing is found
            on_load: Loads the zones of a panel that is not provisioned
            token_issued: Whether a panel holds a token issued by this process
        """
        self._client = client
        self._listener = listener
        self._on_panel = on_panel
        self._on_provision = on_provision
        self._on_load = on_load
        self._token_issued = token_issued
        self.timeout = timeout
        self.excluded = {e.lower() for e in excluded} if excluded is not None else excluded_from_env()
        self._search = search
        self.max_retries = max_retries

        self.discovering = False
        self.attempts = 0

    async def discover(self) -> list[str]:
        """Run discovery passes until a panel is found or retries run out.

        Returns:
            UUIDs of the panels found
        """
        if self.discovering:
            _LOGGER.debug("Discovery already in progress")
            return []

        self.discovering = True
        try:
            while True:
                found = await self._discovery_pass()
                if found:
                    self.attempts = 0
                    _LOGGER.debug(f"Discovery complete. Found panels: {found}")
                    return found

                if self.attempts < self.max_retries:
                    self.attempts += 1
                    _LOGGER.debug(
                        f"Discovery attempt {self.attempts} could not find any panels "
                        "on the network. Retrying..."
                    )
                    continue

                self.attempts = 0
                _LOGGER.warning(
                    "Could not discover any panels on the network. Please check that "
                    "your panel(s) are on the same network and that you have UPnP "
                    f"enabled. Visit {DISCOVERY_HELP_URL} for more information."
                )
                return []
        finally:
            self.discovering = False

    async def _discovery_pass(self) -> list[str]:
        seen: list[str] = []
        handlers: list[asyncio.Task[None]] = []

        def on_response(response: SSDPResponse) -> None:
            if SSDP_URN_PREFIX not in response.search_target:
                return
            panel_uuid = extract_uuid(response.usn) or response.usn
            if panel_uuid in seen:
                return
            if panel_uuid.lower() in self.excluded:
                _LOGGER.debug(f"Ignoring excluded panel {panel_uuid}")
                return
            seen.append(panel_uuid)
            handlers.append(
                asyncio.create_task(self._handle_panel(panel_uuid, response.location))
            )

        await self._search(self.timeout, on_response)
        if handlers:
            await asyncio.gather(*handlers)
        return seen

    async def _handle_panel(self, panel_uuid: str, location: str) -> None:
        try:
            uuid.UUID(panel_uuid)
        except ValueError:
            _LOGGER.error(f"{panel_uuid} is an invalid UUID structure for the panel at {location}")
            return

        try:
            status = await self._client.get_json(status_url(location))
        except KonnectedConnectionError as e:
            _LOGGER.error(f"Could not fetch status of panel {panel_uuid}: {e}")
            return

        try:
            panel = await self._on_panel(panel_uuid, status)
            if panel is None:
                return

            host, port = self._listener()
            token_issued = self._token_issued(panel) if self._token_issued is not None else True
            decision = decide_provisioning(status, host, port, token_issued)
            if decision in (ProvisionDecision.PROVISION, ProvisionDecision.REPROVISION):
                _LOGGER.debug(f"Panel {panel_uuid}: {decision.value}")
                await self._on_provision(panel)
                return

            if self._on_load is not None:
                self._on_load(panel)
            if decision is ProvisionDecision.CLOUD_LOCKED:
                _LOGGER.error(
                    f"Panel {panel_uuid} has previously been provisioned to use the Konnected "
                    "Cloud and cannot be provisioned until you de-register it from the "
                    "Konnected Cloud with the Konnected mobile app and factory reset it."
                )
            else:
                _LOGGER.debug(f"Panel {panel_uuid} is already provisioned to {host}:{port}")
        except Exception as e:
            _LOGGER.error(f"Failed to handle panel {panel_uuid}: {e}", exc_info=True)
