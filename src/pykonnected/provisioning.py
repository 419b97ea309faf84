"""Push callback credentials and zone assignments to panels."""

import logging
import uuid
from collections.abc import MutableSet
from typing import Any

from .connection import PanelClient
from .const.protocol import PLATFORM_NAME, SETTINGS_PATH
from .const.states import EndpointType
from .exceptions import KonnectedConnectionError, KonnectedRebootingError
from .models import Panel

_LOGGER = logging.getLogger(__name__)


class ProvisioningClient:
    """Provision panels with a fresh bearer token and compiled zones."""

    def __init__(self, client: PanelClient, tokens: MutableSet[str]):
        """Initialize provisioning client.

        Args:
            client: Panel HTTP client
            tokens: Tokens the callback server accepts (shared, owned by the caller)
        """
        self._client = client
        self._tokens = tokens
        self.issued: dict[str, str] = {}  # panel uuid -> token it accepted

    def issue_token(self) -> str:
        """Generate a token and register it with the callback server."""
        token = str(uuid.uuid4())
        self._tokens.add(token)
        return token

    def build_payload(
        self,
        endpoint: str,
        token: str,
        zones_payload: dict[str, list[dict[str, Any]]],
        blink: bool = True,
    ) -> dict[str, Any]:
        """Build the settings payload for a panel."""
        return {
            "endpoint_type": EndpointType.REST.value,
            "endpoint": endpoint,
            "token": token,
            "blink": blink,
            "discovery": True,
            "platform": PLATFORM_NAME,
            **zones_payload,
        }

    async def provision(
        self,
        panel: Panel,
        endpoint: str,
        zones_payload: dict[str, list[dict[str, Any]]],
        blink: bool = True,
    ) -> bool:
        """Provision a panel.

        A dropped connection is expected, the panel reboots to apply its new
        settings. Any other failure abandons the attempt; the next discovery
        pass will try again.

        Args:
            panel: Panel to provision
            endpoint: Callback URL the panel should report to
            zones_payload: Sensor/actuator arrays from the compiler
            blink: Blink the panel LED on state changes

        Returns:
            True if the panel accepted the settings or rebooted to apply them
        """
        url = panel.base_url + SETTINGS_PATH
        token = self.issue_token()
        payload = self.build_payload(endpoint, token, zones_payload, blink)
        _LOGGER.debug(f"Panel {panel.name} {url} payload: {payload}")

        try:
            status = await self._client.put_json(url, payload)
        except KonnectedRebootingError:
            _LOGGER.info(
                f"The panel at {url} has disconnected and is likely rebooting "
                "to apply new provisioning settings"
            )
            self.issued[panel.uuid] = token
            return True
        except KonnectedConnectionError as e:
            _LOGGER.error(f"Failed to provision panel {panel.uuid}: {e}")
            return False

        if status >= 400:
            _LOGGER.error(f"Panel {panel.uuid} rejected provisioning with HTTP {status}")
            return False
        self.issued[panel.uuid] = token
        _LOGGER.info(f"Provisioned panel {panel.uuid} at {panel.host}:{panel.port}")
        return True
