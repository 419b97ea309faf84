"""High-level orchestrator tying discovery, provisioning, callbacks and the security system together."""

import asyncio
import logging
import socket
from collections.abc import Mapping
from typing import Any

from .actuation import ActuationEngine, physical_level
from .cache import RuntimeStateCache
from .compiler import CompiledPanel, compile_panel
from .config import ConfigStore
from .connection import PanelClient
from .const.protocol import API_PREFIX
from .const.states import SecuritySystemState
from .const.zones import (
    CHAR_HUMIDITY,
    CHAR_ON,
    CHAR_SECURITY_CURRENT,
    CHAR_SECURITY_TARGET,
    CHAR_TEMPERATURE,
    SECURITY_SYSTEM_LABEL,
    SECURITY_SYSTEM_SERVICE,
    ZoneType,
)
from .discovery import DiscoveryEngine, SearchFunc, ssdp_search
from .exceptions import KonnectedConfigError
from .models import SECURITY_SYSTEM_UUID, Panel, PanelConfig, PlatformConfig, ZoneRuntime, zone_uuid
from .provisioning import ProvisioningClient
from .registry import AccessoryInfo, AccessoryRegistry, InMemoryAccessoryRegistry, to_characteristic_value
from .security import SecuritySystemEngine
from .server import CallbackServer
from .zone_map import characteristics_for_zone_type, normalize_zone, service_for_zone_type, zone_for_pin

_LOGGER = logging.getLogger(__name__)


def default_listener_ip() -> str:
    """Get the address of the primary network interface."""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        try:
            # No packet is sent, this only selects the outbound interface
            sock.connect(("10.255.255.255", 1))
            return sock.getsockname()[0]
        except OSError:
            return "127.0.0.1"


def _coerce_state(value: Any) -> int:
    try:
        return 1 if int(value) else 0
    except (TypeError, ValueError):
        return 1 if str(value).strip().lower() in ("true", "on") else 0


class KonnectedPlatform:
    """Own every panel, token and zone record of an installation."""

    def __init__(
        self,
        config: PlatformConfig,
        registry: AccessoryRegistry | None = None,
        store: ConfigStore | None = None,
        client: PanelClient | None = None,
        search: SearchFunc = ssdp_search,
    ):
        """Initialize platform.

        Args:
            config: Loaded settings
            registry: Accessory registry of the exposition layer
            store: Settings file to append discovered panels to
            client: Panel HTTP client
            search: SSDP search implementation
        """
        self.config = config
        self.store = store
        self.registry: AccessoryRegistry = registry or InMemoryAccessoryRegistry()
        self.client = client or PanelClient()

        advanced = config.advanced
        self.listener_ip = advanced.listener_ip or default_listener_ip()
        self.listener_port = advanced.listener_port

        self.panels: dict[str, Panel] = {}  # by short id
        self.tokens: set[str] = set()
        self.cache = RuntimeStateCache()

        self.actuation = ActuationEngine(self.cache, self.client, self.panels, self.registry)
        self.security = SecuritySystemEngine(
            self.cache, self.actuation, self.registry, advanced.entry_delay
        )
        self.provisioning = ProvisioningClient(self.client, self.tokens)
        self.server = CallbackServer(
            self.tokens,
            self.handle_zone_update,
            self.handle_state_query,
            self._on_auth_failure,
            port=self.listener_port,
        )
        self.discovery = DiscoveryEngine(
            self.client,
            self.listener,
            self.register_panel,
            self.provision_panel,
            timeout=advanced.discovery_timeout,
            search=search,
            on_load=self.load_panel,
            token_issued=lambda panel: panel.uuid in self.provisioning.issued,
        )
        self._discovery_task: asyncio.Task[list[str]] | None = None

        _LOGGER.debug("Platform initialized")

    # Lifecycle

    async def start(self) -> None:
        """Start the callback server and discover panels."""
        self.register_security_system()
        await self.server.start()
        self.listener_port = self.server.port
        self.start_discovery()

    async def stop(self) -> None:
        """Stop discovery, the callback server and background actuations."""
        task = self._discovery_task
        self._discovery_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.server.stop()
        await self.client.close()

    def start_discovery(self) -> asyncio.Task[list[str]] | None:
        """Start a discovery pass unless one is already running."""
        pending = self._discovery_task is not None and not self._discovery_task.done()
        if pending or self.discovery.discovering:
            return None
        self._discovery_task = asyncio.create_task(self.discovery.discover())
        return self._discovery_task

    def listener(self) -> tuple[str, int]:
        """Get the address panels should call back to."""
        return self.listener_ip, self.listener_port

    @property
    def callback_endpoint(self) -> str:
        return f"http://{self.listener_ip}:{self.listener_port}{API_PREFIX}"

    def _on_auth_failure(self) -> None:
        if self.start_discovery() is not None:
            _LOGGER.debug("Rediscovering and reprovisioning panels...")

    # Panels

    async def register_panel(self, panel_uuid: str, status: dict[str, Any]) -> Panel:
        """Create or refresh a panel from its status document."""
        panel = next((p for p in self.panels.values() if p.uuid == panel_uuid), None)
        if panel is None:
            panel = Panel.from_status(panel_uuid, status)
            self.panels[panel.short_id] = panel
            _LOGGER.info(f"Discovered panel {panel_uuid} at {panel.host}:{panel.port}")
        else:
            panel.update_from_status(status)

        panel_config = self.config.panel(panel_uuid)
        if panel_config is None:
            panel_config = PanelConfig(uuid=panel_uuid, name=panel.name, ip_address=panel.host, port=panel.port)
            self.config.panels.append(panel_config)
            if self.store is not None:
                try:
                    self.store.add_panel(panel_uuid, panel.name, panel.host, panel.port)
                except (KonnectedConfigError, OSError) as e:
                    _LOGGER.error(f"Could not add panel {panel_uuid} to the config file: {e}")
        else:
            panel.name = panel_config.name or panel.name
            panel.host = panel_config.ip_address or panel.host
            panel.port = panel_config.port or panel.port
        return panel

    def compile(self, panel: Panel) -> CompiledPanel:
        """Compile the configured zones of a panel."""
        panel_config = self.config.panel(panel.uuid)
        return compile_panel(panel, panel_config.zones if panel_config else [])

    def load_panel(self, panel: Panel) -> CompiledPanel:
        """Compile a panel and register its zones without provisioning it."""
        compiled = self.compile(panel)
        self.sync_accessories(panel, compiled)
        return compiled

    async def provision_panel(self, panel: Panel) -> bool:
        """Compile, register and push a panel's zones."""
        compiled = self.load_panel(panel)
        panel_config = self.config.panel(panel.uuid)
        blink = panel_config.blink if panel_config else True
        return await self.provisioning.provision(
            panel, self.callback_endpoint, compiled.payload, blink
        )

    # Accessories

    def register_security_system(self) -> None:
        """Register the single security system accessory."""
        info = AccessoryInfo(
            uuid=SECURITY_SYSTEM_UUID,
            display_name=SECURITY_SYSTEM_LABEL,
            service=SECURITY_SYSTEM_SERVICE,
            model="Konnected Security System",
            serial_number="security-system",
            characteristics={
                CHAR_SECURITY_CURRENT: self.security.state.value,
                CHAR_SECURITY_TARGET: self.security.state.value,
            },
        )
        if self.registry.get(SECURITY_SYSTEM_UUID) is not None:
            self.registry.update(info)
        else:
            self.registry.register(info)

    def sync_accessories(self, panel: Panel, compiled: CompiledPanel) -> None:
        """Bring the registry in line with a panel's compiled zones."""
        self.cache.load_panel(panel.short_id, compiled.runtimes)
        retained = {runtime.uuid for runtime in compiled.runtimes}

        stale = [
            accessory.uuid
            for accessory in self.registry.list_accessories()
            if accessory.serial_number.split("-")[0] == panel.short_id
            and accessory.uuid not in retained
        ]
        if stale:
            self.registry.unregister(stale)

        for runtime in compiled.runtimes:
            info = AccessoryInfo(
                uuid=runtime.uuid,
                display_name=runtime.display_name,
                service=service_for_zone_type(runtime.zone_type),
                model=runtime.model,
                serial_number=runtime.serial_number,
            )
            if self.registry.get(runtime.uuid) is not None:
                self.registry.update(info)
            else:
                self.registry.register(info)

    def _push(self, runtime: ZoneRuntime, name: str, value: Any) -> None:
        self.registry.update_characteristic(runtime.uuid, name, to_characteristic_value(name, value))

    # Callbacks

    async def handle_zone_update(self, panel_id: str, body: dict[str, Any]) -> None:
        """Apply a state change reported by a panel."""
        panel_id = panel_id.lower()
        if "pin" in body:
            zone = zone_for_pin(body["pin"])
        else:
            zone = normalize_zone(body.get("zone"))
        if zone is None:
            _LOGGER.warning(f"Panel {panel_id} reported an unknown zone: {body}")
            return

        runtime = self.cache.get(zone_uuid(panel_id, zone))
        if runtime is None:
            _LOGGER.debug(f"Panel {panel_id} reported unconfigured zone '{zone}': {body}")
            return
        _LOGGER.debug(f"{runtime.display_name} ({runtime.serial_number}): {body} (zone: {zone})")

        if runtime.zone_type is ZoneType.TEMPERATURE:
            self.cache.write(runtime.uuid, "temp", body.get("temp"))
            self._push(runtime, CHAR_TEMPERATURE, runtime.temp)
        elif runtime.zone_type is ZoneType.HUMIDTEMP:
            self.cache.write(runtime.uuid, "temp", body.get("temp"))
            self.cache.write(runtime.uuid, "humi", body.get("humi"))
            self._push(runtime, CHAR_TEMPERATURE, runtime.temp)
            self._push(runtime, CHAR_HUMIDITY, runtime.humi)
        elif runtime.is_actuator:
            self.cache.write(runtime.uuid, "state", _coerce_state(body.get("state")))
            self._push(runtime, CHAR_ON, runtime.state)
        else:
            state = _coerce_state(body.get("state"))
            if runtime.invert:
                state = 1 - state
                _LOGGER.debug(f"{runtime.display_name} ({runtime.serial_number}): inverted state to '{state}'")
            self.cache.write(runtime.uuid, "state", state)
            self._push(runtime, characteristics_for_zone_type(runtime.zone_type)[0], state)

            if runtime.zone_type is ZoneType.ARMING_SWITCH:
                self.security.process_arming_switch(runtime)
            else:
                self.security.process_sensor_change(runtime)

    def handle_state_query(self, panel_id: str, query: Mapping[str, str]) -> dict[str, Any]:
        """Tell a panel the level it should drive an actuator at."""
        panel_id = panel_id.lower()
        response: dict[str, Any] = {"success": True}
        if "pin" in query:
            zone = zone_for_pin(query["pin"])
            response["pin"] = int(query["pin"]) if str(query["pin"]).isdigit() else query["pin"]
        else:
            zone = normalize_zone(query.get("zone"))
            response["zone"] = query.get("zone")

        runtime = self.cache.get(zone_uuid(panel_id, zone)) if zone else None
        if runtime is None:
            response["state"] = 0
        else:
            response["state"] = physical_level(runtime.trigger, self.cache.read(runtime.uuid, "state"))
        _LOGGER.debug(
            f"Panel ({panel_id}) requested zone '{zone}' initial state, sending value of {response['state']}"
        )
        return response

    # Exposition layer requests

    def get_characteristic(self, uuid: str, name: str) -> Any:
        """Answer a characteristic read from the runtime cache."""
        if uuid == SECURITY_SYSTEM_UUID:
            return self.security.state.value
        if name == CHAR_TEMPERATURE:
            attribute = "temp"
        elif name == CHAR_HUMIDITY:
            attribute = "humi"
        else:
            attribute = "state"
        return to_characteristic_value(name, self.cache.read(uuid, attribute))

    async def set_switch(self, uuid: str, value: Any) -> bool:
        """Turn a switch zone on or off."""
        return await self.actuation.actuate(uuid, value)

    def set_security_target(self, value: int | SecuritySystemState) -> None:
        """Arm or disarm the security system."""
        self.security.set_target(value)

    def available_security_targets(self) -> list[SecuritySystemState]:
        """Arming targets worth offering to users."""
        return self.security.available_targets()

    def __repr__(self) -> str:
        """String representation."""
        return f"<KonnectedPlatform {len(self.panels)} panels, {len(self.cache)} zones>"
