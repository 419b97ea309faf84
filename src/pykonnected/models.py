"""Data model: panels, zone configuration and zone runtime records."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from .const.protocol import (
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_ENTRY_DELAY,
    DEFAULT_LISTENER_PORT,
)
from .const.states import ARMED_STATES, PanelGeneration, SecuritySystemState
from .const.zones import (
    ACTUATOR_TYPES,
    BINARY_SENSOR_TYPES,
    ENVIRONMENTAL_TYPES,
    ZoneType,
)
from .exceptions import KonnectedInvalidZoneError
from .zone_map import normalize_zone

_LOGGER = logging.getLogger(__name__)

# Namespace for deterministic zone/accessory UUIDs
ACCESSORY_NAMESPACE = uuid.UUID("8f0c4e1a-2d4b-5c7e-9a3f-6b1d2e4c8a70")
SECURITY_SYSTEM_UUID = str(uuid.uuid5(ACCESSORY_NAMESPACE, "konnected-security-system"))


def zone_uuid(panel_id: str, zone: str) -> str:
    """Build the stable accessory UUID of a zone."""
    return str(uuid.uuid5(ACCESSORY_NAMESPACE, f"{panel_id.lower()}-{zone}"))


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def parse_triggerable_modes(values: Any) -> frozenset[SecuritySystemState]:
    """Parse a list of armed modes.

    Accepts the numeric tags (``1``, ``"1"``) or names (``"away"``,
    ``"ARMED_AWAY"``). Non-armed states are dropped.
    """
    if not values:
        return frozenset()
    if isinstance(values, (str, int)):
        values = [values]

    modes: set[SecuritySystemState] = set()
    for value in values:
        mode: SecuritySystemState | None = None
        text = str(value).strip()
        if text.lstrip("-").isdigit():
            try:
                mode = SecuritySystemState(int(text))
            except ValueError:
                mode = None
        else:
            name = text.upper().replace("-", "_").replace(" ", "_")
            if not name.startswith("ARMED_"):
                name = f"ARMED_{name}"
            mode = SecuritySystemState.__members__.get(name)

        if mode in ARMED_STATES:
            modes.add(mode)
        else:
            _LOGGER.warning(f"Ignoring triggerable mode '{value}', not an armed mode")
    return frozenset(modes)


@dataclass
class SwitchSettings:
    """Actuator output settings.

    Durations are milliseconds; ``pulse_repeat`` of -1 repeats forever.
    """

    trigger: int = 1
    pulse_duration: int | None = None
    pulse_pause: int | None = None
    pulse_repeat: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SwitchSettings | None:
        if not data:
            return None
        trigger = data.get("trigger", 1)
        return cls(
            trigger=0 if str(trigger).strip().lower() in ("0", "low", "false") else 1,
            pulse_duration=_optional_int(data.get("pulseDuration")),
            pulse_pause=_optional_int(data.get("pulsePause")),
            pulse_repeat=_optional_int(data.get("pulseRepeat")),
        )

    @property
    def is_momentary(self) -> bool:
        return bool(self.pulse_duration)


@dataclass
class ZoneConfig:
    """User-authored zone descriptor."""

    zone: str
    zone_type: ZoneType
    enabled: bool = True
    location: str = ""
    invert: bool = False
    audible_beep: bool = False
    triggerable_modes: frozenset[SecuritySystemState] = frozenset()
    switch_settings: SwitchSettings | None = None
    poll_interval: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ZoneConfig:
        """Build a zone from its configuration block.

        Raises:
            KonnectedInvalidZoneError: If the zone number or type is missing or unknown
        """
        zone = normalize_zone(data.get("zoneNumber"))
        if zone is None:
            raise KonnectedInvalidZoneError(f"Zone is missing its zone number: {data}")

        raw_type = str(data.get("zoneType", "")).strip().lower()
        try:
            zone_type = ZoneType(raw_type)
        except ValueError as e:
            raise KonnectedInvalidZoneError(
                f"Zone '{zone}' has unknown zone type '{raw_type}'"
            ) from e

        binary = data.get("binarySensorSettings") or {}
        switch = data.get("switchSettings") or {}
        environmental = data.get("environmentalSensorSettings") or {}

        return cls(
            zone=zone,
            zone_type=zone_type,
            enabled=data.get("enabled", True) is not False,
            location=str(data.get("zoneLocation") or "").strip(),
            invert=binary.get("invert") is True,
            audible_beep=binary.get("audibleBeep") is True,
            triggerable_modes=parse_triggerable_modes(
                binary.get("triggerableModes") or switch.get("triggerableModes")
            ),
            switch_settings=SwitchSettings.from_dict(switch),
            poll_interval=_optional_int(environmental.get("pollInterval")),
        )

    @property
    def trigger(self) -> int:
        """Output polarity: 1 drives high when on, 0 drives low when on."""
        if self.switch_settings is None:
            return 1
        return 0 if self.switch_settings.trigger == 0 else 1


@dataclass
class PanelConfig:
    """Panel block of the configuration file."""

    uuid: str
    name: str = ""
    ip_address: str | None = None
    port: int | None = None
    blink: bool = True
    zones: list[ZoneConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PanelConfig:
        zones: list[ZoneConfig] = []
        for zone_data in data.get("zones") or []:
            try:
                zones.append(ZoneConfig.from_dict(zone_data))
            except KonnectedInvalidZoneError as e:
                _LOGGER.warning(f"Invalid Zone: {e}, skipping")
        return cls(
            uuid=str(data.get("uuid", "")),
            name=str(data.get("name") or ""),
            ip_address=data.get("ipAddress") or None,
            port=_optional_int(data.get("port")),
            blink=data.get("blink", True) is not False,
            zones=zones,
        )


@dataclass
class EntryDelaySettings:
    """Entry delay and the beeper pulse used while it runs."""

    delay: float = DEFAULT_ENTRY_DELAY
    pulse_duration: int | None = None
    pulse_pause: int | None = None
    pulse_repeat: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EntryDelaySettings:
        data = data or {}
        delay = data.get("delay")
        return cls(
            delay=float(delay) if delay is not None else DEFAULT_ENTRY_DELAY,
            pulse_duration=_optional_int(data.get("pulseDuration")),
            pulse_pause=_optional_int(data.get("pulsePause")),
            pulse_repeat=_optional_int(data.get("pulseRepeat")),
        )

    def beeper_settings(self) -> SwitchSettings | None:
        """Get the custom beeper pulse for the delay period, if configured."""
        if not self.pulse_duration:
            return None
        return SwitchSettings(
            pulse_duration=self.pulse_duration,
            pulse_pause=self.pulse_pause,
            pulse_repeat=self.pulse_repeat,
        )


@dataclass
class AdvancedSettings:
    """Listener, discovery and entry delay settings."""

    listener_ip: str | None = None
    listener_port: int = DEFAULT_LISTENER_PORT
    discovery_timeout: float = DEFAULT_DISCOVERY_TIMEOUT
    entry_delay: EntryDelaySettings = field(default_factory=EntryDelaySettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> AdvancedSettings:
        data = data or {}
        timeout = data.get("discoveryTimeout")
        return cls(
            listener_ip=data.get("listenerIP") or None,
            listener_port=_optional_int(data.get("listenerPort")) or DEFAULT_LISTENER_PORT,
            discovery_timeout=float(timeout) if timeout else DEFAULT_DISCOVERY_TIMEOUT,
            entry_delay=EntryDelaySettings.from_dict(data.get("entryDelaySettings")),
        )


@dataclass
class PlatformConfig:
    """Whole configuration: advanced settings plus panels."""

    advanced: AdvancedSettings = field(default_factory=AdvancedSettings)
    panels: list[PanelConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PlatformConfig:
        data = data or {}
        return cls(
            advanced=AdvancedSettings.from_dict(data.get("advanced")),
            panels=[PanelConfig.from_dict(p) for p in data.get("panels") or []],
        )

    def panel(self, panel_uuid: str) -> PanelConfig | None:
        """Get a panel block by UUID."""
        for panel in self.panels:
            if panel.uuid == panel_uuid:
                return panel
        return None


@dataclass
class Panel:
    """A discovered alarm panel."""

    uuid: str
    host: str
    port: int
    generation: PanelGeneration
    mac: str = ""
    chip_id: str | None = None
    model: str | None = None
    name: str = ""
    sw_version: str | None = None
    hw_version: str | None = None
    settings: dict[str, Any] = field(default_factory=dict)
    sensors: list[Any] = field(default_factory=list)
    dht_sensors: list[Any] = field(default_factory=list)
    ds18b20_sensors: list[Any] = field(default_factory=list)
    actuators: list[Any] = field(default_factory=list)

    @classmethod
    def from_status(cls, panel_uuid: str, status: dict[str, Any]) -> Panel:
        """Build a panel from its ``/status`` document."""
        is_pro = "model" in status or "chipId" in status
        return cls(
            uuid=panel_uuid,
            host=str(status.get("ip", "")),
            port=int(status.get("port") or 80),
            generation=PanelGeneration.PRO if is_pro else PanelGeneration.BASIC,
            mac=str(status.get("mac", "")),
            chip_id=status.get("chipId"),
            model=status.get("model"),
            name=str(status.get("model") or "Konnected V1-V2"),
            sw_version=status.get("swVersion"),
            hw_version=status.get("hwVersion"),
            settings=dict(status.get("settings") or {}),
            sensors=list(status.get("sensors") or []),
            dht_sensors=list(status.get("dht_sensors") or []),
            ds18b20_sensors=list(status.get("ds18b20_sensors") or []),
            actuators=list(status.get("actuators") or []),
        )

    def update_from_status(self, status: dict[str, Any]) -> None:
        """Refresh address and firmware-reported state on rediscovery."""
        fresh = Panel.from_status(self.uuid, status)
        if (fresh.host, fresh.port) != (self.host, self.port):
            _LOGGER.info(
                f"Panel {self.uuid} moved from {self.host}:{self.port} to {fresh.host}:{fresh.port}"
            )
        self.host = fresh.host
        self.port = fresh.port
        self.settings = fresh.settings
        self.sensors = fresh.sensors
        self.dht_sensors = fresh.dht_sensors
        self.ds18b20_sensors = fresh.ds18b20_sensors
        self.actuators = fresh.actuators
        self.sw_version = fresh.sw_version

    @property
    def short_id(self) -> str:
        """Identifier the panel uses in callback URLs.

        Pro panels have two network interfaces with different MACs, so they
        are identified by the tail of their UUID instead.
        """
        if self.generation is PanelGeneration.PRO or not self.mac:
            return self.uuid.rsplit("-", 1)[-1].lower()
        return self.mac.replace(":", "").lower()

    @property
    def model_label(self) -> str:
        return "Pro" if self.generation is PanelGeneration.PRO else "V1-V2"

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}/"

    def __repr__(self) -> str:
        return f"<Panel {self.short_id} {self.generation.value} at {self.host}:{self.port}>"


@dataclass
class ZoneRuntime:
    """In-memory record of a provisioned zone.

    ``state`` is always numeric (0/1) internally; booleans only appear at
    the accessory registry boundary.
    """

    uuid: str
    panel_id: str
    zone: str
    zone_type: ZoneType
    generation: PanelGeneration
    display_name: str
    model: str
    serial_number: str
    pin: int | None = None
    trigger: int = 1
    invert: bool = False
    audible_beep: bool = False
    triggerable_modes: frozenset[SecuritySystemState] = frozenset()
    switch_settings: SwitchSettings | None = None
    state: int | None = None
    temp: float | None = None
    humi: float | None = None

    @property
    def is_actuator(self) -> bool:
        return self.zone_type in ACTUATOR_TYPES

    @property
    def is_binary_sensor(self) -> bool:
        return self.zone_type in BINARY_SENSOR_TYPES

    @property
    def is_environmental(self) -> bool:
        return self.zone_type in ENVIRONMENTAL_TYPES

    def carry_over(self, previous: ZoneRuntime) -> None:
        """Keep the last known values of the record this one replaces."""
        self.state = previous.state
        self.temp = previous.temp
        self.humi = previous.humi
