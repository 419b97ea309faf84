"""Compile zone configuration into a panel provisioning payload.

For every configured zone the compiler checks the zone is legal for the
panel generation, resolves its pin (basic) or zone slot (pro) and trigger
polarity, and sorts it into one of the four provisioning arrays. A
parallel :class:`~pykonnected.models.ZoneRuntime` record is produced for
every zone that made it into the payload.

Duplicate zone numbers are not fatal: the first occurrence wins and later
ones are logged and dropped.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .const.states import PanelGeneration
from .const.zones import ZONE_TYPE_LABELS, Capability, ProvisioningBucket
from .exceptions import KonnectedInvalidZoneError
from .models import Panel, ZoneConfig, ZoneRuntime, zone_uuid
from .zone_map import (
    bucket_for_zone_type,
    capabilities_for_zone,
    pin_for_zone,
    required_capability,
)

_LOGGER = logging.getLogger(__name__)


@dataclass
class CompiledPanel:
    """Result of compiling one panel's zones."""

    payload: dict[str, list[dict[str, Any]]] = field(
        default_factory=lambda: {bucket.value: [] for bucket in ProvisioningBucket}
    )
    runtimes: list[ZoneRuntime] = field(default_factory=list)
    released: list[str] = field(default_factory=list)  # UUIDs of disabled zones
    rejected: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)


def _invalid_zone_hint(zone: ZoneConfig, generation: PanelGeneration) -> str:
    wants_actuator = required_capability(zone.zone_type) is Capability.ACTUATOR
    if generation is PanelGeneration.PRO:
        if zone.zone == "out":
            return (
                f"Konnected Pro Alarm Panels do not have a zone named '{zone.zone}', "
                "change the zone assignment to 'alarm1', 'out1', or 'alarm2_out2'."
            )
        if wants_actuator:
            return (
                f"Konnected Pro Alarm Panels cannot have zone '{zone.zone}' as an "
                "actuator/switch. Try zones 1-8, 'alarm1', 'out1', or 'alarm2_out2'."
            )
        return (
            f"Konnected Pro Alarm Panels cannot have zone '{zone.zone}' as a sensor. "
            "Try zones 1-12."
        )
    if wants_actuator:
        return (
            f"Konnected V1-V2 Alarm Panels cannot have zone '{zone.zone}' as an "
            "actuator/switch. Try zones 1-5 or 'out'."
        )
    return (
        f"Konnected V1-V2 Alarm Panels cannot have zone '{zone.zone}' as a sensor. "
        "Try zones 1-6."
    )


def compile_zone(panel: Panel, zone: ZoneConfig) -> dict[str, Any]:
    """Build the provisioning array entry of a single zone.

    Raises:
        KonnectedInvalidZoneError: If the panel cannot host the zone
    """
    capabilities = capabilities_for_zone(zone.zone, panel.generation)
    if required_capability(zone.zone_type) not in capabilities:
        raise KonnectedInvalidZoneError(_invalid_zone_hint(zone, panel.generation))

    entry: dict[str, Any] = {}
    if panel.generation is PanelGeneration.PRO:
        entry["zone"] = zone.zone
    else:
        entry["pin"] = pin_for_zone(zone.zone)

    bucket = bucket_for_zone_type(zone.zone_type)
    if bucket is ProvisioningBucket.ACTUATORS:
        entry["trigger"] = zone.trigger
    elif bucket in (ProvisioningBucket.DHT_SENSORS, ProvisioningBucket.DS18B20_SENSORS):
        if zone.poll_interval:
            entry["poll_interval"] = zone.poll_interval
    return entry


def build_runtime(panel: Panel, zone: ZoneConfig) -> ZoneRuntime:
    """Build the runtime record of a zone."""
    label = ZONE_TYPE_LABELS[zone.zone_type]
    location = f"{zone.location} " if zone.location else ""
    panel_id = panel.short_id
    return ZoneRuntime(
        uuid=zone_uuid(panel_id, zone.zone),
        panel_id=panel_id,
        zone=zone.zone,
        zone_type=zone.zone_type,
        generation=panel.generation,
        display_name=location + label,
        model=f"{panel.model_label} {label}",
        serial_number=f"{panel_id}-{zone.zone}",
        pin=pin_for_zone(zone.zone) if panel.generation is PanelGeneration.BASIC else None,
        trigger=zone.trigger,
        invert=zone.invert,
        audible_beep=zone.audible_beep,
        triggerable_modes=zone.triggerable_modes,
        switch_settings=zone.switch_settings,
    )


def compile_panel(panel: Panel, zones: Iterable[ZoneConfig]) -> CompiledPanel:
    """Compile a panel's zones into its provisioning payload and runtime records."""
    compiled = CompiledPanel()
    seen: set[str] = set()

    for zone in zones:
        if zone.zone in seen:
            _LOGGER.warning(
                f"Duplicate Zone: Zone number '{zone.zone}' is assigned in two or more zones, "
                f"please check your configuration for panel with UUID {panel.uuid}."
            )
            compiled.duplicates.append(zone.zone)
            continue
        seen.add(zone.zone)

        if not zone.enabled:
            _LOGGER.debug(f"Zone '{zone.zone}' on panel {panel.short_id} is disabled")
            compiled.released.append(zone_uuid(panel.short_id, zone.zone))
            continue

        try:
            entry = compile_zone(panel, zone)
        except KonnectedInvalidZoneError as e:
            _LOGGER.warning(f"Invalid Zone: {e}")
            compiled.rejected.append(zone.zone)
            continue

        compiled.payload[bucket_for_zone_type(zone.zone_type).value].append(entry)
        compiled.runtimes.append(build_runtime(panel, zone))

    _LOGGER.debug(
        f"Compiled {len(compiled.runtimes)} zones for panel {panel.short_id} "
        f"({len(compiled.rejected)} rejected, {len(compiled.duplicates)} duplicate)"
    )
    return compiled
