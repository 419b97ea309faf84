"""Zone lookups: zone numbers, hardware pins and per-type capabilities.

Everything here is a pure lookup. Unknown zones resolve to ``None`` or an
empty set; callers are expected to warn and skip.
"""

from typing import Any

from .const.states import PanelGeneration
from .const.zones import (
    ACTUATOR_TYPES,
    BASIC_ZONES,
    BINARY_SENSOR_TYPES,
    CHAR_CONTACT,
    CHAR_HUMIDITY,
    CHAR_LEAK,
    CHAR_MOTION,
    CHAR_ON,
    CHAR_SMOKE,
    CHAR_TEMPERATURE,
    PRO_ZONES,
    ZONES_TO_PINS,
    Capability,
    ProvisioningBucket,
    ZoneType,
)


def normalize_zone(zone: Any) -> str | None:
    """Normalize a zone identifier to its canonical string form.

    ``3``, ``"3"`` and ``" 3 "`` all become ``"3"``; named outputs are
    lower-cased.
    """
    if zone is None or isinstance(zone, bool):
        return None
    if isinstance(zone, float) and zone.is_integer():
        zone = int(zone)
    text = str(zone).strip().lower()
    return text or None


def pin_for_zone(zone: Any) -> int | None:
    """Get the hardware pin of a zone on a basic panel."""
    key = normalize_zone(zone)
    if key is None:
        return None
    return ZONES_TO_PINS.get(key)


def zone_for_pin(pin: Any) -> str | None:
    """Get the zone wired to a hardware pin on a basic panel."""
    try:
        pin_number = int(pin)
    except (TypeError, ValueError):
        return None
    for zone, zone_pin in ZONES_TO_PINS.items():
        if zone_pin == pin_number:
            return zone
    return None


def capabilities_for_zone(zone: Any, generation: PanelGeneration) -> frozenset[Capability]:
    """Get what a zone slot supports on a panel generation.

    Returns an empty set for zones the panel does not have.
    """
    key = normalize_zone(zone)
    if key is None:
        return frozenset()
    if generation is PanelGeneration.PRO:
        return PRO_ZONES.get(key, frozenset())
    return BASIC_ZONES.get(key, frozenset())


def required_capability(zone_type: ZoneType) -> Capability:
    """Get the slot capability a zone type needs."""
    if zone_type in ACTUATOR_TYPES:
        return Capability.ACTUATOR
    if zone_type is ZoneType.ARMING_SWITCH:
        return Capability.ARMING_SWITCH
    if zone_type in BINARY_SENSOR_TYPES or zone_type in (
        ZoneType.TEMPERATURE,
        ZoneType.HUMIDTEMP,
    ):
        return Capability.SENSOR
    raise ValueError(f"Unhandled zone type: {zone_type}")


def bucket_for_zone_type(zone_type: ZoneType) -> ProvisioningBucket:
    """Get the provisioning payload array a zone type belongs in."""
    if zone_type in BINARY_SENSOR_TYPES or zone_type is ZoneType.ARMING_SWITCH:
        return ProvisioningBucket.SENSORS
    if zone_type is ZoneType.HUMIDTEMP:
        return ProvisioningBucket.DHT_SENSORS
    if zone_type is ZoneType.TEMPERATURE:
        return ProvisioningBucket.DS18B20_SENSORS
    if zone_type in ACTUATOR_TYPES:
        return ProvisioningBucket.ACTUATORS
    raise ValueError(f"Unhandled zone type: {zone_type}")


def service_for_zone_type(zone_type: ZoneType) -> str:
    """Get the accessory service name a zone type is exposed as."""
    if zone_type in (ZoneType.CONTACT, ZoneType.GLASS, ZoneType.ARMING_SWITCH):
        return "ContactSensor"
    if zone_type is ZoneType.MOTION:
        return "MotionSensor"
    if zone_type is ZoneType.WATER:
        return "LeakSensor"
    if zone_type is ZoneType.SMOKE:
        return "SmokeSensor"
    if zone_type is ZoneType.TEMPERATURE:
        return "TemperatureSensor"
    if zone_type is ZoneType.HUMIDTEMP:
        return "HumiditySensor"
    if zone_type in ACTUATOR_TYPES:
        return "Switch"
    raise ValueError(f"Unhandled zone type: {zone_type}")


def characteristics_for_zone_type(zone_type: ZoneType) -> tuple[str, ...]:
    """Get the characteristics an accessory of this zone type carries.

    Humidity zones always carry a paired temperature characteristic.
    """
    if zone_type in (ZoneType.CONTACT, ZoneType.GLASS, ZoneType.ARMING_SWITCH):
        return (CHAR_CONTACT,)
    if zone_type is ZoneType.MOTION:
        return (CHAR_MOTION,)
    if zone_type is ZoneType.WATER:
        return (CHAR_LEAK,)
    if zone_type is ZoneType.SMOKE:
        return (CHAR_SMOKE,)
    if zone_type is ZoneType.TEMPERATURE:
        return (CHAR_TEMPERATURE,)
    if zone_type is ZoneType.HUMIDTEMP:
        return (CHAR_HUMIDITY, CHAR_TEMPERATURE)
    if zone_type in ACTUATOR_TYPES:
        return (CHAR_ON,)
    raise ValueError(f"Unhandled zone type: {zone_type}")
