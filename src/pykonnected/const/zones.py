"""Zone tables for Konnected panels.

Pro panels address zones directly (``1``-``12`` plus the named outputs),
V1/V2 ("basic") panels address hardware pins, so their zones are mapped
through :data:`ZONES_TO_PINS`.
"""

from enum import Enum


class Capability(str, Enum):
    """What a zone slot on a panel can be wired as."""

    SENSOR = "sensor"
    ACTUATOR = "actuator"
    ARMING_SWITCH = "arming_switch"


class ZoneType(str, Enum):
    """User-configurable zone types."""

    CONTACT = "contact"
    MOTION = "motion"
    GLASS = "glass"
    WATER = "water"
    SMOKE = "smoke"
    TEMPERATURE = "temperature"
    HUMIDTEMP = "humidtemp"
    ARMING_SWITCH = "armingswitch"
    BEEPER = "beeper"
    SIREN = "siren"
    STROBE = "strobe"
    SWITCH = "switch"


class ProvisioningBucket(str, Enum):
    """Arrays of the panel provisioning payload."""

    SENSORS = "sensors"
    DHT_SENSORS = "dht_sensors"
    DS18B20_SENSORS = "ds18b20_sensors"
    ACTUATORS = "actuators"


BINARY_SENSOR_TYPES = frozenset(
    {
        ZoneType.CONTACT,
        ZoneType.MOTION,
        ZoneType.GLASS,
        ZoneType.WATER,
        ZoneType.SMOKE,
    }
)
ENVIRONMENTAL_TYPES = frozenset({ZoneType.TEMPERATURE, ZoneType.HUMIDTEMP})
ACTUATOR_TYPES = frozenset(
    {ZoneType.BEEPER, ZoneType.SIREN, ZoneType.STROBE, ZoneType.SWITCH}
)
ALARM_OUTPUT_TYPES = frozenset({ZoneType.BEEPER, ZoneType.SIREN, ZoneType.STROBE})

_SENSOR_AND_ACTUATOR = frozenset(
    {Capability.SENSOR, Capability.ARMING_SWITCH, Capability.ACTUATOR}
)
_SENSOR_ONLY = frozenset({Capability.SENSOR, Capability.ARMING_SWITCH})
_ACTUATOR_ONLY = frozenset({Capability.ACTUATOR})

# Pro panels
PRO_ZONES: dict[str, frozenset[Capability]] = {
    **{str(n): _SENSOR_AND_ACTUATOR for n in range(1, 9)},
    **{str(n): _SENSOR_ONLY for n in range(9, 13)},
    "alarm1": _ACTUATOR_ONLY,
    "out1": _ACTUATOR_ONLY,
    "alarm2_out2": _ACTUATOR_ONLY,
}

# V1/V2 panels
ZONES_TO_PINS: dict[str, int] = {
    "1": 1,
    "2": 2,
    "3": 5,
    "4": 6,
    "5": 7,
    "6": 9,
    "out": 8,
}

BASIC_ZONES: dict[str, frozenset[Capability]] = {
    **{str(n): _SENSOR_AND_ACTUATOR for n in range(1, 6)},
    "6": _SENSOR_ONLY,
    "out": _ACTUATOR_ONLY,
}

# Accessory service and label per zone type
ZONE_TYPE_LABELS: dict[ZoneType, str] = {
    ZoneType.CONTACT: "Contact Sensor",
    ZoneType.MOTION: "Motion Sensor",
    ZoneType.GLASS: "Glass Break Sensor",
    ZoneType.WATER: "Water Sensor",
    ZoneType.SMOKE: "Smoke Sensor",
    ZoneType.TEMPERATURE: "Temperature Sensor",
    ZoneType.HUMIDTEMP: "Humidity & Temperature Sensor",
    ZoneType.ARMING_SWITCH: "Arming Switch",
    ZoneType.BEEPER: "Beeper",
    ZoneType.SIREN: "Siren",
    ZoneType.STROBE: "Strobe Light",
    ZoneType.SWITCH: "Generic Switch",
}

SECURITY_SYSTEM_LABEL = "Konnected Alarm"
SECURITY_SYSTEM_SERVICE = "SecuritySystem"

# Characteristic names pushed to the accessory registry
CHAR_CONTACT = "ContactSensorState"
CHAR_MOTION = "MotionDetected"
CHAR_LEAK = "LeakDetected"
CHAR_SMOKE = "SmokeDetected"
CHAR_TEMPERATURE = "CurrentTemperature"
CHAR_HUMIDITY = "CurrentRelativeHumidity"
CHAR_ON = "On"
CHAR_SECURITY_CURRENT = "SecuritySystemCurrentState"
CHAR_SECURITY_TARGET = "SecuritySystemTargetState"

# Characteristics whose values are booleans at the registry boundary
BOOLEAN_CHARACTERISTICS = frozenset({CHAR_MOTION, CHAR_ON})
