"""Constants for Konnected panels."""

from .states import (
    ARMED_STATES,
    EndpointType,
    PanelGeneration,
    ProvisionDecision,
    SecuritySystemState,
)
from .zones import (
    ACTUATOR_TYPES,
    ALARM_OUTPUT_TYPES,
    BASIC_ZONES,
    BINARY_SENSOR_TYPES,
    ENVIRONMENTAL_TYPES,
    PRO_ZONES,
    ZONES_TO_PINS,
    Capability,
    ProvisioningBucket,
    ZoneType,
)

__all__ = [
    "ARMED_STATES",
    "EndpointType",
    "PanelGeneration",
    "ProvisionDecision",
    "SecuritySystemState",
    "ACTUATOR_TYPES",
    "ALARM_OUTPUT_TYPES",
    "BASIC_ZONES",
    "BINARY_SENSOR_TYPES",
    "ENVIRONMENTAL_TYPES",
    "PRO_ZONES",
    "ZONES_TO_PINS",
    "Capability",
    "ProvisioningBucket",
    "ZoneType",
]
