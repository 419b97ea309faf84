"""State definitions for Konnected panels and the security system."""

from enum import Enum, IntEnum


class SecuritySystemState(IntEnum):
    """Security system states.

    The numeric values are the characteristic values exposed to the
    accessory layer and must not change.
    """

    ARMED_HOME = 0
    ARMED_AWAY = 1
    ARMED_NIGHT = 2
    DISARMED = 3
    TRIGGERED = 4

    @property
    def is_armed(self) -> bool:
        """Check if this is one of the armed states."""
        return self in ARMED_STATES


ARMED_STATES = frozenset(
    {
        SecuritySystemState.ARMED_HOME,
        SecuritySystemState.ARMED_AWAY,
        SecuritySystemState.ARMED_NIGHT,
    }
)


class PanelGeneration(str, Enum):
    """Panel hardware generations."""

    BASIC = "basic"  # V1/V2, pin addressed
    PRO = "pro"  # zone addressed


class EndpointType(str, Enum):
    """Callback endpoint types a panel may already be provisioned with."""

    REST = "rest"
    AWS_IOT = "aws_iot"


class ProvisionDecision(str, Enum):
    """Outcome of comparing a panel's status against this listener."""

    PROVISION = "provision"  # never provisioned
    REPROVISION = "reprovision"  # provisioned to another host:port
    UP_TO_DATE = "up_to_date"
    CLOUD_LOCKED = "cloud_locked"  # needs a factory reset
