"""Runtime state cache for zones."""

import logging
from collections.abc import Iterable, Iterator

from .const.zones import ZoneType
from .models import ZoneRuntime

_LOGGER = logging.getLogger(__name__)

STATE_ATTRIBUTES = ("state", "temp", "humi")


class RuntimeStateCache:
    """Non-durable, low-latency mirror of zone state.

    State changes land here instead of in the accessory registry so that
    reads never wait on the registry's disk-backed storage or on a panel.
    """

    def __init__(self) -> None:
        """Initialize an empty cache."""
        self._zones: dict[str, ZoneRuntime] = {}

    def load_panel(self, panel_id: str, runtimes: Iterable[ZoneRuntime]) -> list[str]:
        """Replace all records of a panel.

        Records whose UUID survives keep their last known values.

        Args:
            panel_id: Panel short id
            runtimes: Freshly compiled records for that panel

        Returns:
            UUIDs of records that were dropped
        """
        fresh = {runtime.uuid: runtime for runtime in runtimes}
        removed = [
            uuid
            for uuid, runtime in self._zones.items()
            if runtime.panel_id == panel_id and uuid not in fresh
        ]
        for uuid in removed:
            del self._zones[uuid]

        for uuid, runtime in fresh.items():
            previous = self._zones.get(uuid)
            if previous is not None:
                runtime.carry_over(previous)
            self._zones[uuid] = runtime

        _LOGGER.debug(
            f"Runtime cache loaded {len(fresh)} zones for panel {panel_id}, dropped {len(removed)}"
        )
        return removed

    def get(self, uuid: str) -> ZoneRuntime | None:
        """Get a record by UUID."""
        return self._zones.get(uuid)

    def by_type(self, *zone_types: ZoneType) -> list[ZoneRuntime]:
        """Get all records of the given zone types."""
        return [r for r in self._zones.values() if r.zone_type in zone_types]

    def read(self, uuid: str, attribute: str = "state") -> float | int | None:
        """Read a value, materializing its default on first read.

        Args:
            uuid: Zone UUID
            attribute: One of ``state``, ``temp``, ``humi``

        Returns:
            The cached value, or None for an unknown zone
        """
        if attribute not in STATE_ATTRIBUTES:
            raise ValueError(f"Unknown state attribute: {attribute}")
        runtime = self._zones.get(uuid)
        if runtime is None:
            return None

        value = getattr(runtime, attribute)
        if value is None:
            value = 0
            setattr(runtime, attribute, value)
            _LOGGER.debug(
                f"Assigning default {attribute} '{value}' to [{runtime.display_name}] "
                f"({runtime.serial_number}). Awaiting zone's first state change..."
            )
        else:
            _LOGGER.debug(
                f"Get [{runtime.display_name}] ({runtime.serial_number}) {attribute}: {value}"
            )
        return value

    def write(self, uuid: str, attribute: str, value: float | int) -> ZoneRuntime | None:
        """Write a value in place."""
        if attribute not in STATE_ATTRIBUTES:
            raise ValueError(f"Unknown state attribute: {attribute}")
        runtime = self._zones.get(uuid)
        if runtime is None:
            return None
        setattr(runtime, attribute, value)
        _LOGGER.debug(
            f"Set [{runtime.display_name}] ({runtime.serial_number}) {attribute}: {value}"
        )
        return runtime

    def __contains__(self, uuid: object) -> bool:
        return uuid in self._zones

    def __iter__(self) -> Iterator[ZoneRuntime]:
        return iter(list(self._zones.values()))

    def __len__(self) -> int:
        return len(self._zones)
