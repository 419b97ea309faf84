"""Accessory registry boundary.

The exposition layer that renders zones as user-visible devices lives
outside this package. It is reached through :class:`AccessoryRegistry`;
:class:`InMemoryAccessoryRegistry` is a plain implementation used when
running standalone and in tests.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from .const.zones import BOOLEAN_CHARACTERISTICS

_LOGGER = logging.getLogger(__name__)


def to_characteristic_value(name: str, value: Any) -> Any:
    """Convert an internal numeric value for a characteristic."""
    if name in BOOLEAN_CHARACTERISTICS:
        return bool(value)
    return value


@dataclass
class AccessoryInfo:
    """An accessory as registered with the exposition layer."""

    uuid: str
    display_name: str
    service: str
    model: str
    serial_number: str
    characteristics: dict[str, Any] = field(default_factory=dict)


class AccessoryRegistry(Protocol):
    """Capability the core needs from the exposition layer."""

    def get(self, uuid: str) -> AccessoryInfo | None: ...

    def list_accessories(self) -> list[AccessoryInfo]: ...

    def register(self, accessory: AccessoryInfo) -> None: ...

    def update(self, accessory: AccessoryInfo) -> None: ...

    def unregister(self, uuids: Iterable[str]) -> None: ...

    def update_characteristic(self, uuid: str, name: str, value: Any) -> None: ...


class InMemoryAccessoryRegistry:
    """Accessory registry kept in a dict."""

    def __init__(self) -> None:
        self._accessories: dict[str, AccessoryInfo] = {}

    def get(self, uuid: str) -> AccessoryInfo | None:
        return self._accessories.get(uuid)

    def list_accessories(self) -> list[AccessoryInfo]:
        return list(self._accessories.values())

    def register(self, accessory: AccessoryInfo) -> None:
        _LOGGER.info(f"Adding new accessory: {accessory.display_name} ({accessory.serial_number})")
        self._accessories[accessory.uuid] = accessory

    def update(self, accessory: AccessoryInfo) -> None:
        _LOGGER.debug(
            f"Updating existing accessory: {accessory.display_name} ({accessory.serial_number})"
        )
        existing = self._accessories.get(accessory.uuid)
        if existing is not None:
            accessory.characteristics = {**existing.characteristics, **accessory.characteristics}
        self._accessories[accessory.uuid] = accessory

    def unregister(self, uuids: Iterable[str]) -> None:
        for uuid in uuids:
            accessory = self._accessories.pop(uuid, None)
            if accessory is not None:
                _LOGGER.info(
                    f"Removing accessory: {accessory.display_name} ({accessory.serial_number})"
                )

    def update_characteristic(self, uuid: str, name: str, value: Any) -> None:
        accessory = self._accessories.get(uuid)
        if accessory is None:
            _LOGGER.debug(f"Ignoring {name} update for unknown accessory {uuid}")
            return
        accessory.characteristics[name] = value
        _LOGGER.debug(f"Set [{accessory.display_name}] ({accessory.serial_number}) {name}: {value}")

    def __len__(self) -> int:
        return len(self._accessories)
