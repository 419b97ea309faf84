"""Drive actuator zones (beepers, sirens, strobes, switches) on panels."""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .cache import RuntimeStateCache
from .connection import PanelClient
from .const.protocol import PIN_ACTUATION_PATH, ZONE_ACTUATION_PATH
from .const.states import PanelGeneration
from .const.zones import CHAR_ON
from .exceptions import KonnectedConnectionError
from .models import Panel, SwitchSettings, ZoneRuntime
from .registry import AccessoryRegistry

_LOGGER = logging.getLogger(__name__)


@dataclass
class ActuationCommand:
    """Request to send to a panel."""

    path: str
    payload: dict[str, Any]
    duration: int | None = None  # ms until the panel finishes on its own


def physical_level(trigger: int, value: Any) -> int:
    """Get the output level for a logical on/off value.

    Low-polarity outputs (trigger 0) drive 0 when on and 1 when off.
    """
    on = bool(value)
    if trigger == 0:
        return 0 if on else 1
    return 1 if on else 0


def momentary_duration(settings: SwitchSettings | None) -> int | None:
    """Total time a pulse sequence takes, in ms.

    Returns None when the output is not momentary or repeats forever.
    """
    if settings is None or not settings.pulse_duration:
        return None
    if settings.pulse_repeat == -1:
        return None

    duration = settings.pulse_duration
    if settings.pulse_repeat and settings.pulse_repeat > 0 and settings.pulse_pause:
        duration = (
            settings.pulse_duration * settings.pulse_repeat
            + settings.pulse_pause * (settings.pulse_repeat - 1)
        )
    return duration


def build_command(
    runtime: ZoneRuntime, value: Any, settings: SwitchSettings | None = None
) -> ActuationCommand:
    """Build the actuation request of a zone.

    Args:
        runtime: Actuator zone
        value: Logical on/off
        settings: Pulse settings overriding the zone's own
    """
    settings = settings or runtime.switch_settings
    payload: dict[str, Any] = {"state": physical_level(runtime.trigger, value)}

    if runtime.generation is PanelGeneration.PRO:
        path = ZONE_ACTUATION_PATH
        payload["zone"] = runtime.zone
    else:
        path = PIN_ACTUATION_PATH
        payload["pin"] = runtime.pin

    duration = None
    if value and settings is not None and settings.pulse_duration:
        payload["momentary"] = settings.pulse_duration
        if settings.pulse_repeat and settings.pulse_pause:
            payload["times"] = settings.pulse_repeat
            payload["pause"] = settings.pulse_pause
        duration = momentary_duration(settings)

    return ActuationCommand(path=path, payload=payload, duration=duration)


class ActuationEngine:
    """Send actuation requests and model momentary outputs resetting."""

    def __init__(
        self,
        cache: RuntimeStateCache,
        client: PanelClient,
        panels: Mapping[str, Panel],
        registry: AccessoryRegistry,
    ):
        """Initialize actuation engine.

        Args:
            cache: Runtime state cache
            client: Panel HTTP client
            panels: Panels by short id
            registry: Accessory registry to reflect switch states in
        """
        self._cache = cache
        self._client = client
        self._panels = panels
        self._registry = registry
        self._tasks: set[asyncio.Task[Any]] = set()
        self._resets: dict[str, asyncio.Task[None]] = {}

    def dispatch(
        self, uuid: str, value: Any, settings: SwitchSettings | None = None
    ) -> asyncio.Task[bool]:
        """Actuate in the background."""
        task = asyncio.create_task(self.actuate(uuid, value, settings))
        self._track(task)
        return task

    async def actuate(self, uuid: str, value: Any, settings: SwitchSettings | None = None) -> bool:
        """Set an actuator zone on or off.

        Args:
            uuid: Zone UUID
            value: Logical on/off
            settings: Pulse settings overriding the zone's own

        Returns:
            True if the panel accepted the request
        """
        runtime = self._cache.get(uuid)
        if runtime is None or not runtime.is_actuator:
            _LOGGER.warning(f"Cannot actuate zone {uuid}, not a configured actuator")
            return False
        panel = self._panels.get(runtime.panel_id)
        if panel is None:
            _LOGGER.warning(f"Cannot actuate {runtime.serial_number}, panel not discovered yet")
            return False

        command = build_command(runtime, value, settings)
        _LOGGER.debug(
            f"Actuating [{runtime.display_name}] ({runtime.serial_number}) "
            f"'{runtime.zone_type.value}' with payload: {command.payload}"
        )

        self._set_state(runtime, bool(value))
        previous = self._resets.pop(uuid, None)
        if previous is not None and not previous.done():
            previous.cancel()

        try:
            status = await self._client.put_json(panel.base_url + command.path, command.payload)
        except KonnectedConnectionError as e:
            _LOGGER.error(f"Failed to actuate {runtime.serial_number}: {e}")
            return False
        if status != 200:
            _LOGGER.error(f"Panel rejected actuation of {runtime.serial_number} with HTTP {status}")
            return False

        if command.duration:
            reset = asyncio.create_task(self._reset_after(uuid, command.duration))
            self._resets[uuid] = reset
            self._track(reset)
        return True

    async def _reset_after(self, uuid: str, duration: int) -> None:
        await asyncio.sleep(duration / 1000)
        runtime = self._cache.get(uuid)
        if runtime is not None:
            self._set_state(runtime, False)
        if self._resets.get(uuid) is asyncio.current_task():
            del self._resets[uuid]

    def _set_state(self, runtime: ZoneRuntime, on: bool) -> None:
        self._cache.write(runtime.uuid, "state", 1 if on else 0)
        self._registry.update_characteristic(runtime.uuid, CHAR_ON, on)

    def _track(self, task: asyncio.Task[Any]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait for background actuations and resets to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
