"""Security system state machine.

Zones declare the armed modes in which they may trip the alarm. A tripped
zone in one of those modes starts the entry delay (sounding any beepers);
when the delay runs out the system goes to Triggered and sirens and strobes
are switched on. Disarming cancels a running entry delay and silences every
alarm output.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable

from .actuation import ActuationEngine
from .cache import RuntimeStateCache
from .const.protocol import AUDIBLE_BEEP_PULSE_MS
from .const.states import SecuritySystemState
from .const.zones import (
    CHAR_SECURITY_CURRENT,
    CHAR_SECURITY_TARGET,
    ZoneType,
)
from .models import SECURITY_SYSTEM_UUID, EntryDelaySettings, SwitchSettings, ZoneRuntime
from .registry import AccessoryRegistry

_LOGGER = logging.getLogger(__name__)

TriggerHook = Callable[[ZoneRuntime | None], None]


class SecuritySystemEngine:
    """Arm/disarm/entry-delay/trigger logic for the single security system."""

    def __init__(
        self,
        cache: RuntimeStateCache,
        actuation: ActuationEngine,
        registry: AccessoryRegistry,
        entry_delay: EntryDelaySettings | None = None,
        on_triggered: Iterable[TriggerHook] = (),
        state: SecuritySystemState = SecuritySystemState.DISARMED,
    ):
        """Initialize the security system.

        Args:
            cache: Runtime state cache
            actuation: Actuation engine for beepers, sirens and strobes
            registry: Accessory registry the system state is pushed to
            entry_delay: Entry delay settings (default 30s)
            on_triggered: Hooks called with the tripping zone when the alarm fires
            state: Initial state
        """
        self._cache = cache
        self._actuation = actuation
        self._registry = registry
        self.entry_delay = entry_delay or EntryDelaySettings()
        self._hooks = list(on_triggered)
        self._state = state
        self._pending: asyncio.Task[None] | None = None

    @property
    def state(self) -> SecuritySystemState:
        """Get current state."""
        return self._state

    @property
    def entry_delay_pending(self) -> bool:
        """Check if an entry delay is counting down."""
        return self._pending is not None and not self._pending.done()

    def add_trigger_hook(self, hook: TriggerHook) -> None:
        """Register a hook called when the alarm fires."""
        self._hooks.append(hook)

    def available_targets(self) -> list[SecuritySystemState]:
        """Get the arming targets worth offering.

        Disarm and Away are always offered; Home and Night only when some
        zone can trip the alarm in them.
        """
        declared: set[SecuritySystemState] = set()
        for runtime in self._cache:
            declared.update(runtime.triggerable_modes)

        targets = [SecuritySystemState.ARMED_AWAY, SecuritySystemState.DISARMED]
        if SecuritySystemState.ARMED_HOME in declared:
            targets.append(SecuritySystemState.ARMED_HOME)
        if SecuritySystemState.ARMED_NIGHT in declared:
            targets.append(SecuritySystemState.ARMED_NIGHT)
        return sorted(targets)

    def set_target(self, value: int | SecuritySystemState) -> None:
        """Arm, disarm or force-trigger the system."""
        state = SecuritySystemState(value)
        if state is SecuritySystemState.TRIGGERED:
            self.trigger()
            return

        _LOGGER.info(f"Security system set to {state.name} ({state.value})")
        self._state = state
        self._registry.update_characteristic(SECURITY_SYSTEM_UUID, CHAR_SECURITY_TARGET, state.value)
        self._registry.update_characteristic(SECURITY_SYSTEM_UUID, CHAR_SECURITY_CURRENT, state.value)

        if state is SecuritySystemState.DISARMED:
            self._cancel_entry_delay()
            for output in self._cache.by_type(ZoneType.BEEPER, ZoneType.SIREN, ZoneType.STROBE):
                self._actuation.dispatch(output.uuid, False)

    def trigger(self, zone: ZoneRuntime | None = None) -> None:
        """Sound the alarm."""
        self._cancel_entry_delay()
        self._state = SecuritySystemState.TRIGGERED
        source = f" by [{zone.display_name}] ({zone.serial_number})" if zone else ""
        _LOGGER.warning(f"Security system triggered{source}")
        self._registry.update_characteristic(
            SECURITY_SYSTEM_UUID, CHAR_SECURITY_CURRENT, SecuritySystemState.TRIGGERED.value
        )

        for beeper in self._cache.by_type(ZoneType.BEEPER):
            self._actuation.dispatch(beeper.uuid, False)
        for output in self._cache.by_type(ZoneType.SIREN, ZoneType.STROBE):
            self._actuation.dispatch(output.uuid, True)

        for hook in self._hooks:
            try:
                hook(zone)
            except Exception as e:
                _LOGGER.error(f"Trigger hook failed: {e}", exc_info=True)

    def is_qualifying(self, runtime: ZoneRuntime) -> bool:
        """Check if a tripped zone should start the entry delay."""
        if runtime.is_environmental or runtime.is_actuator:
            return False
        if runtime.zone_type is ZoneType.ARMING_SWITCH:
            return False
        return self._state.is_armed and self._state in runtime.triggerable_modes

    def process_sensor_change(self, runtime: ZoneRuntime) -> None:
        """React to a sensor zone's new state."""
        if runtime.is_environmental or not runtime.state:
            return

        if self.is_qualifying(runtime):
            if self.entry_delay_pending:
                _LOGGER.debug(
                    f"[{runtime.display_name}] ({runtime.serial_number}) tripped, "
                    "entry delay already running"
                )
                return
            self._start_entry_delay(runtime)
        elif runtime.zone_type in (ZoneType.CONTACT, ZoneType.MOTION) and runtime.audible_beep:
            self._beep()

    def process_arming_switch(self, runtime: ZoneRuntime) -> None:
        """Arm away on a closed keyswitch, disarm on an open one."""
        if runtime.state:
            if self._state is SecuritySystemState.DISARMED:
                self.set_target(SecuritySystemState.ARMED_AWAY)
        elif self._state is not SecuritySystemState.DISARMED:
            self.set_target(SecuritySystemState.DISARMED)

    def _start_entry_delay(self, runtime: ZoneRuntime) -> None:
        delay = self.entry_delay.delay
        if delay <= 0:
            self.trigger(runtime)
            return

        _LOGGER.info(
            f"[{runtime.display_name}] ({runtime.serial_number}) tripped while "
            f"{self._state.name}, triggering in {delay:g}s"
        )
        settings = self.entry_delay.beeper_settings()
        for beeper in self._cache.by_type(ZoneType.BEEPER):
            self._actuation.dispatch(beeper.uuid, True, settings)
        self._pending = asyncio.create_task(self._entry_delay_timer(delay, runtime))

    async def _entry_delay_timer(self, delay: float, runtime: ZoneRuntime) -> None:
        await asyncio.sleep(delay)
        self._pending = None
        self.trigger(runtime)

    def _cancel_entry_delay(self) -> None:
        pending = self._pending
        self._pending = None
        if pending is not None and not pending.done() and pending is not asyncio.current_task():
            pending.cancel()
            _LOGGER.debug("Entry delay cancelled")

    def _beep(self) -> None:
        for beeper in self._cache.by_type(ZoneType.BEEPER):
            own = beeper.switch_settings
            duration = own.pulse_duration if own is not None and own.is_momentary else None
            settings = SwitchSettings(pulse_duration=duration or AUDIBLE_BEEP_PULSE_MS)
            self._actuation.dispatch(beeper.uuid, True, settings)
