"""Tests for actuator output control."""

import asyncio

import pytest

from pykonnected.actuation import (
    ActuationEngine,
    build_command,
    momentary_duration,
    physical_level,
)
from pykonnected.cache import RuntimeStateCache
from pykonnected.compiler import compile_panel
from pykonnected.const.zones import CHAR_ON
from pykonnected.exceptions import KonnectedConnectionError
from pykonnected.models import SwitchSettings
from pykonnected.registry import AccessoryInfo, InMemoryAccessoryRegistry


def _setup(panel, zones, client):
    cache = RuntimeStateCache()
    registry = InMemoryAccessoryRegistry()
    runtimes = compile_panel(panel, zones).runtimes
    cache.load_panel(panel.short_id, runtimes)
    for runtime in runtimes:
        registry.register(
            AccessoryInfo(runtime.uuid, runtime.display_name, "Switch", runtime.model, runtime.serial_number)
        )
    engine = ActuationEngine(cache, client, {panel.short_id: panel}, registry)
    return engine, cache, registry, runtimes


class TestPolarity:
    """Test logical to physical level translation."""

    def test_high_trigger(self):
        assert physical_level(1, True) == 1
        assert physical_level(1, False) == 0

    def test_low_trigger(self):
        assert physical_level(0, True) == 0
        assert physical_level(0, False) == 1

    def test_numeric_values(self):
        assert physical_level(0, 1) == 0
        assert physical_level(0, 0) == 1


class TestMomentaryDuration:
    """Test pulse sequence durations."""

    def test_repeated_pulses(self):
        settings = SwitchSettings(pulse_duration=1000, pulse_pause=500, pulse_repeat=3)
        assert momentary_duration(settings) == 4000

    def test_single_pulse(self):
        assert momentary_duration(SwitchSettings(pulse_duration=250)) == 250

    def test_repeat_without_pause(self):
        assert momentary_duration(SwitchSettings(pulse_duration=250, pulse_repeat=3)) == 250

    def test_infinite(self):
        settings = SwitchSettings(pulse_duration=975, pulse_pause=25, pulse_repeat=-1)
        assert momentary_duration(settings) is None

    def test_not_momentary(self):
        assert momentary_duration(None) is None
        assert momentary_duration(SwitchSettings()) is None


class TestBuildCommand:
    """Test actuation request payloads."""

    def test_basic_panel_uses_pin(self, basic_panel, make_zone):
        runtime = compile_panel(basic_panel, [make_zone("out", "siren")]).runtimes[0]
        command = build_command(runtime, True)
        assert command.path == "device"
        assert command.payload == {"state": 1, "pin": 8}
        assert command.duration is None

    def test_pro_alarm1_low_trigger(self, pro_panel, make_zone):
        runtime = compile_panel(
            pro_panel, [make_zone("alarm1", "siren", switchSettings={"trigger": "low"})]
        ).runtimes[0]

        on = build_command(runtime, True)
        off = build_command(runtime, False)

        assert on.path == "zone"
        assert on.payload == {"zone": "alarm1", "state": 0}
        assert off.payload == {"zone": "alarm1", "state": 1}

    def test_momentary_payload(self, pro_panel, make_zone):
        runtime = compile_panel(
            pro_panel,
            [
                make_zone(
                    3,
                    "switch",
                    switchSettings={"pulseDuration": 1000, "pulsePause": 500, "pulseRepeat": 3},
                )
            ],
        ).runtimes[0]

        on = build_command(runtime, True)
        off = build_command(runtime, False)

        assert on.payload == {"zone": "3", "state": 1, "momentary": 1000, "times": 3, "pause": 500}
        assert on.duration == 4000
        assert off.payload == {"zone": "3", "state": 0}
        assert off.duration is None

    def test_override_settings(self, basic_panel, make_zone):
        runtime = compile_panel(basic_panel, [make_zone(1, "beeper")]).runtimes[0]
        command = build_command(runtime, True, SwitchSettings(pulse_duration=150))
        assert command.payload == {"state": 1, "pin": 1, "momentary": 150}
        assert command.duration == 150


@pytest.mark.asyncio
async def test_actuate_updates_cache_and_registry(basic_panel, make_zone, client):
    engine, cache, registry, runtimes = _setup(basic_panel, [make_zone("out", "switch")], client)
    uuid = runtimes[0].uuid

    assert await engine.actuate(uuid, True) is True

    assert client.puts == [("http://192.168.1.50:9000/device", {"state": 1, "pin": 8})]
    assert cache.read(uuid) == 1
    assert registry.get(uuid).characteristics[CHAR_ON] is True


@pytest.mark.asyncio
async def test_momentary_reverts_after_duration(pro_panel, make_zone, client, monkeypatch):
    engine, cache, registry, runtimes = _setup(
        pro_panel,
        [
            make_zone(
                4,
                "switch",
                switchSettings={"pulseDuration": 1000, "pulsePause": 500, "pulseRepeat": 3},
            )
        ],
        client,
    )
    uuid = runtimes[0].uuid

    real_sleep = asyncio.sleep
    slept = []

    async def fast_sleep(delay, *args, **kwargs):
        slept.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", fast_sleep)

    assert await engine.actuate(uuid, True) is True
    assert cache.read(uuid) == 1

    await engine.wait_idle()

    assert slept == [4.0]
    assert cache.read(uuid) == 0
    assert registry.get(uuid).characteristics[CHAR_ON] is False
    # The revert is local, the panel ends the pulse by itself
    assert len(client.puts) == 1


@pytest.mark.asyncio
async def test_later_actuation_supersedes_reset(pro_panel, make_zone, client):
    engine, cache, registry, runtimes = _setup(pro_panel, [make_zone(5, "beeper")], client)
    uuid = runtimes[0].uuid

    await engine.actuate(uuid, True, SwitchSettings(pulse_duration=50))
    await engine.actuate(uuid, True)
    await asyncio.sleep(0.1)

    assert cache.read(uuid) == 1


@pytest.mark.asyncio
async def test_actuate_failures(basic_panel, make_zone, client):
    engine, cache, registry, runtimes = _setup(
        basic_panel, [make_zone(1, "contact"), make_zone(2, "switch")], client
    )

    # Sensors cannot be actuated
    assert await engine.actuate(runtimes[0].uuid, True) is False
    assert client.puts == []

    client.status = 500
    assert await engine.actuate(runtimes[1].uuid, True) is False

    client.error = KonnectedConnectionError("unreachable")
    assert await engine.actuate(runtimes[1].uuid, True) is False

    assert await engine.actuate("unknown", True) is False


@pytest.mark.asyncio
async def test_dispatch_runs_in_background(basic_panel, make_zone, client):
    engine, cache, registry, runtimes = _setup(basic_panel, [make_zone(2, "strobe")], client)

    task = engine.dispatch(runtimes[0].uuid, True)
    await engine.wait_idle()

    assert task.result() is True
    assert client.puts[0][1] == {"state": 1, "pin": 2}
