"""Tests for the platform orchestrator."""

import asyncio

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient as HTTPClient
from aiohttp.test_utils import TestServer as HTTPServer

from pykonnected.config import ConfigStore
from pykonnected.const.states import SecuritySystemState
from pykonnected.const.zones import (
    CHAR_CONTACT,
    CHAR_HUMIDITY,
    CHAR_MOTION,
    CHAR_ON,
    CHAR_TEMPERATURE,
)
from pykonnected.discovery import SSDPResponse
from pykonnected.models import SECURITY_SYSTEM_UUID, PlatformConfig, zone_uuid
from pykonnected.platform import KonnectedPlatform

from conftest import BASIC_UUID, PRO_UUID, FakePanelClient

BASIC_ID = "84f3eb112233"
PRO_ID = "aabbccddeeff"
BASIC_STATUS = {"ip": "192.168.1.50", "port": 9000, "mac": "84:f3:eb:11:22:33", "settings": {}}
PRO_STATUS = {
    "ip": "192.168.1.60",
    "port": 80,
    "mac": "aa:bb:cc:00:11:22",
    "model": "Konnected Pro",
    "chipId": "4242",
    "settings": {},
}


async def no_panels(timeout, on_response):
    return None


def make_config(basic_zones=(), pro_zones=(), delay=0):
    return PlatformConfig.from_dict(
        {
            "advanced": {
                "listenerIP": "10.0.0.2",
                "listenerPort": 5000,
                "entryDelaySettings": {"delay": delay},
            },
            "panels": [
                {"uuid": BASIC_UUID, "name": "Garage", "zones": list(basic_zones)},
                {"uuid": PRO_UUID, "name": "House", "zones": list(pro_zones)},
            ],
        }
    )


@pytest.fixture
def panel_client():
    return FakePanelClient()


@pytest.fixture
def build(panel_client):
    def _build(config, **kwargs):
        return KonnectedPlatform(config, client=panel_client, search=no_panels, **kwargs)

    return _build


async def _provision(platform, panel_uuid, status):
    panel = await platform.register_panel(panel_uuid, status)
    assert await platform.provision_panel(panel) is True
    return panel


@pytest.mark.asyncio
async def test_basic_pin_callback_triggers_alarm(build, panel_client):
    platform = build(
        make_config(
            basic_zones=[
                {"zoneNumber": 3, "zoneType": "contact", "binarySensorSettings": {"triggerableModes": ["away"]}},
                {"zoneNumber": "out", "zoneType": "siren"},
            ]
        )
    )
    platform.register_security_system()
    await _provision(platform, BASIC_UUID, BASIC_STATUS)
    platform.set_security_target(SecuritySystemState.ARMED_AWAY)

    await platform.handle_zone_update(BASIC_ID.upper(), {"pin": 5, "state": 1})
    await platform.actuation.wait_idle()

    assert platform.security.state is SecuritySystemState.TRIGGERED
    assert ("http://192.168.1.50:9000/device", {"state": 1, "pin": 8}) in panel_client.puts
    assert platform.registry.get(SECURITY_SYSTEM_UUID).characteristics["SecuritySystemCurrentState"] == 4


@pytest.mark.asyncio
async def test_provisioning_request(build, panel_client):
    platform = build(make_config(basic_zones=[{"zoneNumber": 1, "zoneType": "contact"}]))

    await _provision(platform, BASIC_UUID, BASIC_STATUS)

    url, payload = panel_client.puts[0]
    assert url == "http://192.168.1.50:9000/settings"
    assert payload["endpoint"] == "http://10.0.0.2:5000/api/konnected"
    assert payload["sensors"] == [{"pin": 1}]
    assert payload["token"] in platform.tokens
    assert payload["blink"] is True


@pytest.mark.asyncio
async def test_state_query_low_polarity(build):
    platform = build(
        make_config(pro_zones=[{"zoneNumber": "alarm1", "zoneType": "siren", "switchSettings": {"trigger": "low"}}])
    )
    await _provision(platform, PRO_UUID, PRO_STATUS)

    assert platform.handle_state_query(PRO_ID, {"zone": "alarm1"}) == {
        "success": True,
        "zone": "alarm1",
        "state": 1,
    }

    assert await platform.set_switch(zone_uuid(PRO_ID, "alarm1"), True) is True
    assert platform.handle_state_query(PRO_ID, {"zone": "alarm1"})["state"] == 0


@pytest.mark.asyncio
async def test_state_query_by_pin(build):
    platform = build(make_config(basic_zones=[{"zoneNumber": "out", "zoneType": "switch"}]))
    await _provision(platform, BASIC_UUID, BASIC_STATUS)

    assert platform.handle_state_query(BASIC_ID, {"pin": "8"}) == {"success": True, "pin": 8, "state": 0}
    assert platform.handle_state_query(BASIC_ID, {"pin": "3"})["state"] == 0


@pytest.mark.asyncio
async def test_sensor_updates_reach_registry(build):
    platform = build(
        make_config(
            basic_zones=[
                {"zoneNumber": 1, "zoneType": "contact", "binarySensorSettings": {"invert": True}},
                {"zoneNumber": 2, "zoneType": "motion"},
                {"zoneNumber": 4, "zoneType": "humidtemp"},
            ]
        )
    )
    await _provision(platform, BASIC_UUID, BASIC_STATUS)
    contact = zone_uuid(BASIC_ID, "1")
    motion = zone_uuid(BASIC_ID, "2")
    climate = zone_uuid(BASIC_ID, "4")

    await platform.handle_zone_update(BASIC_ID, {"pin": 1, "state": 0})
    await platform.handle_zone_update(BASIC_ID, {"pin": 2, "state": 1})
    await platform.handle_zone_update(BASIC_ID, {"pin": 6, "temp": 21.5, "humi": 40.2})

    # Inverted contact: open circuit reads as closed and vice versa
    assert platform.cache.read(contact) == 1
    assert platform.registry.get(contact).characteristics[CHAR_CONTACT] == 1
    assert platform.registry.get(motion).characteristics[CHAR_MOTION] is True
    assert platform.get_characteristic(motion, CHAR_MOTION) is True
    assert platform.get_characteristic(climate, CHAR_TEMPERATURE) == 21.5
    assert platform.get_characteristic(climate, CHAR_HUMIDITY) == 40.2


@pytest.mark.asyncio
async def test_unknown_zone_updates_are_ignored(build, caplog):
    platform = build(make_config(basic_zones=[{"zoneNumber": 1, "zoneType": "contact"}]))
    await _provision(platform, BASIC_UUID, BASIC_STATUS)

    await platform.handle_zone_update(BASIC_ID, {"pin": 42, "state": 1})
    await platform.handle_zone_update(BASIC_ID, {"pin": 2, "state": 1})
    await platform.handle_zone_update("ffffffffffff", {"pin": 1, "state": 1})

    assert platform.cache.read(zone_uuid(BASIC_ID, "1")) == 0
    assert "unknown zone" in caplog.text


@pytest.mark.asyncio
async def test_reprovision_prunes_stale_accessories(build):
    config = make_config(
        basic_zones=[
            {"zoneNumber": 1, "zoneType": "contact"},
            {"zoneNumber": 2, "zoneType": "motion"},
            {"zoneNumber": 5, "zoneType": "water"},
        ]
    )
    platform = build(config)
    platform.register_security_system()
    panel = await _provision(platform, BASIC_UUID, BASIC_STATUS)
    await platform.handle_zone_update(BASIC_ID, {"pin": 1, "state": 1})
    assert len(platform.registry) == 4

    zones = config.panel(BASIC_UUID).zones
    zones[1].enabled = False
    del zones[2]
    assert await platform.provision_panel(panel) is True

    assert platform.registry.get(zone_uuid(BASIC_ID, "2")) is None
    assert platform.registry.get(zone_uuid(BASIC_ID, "5")) is None
    assert platform.registry.get(SECURITY_SYSTEM_UUID) is not None
    # Surviving zones keep their last state
    assert platform.cache.read(zone_uuid(BASIC_ID, "1")) == 1
    assert len(platform.cache) == 1


@pytest.mark.asyncio
async def test_register_panel_appends_to_config(tmp_path, build):
    path = tmp_path / "config.yaml"
    path.write_text("advanced:\n  listenerIP: 10.0.0.2\n")
    store = ConfigStore(path)
    platform = build(store.load(), store=store)

    panel = await platform.register_panel(PRO_UUID, PRO_STATUS)

    assert panel.short_id == PRO_ID
    assert platform.panels == {PRO_ID: panel}
    assert store.load().panel(PRO_UUID).ip_address == "192.168.1.60"

    # Rediscovery reuses the panel; the address written to the config wins
    moved = await platform.register_panel(PRO_UUID, {**PRO_STATUS, "ip": "192.168.1.61"})
    assert moved is panel
    assert panel.host == "192.168.1.60"


@pytest.mark.asyncio
async def test_config_address_overrides_status(build):
    config = make_config()
    config.panel(BASIC_UUID).ip_address = "192.168.1.99"
    config.panel(BASIC_UUID).port = 8080
    platform = build(config)

    panel = await platform.register_panel(BASIC_UUID, BASIC_STATUS)

    assert panel.base_url == "http://192.168.1.99:8080/"
    assert panel.name == "Garage"


@pytest.mark.asyncio
async def test_available_security_targets(build):
    platform = build(
        make_config(basic_zones=[{"zoneNumber": 1, "zoneType": "contact", "binarySensorSettings": {"triggerableModes": ["home"]}}])
    )
    assert platform.available_security_targets() == [
        SecuritySystemState.ARMED_AWAY,
        SecuritySystemState.DISARMED,
    ]

    await _provision(platform, BASIC_UUID, BASIC_STATUS)
    assert platform.available_security_targets() == [
        SecuritySystemState.ARMED_HOME,
        SecuritySystemState.ARMED_AWAY,
        SecuritySystemState.DISARMED,
    ]


@pytest_asyncio.fixture
async def running(build):
    platform = build(
        make_config(
            basic_zones=[
                {"zoneNumber": 1, "zoneType": "contact"},
                {"zoneNumber": 2, "zoneType": "switch"},
            ]
        )
    )
    platform.register_security_system()
    await _provision(platform, BASIC_UUID, BASIC_STATUS)
    http = HTTPClient(HTTPServer(platform.server.app))
    await http.start_server()
    yield platform, http
    await http.close()


@pytest.mark.asyncio
async def test_callback_round_trip(running):
    platform, http = running
    token = next(iter(platform.tokens))

    response = await http.put(
        f"/api/konnected/device/{BASIC_ID}",
        json={"pin": 1, "state": 1},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status == 200
    await platform.server.queue.join()

    assert platform.get_characteristic(zone_uuid(BASIC_ID, "1"), CHAR_CONTACT) == 1

    response = await http.get(
        f"/api/konnected/device/{BASIC_ID}",
        params={"pin": "2"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert await response.json() == {"success": True, "pin": 2, "state": 0}


@pytest.mark.asyncio
async def test_invalid_token_rediscovers_once(panel_client):
    release = asyncio.Event()
    searches = []

    async def blocking_search(timeout, on_response):
        searches.append(timeout)
        await release.wait()

    platform = KonnectedPlatform(make_config(), client=panel_client, search=blocking_search)
    platform.discovery.max_retries = 0
    http = HTTPClient(HTTPServer(platform.server.app))
    await http.start_server()
    try:
        for _ in range(2):
            response = await http.put(
                f"/api/konnected/device/{BASIC_ID}",
                json={"pin": 1, "state": 1},
                headers={"Authorization": "Bearer stale"},
            )
            assert response.status == 401

        assert platform.discovery.discovering
        assert len(searches) == 1

        release.set()
        await platform._discovery_task
        assert not platform.discovery.discovering
    finally:
        await http.close()


@pytest.mark.asyncio
async def test_start_and_stop(build, panel_client):
    config = make_config()
    config.advanced.listener_port = 0
    platform = build(config)

    await platform.start()
    try:
        assert platform.listener_port == platform.server.port
        assert platform.listener_port != 0
        assert platform.registry.get(SECURITY_SYSTEM_UUID).display_name == "Konnected Alarm"
        assert platform.callback_endpoint == f"http://10.0.0.2:{platform.listener_port}/api/konnected"
    finally:
        await platform.stop()

    assert panel_client.closed
    assert platform.get_characteristic(SECURITY_SYSTEM_UUID, "SecuritySystemCurrentState") == 3


@pytest.mark.asyncio
async def test_switch_from_exposition_layer(build, panel_client):
    platform = build(make_config(basic_zones=[{"zoneNumber": 2, "zoneType": "switch"}]))
    await _provision(platform, BASIC_UUID, BASIC_STATUS)
    switch = zone_uuid(BASIC_ID, "2")

    assert await platform.set_switch(switch, True) is True

    assert panel_client.puts[-1] == ("http://192.168.1.50:9000/device", {"state": 1, "pin": 2})
    assert platform.get_characteristic(switch, CHAR_ON) is True


@pytest.mark.asyncio
async def test_restart_with_fixed_port_reprovisions(panel_client):
    """A panel still pointing at this listener holds a token from a previous run."""
    status = {
        **BASIC_STATUS,
        "settings": {"endpoint_type": "rest", "endpoint": "http://10.0.0.2:5000/api/konnected"},
    }
    panel_client.documents["http://192.168.1.50:9000/status"] = status
    urn = "urn:schemas-konnected-io:device:Security:1"

    async def search(timeout, on_response):
        on_response(SSDPResponse(urn, f"uuid:{BASIC_UUID}::{urn}", "http://192.168.1.50:9000/Device.xml"))

    platform = KonnectedPlatform(
        make_config(basic_zones=[{"zoneNumber": 1, "zoneType": "contact"}]),
        client=panel_client,
        search=search,
    )

    await platform.discovery.discover()

    assert len(platform.cache) == 1
    assert len(panel_client.puts) == 1
    url, payload = panel_client.puts[0]
    assert url == "http://192.168.1.50:9000/settings"
    assert payload["token"] in platform.tokens

    await platform.handle_zone_update(BASIC_ID, {"pin": 1, "state": 1})
    assert platform.cache.read(zone_uuid(BASIC_ID, "1"), "state") == 1

    # Once it holds our token, the next pass only reloads its zones
    await platform.discovery.discover()
    assert len(panel_client.puts) == 1
    assert len(platform.cache) == 1
    assert platform.cache.read(zone_uuid(BASIC_ID, "1"), "state") == 1
