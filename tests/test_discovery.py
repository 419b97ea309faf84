"""Tests for SSDP discovery and the provisioning decision."""

import asyncio
import logging

import pytest

from pykonnected.const.states import ProvisionDecision
from pykonnected.discovery import (
    DiscoveryEngine,
    SSDPResponse,
    build_search_request,
    decide_provisioning,
    excluded_from_env,
    extract_uuid,
    parse_ssdp_response,
    status_url,
)
from pykonnected.models import Panel

from conftest import BASIC_UUID, PRO_UUID, FakePanelClient

URN = "urn:schemas-konnected-io:device:Security:1"
BASIC_LOCATION = "http://192.168.1.50:9000/Device.xml"
PRO_LOCATION = "http://192.168.1.60:80/Device.xml"
BASIC_STATUS = {"ip": "192.168.1.50", "port": 9000, "mac": "84:f3:eb:11:22:33", "settings": {}}
PRO_STATUS = {
    "ip": "192.168.1.60",
    "port": 80,
    "mac": "aa:bb:cc:00:11:22",
    "model": "Konnected Pro",
    "chipId": "12345",
    "settings": {"endpoint_type": "rest", "endpoint": "http://10.0.0.2:5000/api/konnected"},
}


def _response(panel_uuid, location=BASIC_LOCATION, st=URN):
    return SSDPResponse(search_target=st, usn=f"uuid:{panel_uuid}::{st}", location=location)


class FakeSearch:
    """Replays canned SSDP responses, one list per discovery pass."""

    def __init__(self, *passes):
        self.passes = list(passes)
        self.calls = 0

    async def __call__(self, timeout, on_response):
        self.calls += 1
        responses = self.passes.pop(0) if self.passes else []
        for response in responses:
            on_response(response)


class TestParsing:
    """Test SSDP message handling."""

    def test_parse_response(self):
        data = (
            "HTTP/1.1 200 OK\r\n"
            "CACHE-CONTROL: max-age=1800\r\n"
            f"LOCATION: {BASIC_LOCATION}\r\n"
            f"ST: {URN}\r\n"
            f"USN: uuid:{BASIC_UUID}::{URN}\r\n"
            "\r\n"
        ).encode()

        response = parse_ssdp_response(data, ("192.168.1.50", 1900))

        assert response.location == BASIC_LOCATION
        assert response.search_target == URN
        assert extract_uuid(response.usn) == BASIC_UUID

    def test_ignores_requests(self):
        assert parse_ssdp_response(b"M-SEARCH * HTTP/1.1\r\n\r\n") is None

    def test_extract_uuid_malformed(self):
        assert extract_uuid("uuid:abc") is None
        assert extract_uuid("") is None

    def test_status_url(self):
        assert status_url(BASIC_LOCATION) == "http://192.168.1.50:9000/status"
        assert status_url("http://192.168.1.50:9000") == "http://192.168.1.50:9000/status"

    def test_search_request(self):
        request = build_search_request(mx=3)
        assert request.startswith(b"M-SEARCH * HTTP/1.1\r\n")
        assert b"ST: ssdp:all\r\n" in request
        assert b"HOST: 239.255.255.250:1900\r\n" in request
        assert b"MX: 3\r\n" in request

    def test_excluded_from_env(self):
        env = {"KONNECTED_EXCLUDE_PANELS": f"{BASIC_UUID.upper()}, {PRO_UUID}"}
        assert excluded_from_env(env) == {BASIC_UUID, PRO_UUID}
        assert excluded_from_env({}) == set()


class TestDecideProvisioning:
    """Test the (re)provisioning decision."""

    def test_unprovisioned(self):
        assert decide_provisioning({"settings": {}}, "10.0.0.2", 5000) is ProvisionDecision.PROVISION
        assert decide_provisioning({}, "10.0.0.2", 5000) is ProvisionDecision.PROVISION

    def test_up_to_date(self):
        assert decide_provisioning(PRO_STATUS, "10.0.0.2", 5000) is ProvisionDecision.UP_TO_DATE

    def test_moved_listener(self):
        assert decide_provisioning(PRO_STATUS, "10.0.0.3", 5000) is ProvisionDecision.REPROVISION
        assert decide_provisioning(PRO_STATUS, "10.0.0.2", 5001) is ProvisionDecision.REPROVISION

    def test_token_from_another_process(self):
        decision = decide_provisioning(PRO_STATUS, "10.0.0.2", 5000, token_issued=False)
        assert decision is ProvisionDecision.REPROVISION

    def test_cloud_locked(self):
        status = {"settings": {"endpoint_type": "aws_iot", "endpoint": "x.iot.amazonaws.com"}}
        assert decide_provisioning(status, "10.0.0.2", 5000) is ProvisionDecision.CLOUD_LOCKED


def _engine(search, client, provisioned, excluded=(), max_retries=5, **kwargs):
    async def on_panel(panel_uuid, status):
        return Panel.from_status(panel_uuid, status)

    async def on_provision(panel):
        provisioned.append(panel.uuid)

    return DiscoveryEngine(
        client,
        lambda: ("10.0.0.2", 5000),
        on_panel,
        on_provision,
        timeout=0,
        excluded=excluded,
        search=search,
        max_retries=max_retries,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_discover_provisions_new_panels():
    client = FakePanelClient(
        documents={
            "http://192.168.1.50:9000/status": BASIC_STATUS,
            "http://192.168.1.60:80/status": PRO_STATUS,
        }
    )
    search = FakeSearch(
        [
            _response(BASIC_UUID),
            _response(BASIC_UUID),  # answered twice
            _response(PRO_UUID, PRO_LOCATION),
            SSDPResponse("urn:schemas-upnp-org:device:MediaRenderer:1", "uuid:x::y", "http://x/"),
        ]
    )
    provisioned = []
    engine = _engine(search, client, provisioned)

    found = await engine.discover()

    assert found == [BASIC_UUID, PRO_UUID]
    # The pro panel already points at this listener
    assert provisioned == [BASIC_UUID]
    assert client.gets == ["http://192.168.1.50:9000/status", "http://192.168.1.60:80/status"]
    assert not engine.discovering


@pytest.mark.asyncio
async def test_discover_retries_until_found():
    client = FakePanelClient(documents={"http://192.168.1.50:9000/status": BASIC_STATUS})
    search = FakeSearch([], [], [_response(BASIC_UUID)])
    provisioned = []
    engine = _engine(search, client, provisioned)

    assert await engine.discover() == [BASIC_UUID]
    assert search.calls == 3
    assert engine.attempts == 0


@pytest.mark.asyncio
async def test_discover_gives_up(caplog):
    search = FakeSearch()
    engine = _engine(search, FakePanelClient(), [], max_retries=5)

    with caplog.at_level(logging.WARNING):
        assert await engine.discover() == []

    assert search.calls == 6
    assert "Could not discover any panels" in caplog.text


@pytest.mark.asyncio
async def test_discover_is_not_reentrant():
    release = asyncio.Event()

    async def slow_search(timeout, on_response):
        await release.wait()

    engine = _engine(slow_search, FakePanelClient(), [], max_retries=0)
    first = asyncio.create_task(engine.discover())
    await asyncio.sleep(0)

    assert engine.discovering
    assert await engine.discover() == []

    release.set()
    await first
    assert not engine.discovering


@pytest.mark.asyncio
async def test_excluded_and_malformed_panels(caplog):
    client = FakePanelClient(documents={"http://192.168.1.50:9000/status": BASIC_STATUS})
    search = FakeSearch(
        [
            _response(BASIC_UUID),
            _response("not-a-uuid", "http://192.168.1.70/Device.xml"),
        ]
    )
    provisioned = []
    engine = _engine(search, client, provisioned, excluded=[BASIC_UUID.upper()])

    await engine.discover()

    assert provisioned == []
    assert client.gets == []
    assert "invalid UUID structure" in caplog.text


@pytest.mark.asyncio
async def test_cloud_locked_panel_is_skipped(caplog):
    status = {**BASIC_STATUS, "settings": {"endpoint_type": "aws_iot", "endpoint": "iot"}}
    client = FakePanelClient(documents={"http://192.168.1.50:9000/status": status})
    provisioned = []
    engine = _engine(FakeSearch([_response(BASIC_UUID)]), client, provisioned)

    await engine.discover()

    assert provisioned == []
    assert "Konnected Cloud" in caplog.text


@pytest.mark.asyncio
async def test_unreachable_panel_is_skipped(caplog):
    provisioned = []
    engine = _engine(FakeSearch([_response(BASIC_UUID)]), FakePanelClient(), provisioned)

    assert await engine.discover() == [BASIC_UUID]
    assert provisioned == []
    assert "Could not fetch status" in caplog.text


@pytest.mark.asyncio
async def test_up_to_date_panel_is_loaded():
    client = FakePanelClient(documents={"http://192.168.1.60:80/status": PRO_STATUS})
    provisioned = []
    loaded = []
    engine = _engine(
        FakeSearch([_response(PRO_UUID, PRO_LOCATION)]),
        client,
        provisioned,
        on_load=lambda panel: loaded.append(panel.uuid),
        token_issued=lambda panel: True,
    )

    await engine.discover()

    assert provisioned == []
    assert loaded == [PRO_UUID]


@pytest.mark.asyncio
async def test_panel_without_our_token_is_reprovisioned():
    client = FakePanelClient(documents={"http://192.168.1.60:80/status": PRO_STATUS})
    provisioned = []
    loaded = []
    engine = _engine(
        FakeSearch([_response(PRO_UUID, PRO_LOCATION)]),
        client,
        provisioned,
        on_load=lambda panel: loaded.append(panel.uuid),
        token_issued=lambda panel: False,
    )

    await engine.discover()

    assert provisioned == [PRO_UUID]
    assert loaded == []
