import pytest

from pykonnected.const.states import PanelGeneration
from pykonnected.exceptions import KonnectedConnectionError
from pykonnected.models import Panel, ZoneConfig


BASIC_UUID = "38aef8d5-1e2b-4c3d-8e4f-84f3eb112233"
PRO_UUID = "8f655392-a778-4fee-97b9-aabbccddeeff"


class FakePanelClient:
    """Records requests instead of talking to a panel."""

    def __init__(self, status=200, documents=None, error=None):
        self.status = status
        self.documents = dict(documents or {})
        self.error = error
        self.puts = []
        self.gets = []
        self.closed = False

    async def put_json(self, url, payload):
        self.puts.append((url, payload))
        if self.error is not None:
            raise self.error
        return self.status

    async def get_json(self, url):
        self.gets.append(url)
        if url not in self.documents:
            raise KonnectedConnectionError(f"Request to {url} failed")
        return self.documents[url]

    async def close(self):
        self.closed = True


@pytest.fixture
def client():
    return FakePanelClient()


@pytest.fixture
def basic_panel():
    return Panel(
        uuid=BASIC_UUID,
        host="192.168.1.50",
        port=9000,
        generation=PanelGeneration.BASIC,
        mac="84:f3:eb:11:22:33",
    )


@pytest.fixture
def pro_panel():
    return Panel(
        uuid=PRO_UUID,
        host="192.168.1.60",
        port=80,
        generation=PanelGeneration.PRO,
        mac="aa:bb:cc:00:11:22",
        model="Konnected Pro",
    )


@pytest.fixture
def make_zone():
    def _make(number, zone_type, **settings):
        data = {"zoneNumber": number, "zoneType": zone_type}
        data.update(settings)
        return ZoneConfig.from_dict(data)

    return _make
