import pytest
import requests

from tracking.celestrak import CelestrakClient
from utils.bodies import Body
from utils.tle import FALLBACK_TLES

LINE1, LINE2 = FALLBACK_TLES[Body.LUMELITE4]


class FakeResponse:

    def __init__(self, text='', status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")


@pytest.fixture
def fake_get(monkeypatch):
    """Replace requests.get; set .reply to a FakeResponse or an exception."""
    class FakeGet:
        reply = FakeResponse()
        calls = []

        def __call__(self, url, params=None, timeout=None):
            self.calls.append((url, params, timeout))
            if isinstance(self.reply, Exception):
                raise self.reply
            return self.reply

    fake = FakeGet()
    fake.calls = []
    monkeypatch.setattr(requests, 'get', fake)
    return fake


def test_three_line_reply(fake_get):
    fake_get.reply = FakeResponse(f"LUMELITE-4              \r\n{LINE1}\r\n{LINE2}\r\n")
    client = CelestrakClient('https://example.invalid/gp.php', timeout=3.0)

    record = client.fetch_record(Body.LUMELITE4)
    assert record.body_id == '56309'
    assert record.name == 'LUMELITE-4'
    assert record.source == 'parsed'
    assert fake_get.calls == [('https://example.invalid/gp.php', {'CATNR': '56309', 'FORMAT': 'TLE'}, 3.0)]


def test_two_line_reply_uses_configured_name(fake_get):
    fake_get.reply = FakeResponse(f"{LINE1}\n{LINE2}\n")
    record = CelestrakClient().fetch_record('56309')
    assert record.name == 'LUMELITE-4'


@pytest.mark.parametrize('reply', [
    FakeResponse('No GP data found', 200),
    FakeResponse('', 200),
    FakeResponse(f"X\n{LINE1}\n{LINE2}", 503),
    requests.exceptions.ConnectionError('offline'),
    requests.exceptions.Timeout('slow'),
])
def test_faults_return_none(fake_get, reply):
    fake_get.reply = reply
    assert CelestrakClient().fetch_record(Body.LUMELITE4) is None


def test_malformed_tle_returns_none(fake_get):
    bad = LINE2[:26] + '00a5640' + LINE2[33:]
    fake_get.reply = FakeResponse(f"LUMELITE-4\n{LINE1}\n{bad}\n")
    assert CelestrakClient().fetch_record(Body.LUMELITE4) is None


def test_wrong_catalog_returns_none(fake_get):
    iss1, iss2 = FALLBACK_TLES[Body.ISS]
    fake_get.reply = FakeResponse(f"ISS (ZARYA)\n{iss1}\n{iss2}\n")
    assert CelestrakClient().fetch_record(Body.LUMELITE4) is None


def test_body_without_catalog_number_is_not_fetched(fake_get):
    assert CelestrakClient().fetch_record(Body.MOON) is None
    assert fake_get.calls == []
