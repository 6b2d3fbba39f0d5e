import threading
from dataclasses import replace
from datetime import timedelta

import pytest

from tracking.records import RecordStore
from utils.bodies import Body
from utils.tle import FALLBACK_TLES, fallback_record, parse_tle

from conftest import ISS_EPOCH


class FakeClient:
    """Returns scripted records; optionally blocks until released."""

    def __init__(self, records=None, error=None, gate=None):
        self.records = records or {}
        self.error = error
        self.gate = gate
        self.fetched = []

    def fetch_record(self, body):
        if self.gate is not None:
            self.gate.wait(timeout=5.0)
        self.fetched.append(body)
        if self.error is not None:
            raise self.error
        return self.records.get(body)


def parsed_iss(hours_after_epoch=0.0):
    record = parse_tle(*FALLBACK_TLES[Body.ISS])
    return replace(record, epoch=record.epoch + timedelta(hours=hours_after_epoch))


@pytest.fixture
def store_factory():
    stores = []

    def make(client, now=lambda: ISS_EPOCH):
        store = RecordStore(client=client, now=now)
        stores.append(store)
        return store

    yield make
    for store in stores:
        store.shutdown(wait=True)


def test_get_falls_back_when_empty(store_factory):
    store = store_factory(FakeClient())
    assert store.get(Body.ISS) == fallback_record(Body.ISS)
    assert store.get('MOON').source == 'constant'


def test_update_keeps_newest(store_factory):
    store = store_factory(FakeClient())
    newer, older = parsed_iss(6.0), parsed_iss(-6.0)

    assert store.update(Body.ISS, newer)
    assert not store.update(Body.ISS, older)
    assert store.get(Body.ISS) is newer


def test_refresh_async_installs_record(store_factory):
    record = parsed_iss(1.0)
    store = store_factory(FakeClient({Body.ISS: record}))

    future = store.refresh_async(Body.ISS)
    assert future.result(timeout=5.0) is record
    store.shutdown(wait=True)
    assert store.get(Body.ISS) is record


def test_failed_fetch_leaves_store_untouched(store_factory):
    store = store_factory(FakeClient({}))
    store.refresh_async(Body.ISS).result(timeout=5.0)
    store.shutdown(wait=True)
    assert store.get(Body.ISS).source == 'fallback'


def test_fetch_exception_is_contained(store_factory, caplog):
    store = store_factory(FakeClient(error=RuntimeError('boom')))
    future = store.refresh_async(Body.ISS)
    with pytest.raises(RuntimeError):
        future.result(timeout=5.0)
    store.shutdown(wait=True)
    assert store.get(Body.ISS).source == 'fallback'


def test_cancelled_fetch_leaves_store_untouched(store_factory):
    gate = threading.Event()
    client = FakeClient({Body.ISS: parsed_iss(), Body.HUBBLE: fallback_record(Body.HUBBLE)}, gate=gate)
    store = RecordStore(client=client, max_workers=1)

    running = store.refresh_async(Body.HUBBLE)
    queued = store.refresh_async(Body.ISS)
    assert queued.cancel()

    gate.set()
    running.result(timeout=5.0)
    store.shutdown(wait=True)

    assert Body.ISS not in client.fetched
    assert store.get(Body.ISS).source == 'fallback'


def test_refresh_in_flight_is_shared(store_factory):
    gate = threading.Event()
    store = store_factory(FakeClient({Body.ISS: parsed_iss()}, gate=gate))
    first = store.refresh_async(Body.ISS)
    assert store.refresh_async(Body.ISS) is first
    assert not store.needs_refresh(Body.ISS)
    gate.set()
    first.result(timeout=5.0)


def test_needs_refresh(store_factory):
    now = [ISS_EPOCH]
    store = store_factory(FakeClient(), now=lambda: now[0])

    assert store.needs_refresh(Body.ISS)
    store.update(Body.ISS, parsed_iss())
    assert not store.needs_refresh(Body.ISS)

    now[0] = ISS_EPOCH + timedelta(hours=25)
    assert store.needs_refresh(Body.ISS)
    assert not store.needs_refresh(Body.MOON)


def test_load_file(store_factory, tmp_path):
    iss1, iss2 = FALLBACK_TLES[Body.ISS]
    hst1, hst2 = FALLBACK_TLES[Body.HUBBLE]
    path = tmp_path / 'stations.txt'
    path.write_text(f"ISS (ZARYA)\n{iss1}\n{iss2}\nHST\n{hst1}\n{hst2}\n")

    store = store_factory(FakeClient())
    assert store.load_file(path) == 2
    assert store.get(Body.ISS).source == 'parsed'
    assert store.get(Body.HUBBLE).name == 'HST'
