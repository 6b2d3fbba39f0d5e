"""Shared fixtures for the orbit pipeline tests."""

from datetime import datetime, timezone

import pytest

from propagation.engine import PropagationEngine, PropagationFailure, EngineStrategy
from propagation.kepler import KeplerianEngine
from timing.virtual_clock import VirtualClock
from utils.bodies import Body
from utils.config import PipelineConfig
from utils.tle import fallback_record

# Epoch of the bundled fallback ISS record
ISS_EPOCH = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeWallClock:
    """Manually advanced wall clock (POSIX seconds)."""

    def __init__(self, start: float = ISS_EPOCH.timestamp()):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class ScriptedEngine(PropagationEngine):
    """
    Two-body engine that fails a controlled share of calls.

    With fail_ratio r, failures are spread evenly: call k fails when
    floor((k + 1) * r) > floor(k * r).
    """

    name = 'scripted'

    def __init__(self, fail_ratio: float = 0.0):
        super().__init__(max_days_from_epoch=None)
        self.fail_ratio = fail_ratio
        self.calls = 0
        self._kepler = KeplerianEngine(max_days_from_epoch=None)

    def _propagate(self, record, instant):
        k = self.calls
        self.calls += 1
        if int((k + 1) * self.fail_ratio) > int(k * self.fail_ratio):
            return PropagationFailure(f"scripted failure {k}", instant)
        return self._kepler._propagate(record, instant)


@pytest.fixture
def wall():
    return FakeWallClock()


@pytest.fixture
def clock(wall):
    return VirtualClock(wall_clock=wall)


@pytest.fixture
def iss_record():
    return fallback_record(Body.ISS)


@pytest.fixture
def moon_record():
    return fallback_record(Body.MOON)


@pytest.fixture
def scripted_engine():
    return ScriptedEngine()


@pytest.fixture
def scripted_strategy(scripted_engine):
    return EngineStrategy(scripted_engine, scripted_engine)


@pytest.fixture
def config():
    return PipelineConfig()
