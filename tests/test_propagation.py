import math
from dataclasses import replace
from datetime import timedelta

import numpy as np
import pytest
from numpy.testing import assert_allclose
from skyfield.api import EarthSatellite
from skyfield.framelib import itrs

from propagation.engine import (
    EngineStrategy, InertialState, PropagationEngine, PropagationFailure, is_failure
)
from propagation.kepler import EARTH_GM, KeplerianEngine, semi_major_axis, solve_kepler
from propagation.skyfield_engine import SkyfieldEngine
from utils.coordinates import eci_to_ecef
from utils.tle import ElementRecord

from conftest import ISS_EPOCH


@pytest.fixture(scope='module')
def skyfield_engine():
    return SkyfieldEngine()


class TestKepler:

    @pytest.mark.parametrize('M, e', [(0.3, 0.0), (2.0, 0.1), (5.5, 0.7), (0.01, 0.95)])
    def test_solve_kepler(self, M, e):
        E = solve_kepler(M, e)
        assert E is not None
        assert E - e * math.sin(E) == pytest.approx(math.fmod(M, 2 * math.pi), abs=1e-10)

    def test_circular_orbit_speed(self, iss_record):
        record = replace(iss_record, eccentricity=0.0, line1=None, line2=None)
        state = KeplerianEngine().propagate(record, ISS_EPOCH + timedelta(minutes=17))

        a = semi_major_axis(record.mean_motion)
        assert np.linalg.norm(state.position) == pytest.approx(a)
        assert np.linalg.norm(state.velocity) == pytest.approx(math.sqrt(EARTH_GM / a))
        assert np.dot(state.position, state.velocity) == pytest.approx(0.0, abs=1e-4)

    def test_returns_after_one_period(self, iss_record):
        engine = KeplerianEngine()
        first = engine.propagate(iss_record, ISS_EPOCH)
        again = engine.propagate(iss_record, ISS_EPOCH + timedelta(seconds=iss_record.period_seconds))
        assert_allclose(again.position, first.position, atol=1e-3)

    def test_moon_distance(self, moon_record):
        state = KeplerianEngine().propagate(moon_record, ISS_EPOCH)
        assert not is_failure(state)
        assert 355000.0 < np.linalg.norm(state.position) < 410000.0


class TestSkyfield:

    def test_iss_near_epoch(self, skyfield_engine, iss_record):
        state = skyfield_engine.propagate(iss_record, ISS_EPOCH + timedelta(minutes=30))
        assert isinstance(state, InertialState)
        assert 6500.0 < np.linalg.norm(state.position) < 7000.0
        assert 7.0 < np.linalg.norm(state.velocity) < 8.0

    def test_deterministic(self, skyfield_engine, iss_record):
        instant = ISS_EPOCH + timedelta(hours=3)
        first = skyfield_engine.propagate(iss_record, instant)
        second = skyfield_engine.propagate(iss_record, instant)
        assert_allclose(first.position, second.position)
        assert_allclose(first.velocity, second.velocity)

    def test_earth_fixed_offset_from_itrs_is_bounded(self, skyfield_engine, iss_record):
        # The rotation uses the Earth rotation angle without precession or nutation
        instant = ISS_EPOCH + timedelta(minutes=30)
        state = skyfield_engine.propagate(iss_record, instant)

        sat = EarthSatellite(iss_record.line1, iss_record.line2, iss_record.name, skyfield_engine.ts)
        itrs_km = sat.at(skyfield_engine.ts.from_datetime(instant)).frame_xyz(itrs).km
        assert np.linalg.norm(eci_to_ecef(state.position, instant) - itrs_km) < 25.0

    def test_far_from_epoch_fails(self, iss_record):
        engine = SkyfieldEngine(max_days_from_epoch=30.0)
        result = engine.propagate(iss_record, ISS_EPOCH + timedelta(days=400))
        assert is_failure(result)
        assert 'days from epoch' in result.reason

    def test_record_without_lines_fails(self, skyfield_engine, moon_record):
        assert is_failure(skyfield_engine.propagate(moon_record, ISS_EPOCH))


class BrokenEngine(PropagationEngine):

    name = 'broken'

    def __init__(self, behaviour):
        super().__init__()
        self.behaviour = behaviour

    def _propagate(self, record, instant):
        if self.behaviour == 'raise':
            raise ValueError("diverged")
        if self.behaviour == 'zero-division':
            return 1 / 0
        return InertialState(np.array([np.nan, 0.0, 0.0]), np.zeros(3), instant)


@pytest.mark.parametrize('behaviour', ['raise', 'zero-division', 'nan'])
def test_engine_failures_are_values(iss_record, behaviour):
    result = BrokenEngine(behaviour).propagate(iss_record, ISS_EPOCH)
    assert isinstance(result, PropagationFailure)
    assert result.instant == ISS_EPOCH


def test_strategy_routes_by_record_kind(iss_record, moon_record):
    primary, fallback = KeplerianEngine(), KeplerianEngine()
    strategy = EngineStrategy(primary, fallback)
    assert strategy.engine_for(iss_record) is primary
    assert strategy.engine_for(moon_record) is fallback
    assert isinstance(moon_record, ElementRecord)
