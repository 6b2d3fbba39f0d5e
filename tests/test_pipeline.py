import math
from datetime import datetime, timedelta

import numpy as np
import pytest
from numpy.testing import assert_allclose

from propagation.engine import EngineStrategy
from tracking.pipeline import OrbitPipeline
from tracking.records import RecordStore
from utils.bodies import Body
from utils.config import PipelineConfig
from utils.coordinates import WGS84_A

from conftest import ISS_EPOCH


class NoFetchClient:

    def fetch_record(self, body):
        return None


@pytest.fixture
def records():
    store = RecordStore(client=NoFetchClient())
    yield store
    store.shutdown(wait=True)


@pytest.fixture
def pipeline(clock, records, scripted_strategy, config):
    return OrbitPipeline(clock, records, scripted_strategy, config, bodies=[Body.ISS, Body.MOON])


def test_scene_position(pipeline):
    position = pipeline.get_scene_position(Body.ISS)
    assert position.shape == (3,)
    assert 5.0 < np.linalg.norm(position) < 5.6


def test_unavailable_position_is_none(pipeline, scripted_engine):
    scripted_engine.fail_ratio = 1.0
    assert pipeline.get_scene_position('ISS') is None
    assert pipeline.get_geodetic('ISS') is None
    assert pipeline.get_look_angles('ISS', 0.0, 0.0) is None
    assert pipeline.snapshot('ISS') is None


def test_geodetic_in_degrees(pipeline, records):
    lat, lon, alt = pipeline.get_geodetic(Body.ISS)
    inclination = math.degrees(records.get(Body.ISS).inclination)
    assert abs(lat) <= inclination + 0.5
    assert -180.0 < lon <= 180.0
    assert 300.0 < alt < 550.0


def test_look_angles_from_subsatellite_point(pipeline):
    lat, lon, _ = pipeline.get_geodetic(Body.ISS)
    elevation, azimuth = pipeline.get_look_angles(Body.ISS, lat, lon, 0.0)
    assert elevation == pytest.approx(90.0, abs=1e-3)
    assert 0.0 <= azimuth < 360.0


def test_look_angles_from_antipode(pipeline):
    lat, lon, _ = pipeline.get_geodetic(Body.ISS)
    elevation, _ = pipeline.get_look_angles(Body.ISS, -lat, lon + 180.0)
    assert elevation < -80.0


def test_snapshot(pipeline):
    snap = pipeline.snapshot(Body.ISS)
    assert snap['body'] == 'ISS'
    assert snap['instant'] == pipeline.clock.get_effective_instant()
    assert snap['record_source'] == 'fallback'
    assert np.linalg.norm(snap['position_ecef']) == pytest.approx(np.linalg.norm(snap['position_eci']))
    assert snap['altitude_km'] == pytest.approx(pipeline.get_geodetic(Body.ISS)[2])
    assert_allclose(snap['scene_position'], pipeline.get_scene_position(Body.ISS))


def test_polyline_contains_current_position(pipeline):
    polyline = pipeline.get_orbit_polyline(Body.ISS)
    assert_allclose(polyline[0], pipeline.get_scene_position(Body.ISS), atol=1e-9)
    assert_allclose(polyline[0], polyline[-1])


def test_tick_covers_tracked_bodies(pipeline):
    positions = pipeline.tick()
    assert set(positions) == {Body.ISS, Body.MOON}
    assert all(p is not None for p in positions.values())
    assert pipeline.sampler.cache.get(Body.MOON) is not None


def test_moon_is_scaled_down(pipeline):
    moon = np.linalg.norm(pipeline.get_scene_position(Body.MOON))
    assert 25.0 < moon < 35.0


def test_position_depends_only_on_instant(pipeline, clock, wall):
    start = clock.get_effective_instant()
    before = pipeline.get_scene_position(Body.ISS)

    clock.set_speed(120.0)
    wall.advance(10.0)
    moved = pipeline.get_scene_position(Body.ISS)
    clock.reverse()
    wall.advance(10.0)

    assert clock.get_effective_instant() == start
    assert not np.allclose(moved, before)
    assert_allclose(pipeline.get_scene_position(Body.ISS), before)


def test_position_is_continuous_across_speed_changes(pipeline, clock, wall):
    previous = pipeline.get_scene_position(Body.ISS)
    for speed in (1.0, 500.0, -500.0, 0.0, 3600.0, -1.0):
        clock.set_speed(speed)
        current = pipeline.get_scene_position(Body.ISS)
        assert_allclose(current, previous, atol=1e-9)
        wall.advance(0.05)
        previous = pipeline.get_scene_position(Body.ISS)


def test_earth_fixed_scene_frame(clock, records, scripted_strategy):
    config = PipelineConfig(scene_frame='earth_fixed')
    pipeline = OrbitPipeline(clock, records, scripted_strategy, config, bodies=[Body.ISS])

    position = pipeline.get_scene_position(Body.ISS)
    _, _, alt = pipeline.get_geodetic(Body.ISS)
    assert np.linalg.norm(position) == pytest.approx((WGS84_A + alt) / WGS84_A * 5.0)

    lat, _, _ = pipeline.get_geodetic(Body.ISS)
    assert position[1] == pytest.approx(np.linalg.norm(position) * math.sin(math.radians(lat)))


def test_earth_fixed_orbit_is_closed(clock, records, scripted_strategy):
    config = PipelineConfig(scene_frame='earth_fixed')
    pipeline = OrbitPipeline(clock, records, scripted_strategy, config, bodies=[Body.ISS])

    polyline = pipeline.get_orbit_polyline(Body.ISS)
    segments = np.linalg.norm(np.diff(polyline, axis=0), axis=1)
    assert_allclose(polyline[0], pipeline.get_scene_position(Body.ISS), atol=1e-9)
    assert segments[-1] < 1.5 * np.median(segments[:-1])


def test_naive_instant_is_utc(pipeline):
    naive = datetime(2025, 1, 1, 13, 0, 0)
    aware = ISS_EPOCH + timedelta(hours=1)

    assert_allclose(pipeline.get_scene_position(Body.ISS, naive), pipeline.get_scene_position(Body.ISS, aware))
    assert pipeline.get_geodetic(Body.ISS, naive) == pytest.approx(pipeline.get_geodetic(Body.ISS, aware))
    assert pipeline.get_look_angles(Body.ISS, 10.0, 20.0, instant=naive) == pytest.approx(
        pipeline.get_look_angles(Body.ISS, 10.0, 20.0, instant=aware))
    assert pipeline.snapshot(Body.ISS, naive)['instant'] == aware


def test_skyfield_pipeline_near_epoch(clock, records):
    pipeline = OrbitPipeline(clock, records, EngineStrategy.default(), PipelineConfig(), bodies=[Body.ISS])
    clock.set_instant(ISS_EPOCH + timedelta(minutes=45))

    lat, lon, alt = pipeline.get_geodetic(Body.ISS)
    assert abs(lat) <= 52.0
    assert 300.0 < alt < 550.0

    polyline = pipeline.get_orbit_polyline(Body.ISS)
    assert polyline.shape == (61, 3)
    assert_allclose(polyline[0], polyline[-1])
