"""
Per-tick query surface for the renderer.

Everything here reads the clock and the already-resolved records and never
waits on the network. A query that cannot be answered this tick returns
None and the caller skips rendering that body until the next one.
"""

import math
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Tuple, Union

import numpy as np

from orbit.projection import SceneProjector
from orbit.sampler import OrbitSampler
from propagation.engine import EngineStrategy, InertialState, is_failure
from timing.virtual_clock import VirtualClock
from utils.bodies import Body, BODY_CONFIGS, get_body_config, resolve_body
from utils.config import PipelineConfig
from utils.logging_config import setup_logging
from utils.coordinates import (
    DegenerateGeometryError, GeodeticPosition,
    eci_to_ecef_velocity, ecef_to_geodetic, compute_elevation_azimuth
)
from .records import RecordStore

logger = logging.getLogger(__name__)

BodyKey = Union[Body, str]


class OrbitPipeline:
    """
    Clock + records + propagation + frames + orbit cache, wired together.
    """

    def __init__(self, clock: Optional[VirtualClock] = None,
                 records: Optional[RecordStore] = None,
                 strategy: Optional[EngineStrategy] = None,
                 config: Optional[PipelineConfig] = None,
                 bodies: Optional[Iterable[BodyKey]] = None):
        """
        Args:
            clock: Virtual clock (default: a live clock)
            records: Record store (default: store with a CelesTrak client)
            strategy: Engine strategy (default: Skyfield primary, Kepler fallback)
            config: Pipeline config (default: PipelineConfig())
            bodies: Bodies to track in tick() (default: all known bodies)
        """
        self.config = config or PipelineConfig()
        self.clock = clock or VirtualClock()
        self.records = records or RecordStore(config=self.config)
        self.strategy = strategy or EngineStrategy.default()
        self.projector = SceneProjector(self.config)
        self.sampler = OrbitSampler(self.strategy, self.config, projector=self.projector)

        self.bodies = [resolve_body(b) for b in bodies] if bodies is not None else list(BODY_CONFIGS)
        logger.info(f"Orbit pipeline tracking {len(self.bodies)} bodies "
                    f"in the {self.config.scene_frame} scene frame")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, log_file: Optional[str] = None,
                 bodies: Optional[Iterable[BodyKey]] = None, **overrides) -> 'OrbitPipeline':
        """
        Build a live pipeline for a host application.

        Reads settings from the environment (and .env), configures logging
        at the configured level, and seeds nothing: records resolve to the
        fallback set until refreshed.

        Args:
            env_file: Optional .env path
            log_file: Optional log file path
            bodies: Bodies to track (default: all)
            **overrides: PipelineConfig values that win over the environment
        """
        config = PipelineConfig.from_env(env_file, **overrides)
        setup_logging(config.log_level, log_file)
        return cls(config=config, bodies=bodies)

    def _instant(self, instant: Optional[datetime]) -> datetime:
        if instant is None:
            return self.clock.get_effective_instant()
        if instant.tzinfo is None:
            # Naive instants are UTC, as in VirtualClock.set_instant
            return instant.replace(tzinfo=timezone.utc)
        return instant

    def _state(self, body: Body, instant: datetime) -> Optional[InertialState]:
        record = self.records.get(body)
        if record is None:
            logger.debug(f"No record available for {body.value}")
            return None

        result = self.strategy.propagate(record, instant)
        if is_failure(result):
            logger.debug(f"{body.value} unavailable at {instant.isoformat()}: {result.reason}")
            return None
        return result

    def get_state(self, body: BodyKey, instant: Optional[datetime] = None) -> Optional[InertialState]:
        """Inertial state of a body, or None if unavailable this tick."""
        return self._state(resolve_body(body), self._instant(instant))

    def get_scene_position(self, body: BodyKey, instant: Optional[datetime] = None) -> Optional[np.ndarray]:
        """
        Scene position of a body.

        Args:
            body: Body, name or NORAD id
            instant: Simulated instant, naive taken as UTC (default: clock's current instant)

        Returns:
            Scene point [x, y, z], or None if unavailable
        """
        body = resolve_body(body)
        state = self._state(body, self._instant(instant))
        if state is None:
            return None

        try:
            return self.projector.project(state, get_body_config(body))
        except DegenerateGeometryError as e:
            logger.debug(f"{body.value} scene projection failed: {e}")
            return None

    def get_orbit_polyline(self, body: BodyKey) -> np.ndarray:
        """
        Closed orbit polyline for a body at the clock's current instant.

        Returns:
            (N, 3) scene points, first == last; shape (0, 3) when no data
        """
        body = resolve_body(body)
        record = self.records.get(body)
        if record is None:
            return np.empty((0, 3))
        return self.sampler.get_polyline(body, record, self.clock)

    def _geodetic(self, body: Body, instant: datetime) -> Optional[Tuple[GeodeticPosition, InertialState, np.ndarray, np.ndarray]]:
        state = self._state(body, instant)
        if state is None:
            return None

        position_ecef, velocity_ecef = eci_to_ecef_velocity(state.position, state.velocity, state.instant)
        try:
            geo = ecef_to_geodetic(position_ecef)
        except DegenerateGeometryError as e:
            logger.debug(f"{body.value} geodetic inversion failed: {e}")
            return None
        return geo, state, position_ecef, velocity_ecef

    def get_geodetic(self, body: BodyKey, instant: Optional[datetime] = None) -> Optional[Tuple[float, float, float]]:
        """
        Sub-satellite point of a body.

        Returns:
            (latitude_deg, longitude_deg, altitude_km), or None if unavailable
        """
        resolved = self._geodetic(resolve_body(body), self._instant(instant))
        if resolved is None:
            return None
        geo = resolved[0]
        return math.degrees(geo.latitude), math.degrees(geo.longitude), geo.altitude

    def get_look_angles(self, body: BodyKey, station_lat_deg: float, station_lon_deg: float,
                        station_alt_km: float = 0.0,
                        instant: Optional[datetime] = None) -> Optional[Tuple[float, float]]:
        """
        Elevation and azimuth of a body from a ground station.

        Args:
            body: Body, name or NORAD id
            station_lat_deg: Station latitude (degrees)
            station_lon_deg: Station longitude (degrees)
            station_alt_km: Station altitude above the ellipsoid (km)
            instant: Simulated instant, naive taken as UTC (default: clock's current instant)

        Returns:
            (elevation_deg, azimuth_deg), or None if unavailable
        """
        resolved = self._geodetic(resolve_body(body), self._instant(instant))
        if resolved is None:
            return None

        station = GeodeticPosition(math.radians(station_lat_deg), math.radians(station_lon_deg), station_alt_km)
        elevation, azimuth = compute_elevation_azimuth(station, resolved[2])
        return math.degrees(elevation), math.degrees(azimuth)

    def snapshot(self, body: BodyKey, instant: Optional[datetime] = None) -> Optional[Dict]:
        """
        Full state of a body at one instant.

        Returns:
            Dict with instant, record source, inertial and Earth-fixed state,
            geodetic coordinates (degrees, km) and scene position; None if
            unavailable
        """
        body = resolve_body(body)
        instant = self._instant(instant)
        resolved = self._geodetic(body, instant)
        if resolved is None:
            return None

        geo, state, position_ecef, velocity_ecef = resolved
        record = self.records.get(body)
        try:
            scene = self.projector.project(state, get_body_config(body))
        except DegenerateGeometryError:
            scene = None

        return {
            'body': body.value,
            'instant': instant,
            'record_source': record.source if record is not None else None,
            'record_epoch': record.epoch if record is not None else None,
            'position_eci': state.position,
            'velocity_eci': state.velocity,
            'position_ecef': position_ecef,
            'velocity_ecef': velocity_ecef,
            'latitude_deg': math.degrees(geo.latitude),
            'longitude_deg': math.degrees(geo.longitude),
            'altitude_km': geo.altitude,
            'scene_position': scene,
        }

    def tick(self) -> Dict[Body, Optional[np.ndarray]]:
        """
        Advance one render frame.

        Positions for every tracked body are evaluated at one captured
        instant, and stale orbit polylines are recomputed.

        Returns:
            Body -> scene position (None for bodies unavailable this tick)
        """
        instant = self.clock.get_effective_instant()
        positions = {}
        for body in self.bodies:
            positions[body] = self.get_scene_position(body, instant)
            self.get_orbit_polyline(body)
        return positions
