"""
Orbit sampler.

Samples one orbital period from the current simulated instant, tolerates
individual sample failures, closes the loop and caches the result with a
refresh cadence that follows the clock speed.

The correctness bar is a curve that never breaks or jumps, not numerical
exactness: arc interpolation and blending with the previous lap are
deliberate lossy approximations (see orbit.smoothing).
"""

import math
import logging
from datetime import datetime, timedelta
from typing import Optional

import numpy as np

from propagation.engine import EngineStrategy, is_failure
from timing.virtual_clock import VirtualClock, timestamp_to_datetime
from utils.bodies import Body, BodyConfig, get_body_config
from utils.config import PipelineConfig
from utils.coordinates import DegenerateGeometryError
from utils.tle import ElementRecord
from .cache import OrbitCache, OrbitSampleSet
from .projection import SceneProjector
from .smoothing import fill_missing_points, close_loop

logger = logging.getLogger(__name__)


def orbital_period(record: ElementRecord, body_config: Optional[BodyConfig] = None,
                   max_period_s: float = 30 * 86400.0) -> Optional[float]:
    """
    Period (seconds) to sample for a body.

    Bodies whose category fixes the period use the configured constant;
    otherwise the period comes from the mean motion and must lie in
    (0, max_period_s].

    Args:
        record: Element record
        body_config: Body configuration (may carry fixed_period_s)
        max_period_s: Sanity clamp

    Returns:
        Period in seconds, or None if no plausible period is available
    """
    if body_config is not None and body_config.fixed_period_s:
        return body_config.fixed_period_s

    if record.mean_motion <= 0.0 or not math.isfinite(record.mean_motion):
        return None

    period = 86400.0 / record.mean_motion
    if not 0.0 < period <= max_period_s:
        return None
    return period


class OrbitSampler:
    """Produces closed orbit polylines per body, with a continuity cache."""

    def __init__(self, strategy: EngineStrategy, config: Optional[PipelineConfig] = None,
                 cache: Optional[OrbitCache] = None, projector: Optional[SceneProjector] = None):
        self.strategy = strategy
        self.config = config or PipelineConfig()
        self.cache = cache or OrbitCache(self.config)
        self.projector = projector or SceneProjector(self.config)

    def point_count(self, body_config: BodyConfig) -> int:
        return body_config.orbit_point_count or self.config.orbit_point_count

    def _usable_previous(self, body: Body, record: ElementRecord, start_timestamp: float,
                         period: float) -> Optional[np.ndarray]:
        previous = self.cache.previous(body)
        if previous is None:
            return None

        if previous.record != record:
            logger.debug(f"Discarding previous orbit for {body.value}: record superseded")
            self.cache.forget_previous(body)
            return None

        max_offset = self.config.previous_orbit_max_periods * period
        if abs(start_timestamp - previous.start_timestamp) > max_offset:
            logger.debug(f"Discarding previous orbit for {body.value}: older than {self.config.previous_orbit_max_periods} periods")
            self.cache.forget_previous(body)
            return None

        return previous.points

    def sample(self, body: Body, record: ElementRecord, start: datetime,
               speed: float = 1.0, wall_time: float = 0.0,
               clock_revision: int = 0) -> Optional[OrbitSampleSet]:
        """
        Sample one period starting at a simulated instant.

        Args:
            body: Body being sampled
            record: Its current element record
            start: Simulated instant of the first sample
            speed: Clock speed to tag the set with
            wall_time: Wall-clock capture time to tag the set with
            clock_revision: Clock revision to tag the set with

        Returns:
            OrbitSampleSet (possibly empty), or None if the body has no usable period
        """
        body_config = get_body_config(body)
        period = orbital_period(record, body_config, self.config.max_period_seconds)
        if period is None:
            logger.warning(f"No plausible orbital period for {body.value} "
                           f"(mean motion {record.mean_motion} rev/day)")
            return None

        target_count = self.point_count(body_config)
        step = period / target_count

        raw = []
        for i in range(target_count):
            instant = start + timedelta(seconds=i * step)
            result = self.strategy.propagate(record, instant)
            if is_failure(result):
                logger.debug(f"Orbit sample {i} skipped: {result.reason}")
                continue
            try:
                raw.append(self.projector.project(result, body_config, frame_instant=start))
            except DegenerateGeometryError as e:
                logger.debug(f"Orbit sample {i} skipped: {e}")

        current = np.array(raw, dtype=np.float64).reshape(-1, 3)
        start_timestamp = start.timestamp()
        previous = self._usable_previous(body, record, start_timestamp, period)

        points, blended = fill_missing_points(current, previous, target_count,
                                              self.config.min_success_ratio)

        if len(points):
            self.cache.remember_previous(body, points, start_timestamp, record)

        if len(current) < target_count:
            logger.debug(f"{body.value}: {len(current)}/{target_count} orbit samples succeeded"
                         f"{' (blended with previous lap)' if blended else ''}")

        return OrbitSampleSet(
            body=body,
            points=close_loop(points),
            computed_at=wall_time,
            speed=speed,
            clock_revision=clock_revision,
            start_instant=start,
            period_s=period,
            success_count=len(current),
            target_count=target_count,
            blended=blended,
            record=record,
        )

    def get_sample_set(self, body: Body, record: ElementRecord,
                       clock: VirtualClock) -> Optional[OrbitSampleSet]:
        """
        Cached sample set for a body, recomputed when stale.

        Stale means: older than the refresh interval for the current speed,
        computed at a different speed or clock revision, or from a
        superseded record.
        """
        captured = clock.capture()

        if self.cache.is_fresh(body, captured.speed, captured.wall_time, clock.revision, record):
            return self.cache.get(body)

        sample_set = self.sample(body, record, timestamp_to_datetime(captured.timestamp),
                                 speed=captured.speed, wall_time=captured.wall_time,
                                 clock_revision=clock.revision)
        if sample_set is None:
            self.cache.invalidate(body)
            return None

        self.cache.store(sample_set)
        return sample_set

    def get_polyline(self, body: Body, record: ElementRecord, clock: VirtualClock) -> np.ndarray:
        """
        Closed polyline for a body, (N, 3); shape (0, 3) when nothing is available.
        """
        sample_set = self.get_sample_set(body, record, clock)
        if sample_set is None:
            return np.empty((0, 3))
        return sample_set.points
