"""
Per-body orbit sample sets and their refresh policy.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

import numpy as np

from utils.bodies import Body
from utils.config import PipelineConfig
from utils.tle import ElementRecord

logger = logging.getLogger(__name__)


@dataclass
class OrbitSampleSet:
    """
    One traversal of a body's orbit in scene coordinates.

    Attributes:
        body: Body the set belongs to
        points: (N, 3) scene points, closed (first point repeated) when non-empty
        computed_at: Wall-clock capture time (POSIX seconds)
        speed: Clock speed in effect at capture
        clock_revision: Clock revision at capture
        start_instant: Simulated instant of the first sample
        period_s: Period the samples span (seconds)
        success_count: Samples the engine produced
        target_count: Samples requested
        blended: True if the previous set was blended in to fill gaps
        record: Element record the samples came from
    """
    body: Body
    points: np.ndarray
    computed_at: float
    speed: float
    clock_revision: int
    start_instant: datetime
    period_s: float
    success_count: int
    target_count: int
    blended: bool = False
    record: Optional[ElementRecord] = None

    def __len__(self):
        return len(self.points)

    @property
    def is_closed(self) -> bool:
        return len(self.points) > 1 and np.array_equal(self.points[0], self.points[-1])

    @property
    def open_points(self) -> np.ndarray:
        """Points without the closing duplicate."""
        return self.points[:-1] if len(self.points) else self.points

    @property
    def success_ratio(self) -> float:
        return self.success_count / self.target_count if self.target_count else 0.0


@dataclass
class PreviousOrbit:
    """Last accepted open point set for a body, kept only for gap filling."""
    points: np.ndarray
    start_timestamp: float
    record: Optional[ElementRecord]


class OrbitCache:
    """
    Cached sample sets keyed by body.

    A set is fresh while its age is below the speed-dependent refresh
    interval and the clock has not been re-based since it was computed.
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        config = config or PipelineConfig()
        self.base_interval = config.base_refresh_interval
        self.min_interval = config.min_refresh_interval
        self.max_interval = config.max_refresh_interval

        self._entries: Dict[Body, OrbitSampleSet] = {}
        self._previous: Dict[Body, PreviousOrbit] = {}

    def refresh_interval(self, speed: float) -> float:
        """
        Wall seconds between recomputations at a clock speed.

        Inversely proportional to |speed|, clamped to [min, max]; a paused
        clock uses the max interval.
        """
        if speed == 0.0:
            return self.max_interval
        interval = self.base_interval / abs(speed)
        return min(max(interval, self.min_interval), self.max_interval)

    def get(self, body: Body) -> Optional[OrbitSampleSet]:
        return self._entries.get(body)

    def store(self, sample_set: OrbitSampleSet):
        self._entries[sample_set.body] = sample_set

    def is_fresh(self, body: Body, speed: float, wall_now: float,
                 clock_revision: Optional[int] = None,
                 record: Optional[ElementRecord] = None) -> bool:
        """
        Check whether the cached set for a body can be reused.

        Args:
            body: Body
            speed: Current clock speed
            wall_now: Current wall time (POSIX seconds)
            clock_revision: Current clock revision (None skips the check)
            record: Current record (None skips the check)
        """
        entry = self._entries.get(body)
        if entry is None:
            return False
        if entry.speed != speed:
            return False
        if clock_revision is not None and entry.clock_revision != clock_revision:
            return False
        if record is not None and entry.record != record:
            return False

        age = wall_now - entry.computed_at
        return 0.0 <= age < self.refresh_interval(speed)

    def invalidate(self, body: Optional[Body] = None):
        """Drop cached sets (one body or all); previous sets are kept."""
        if body is None:
            self._entries.clear()
        else:
            self._entries.pop(body, None)

    def previous(self, body: Body) -> Optional[PreviousOrbit]:
        return self._previous.get(body)

    def remember_previous(self, body: Body, points: np.ndarray, start_timestamp: float,
                          record: Optional[ElementRecord]):
        self._previous[body] = PreviousOrbit(np.array(points, copy=True), start_timestamp, record)

    def forget_previous(self, body: Body):
        self._previous.pop(body, None)
