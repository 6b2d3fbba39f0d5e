"""
Primary propagation engine: SGP4/SDP4 through Skyfield's EarthSatellite.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

import numpy as np
from skyfield.api import load, EarthSatellite

from utils.tle import ElementRecord
from .engine import PropagationEngine, PropagationFailure, PropagationResult, InertialState

logger = logging.getLogger(__name__)

# Satellites built per record before the memo is cleared
MAX_CACHED_SATELLITES = 64


class SkyfieldEngine(PropagationEngine):
    """SGP4 propagation of TLE records, returning GCRS position/velocity."""

    name = 'skyfield-sgp4'

    def __init__(self, max_days_from_epoch: Optional[float] = 3650.0, timescale=None):
        """
        Args:
            max_days_from_epoch: Epoch window in days
            timescale: Skyfield Timescale (defaults to the builtin one)
        """
        super().__init__(max_days_from_epoch)
        self.ts = timescale if timescale is not None else load.timescale()
        self._satellites: Dict[ElementRecord, EarthSatellite] = {}

    def _satellite_for(self, record: ElementRecord) -> EarthSatellite:
        sat = self._satellites.get(record)
        if sat is None:
            if len(self._satellites) >= MAX_CACHED_SATELLITES:
                self._satellites.clear()
            sat = EarthSatellite(record.line1, record.line2, record.name, self.ts)
            self._satellites[record] = sat
            logger.debug(f"Built SGP4 model for {record.name}")
        return sat

    def _propagate(self, record: ElementRecord, instant: datetime) -> PropagationResult:
        if not record.has_tle_lines:
            return PropagationFailure(f"{record.name} has no TLE lines for SGP4", instant)

        sat = self._satellite_for(record)
        geocentric = sat.at(self.ts.from_datetime(instant))

        # SGP4 error codes (decay, divergence) surface as a message
        message = getattr(geocentric, 'message', None)
        if message:
            return PropagationFailure(f"SGP4 failed for {record.name}: {message}", instant)

        return InertialState(
            position=np.array(geocentric.position.km, dtype=np.float64),
            velocity=np.array(geocentric.velocity.km_per_s, dtype=np.float64),
            instant=instant,
        )
