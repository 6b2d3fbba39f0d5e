"""
Fallback-constant propagation engine: two-body Kepler motion from mean elements.

Used for records that carry no TLE lines (constant records such as the
Moon). It ignores drag and all perturbations.
"""

import math
import logging
from datetime import datetime
from typing import Optional, Tuple

import numpy as np

from utils.tle import ElementRecord
from .engine import PropagationEngine, PropagationFailure, PropagationResult, InertialState

logger = logging.getLogger(__name__)

# Earth gravitational parameter (km^3/s^2)
EARTH_GM = 398600.4418


def solve_kepler(M: float, e: float, tol: float = 1e-12, max_iter: int = 50) -> Optional[float]:
    """
    Solve Kepler's equation M = E - e*sin(E) for the eccentric anomaly.

    Newton-Raphson iteration; returns None if it does not converge.
    """
    M = math.fmod(M, 2 * math.pi)
    E = M if e < 0.8 else math.pi

    for _ in range(max_iter):
        f = E - e * math.sin(E) - M
        fp = 1.0 - e * math.cos(E)
        step = f / fp
        E -= step
        if abs(step) < tol:
            return E

    return None


def semi_major_axis(mean_motion_rev_per_day: float, mu: float = EARTH_GM) -> float:
    """Semi-major axis (km) implied by a mean motion in revolutions per day."""
    n = mean_motion_rev_per_day * 2 * math.pi / 86400.0
    return (mu / n ** 2) ** (1.0 / 3.0)


def perifocal_to_inertial(raan: float, inclination: float, arg_perigee: float) -> np.ndarray:
    """Rotation matrix from the perifocal (PQW) frame to the inertial frame."""
    cO, sO = math.cos(raan), math.sin(raan)
    ci, si = math.cos(inclination), math.sin(inclination)
    cw, sw = math.cos(arg_perigee), math.sin(arg_perigee)

    return np.array([
        [cO * cw - sO * sw * ci, -cO * sw - sO * cw * ci,  sO * si],
        [sO * cw + cO * sw * ci, -sO * sw + cO * cw * ci, -cO * si],
        [sw * si,                 cw * si,                  ci     ]
    ])


class KeplerianEngine(PropagationEngine):
    """Two-body propagation of mean elements."""

    name = 'kepler-two-body'

    def __init__(self, max_days_from_epoch: Optional[float] = 36525.0, mu: float = EARTH_GM):
        super().__init__(max_days_from_epoch)
        self.mu = mu

    def state_at(self, record: ElementRecord, dt_seconds: float) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        """
        Position and velocity dt_seconds after the record epoch.

        Returns:
            (position_km, velocity_km_s), or None if Kepler's equation does not converge
        """
        e = record.eccentricity
        a = semi_major_axis(record.mean_motion, self.mu)
        n = math.sqrt(self.mu / a ** 3)

        E = solve_kepler(record.mean_anomaly + n * dt_seconds, e)
        if E is None:
            return None

        cos_E, sin_E = math.cos(E), math.sin(E)
        root = math.sqrt(1.0 - e * e)
        r = a * (1.0 - e * cos_E)

        position_pqw = np.array([a * (cos_E - e), a * root * sin_E, 0.0])
        velocity_pqw = math.sqrt(self.mu * a) / r * np.array([-sin_E, root * cos_E, 0.0])

        R = perifocal_to_inertial(record.raan, record.inclination, record.arg_perigee)
        return R @ position_pqw, R @ velocity_pqw

    def _propagate(self, record: ElementRecord, instant: datetime) -> PropagationResult:
        if not 0.0 <= record.eccentricity < 1.0:
            return PropagationFailure(f"{record.name}: eccentricity {record.eccentricity} is not a closed orbit", instant)
        if record.mean_motion <= 0.0:
            return PropagationFailure(f"{record.name}: mean motion must be positive", instant)

        state = self.state_at(record, (instant - record.epoch).total_seconds())
        if state is None:
            return PropagationFailure(f"Kepler solve did not converge for {record.name}", instant)

        position, velocity = state
        return InertialState(position=position, velocity=velocity, instant=instant)
