"""
Propagation engine contract.

An engine turns an element record and an instant into an inertial state.
Engines never raise for numerical trouble: they return a PropagationFailure
and callers only branch on success or failure.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import NamedTuple, Optional, Union

import numpy as np

from utils.tle import ElementRecord

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0


class InertialState(NamedTuple):
    """
    Inertial-frame state vector.

    Attributes:
        position: [x, y, z] in km
        velocity: [vx, vy, vz] in km/s
        instant: UTC instant the state is valid for
    """
    position: np.ndarray
    velocity: np.ndarray
    instant: datetime


class PropagationFailure(NamedTuple):
    """Failed propagation for one (record, instant) pair."""
    reason: str
    instant: datetime


PropagationResult = Union[InertialState, PropagationFailure]


def is_failure(result: PropagationResult) -> bool:
    return isinstance(result, PropagationFailure)


class PropagationEngine(ABC):
    """
    Base class for engines.

    Subclasses implement _propagate(); the base applies the epoch window and
    rejects non-finite output, so every engine honours the same contract.
    """

    name = 'engine'

    def __init__(self, max_days_from_epoch: Optional[float] = None):
        """
        Args:
            max_days_from_epoch: Instants further than this from the record
                epoch fail instead of being propagated (None = no limit)
        """
        self.max_days_from_epoch = max_days_from_epoch

    def propagate(self, record: ElementRecord, instant: datetime) -> PropagationResult:
        """
        Compute the inertial state of a record at an instant.

        Args:
            record: Element record
            instant: Aware UTC datetime

        Returns:
            InertialState on success, PropagationFailure otherwise
        """
        offset_days = (instant - record.epoch).total_seconds() / SECONDS_PER_DAY
        if self.max_days_from_epoch is not None and abs(offset_days) > self.max_days_from_epoch:
            return PropagationFailure(
                f"{record.name}: {offset_days:.1f} days from epoch exceeds {self.max_days_from_epoch} day limit",
                instant
            )

        try:
            result = self._propagate(record, instant)
        except (ArithmeticError, ValueError) as e:
            return PropagationFailure(f"{self.name} error for {record.name}: {e}", instant)

        if isinstance(result, PropagationFailure):
            return result

        if not (np.all(np.isfinite(result.position)) and np.all(np.isfinite(result.velocity))):
            return PropagationFailure(f"{self.name} produced non-finite state for {record.name}", instant)

        return result

    @abstractmethod
    def _propagate(self, record: ElementRecord, instant: datetime) -> PropagationResult:
        ...


class EngineStrategy:
    """
    Chooses the engine for a record.

    Records parsed from TLE lines go to the primary engine; constant records
    (no TLE lines, e.g. the Moon) go to the fallback-constant engine.
    """

    def __init__(self, primary: PropagationEngine, fallback: PropagationEngine):
        self.primary = primary
        self.fallback = fallback
        logger.info(f"Propagation strategy: primary={primary.name}, fallback={fallback.name}")

    @classmethod
    def default(cls) -> 'EngineStrategy':
        """Skyfield SGP4 for TLE records, two-body Kepler for constant records."""
        from .kepler import KeplerianEngine
        from .skyfield_engine import SkyfieldEngine
        return cls(SkyfieldEngine(), KeplerianEngine())

    def engine_for(self, record: ElementRecord) -> PropagationEngine:
        return self.primary if record.has_tle_lines else self.fallback

    def propagate(self, record: ElementRecord, instant: datetime) -> PropagationResult:
        return self.engine_for(record).propagate(record, instant)
