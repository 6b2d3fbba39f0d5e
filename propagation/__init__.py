"""
Propagation engines: element record + instant -> inertial state.
Skyfield SGP4 for TLE records, two-body Kepler for constant records.
"""

from .engine import (
    InertialState,
    PropagationFailure,
    PropagationResult,
    PropagationEngine,
    EngineStrategy,
    is_failure
)
from .kepler import KeplerianEngine, solve_kepler
from .skyfield_engine import SkyfieldEngine

__all__ = [
    'InertialState',
    'PropagationFailure',
    'PropagationResult',
    'PropagationEngine',
    'EngineStrategy',
    'is_failure',
    'KeplerianEngine',
    'solve_kepler',
    'SkyfieldEngine'
]
