"""
Orbit polylines for the renderer.
Period sampling, gap filling against the previous lap, and a speed-aware cache.
"""

from .smoothing import interpolate_arc_points, fill_missing_points, close_loop
from .cache import OrbitCache, OrbitSampleSet, PreviousOrbit
from .projection import SceneProjector
from .sampler import OrbitSampler, orbital_period

__all__ = [
    'interpolate_arc_points', 'fill_missing_points', 'close_loop',
    'OrbitCache', 'OrbitSampleSet', 'PreviousOrbit',
    'SceneProjector',
    'OrbitSampler', 'orbital_period'
]
