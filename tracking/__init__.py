"""
Record sources and the per-tick query surface.
"""

from .celestrak import CelestrakClient
from .records import RecordStore
from .pipeline import OrbitPipeline

__all__ = ['CelestrakClient', 'RecordStore', 'OrbitPipeline']
