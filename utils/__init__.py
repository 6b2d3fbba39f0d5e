"""
Utility functions for coordinate transforms, element records, body
configuration, settings and logging.
"""

from .bodies import Body, BodyConfig, OrbitCategory, BODY_CONFIGS, DEFAULT_BODY, resolve_body, get_body_config
from .coordinates import (
    GeodeticPosition, DegenerateGeometryError,
    earth_rotation_angle, eci_to_ecef, ecef_to_eci, eci_to_ecef_velocity,
    geodetic_to_ecef, ecef_to_geodetic, normalize_longitude,
    geodetic_to_scene, inertial_to_scene, compute_elevation_azimuth
)
from .tle import ElementRecord, TLEParseError, parse_tle, parse_tle_or_fallback, fallback_record, load_tle_file
from .config import PipelineConfig
from .logging_config import setup_logging

__all__ = [
    'Body', 'BodyConfig', 'OrbitCategory', 'BODY_CONFIGS', 'DEFAULT_BODY', 'resolve_body', 'get_body_config',
    'GeodeticPosition', 'DegenerateGeometryError',
    'earth_rotation_angle', 'eci_to_ecef', 'ecef_to_eci', 'eci_to_ecef_velocity',
    'geodetic_to_ecef', 'ecef_to_geodetic', 'normalize_longitude',
    'geodetic_to_scene', 'inertial_to_scene', 'compute_elevation_azimuth',
    'ElementRecord', 'TLEParseError', 'parse_tle', 'parse_tle_or_fallback', 'fallback_record', 'load_tle_file',
    'PipelineConfig',
    'setup_logging'
]
