"""
Coordinate transformation functions.
Supports: Inertial (GCRS) <-> Earth-fixed, Earth-fixed <-> Geodetic,
Geodetic / Inertial -> renderer scene, and ground-station look angles.

All distances in kilometres and all angles in radians; degree conversion
belongs to callers at the API boundary.
"""

import math
from datetime import datetime
from typing import NamedTuple, Tuple

import numpy as np

# WGS84 ellipsoid parameters
WGS84_A = 6378.137  # Semi-major axis (km)
WGS84_F = 1.0 / 298.257223563  # Flattening
WGS84_E2 = 2 * WGS84_F - WGS84_F ** 2  # Eccentricity squared
WGS84_B = WGS84_A * (1 - WGS84_F)  # Semi-minor axis (km)

# Earth rotation rate (rad/s)
EARTH_OMEGA = 7.2921151467e-5
EARTH_ANGULAR_VELOCITY = np.array([0.0, 0.0, EARTH_OMEGA])

# IAU 2000 Earth Rotation Angle coefficients
ERA_AT_J2000 = 0.7790572732640
ERA_RATE = 1.00273781191135448
J2000_UNIX_SECONDS = 946728000.0  # 2000-01-01T12:00:00Z (JD 2451545.0)

GEODETIC_MAX_ITERATIONS = 5
GEODETIC_TOLERANCE = 1e-12  # rad, well below a millimetre


class DegenerateGeometryError(ValueError):
    """Raised when a position cannot be inverted to geodetic coordinates."""


class GeodeticPosition(NamedTuple):
    """Geodetic coordinates on the WGS84 ellipsoid (radians, km above ellipsoid)."""
    latitude: float
    longitude: float
    altitude: float


def _as_vector(position) -> np.ndarray:
    vector = np.asarray(position, dtype=np.float64)
    if vector.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {vector.shape}")
    return vector


def normalize_longitude(lon: float) -> float:
    """
    Wrap a longitude into (-pi, pi].

    Args:
        lon: Longitude in radians

    Returns:
        Equivalent longitude in (-pi, pi]
    """
    wrapped = math.fmod(lon + math.pi, 2 * math.pi)
    if wrapped <= 0.0:
        wrapped += 2 * math.pi
    return wrapped - math.pi


def earth_rotation_angle(instant: datetime) -> float:
    """
    Compute the Earth Rotation Angle (IAU 2000) at a UTC instant.

    ERA is continuous and increases monotonically with time; the result is
    reduced to [0, 2*pi). UT1-UTC and precession/nutation are ignored, which
    is ample for rendering.

    Args:
        instant: Timezone-aware UTC datetime

    Returns:
        Rotation angle in radians
    """
    days = (instant.timestamp() - J2000_UNIX_SECONDS) / 86400.0

    # Whole days are whole turns; dropping them keeps the product precise
    fraction = days - math.floor(days)
    turns = ERA_AT_J2000 + fraction + (ERA_RATE - 1.0) * days

    return 2 * math.pi * (turns % 1.0)


def _rotation_z(angle: float) -> np.ndarray:
    """Frame rotation about Z (passive): inertial -> rotated frame."""
    c, s = math.cos(angle), math.sin(angle)
    return np.array([
        [ c, s, 0.0],
        [-s, c, 0.0],
        [0.0, 0.0, 1.0]
    ])


def eci_to_ecef(position_eci, instant: datetime) -> np.ndarray:
    """
    Rotate an inertial position into the Earth-fixed frame.

    Args:
        position_eci: Inertial position [x, y, z] (km)
        instant: UTC instant the position is valid for

    Returns:
        Earth-fixed position [x, y, z] (km)
    """
    return _rotation_z(earth_rotation_angle(instant)) @ _as_vector(position_eci)


def ecef_to_eci(position_ecef, instant: datetime) -> np.ndarray:
    """
    Rotate an Earth-fixed position back into the inertial frame.

    Args:
        position_ecef: Earth-fixed position [x, y, z] (km)
        instant: UTC instant

    Returns:
        Inertial position [x, y, z] (km)
    """
    return _rotation_z(earth_rotation_angle(instant)).T @ _as_vector(position_ecef)


def eci_to_ecef_velocity(position_eci, velocity_eci, instant: datetime) -> Tuple[np.ndarray, np.ndarray]:
    """
    Transform an inertial state into the Earth-fixed frame.

    Velocity picks up the frame term: v_ecef = R v_eci - omega x r_ecef

    Args:
        position_eci: Inertial position (km)
        velocity_eci: Inertial velocity (km/s)
        instant: UTC instant

    Returns:
        (position_ecef, velocity_ecef) in km and km/s
    """
    R = _rotation_z(earth_rotation_angle(instant))
    position_ecef = R @ _as_vector(position_eci)
    velocity_ecef = R @ _as_vector(velocity_eci) - np.cross(EARTH_ANGULAR_VELOCITY, position_ecef)
    return position_ecef, velocity_ecef


def geodetic_to_ecef(lat: float, lon: float, alt: float) -> np.ndarray:
    """
    Convert geodetic coordinates (latitude, longitude, altitude) to Earth-fixed.

    Args:
        lat: Latitude in radians
        lon: Longitude in radians
        alt: Altitude above ellipsoid in km

    Returns:
        np.array([x, y, z]) in Earth-fixed coordinates (km)
    """
    # Radius of curvature in prime vertical
    N = WGS84_A / math.sqrt(1 - WGS84_E2 * math.sin(lat) ** 2)

    x = (N + alt) * math.cos(lat) * math.cos(lon)
    y = (N + alt) * math.cos(lat) * math.sin(lon)
    z = (N * (1 - WGS84_E2) + alt) * math.sin(lat)

    return np.array([x, y, z])


def ecef_to_geodetic(position_ecef) -> GeodeticPosition:
    """
    Convert an Earth-fixed position to geodetic latitude, longitude and altitude.

    Longitude is closed form; latitude is refined iteratively (Bowring-style
    fixed point), converging well below a metre within five iterations for
    anything from the surface out to lunar distance.

    Args:
        position_ecef: Earth-fixed position [x, y, z] in km

    Returns:
        GeodeticPosition (radians, radians, km above ellipsoid)

    Raises:
        DegenerateGeometryError: For a zero-length or non-finite position
    """
    x, y, z = _as_vector(position_ecef)

    if not (math.isfinite(x) and math.isfinite(y) and math.isfinite(z)):
        raise DegenerateGeometryError(f"Non-finite position: {(x, y, z)}")
    if x == 0.0 and y == 0.0 and z == 0.0:
        raise DegenerateGeometryError("Zero-length position has no geodetic coordinates")

    lon = normalize_longitude(math.atan2(y, x))

    # Distance from Z-axis
    p = math.hypot(x, y)

    # Initial latitude estimate
    lat = math.atan2(z, p * (1 - WGS84_E2))

    for _ in range(GEODETIC_MAX_ITERATIONS):
        sin_lat = math.sin(lat)
        N = WGS84_A / math.sqrt(1 - WGS84_E2 * sin_lat ** 2)
        new_lat = math.atan2(z + WGS84_E2 * N * sin_lat, p)
        converged = abs(new_lat - lat) < GEODETIC_TOLERANCE
        lat = new_lat
        if converged:
            break

    # Altitude form that stays finite at the poles
    sin_lat, cos_lat = math.sin(lat), math.cos(lat)
    N = WGS84_A / math.sqrt(1 - WGS84_E2 * sin_lat ** 2)
    alt = p * cos_lat + z * sin_lat - WGS84_A * WGS84_A / N

    return GeodeticPosition(lat, lon, alt)


def geodetic_to_scene(lat: float, lon: float, alt: float,
                      scene_earth_radius: float = 5.0,
                      distance_scale: float = 1.0) -> np.ndarray:
    """
    Project geodetic coordinates into the renderer's local basis.

    The scene is Y-up with the prime meridian on +X and 90E on -Z; the globe
    is a sphere of radius scene_earth_radius at the equatorial radius.

    Args:
        lat: Latitude in radians
        lon: Longitude in radians
        alt: Altitude in km
        scene_earth_radius: Scene units per Earth equatorial radius
        distance_scale: Extra radial scale for this body

    Returns:
        np.array([x, y, z]) in scene units
    """
    radius = (WGS84_A + alt) / WGS84_A * scene_earth_radius * distance_scale

    polar = math.pi / 2 - lat
    azimuth = lon + math.pi

    x = -radius * math.sin(polar) * math.cos(azimuth)
    y = radius * math.cos(polar)
    z = radius * math.sin(polar) * math.sin(azimuth)

    return np.array([x, y, z])


def inertial_to_scene(position, scene_earth_radius: float = 5.0,
                      distance_scale: float = 1.0) -> np.ndarray:
    """
    Map a Cartesian position (km) into scene units.

    Frame axes map as X -> X, Z -> Y, Y -> -Z. Accepts a single vector or
    an (N, 3) array of points.

    Args:
        position: Position(s) in km
        scene_earth_radius: Scene units per Earth equatorial radius
        distance_scale: Extra radial scale for this body

    Returns:
        Scene position(s), same shape as input
    """
    points = np.asarray(position, dtype=np.float64)
    scale = scene_earth_radius / WGS84_A * distance_scale

    scene = np.empty_like(points)
    scene[..., 0] = points[..., 0] * scale
    scene[..., 1] = points[..., 2] * scale
    scene[..., 2] = -points[..., 1] * scale
    return scene


def ecef_to_ned(lat: float, lon: float, vector_ecef: np.ndarray) -> np.ndarray:
    """
    Rotate an Earth-fixed vector into the local NED (North-East-Down) frame.

    Args:
        lat: Latitude in radians
        lon: Longitude in radians
        vector_ecef: Vector in Earth-fixed frame

    Returns:
        Vector in NED frame [n, e, d]
    """
    R = np.array([
        [-math.sin(lat) * math.cos(lon), -math.sin(lat) * math.sin(lon),  math.cos(lat)],
        [-math.sin(lon),                  math.cos(lon),                  0.0          ],
        [-math.cos(lat) * math.cos(lon), -math.cos(lat) * math.sin(lon), -math.sin(lat)]
    ])
    return R @ _as_vector(vector_ecef)


def compute_elevation_azimuth(station: GeodeticPosition, target_ecef) -> Tuple[float, float]:
    """
    Compute elevation and azimuth from a ground station to a target.

    Args:
        station: Station geodetic position
        target_ecef: Target Earth-fixed position (km)

    Returns:
        (elevation, azimuth) in radians, azimuth in [0, 2*pi)
    """
    station_ecef = geodetic_to_ecef(*station)
    los_ned = ecef_to_ned(station.latitude, station.longitude, _as_vector(target_ecef) - station_ecef)

    north, east, down = los_ned
    elevation = math.atan2(-down, math.hypot(north, east))
    azimuth = math.atan2(east, north) % (2 * math.pi)

    return elevation, azimuth
