"""
Tracked bodies and their per-body rendering configuration.

Bodies form a closed enumeration; everything keyed by body (fallback
records, scale factors, fixed periods) is resolved through BODY_CONFIGS.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union


class Body(Enum):
    """Bodies the pipeline knows how to track."""
    LUMELITE4 = 'LUMELITE4'
    ISS = 'ISS'
    HUBBLE = 'HUBBLE'
    STARLINK = 'STARLINK'
    TIANGONG = 'TIANGONG'
    GPS = 'GPS'
    MOON = 'MOON'


class OrbitCategory(Enum):
    LEO = 'leo'
    MEO = 'meo'
    LUNAR = 'lunar'


# Sidereal month (days)
MOON_PERIOD_DAYS = 27.321661


@dataclass(frozen=True)
class BodyConfig:
    """
    Static configuration for one body.

    Attributes:
        body: Body enum member
        name: Display name
        norad_id: NORAD catalog number (None for bodies without TLEs)
        category: Orbit category
        fixed_period_s: Period used instead of the mean-motion period (seconds)
        distance_scale: Radial scale applied when projecting into the scene
        orbit_point_count: Per-body override of the orbit sample count
    """
    body: Body
    name: str
    norad_id: Optional[str]
    category: OrbitCategory
    fixed_period_s: Optional[float] = None
    distance_scale: float = 1.0
    orbit_point_count: Optional[int] = None


BODY_CONFIGS: Dict[Body, BodyConfig] = {
    Body.LUMELITE4: BodyConfig(Body.LUMELITE4, 'LUMELITE-4', '56309', OrbitCategory.LEO),
    Body.ISS: BodyConfig(Body.ISS, 'ISS (ZARYA)', '25544', OrbitCategory.LEO),
    Body.HUBBLE: BodyConfig(Body.HUBBLE, 'HUBBLE SPACE TELESCOPE', '20580', OrbitCategory.LEO),
    Body.STARLINK: BodyConfig(Body.STARLINK, 'STARLINK', '44294', OrbitCategory.LEO),
    Body.TIANGONG: BodyConfig(Body.TIANGONG, 'TIANGONG', '48274', OrbitCategory.LEO),
    Body.GPS: BodyConfig(Body.GPS, 'GPS BIIF-1', '36585', OrbitCategory.MEO, orbit_point_count=120),
    Body.MOON: BodyConfig(
        Body.MOON, 'MOON', None, OrbitCategory.LUNAR,
        fixed_period_s=MOON_PERIOD_DAYS * 86400.0,
        distance_scale=0.1,
        orbit_point_count=200,
    ),
}

DEFAULT_BODY = Body.LUMELITE4

_BY_NORAD_ID = {cfg.norad_id: body for body, cfg in BODY_CONFIGS.items() if cfg.norad_id}


def resolve_body(key: Union[Body, str]) -> Body:
    """
    Resolve a body from an enum member, a name or a NORAD id.

    Raises:
        KeyError: If the key does not identify a known body
    """
    if isinstance(key, Body):
        return key
    if isinstance(key, str):
        text = key.strip()
        if text in _BY_NORAD_ID:
            return _BY_NORAD_ID[text]
        try:
            return Body[text.upper()]
        except KeyError:
            pass
    raise KeyError(f"Unknown body: {key!r}")


def get_body_config(key: Union[Body, str]) -> BodyConfig:
    """Get the configuration record for a body."""
    return BODY_CONFIGS[resolve_body(key)]
