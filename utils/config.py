"""
Pipeline settings.

Values come from constructor arguments, then environment variables (a .env
file is loaded if present), then the defaults below.
"""

import os
import logging
from dataclasses import dataclass, fields
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

SCENE_FRAMES = ('inertial', 'earth_fixed')

# Field name -> environment variable
ENV_VARS = {
    'orbit_point_count': 'ORBIT_POINT_COUNT',
    'min_success_ratio': 'ORBIT_MIN_SUCCESS_RATIO',
    'base_refresh_interval': 'ORBIT_BASE_REFRESH_S',
    'min_refresh_interval': 'ORBIT_MIN_REFRESH_S',
    'max_refresh_interval': 'ORBIT_MAX_REFRESH_S',
    'max_period_days': 'ORBIT_MAX_PERIOD_DAYS',
    'previous_orbit_max_periods': 'ORBIT_PREVIOUS_MAX_PERIODS',
    'scene_frame': 'SCENE_FRAME',
    'scene_earth_radius': 'SCENE_EARTH_RADIUS',
    'celestrak_url': 'CELESTRAK_URL',
    'fetch_timeout': 'CELESTRAK_TIMEOUT_S',
    'record_max_age_hours': 'RECORD_MAX_AGE_HOURS',
    'log_level': 'LOG_LEVEL',
}

MIN_POINT_COUNT = 60
MAX_POINT_COUNT = 200


@dataclass
class PipelineConfig:
    """Tunables for the orbit sampler, scene projection and record fetching."""
    
    orbit_point_count: int = 60
    min_success_ratio: float = 0.8
    base_refresh_interval: float = 1.0   # wall seconds at |speed| == 1
    min_refresh_interval: float = 0.05
    max_refresh_interval: float = 2.0    # paused cadence and max cache age
    max_period_days: float = 30.0
    previous_orbit_max_periods: float = 1.0
    scene_frame: str = 'inertial'
    scene_earth_radius: float = 5.0
    celestrak_url: str = 'https://celestrak.org/NORAD/elements/gp.php'
    fetch_timeout: float = 10.0
    record_max_age_hours: float = 24.0
    log_level: str = 'INFO'
    
    def __post_init__(self):
        if self.scene_frame not in SCENE_FRAMES:
            raise ValueError(f"scene_frame must be one of {SCENE_FRAMES}, got {self.scene_frame!r}")
        if not 0.0 < self.min_success_ratio <= 1.0:
            raise ValueError(f"min_success_ratio must be in (0, 1], got {self.min_success_ratio}")
        if not 0.0 < self.min_refresh_interval <= self.max_refresh_interval:
            raise ValueError("Refresh intervals must satisfy 0 < min <= max")
        
        clamped = min(max(int(self.orbit_point_count), MIN_POINT_COUNT), MAX_POINT_COUNT)
        if clamped != self.orbit_point_count:
            logger.warning(f"orbit_point_count {self.orbit_point_count} clamped to {clamped}")
        self.orbit_point_count = clamped
    
    @property
    def max_period_seconds(self) -> float:
        return self.max_period_days * 86400.0
    
    @classmethod
    def from_env(cls, env_file: Optional[str] = None, **overrides) -> 'PipelineConfig':
        """
        Build a config from the environment.
        
        Args:
            env_file: Optional path to a .env file (default: search from cwd)
            **overrides: Explicit values that win over the environment
        
        Returns:
            PipelineConfig instance
        """
        load_dotenv(env_file)
        
        values = {}
        for f in fields(cls):
            if f.name in overrides:
                continue
            raw = os.getenv(ENV_VARS[f.name])
            if raw is None or raw == '':
                continue
            
            if f.type in (int, 'int'):
                caster = int
            elif f.type in (float, 'float'):
                caster = float
            else:
                caster = str
            
            try:
                values[f.name] = caster(raw)
            except ValueError:
                logger.warning(f"Ignoring invalid {ENV_VARS[f.name]}={raw!r}, using default {f.default!r}")
        
        values.update(overrides)
        return cls(**values)
