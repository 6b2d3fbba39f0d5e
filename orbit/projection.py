"""
Inertial state -> renderer scene point.
"""

import logging
from datetime import datetime
from typing import Optional

import numpy as np

from propagation.engine import InertialState
from utils.bodies import BodyConfig
from utils.config import PipelineConfig
from utils.coordinates import eci_to_ecef, ecef_to_geodetic, geodetic_to_scene, inertial_to_scene

logger = logging.getLogger(__name__)


class SceneProjector:
    """
    Projects inertial states into the scene.

    In the 'inertial' scene frame points map straight from GCRS axes; in the
    'earth_fixed' frame they go inertial -> Earth-fixed -> geodetic -> scene
    so they sit on a globe that does not rotate.

    The Earth-fixed rotation is the Earth rotation angle alone. Precession,
    nutation and polar motion are not applied, so against a full ITRS
    reduction the Earth-fixed position is off by roughly 10-15 km for a
    low orbit. That is well below a scene pixel at the default scale.
    """

    def __init__(self, config: PipelineConfig):
        self.frame = config.scene_frame
        self.scene_earth_radius = config.scene_earth_radius

    def project(self, state: InertialState, body_config: BodyConfig,
                frame_instant: Optional[datetime] = None) -> np.ndarray:
        """
        Project one state.

        Args:
            state: Inertial state
            body_config: Body whose scene scale applies
            frame_instant: Instant whose Earth rotation defines the
                Earth-fixed frame (default: the state's own instant). An
                orbit lap passes its start instant so every sample shares
                one frame and the loop closes.

        Raises:
            DegenerateGeometryError: If the geodetic inversion is impossible
        """
        if self.frame == 'inertial':
            return inertial_to_scene(state.position, self.scene_earth_radius, body_config.distance_scale)

        rotation_instant = frame_instant if frame_instant is not None else state.instant
        position_ecef = eci_to_ecef(state.position, rotation_instant)
        geo = ecef_to_geodetic(position_ecef)
        return geodetic_to_scene(geo.latitude, geo.longitude, geo.altitude,
                                 self.scene_earth_radius, body_config.distance_scale)
