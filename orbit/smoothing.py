"""
Gap filling for orbit polylines.

These are rendering-smoothness heuristics, not physics: interpolated and
blended points only keep the drawn curve from breaking or jumping when some
propagation samples fail. They must never be used as a body's position.
"""

import logging
from typing import Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


def _as_points(points) -> np.ndarray:
    if points is None:
        return np.empty((0, 3))
    return np.asarray(points, dtype=np.float64).reshape(-1, 3)


def interpolate_arc_points(points, target_count: int) -> np.ndarray:
    """
    Resample a polyline to target_count evenly spaced points.

    Points are spread evenly over the index range of the input and linearly
    interpolated between neighbours, so the first and last input points are
    preserved.

    Args:
        points: (N, 3) array of accepted points, in sampling order
        target_count: Number of output points

    Returns:
        (target_count, 3) array, or a copy of the input if it has < 2 points
    """
    points = _as_points(points)
    if len(points) < 2 or target_count < 2:
        return points.copy()

    index = np.linspace(0.0, len(points) - 1, target_count)
    lower = np.floor(index).astype(int)
    upper = np.minimum(lower + 1, len(points) - 1)
    t = (index - lower)[:, None]

    return points[lower] + (points[upper] - points[lower]) * t


def fill_missing_points(current, previous, target_count: int,
                        min_success_ratio: float = 0.8) -> Tuple[np.ndarray, bool]:
    """
    Apply the gap policy to one period of fresh samples.

    - At least min_success_ratio * target_count fresh points: resample them
      to target_count points (arc interpolation).
    - Fewer, with a previous accepted set: blend towards the previous set,
      weighted by the fraction of fresh points.
    - Fewer, without a previous set: return the fresh points as they are.

    Args:
        current: (N, 3) fresh points
        previous: (M, 3) previous accepted points (open, no closing duplicate) or None
        target_count: Desired point count
        min_success_ratio: Fraction of target_count needed to skip blending

    Returns:
        (points, blended) where blended is True if the previous set was used
    """
    current = _as_points(current)
    previous = _as_points(previous)

    if len(current) >= target_count * min_success_ratio:
        return interpolate_arc_points(current, target_count), False

    if len(previous) == 0:
        logger.debug(f"Sparse orbit ({len(current)}/{target_count}) with no previous set to blend")
        return current.copy(), False

    i = np.arange(target_count)
    prev_idx = (i * len(previous)) // target_count

    if len(current) == 0:
        return previous[prev_idx].copy(), True

    weight = len(current) / target_count
    cur_idx = (i * len(current)) // target_count

    blended = previous[prev_idx] + (current[cur_idx] - previous[prev_idx]) * weight
    logger.debug(f"Blended orbit with previous set (fresh weight {weight:.2f})")
    return blended, True


def close_loop(points) -> np.ndarray:
    """Append a copy of the first point; empty input stays empty."""
    points = _as_points(points)
    if len(points) == 0:
        return points
    return np.vstack([points, points[:1]])
