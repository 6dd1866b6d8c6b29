"""Grid search for the knob adjustment that carries one direction to another.

The loss surface over (altitude, azimuth) rotations is non-convex and the two
rotations do not commute, so searching one knob and then the other settles
in poor local minima. Both knobs are searched together: a coarse pass around
the identity, then a fine pass around the coarse optimum.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from .rotations import KnobAdjustment, angle_between, rotate_y, rotate_z

PASS1_RESOLUTION_DEG = 1.0 / 60.0
PASS1_MIN_RANGE_DEG = 1.0
PASS1_MAX_RANGE_DEG = 10.0
PASS1_RANGE_SCALE = 2.5
PASS2_RESOLUTION_DEG = 5.0 / 3600.0
PASS2_RANGE_DEG = 4.0 / 60.0


@dataclass(frozen=True)
class RotationSolution:
    azimuth_deg: float
    altitude_deg: float
    residual_deg: float

    @property
    def adjustment(self) -> KnobAdjustment:
        return KnobAdjustment(azimuth_deg=self.azimuth_deg, altitude_deg=self.altitude_deg)


def residual(from_dir, altitude_deg, azimuth_deg, goal):
    """Distance in degrees between ``goal`` and ``from_dir`` after the knob rotation."""
    return angle_between(rotate_z(rotate_y(from_dir, altitude_deg), azimuth_deg), goal)


def _grid(center: float, span: float, step: float) -> np.ndarray:
    count = int(math.floor(2.0 * span / step + 1e-9)) + 1
    return center - span + step * np.arange(count)


def grid_search(
    from_dir,
    goal,
    az_center: float,
    alt_center: float,
    span: float,
    step: float,
) -> RotationSolution:
    """Try every (altitude, azimuth) pair within ``span`` of the centre.

    Bounds are inclusive. Ties keep the first pair in (altitude, azimuth)
    order.
    """
    span = abs(span)
    az_values = _grid(az_center, span, step)
    best = RotationSolution(azimuth_deg=0.0, altitude_deg=0.0, residual_deg=math.inf)
    for alt in _grid(alt_center, span, step):
        distances = residual(from_dir, alt, az_values, goal)
        i = int(np.argmin(distances))
        if distances[i] < best.residual_deg:
            best = RotationSolution(
                azimuth_deg=float(az_values[i]),
                altitude_deg=float(alt),
                residual_deg=float(distances[i]),
            )
    return best


def pass1_range(from_dir, goal) -> float:
    angle = angle_between(from_dir, goal)
    return max(PASS1_MIN_RANGE_DEG, min(PASS1_MAX_RANGE_DEG, PASS1_RANGE_SCALE * abs(angle)))


def best_rotation(from_dir, goal) -> RotationSolution:
    """Find the altitude-then-azimuth rotation taking ``from_dir`` closest to ``goal``.

    Never fails; the caller judges the returned residual.
    """
    coarse = grid_search(
        from_dir, goal, 0.0, 0.0, pass1_range(from_dir, goal), PASS1_RESOLUTION_DEG
    )
    return grid_search(
        from_dir,
        goal,
        coarse.azimuth_deg,
        coarse.altitude_deg,
        PASS2_RANGE_DEG,
        PASS2_RESOLUTION_DEG,
    )
