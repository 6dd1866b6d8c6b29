from .rotations import (
    KnobAdjustment,
    angle_between,
    apply_adjustment,
    rotate_around_axis,
    rotate_ra_axis,
    rotate_y,
    rotate_z,
    to_az_alt,
    to_direction,
)
from .hemisphere import Hemisphere
from .axis import fit_axis
from .search import RotationSolution, best_rotation

__all__ = [
    "KnobAdjustment",
    "angle_between",
    "apply_adjustment",
    "rotate_around_axis",
    "rotate_ra_axis",
    "rotate_y",
    "rotate_z",
    "to_az_alt",
    "to_direction",
    "Hemisphere",
    "fit_axis",
    "RotationSolution",
    "best_rotation",
]
