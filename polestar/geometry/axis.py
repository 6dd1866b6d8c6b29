from __future__ import annotations

import logging
import math

import numpy as np

from polestar.errors import DegenerateGeometryError
from .hemisphere import Hemisphere

logger = logging.getLogger(__name__)

# A fitted axis shorter than this failed to normalize.
MIN_AXIS_LENGTH = 0.9

# Samples closer than this (or this close to antipodal) do not define a plane.
MIN_SAMPLE_SEPARATION_DEG = 0.01

_MIN_PAIR_SINE = math.sin(math.radians(MIN_SAMPLE_SEPARATION_DEG))
_NORMALIZE_EPS = 1e-12


def _normalize(v: np.ndarray) -> np.ndarray:
    length = float(np.linalg.norm(v))
    if length < _NORMALIZE_EPS:
        return v
    return v / length


def raw_axis(p1, p2, p3) -> np.ndarray:
    """Normal of the plane through three directions, unnormalized.

    Equal to (p2 - p1) x (p3 - p1): the line where the perpendicular bisector
    planes of the chords meet, which is the axis of any rotation carrying the
    points into each other.
    """
    p1, p2, p3 = (np.asarray(p, dtype=float) for p in (p1, p2, p3))
    return np.cross(p1, p2) + np.cross(p2, p3) + np.cross(p3, p1)


def fit_axis(p1, p2, p3, hemisphere: Hemisphere | None = None) -> np.ndarray:
    """Find the rotation axis consistent with three sampled directions.

    The result is a unit vector. When ``hemisphere`` is given, the solution
    facing that hemisphere's visible pole is returned.

    Raises DegenerateGeometryError when the samples are coincident,
    antipodal or otherwise fail to determine the axis.
    """
    points = [np.asarray(p, dtype=float) for p in (p1, p2, p3)]
    pairs = ((0, 1), (1, 2), (2, 0))
    pair_sines = [float(np.linalg.norm(np.cross(points[i], points[j]))) for i, j in pairs]

    if min(pair_sines) < _MIN_PAIR_SINE:
        axis = np.zeros(3)
    else:
        axis = _normalize(raw_axis(*points))

    length = float(np.linalg.norm(axis))
    if length < MIN_AXIS_LENGTH:
        logger.info("Normal vector too short (%.3g); axis fit failed.", length)
        raise DegenerateGeometryError(
            "Could not determine mount axis: samples are too close to degenerate"
        )

    if hemisphere is not None:
        axis = hemisphere.orient_axis(axis)
    return axis
