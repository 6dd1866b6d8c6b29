"""Unit-sphere directions and the rotations used by polar alignment.

Directions are numpy arrays whose last dimension holds (x, y, z) in a
right-handed horizon frame: x points at the north horizon, y at the west
horizon and z at the zenith. Every function broadcasts over leading
dimensions, so a batch of directions or a grid of angles can be rotated in
one call.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


def _stack(x, y, z) -> np.ndarray:
    return np.stack(np.broadcast_arrays(x, y, z), axis=-1)


def _components(direction):
    v = np.asarray(direction, dtype=float)
    return v[..., 0], v[..., 1], v[..., 2]


@dataclass(frozen=True)
class KnobAdjustment:
    """A turn of the azimuth and altitude knobs, in degrees.

    The altitude knob is applied first, then the azimuth knob.
    """

    azimuth_deg: float
    altitude_deg: float


def to_direction(azimuth_deg, altitude_deg) -> np.ndarray:
    az = np.radians(azimuth_deg)
    alt = np.radians(altitude_deg)
    cos_alt = np.cos(alt)
    return _stack(np.cos(az) * cos_alt, -np.sin(az) * cos_alt, np.sin(alt))


def to_az_alt(direction):
    x, y, z = _components(direction)
    r = np.sqrt(x * x + y * y + z * z)
    az = np.degrees(np.arctan2(-y, x)) % 360.0
    az = np.where(az >= 360.0, 0.0, az)
    alt = np.degrees(np.arcsin(np.clip(z / r, -1.0, 1.0)))
    if np.ndim(az) == 0:
        return float(az), float(alt)
    return az, alt


def rotate_y(direction, angle_deg) -> np.ndarray:
    # Positive angles raise north-facing directions toward the zenith.
    x, y, z = _components(direction)
    t = np.radians(angle_deg)
    c, s = np.cos(t), np.sin(t)
    return _stack(x * c - z * s, y, x * s + z * c)


def rotate_z(direction, angle_deg) -> np.ndarray:
    # Positive angles increase azimuth.
    x, y, z = _components(direction)
    t = np.radians(angle_deg)
    c, s = np.cos(t), np.sin(t)
    return _stack(x * c + y * s, y * c - x * s, z)


def rotate_around_axis(point, axis, angle_deg) -> np.ndarray:
    """Rodrigues rotation of ``point`` about the unit ``axis``.

    The sense follows the right-hand rule about ``axis``.
    """
    v = np.asarray(point, dtype=float)
    k = np.asarray(axis, dtype=float)
    t = np.radians(angle_deg)
    c = np.asarray(np.cos(t))[..., np.newaxis]
    s = np.asarray(np.sin(t))[..., np.newaxis]
    k_dot_v = np.asarray(np.sum(k * v, axis=-1))[..., np.newaxis]
    return v * c + np.cross(k, v) * s + k * k_dot_v * (1.0 - c)


def angle_between(a, b):
    """Great-circle separation in degrees, in [0, 180]."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    cross = np.linalg.norm(np.cross(a, b), axis=-1)
    dot = np.sum(a * b, axis=-1)
    angle = np.degrees(np.arctan2(cross, dot))
    if np.ndim(angle) == 0:
        return float(angle)
    return angle


def apply_adjustment(direction, adjustment: KnobAdjustment) -> np.ndarray:
    return rotate_z(rotate_y(direction, adjustment.altitude_deg), adjustment.azimuth_deg)


def rotate_ra_axis(
    azimuth_deg, altitude_deg, az_rotation_deg, alt_rotation_deg
):
    """Apply an altitude-then-azimuth knob rotation to az/alt coordinates."""
    rotated = rotate_z(
        rotate_y(to_direction(azimuth_deg, altitude_deg), alt_rotation_deg),
        az_rotation_deg,
    )
    return to_az_alt(rotated)
