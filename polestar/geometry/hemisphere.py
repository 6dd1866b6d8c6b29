"""Sign conventions that depend on the observer's hemisphere.

The mount axis points at the visible celestial pole: north of the observer in
the northern hemisphere, south of it in the southern one. Every sign flip
that follows from that lives here.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .rotations import KnobAdjustment


def _wrap_half_turn(angle_deg: float) -> float:
    # (-180, 180]
    wrapped = angle_deg % 360.0
    if wrapped > 180.0:
        wrapped -= 360.0
    return wrapped


@dataclass(frozen=True)
class Hemisphere:
    latitude_deg: float

    @classmethod
    def of(cls, location) -> "Hemisphere":
        return cls(latitude_deg=location.latitude_deg)

    @property
    def northern(self) -> bool:
        # An observer on the equator uses the southern conventions.
        return self.latitude_deg > 0.0

    def orient_axis(self, axis) -> np.ndarray:
        """Pick the solution of an axis fit that faces the visible pole."""
        axis = np.asarray(axis, dtype=float)
        if (self.northern and axis[0] < 0.0) or (not self.northern and axis[0] > 0.0):
            return -axis
        return axis

    def north_facing(self, axis) -> np.ndarray:
        """Return the oriented axis turned toward the north celestial pole."""
        axis = np.asarray(axis, dtype=float)
        return axis if self.northern else -axis

    def axis_error(self, axis_az_deg: float, axis_alt_deg: float) -> tuple[float, float]:
        """Azimuth and altitude error of an oriented axis, in degrees."""
        if self.northern:
            alt_error = axis_alt_deg - self.latitude_deg
            az_error = axis_az_deg
        else:
            alt_error = axis_alt_deg + self.latitude_deg
            az_error = axis_az_deg + 180.0
        return _wrap_half_turn(az_error), alt_error

    def correction_angles(self, az_errors, alt_errors) -> tuple[np.ndarray, np.ndarray]:
        """Azimuth and altitude knob turns removing each candidate error."""
        az_errors = np.asarray(az_errors, dtype=float)
        alt_errors = np.asarray(alt_errors, dtype=float)
        alt_rotations = -alt_errors if self.northern else alt_errors
        return -az_errors, alt_rotations

    def correction(self, az_error_deg: float, alt_error_deg: float) -> KnobAdjustment:
        """Knob adjustment that removes the given polar-alignment error."""
        az_rotation, alt_rotation = self.correction_angles(az_error_deg, alt_error_deg)
        return KnobAdjustment(azimuth_deg=float(az_rotation), altitude_deg=float(alt_rotation))
