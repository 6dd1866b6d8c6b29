from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np
from astropy.coordinates import SkyCoord
from astropy.wcs import WCS, NoConvergence


class CoordinateProjection(ABC):
    """Pixel <-> catalog-coordinate mapping of one plate-solved image."""

    @abstractmethod
    def pixel_to_sky(self, x, y) -> SkyCoord | None:
        """Return the catalog coordinate of a pixel, or None if it has none."""

    @abstractmethod
    def sky_to_pixel(self, coord: SkyCoord) -> tuple[np.ndarray, np.ndarray]:
        """Return pixel coordinates, NaN where a coordinate cannot be projected."""


class WcsProjection(CoordinateProjection):
    """Projection backed by the astrometric solution in a FITS header."""

    def __init__(self, wcs: WCS):
        if not wcs.has_celestial:
            raise ValueError("WCS has no celestial axes")
        self._wcs = wcs.celestial

    @classmethod
    def from_header(cls, header) -> "WcsProjection":
        return cls(WCS(header))

    @property
    def wcs(self) -> WCS:
        return self._wcs

    def pixel_to_sky(self, x, y) -> SkyCoord | None:
        try:
            coord = self._wcs.pixel_to_world(x, y)
        except (ValueError, NoConvergence):
            return None
        if np.any(np.isnan(coord.spherical.lon.deg)) or np.any(
            np.isnan(coord.spherical.lat.deg)
        ):
            return None
        return coord

    def sky_to_pixel(self, coord: SkyCoord) -> tuple[np.ndarray, np.ndarray]:
        shape = np.shape(coord)
        try:
            x, y = self._wcs.world_to_pixel(coord)
        except (ValueError, NoConvergence):
            return np.full(shape, np.nan), np.full(shape, np.nan)
        return np.asarray(x, dtype=float), np.asarray(y, dtype=float)
