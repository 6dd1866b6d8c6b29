from __future__ import annotations

import datetime
from abc import ABC, abstractmethod

import astropy.units as u
import numpy as np
from astropy.coordinates import ICRS, AltAz, EarthLocation, SkyCoord
from astropy.time import Time

from .types import ObserverLocation


def as_utc(dt: datetime.datetime) -> datetime.datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def _scalar_or_array(values: np.ndarray):
    if np.ndim(values) == 0:
        return float(values)
    return np.asarray(values, dtype=float)


class HorizonFrame(ABC):
    """Converts between catalog coordinates and apparent azimuth/altitude.

    Covers both the epoch conversion (catalog <-> apparent place at the
    observation instant) and the horizontal transform for one observer.
    """

    @abstractmethod
    def to_horizontal(self, coord: SkyCoord, time_utc: datetime.datetime):
        """Return (azimuth_deg, altitude_deg) of a catalog coordinate."""

    @abstractmethod
    def to_catalog(self, azimuth_deg, altitude_deg, time_utc: datetime.datetime) -> SkyCoord:
        """Return the catalog (ICRS) coordinate of an azimuth/altitude."""


class AstropyHorizonFrame(HorizonFrame):
    """astropy AltAz frame without refraction.

    ICRS -> AltAz applies precession, nutation and aberration, so the
    returned azimuth/altitude are apparent positions.
    """

    def __init__(self, location: ObserverLocation):
        self._location = location
        self._earth_location = EarthLocation.from_geodetic(
            lon=location.longitude_deg * u.deg,
            lat=location.latitude_deg * u.deg,
            height=(location.elevation_m or 0.0) * u.m,
        )

    @property
    def location(self) -> ObserverLocation:
        return self._location

    def _altaz(self, time_utc: datetime.datetime) -> AltAz:
        return AltAz(
            obstime=Time(as_utc(time_utc), scale="utc"),
            location=self._earth_location,
        )

    def to_horizontal(self, coord: SkyCoord, time_utc: datetime.datetime):
        horizontal = coord.transform_to(self._altaz(time_utc))
        return _scalar_or_array(horizontal.az.deg), _scalar_or_array(horizontal.alt.deg)

    def to_catalog(self, azimuth_deg, altitude_deg, time_utc: datetime.datetime) -> SkyCoord:
        horizontal = SkyCoord(
            az=np.asarray(azimuth_deg, dtype=float) * u.deg,
            alt=np.asarray(altitude_deg, dtype=float) * u.deg,
            frame=self._altaz(time_utc),
        )
        return horizontal.transform_to(ICRS())
