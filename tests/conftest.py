import datetime

import astropy.units as u
import numpy as np
import pytest
from astropy.coordinates import SkyCoord
from astropy.utils import iers

from polestar.imaging import CoordinateProjection, SolvedImage
from polestar.sky import HorizonFrame

# Frame tests use dates covered by the bundled IERS-B table.
iers.conf.auto_download = False


def pytest_addoption(parser):
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run tests marked as integration",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--integration"):
        return

    for item in items:
        if "integration" in item.keywords:
            item.add_marker(
                pytest.mark.skip(
                    reason="need --integration option to run integration tests"
                )
            )


class IdentityFrame(HorizonFrame):
    """Treats a coordinate's longitude/latitude as azimuth/altitude."""

    def to_horizontal(self, coord, time_utc):
        az = coord.spherical.lon.deg
        alt = coord.spherical.lat.deg
        if np.ndim(az) == 0:
            return float(az), float(alt)
        return az, alt

    def to_catalog(self, azimuth_deg, altitude_deg, time_utc):
        return SkyCoord(
            ra=np.asarray(azimuth_deg, dtype=float) * u.deg,
            dec=np.asarray(altitude_deg, dtype=float) * u.deg,
        )


class LinearProjection(CoordinateProjection):
    """Flat projection centred on (lon0, lat0) with square pixels."""

    def __init__(self, lon0, lat0, width=1000, height=800, scale_deg=0.01):
        self.lon0 = lon0
        self.lat0 = lat0
        self.cx = width // 2
        self.cy = height // 2
        self.scale_deg = scale_deg

    def pixel_to_sky(self, x, y):
        lat = self.lat0 + (y - self.cy) * self.scale_deg
        if abs(lat) > 90.0:
            return None
        return SkyCoord(ra=(self.lon0 + (x - self.cx) * self.scale_deg) * u.deg, dec=lat * u.deg)

    def sky_to_pixel(self, coord):
        dlon = (coord.spherical.lon.deg - self.lon0 + 180.0) % 360.0 - 180.0
        dlat = coord.spherical.lat.deg - self.lat0
        x = self.cx + np.asarray(dlon) / self.scale_deg
        y = self.cy + np.asarray(dlat) / self.scale_deg
        return np.asarray(x, dtype=float), np.asarray(y, dtype=float)


T0 = datetime.datetime(2024, 7, 1, 12, 0, tzinfo=datetime.timezone.utc)


def _make_image(az, alt, timestamp=T0, width=1000, height=800, scale_deg=0.01, projection=True):
    return SolvedImage(
        width_px=width,
        height_px=height,
        timestamp_utc=timestamp,
        projection=LinearProjection(az, alt, width, height, scale_deg) if projection else None,
    )


@pytest.fixture
def identity_frame():
    return IdentityFrame()


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def image_factory():
    return _make_image
