import datetime
from pathlib import Path

from astropy.io import fits
from astropy.time import Time
from astropy.wcs import WCS

from polestar.errors import InputUnavailableError
from .projection import WcsProjection
from .types import SolvedImage


def _header_timestamp(header) -> datetime.datetime | None:
    value = header.get("DATE-OBS")
    if not value:
        return None
    return Time(value, scale="utc").to_datetime(timezone=datetime.timezone.utc)


def load_solved_image(path: str | Path) -> SolvedImage:
    """Read a plate-solved FITS file.

    The primary header must carry a celestial WCS and DATE-OBS.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Input file not found: {path}")

    with fits.open(path) as hdul:
        header = hdul[0].header.copy()

    timestamp = _header_timestamp(header)
    if timestamp is None:
        raise InputUnavailableError(f"{path.name}: DATE-OBS missing from FITS header")

    wcs = WCS(header)
    if not wcs.has_celestial:
        raise InputUnavailableError(f"{path.name}: no astrometric solution in FITS header")

    width = int(header.get("NAXIS1", 0))
    height = int(header.get("NAXIS2", 0))
    if width <= 0 or height <= 0:
        raise InputUnavailableError(f"{path.name}: image dimensions missing from FITS header")

    return SolvedImage(
        width_px=width,
        height_px=height,
        timestamp_utc=timestamp,
        projection=WcsProjection(wcs),
        metadata={"path": str(path), "object": header.get("OBJECT")},
        data=str(path),
    )
