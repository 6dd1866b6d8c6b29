#!/usr/bin/env python3
"""Generate plate-solved FITS frames for a mount with a known polar-alignment error.

Each frame carries only a TAN WCS and DATE-OBS (pixel data are zeros), which
is all `polestar polar` reads. The mount axis is placed at the requested
azimuth/altitude error from the visible pole; frames 1-3 rotate the RA axis
by --ra-step degrees each, and optional refresh frames apply a knob
adjustment after the third frame.

Usage:
  python scripts/gen_polar_fits.py --lat 51.5 --lon -0.1 --az-error 0.5 --alt-error -0.3 \
      --outdir testdata/polar
  python scripts/gen_polar_fits.py --lat -34.9 --lon 138.6 --refresh-adjust -0.25 0.1 \
      --outdir testdata/polar_south
"""

from __future__ import annotations

import argparse
import datetime
from pathlib import Path

import numpy as np
from astropy.io import fits
from astropy.wcs import WCS

from polestar.geometry import (
    Hemisphere,
    KnobAdjustment,
    apply_adjustment,
    rotate_around_axis,
    to_az_alt,
    to_direction,
)
from polestar.services.polar import SIDEREAL_RATE_ARCSEC_PER_S
from polestar.sky import AstropyHorizonFrame, ObserverLocation


def mount_axis(hemisphere: Hemisphere, az_error: float, alt_error: float) -> np.ndarray:
    """Oriented mount axis with the given error."""
    lat = abs(hemisphere.latitude_deg)
    az = az_error if hemisphere.northern else 180.0 + az_error
    return to_direction(az, lat + alt_error)


def write_frame(
    path: Path,
    frame: AstropyHorizonFrame,
    direction: np.ndarray,
    when: datetime.datetime,
    width: int,
    height: int,
    scale_arcsec: float,
) -> None:
    az, alt = to_az_alt(direction)
    centre = frame.to_catalog(az, alt, when)

    wcs = WCS(naxis=2)
    wcs.wcs.ctype = ["RA---TAN", "DEC--TAN"]
    wcs.wcs.crval = [float(centre.ra.deg), float(centre.dec.deg)]
    wcs.wcs.crpix = [width // 2 + 1, height // 2 + 1]
    wcs.wcs.cdelt = [-scale_arcsec / 3600.0, scale_arcsec / 3600.0]
    wcs.wcs.radesys = "ICRS"

    header = wcs.to_header()
    header["DATE-OBS"] = when.strftime("%Y-%m-%dT%H:%M:%S.%f")
    header["OBJECT"] = path.stem
    hdu = fits.PrimaryHDU(data=np.zeros((height, width), dtype=np.int16), header=header)
    hdu.writeto(path, overwrite=True)
    print(f"[ok] Wrote FITS: {path.name}  az {az:.4f} alt {alt:.4f}")


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--lat", type=float, required=True, help="Site latitude (deg)")
    ap.add_argument("--lon", type=float, required=True, help="Site longitude (deg)")
    ap.add_argument("--az-error", type=float, default=0.5, help="Mount azimuth error (deg)")
    ap.add_argument("--alt-error", type=float, default=-0.3, help="Mount altitude error (deg)")
    ap.add_argument("--start-az", type=float, default=None, help="Initial pointing azimuth (deg)")
    ap.add_argument("--start-alt", type=float, default=None, help="Initial pointing altitude (deg)")
    ap.add_argument("--ra-step", type=float, default=30.0, help="RA rotation between frames (deg)")
    ap.add_argument("--interval", type=float, default=20.0, help="Seconds between frames")
    ap.add_argument(
        "--refresh-adjust",
        type=float,
        nargs=2,
        action="append",
        default=[],
        metavar=("AZ", "ALT"),
        help="Knob adjustment (deg) for a refresh frame; repeat for more frames",
    )
    ap.add_argument("--time", type=str, default=None, help="UTC start time (ISO 8601)")
    ap.add_argument("--width", type=int, default=320)
    ap.add_argument("--height", type=int, default=240)
    ap.add_argument("--scale", type=float, default=10.0, help="Pixel scale (arcsec/px)")
    ap.add_argument("--outdir", type=Path, default=Path("testdata/polar"))
    ap.add_argument("--prefix", type=str, default="polestar_sim_")

    args = ap.parse_args()

    start = (
        datetime.datetime.fromisoformat(args.time)
        if args.time
        else datetime.datetime.now(datetime.timezone.utc)
    )
    if start.tzinfo is None:
        start = start.replace(tzinfo=datetime.timezone.utc)

    location = ObserverLocation(latitude_deg=args.lat, longitude_deg=args.lon)
    hemisphere = Hemisphere.of(location)
    frame = AstropyHorizonFrame(location)

    axis = mount_axis(hemisphere, args.az_error, args.alt_error)
    north_axis = hemisphere.north_facing(axis)

    # Default pointing: 30 degrees off the visible pole, toward the meridian.
    start_az = args.start_az if args.start_az is not None else (0.0 if hemisphere.northern else 180.0)
    start_alt = args.start_alt if args.start_alt is not None else abs(args.lat) - 30.0
    pointing = to_direction(start_az, start_alt)

    outdir: Path = args.outdir
    outdir.mkdir(parents=True, exist_ok=True)
    print(f"[info] Site lat {args.lat} lon {args.lon}; axis error az {args.az_error} alt {args.alt_error}")

    def tracked(rotation_deg: float, elapsed_s: float) -> np.ndarray:
        tracking = SIDEREAL_RATE_ARCSEC_PER_S * elapsed_s / 3600.0
        return rotate_around_axis(pointing, north_axis, rotation_deg + tracking)

    for i in range(3):
        elapsed = i * args.interval
        when = start + datetime.timedelta(seconds=elapsed)
        write_frame(
            outdir / f"{args.prefix}{i + 1:04d}.fits",
            frame,
            tracked(i * args.ra_step, elapsed),
            when,
            args.width,
            args.height,
            args.scale,
        )

    for j, (az_adjust, alt_adjust) in enumerate(args.refresh_adjust):
        elapsed = (3 + j) * args.interval
        when = start + datetime.timedelta(seconds=elapsed)
        direction = apply_adjustment(
            tracked(2 * args.ra_step, elapsed),
            KnobAdjustment(azimuth_deg=az_adjust, altitude_deg=alt_adjust),
        )
        write_frame(
            outdir / f"{args.prefix}refresh_{j + 1:04d}.fits",
            frame,
            direction,
            when,
            args.width,
            args.height,
            args.scale,
        )

    print("[done] FITS generation complete.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
